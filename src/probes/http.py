import time
from urllib.parse import urlsplit, urlunsplit

import requests
import urllib3

from support import logger_probe

from .interface import ProbeInterface
from .types import Latency, Observation, ProbeError

# Routes in test clusters are served with self-signed certificates
urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)


class HTTPProbe(ProbeInterface):
    """
    HTTP(S) request through `requests`.

    The observation reads like `curl -si`: status line, headers, blank line, body.
    Pass a shared `requests.Session` to keep cookies between attempts, the way a
    curl cookie jar does for sticky-session checks.
    """

    latency = Latency.SLOW

    def __init__(self, url, method="GET", headers=None, session=None, resolve_to=None, verify=False,
                 allow_redirects=False, include_body=True):
        """
        Args:
            url: URL to request
            method: HTTP method
            headers: Dict of request headers
            session: Optional requests.Session reused across attempts
            resolve_to: Send the request to this address while keeping the URL host in the Host header
            verify: TLS verification, as in requests
            allow_redirects: Follow redirects
            include_body: Append the body to the observation
        """
        self.url = url
        self.method = method
        self.headers = dict(headers or {})
        self.session = session
        self.resolve_to = resolve_to
        self.verify = verify
        self.allow_redirects = allow_redirects
        self.include_body = include_body

    @property
    def target(self) -> str:
        return self.url

    def request_url_and_headers(self):
        if not self.resolve_to:
            return self.url, self.headers

        parts = urlsplit(self.url)
        headers = dict(self.headers)
        headers.setdefault("Host", parts.netloc)
        netloc = self.resolve_to if parts.port is None else f"{self.resolve_to}:{parts.port}"
        return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment)), headers

    def run(self, timeout=None) -> Observation:
        url, headers = self.request_url_and_headers()
        sender = self.session or requests
        started = time.monotonic()
        try:
            response = sender.request(
                self.method,
                url,
                headers=headers,
                verify=self.verify,
                allow_redirects=self.allow_redirects,
                timeout=self.attempt_timeout(timeout),
            )
        except requests.exceptions.RequestException as e:
            raise ProbeError(f"{type(e).__name__}: {e}", target=self.target) from e

        elapsed = time.monotonic() - started
        logger_probe.debug(f"{self.method} {url} -> {response.status_code} ({elapsed:.2f}s)")
        return Observation(self.format_response(response), 0, self.target, elapsed)

    def format_response(self, response) -> str:
        version = {10: "1.0", 11: "1.1", 20: "2"}.get(getattr(response.raw, "version", 11), "1.1")
        lines = [f"HTTP/{version} {response.status_code} {response.reason}"]
        lines.extend(f"{name}: {value}" for name, value in response.headers.items())
        text = "\n".join(lines) + "\n"
        if self.include_body:
            text += "\n" + response.text
        return text
