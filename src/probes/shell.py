from support import Consts

from .interface import CommandProbe
from .types import Latency


class ShellProbe(CommandProbe):
    """
    Run a local command on the test client.

    A list is executed as-is. A string is executed through `bash -c` and is
    meant for the few checks that really need a pipeline.
    """

    def __init__(self, command, latency=Latency.FAST, combine_stderr=True, env=None):
        self._command = command
        self.latency = latency
        self.combine_stderr = combine_stderr
        self.env = env

    @property
    def target(self) -> str:
        return "localhost"

    def command(self) -> list[str]:
        if isinstance(self._command, str):
            return ["bash", "-c", self._command]
        return list(self._command)

    def describe(self):
        return f"ShellProbe({' '.join(self.command())})"


class CurlProbe(CommandProbe):
    """curl from the test client, built from explicit options instead of a command string"""

    latency = Latency.SLOW

    def __init__(self, url, options=None, headers=None, resolve=None, cookie_jar=None, send_cookies=None,
                 verbose=False, insecure=False, connect_timeout=None):
        """
        Args:
            url: URL to request
            options: Extra curl arguments, e.g. ["-I"] or ["--max-time", "5"]
            headers: Dict of request headers
            resolve: `host:port:address` pin, as curl --resolve
            cookie_jar: File to write received cookies to (-c)
            send_cookies: File or string with cookies to send (-b)
            verbose: Add -v; the verbose trace goes to stderr and is kept in the observation
            insecure: Skip TLS verification (-k)
            connect_timeout: Seconds for --connect-timeout (defaults to ROUTERPROBE_CURL_CONNECT_TIMEOUT)
        """
        self.url = url
        self.options = list(options or [])
        self.headers = dict(headers or {})
        self.resolve = resolve
        self.cookie_jar = cookie_jar
        self.send_cookies = send_cookies
        self.verbose = verbose
        self.insecure = insecure
        self.connect_timeout = connect_timeout if connect_timeout is not None else Consts.curl_connect_timeout
        self.combine_stderr = verbose

    @property
    def target(self) -> str:
        return self.url

    def arguments(self) -> list[str]:
        """curl arguments without the binary, shared with the in-pod variant"""
        args = ["--connect-timeout", str(self.connect_timeout), "-s"]
        if self.verbose:
            args.append("-v")
        if self.insecure:
            args.append("-k")
        if self.resolve:
            args.extend(["--resolve", self.resolve])
        if self.cookie_jar:
            args.extend(["-c", self.cookie_jar])
        if self.send_cookies:
            args.extend(["-b", self.send_cookies])
        for name, value in self.headers.items():
            args.extend(["-H", f"{name}: {value}"])
        args.extend(self.options)
        args.append(self.url)
        return args

    def command(self) -> list[str]:
        return ["curl"] + self.arguments()
