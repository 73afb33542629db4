import shlex

from probes import (CurlProbe, FieldQueryProbe, LogsProbe, PodEnvProbe, PodExecProbe, ProbeError, ProbeInterface,
                    ShellProbe)
from support import logger_poller

from .poller import poll_until
from .predicates import Contains, Equals, ErrorMatches, MatchesRegexp, NotContains, Satisfies, Successive

OUTPUT_TIMEOUT = 180
OUTPUT_INTERVAL = 5
CURL_TIMEOUT = 30
CURL_INTERVAL = 5
ERROR_INTERVAL = 3
LOGS_TIMEOUT = 90
LOGS_INTERVAL = 3
POD_READY_TIMEOUT = 180
POD_READY_INTERVAL = 5
OPERATOR_INTERVAL = 5
HEALTHY_OPERATOR_STATUS = "TrueFalseFalse"

ADMITTED_JSONPATH = '{{.status.ingress[?(@.routerName=="{ic}")].conditions[?(@.type=="Admitted")].status}}'
POD_READY_JSONPATH = '{.items[*].status.conditions[?(@.type=="Ready")].status}'
OPERATOR_STATUS_JSONPATH = (
    '{.status.conditions[?(@.type=="Available")].status}'
    '{.status.conditions[?(@.type=="Progressing")].status}'
    '{.status.conditions[?(@.type=="Degraded")].status}'
)


def wait_for_output(namespace, resource, jsonpath, predicate, timeout=OUTPUT_TIMEOUT, interval=OUTPUT_INTERVAL,
                    cli=None, **kwargs) -> str:
    """
    Poll a jsonpath query until `predicate` holds and return the last output.

    Args:
        namespace: Namespace of the resource
        resource: `kind/name`, e.g. "route/service-unsecure"
        jsonpath: JSONPath expression
        predicate: Predicate judging the output
        timeout: Seconds before ConvergenceTimeout
        interval: Seconds between queries
        cli: ClusterCli to use
    """
    probe = FieldQueryProbe(namespace, resource, jsonpath, cli=cli)
    return poll_until(probe, predicate, timeout, interval, **kwargs).text


def wait_for_output_contains(namespace, resource, jsonpath, expected, **kwargs) -> str:
    return wait_for_output(namespace, resource, jsonpath, Contains(expected), **kwargs)


def wait_for_output_equals(namespace, resource, jsonpath, expected, **kwargs) -> str:
    return wait_for_output(namespace, resource, jsonpath, Equals(expected), **kwargs)


def wait_for_output_not_contains(namespace, resource, jsonpath, expected, **kwargs) -> str:
    return wait_for_output(namespace, resource, jsonpath, NotContains(expected), **kwargs)


def wait_for_output_matches_regexp(namespace, resource, jsonpath, pattern, **kwargs) -> str:
    """Returns the text the regexp matched, not the whole output"""
    predicate = MatchesRegexp(pattern)
    output = wait_for_output(namespace, resource, jsonpath, predicate, **kwargs)
    return predicate.first_match(output)


def ensure_route_admitted(namespace, route, ic_name, admitted=True, **kwargs) -> str:
    """The route's Admitted condition for router `ic_name` reads True (or False with admitted=False)"""
    jsonpath = ADMITTED_JSONPATH.format(ic=ic_name)
    return wait_for_output_equals(namespace, f"route/{route}", jsonpath, "True" if admitted else "False", **kwargs)


def wait_for_pod_with_label_ready(namespace, label, timeout=POD_READY_TIMEOUT, interval=POD_READY_INTERVAL,
                                  cli=None, **kwargs) -> str:
    """Every pod with the label is Ready; at least one pod must exist"""
    probe = FieldQueryProbe(namespace, "pod", POD_READY_JSONPATH, label=label, cli=cli)
    predicate = Satisfies(lambda text: bool(text.strip()) and "False" not in text,
                          f"pods with label {label} all Ready")
    return poll_until(probe, predicate, timeout, interval, **kwargs).text


def ensure_logs_contain_string(namespace, label, match, timeout=LOGS_TIMEOUT, interval=LOGS_INTERVAL, tail=20,
                               cli=None, **kwargs) -> str:
    probe = LogsProbe(namespace, label, tail=tail, cli=cli)
    return poll_until(probe, Contains(match), timeout, interval, **kwargs).text


def ensure_cluster_operator_normal(name, healthy_threshold, timeout, interval=OPERATOR_INTERVAL, cli=None,
                                   **kwargs) -> str:
    """
    Available=True, Progressing=False, Degraded=False on `healthy_threshold` reads in a row.

    A single bad read starts the count over.
    """
    probe = FieldQueryProbe("default", f"co/{name}", OPERATOR_STATUS_JSONPATH, cli=cli)
    predicate = Successive(Equals(HEALTHY_OPERATOR_STATUS), healthy_threshold)
    logger_poller.info(f"Waiting for cluster operator {name} to be stable")
    return poll_until(probe, predicate, timeout, interval, **kwargs).text


def wait_for_outside_curl_contains(url, curl_options="", expected="", timeout=CURL_TIMEOUT, interval=CURL_INTERVAL,
                                   **kwargs) -> str:
    """
    curl from the test client until the output contains `expected`.

    A failing curl whose error output contains `expected` also succeeds, for
    scenarios where a timeout or a refused connection is the expected result.
    """
    options = shlex.split(curl_options) if isinstance(curl_options, str) else list(curl_options)
    probe = CurlProbe(url, options=options)
    probe.combine_stderr = True
    return poll_until(probe, Contains(expected, on_error=True), timeout, interval, **kwargs).text


def wait_for_curl(pod, url, search_word, resolve=None, namespace="default", timeout=CURL_TIMEOUT,
                  interval=CURL_INTERVAL, cli=None, **kwargs) -> str:
    """curl -v from a client pod, optionally pinned to the router with `resolve` (host:port:address)"""
    curl = CurlProbe(url, resolve=resolve, verbose=True)
    probe = PodExecProbe.curl(namespace, pod, curl, cli=cli)
    return poll_until(probe, Contains(search_word), timeout, interval, **kwargs).text


def wait_for_error_occur(probe, expected_error, timeout, interval=ERROR_INTERVAL, **kwargs) -> str:
    """
    Run `probe` until it fails with an error matching the `expected_error` regexp.

    A string or an argument list is run on the test client.
    """
    if not isinstance(probe, ProbeInterface):
        probe = ShellProbe(probe)
    return poll_until(probe, ErrorMatches(expected_error), timeout, interval, **kwargs).text


def read_pod_env(pod, namespace, env_name, cli=None) -> str:
    """Lines of the pod environment containing `env_name`, read once; "NotFound" when none"""
    try:
        output = PodEnvProbe(namespace, pod, env_name, cli=cli).run().text
    except ProbeError as e:
        logger_poller.debug(f"Reading env of {namespace}/{pod} failed: {e}")
        return "NotFound"
    return output or "NotFound"


def poll_read_pod_data(namespace, pod, command, search_string, timeout=60, interval=5, cli=None, **kwargs) -> str:
    """Run `command` in the pod until its output contains `search_string`; returns the matching lines"""
    probe = PodExecProbe(namespace, pod, command, cli=cli)
    output = poll_until(probe, Contains(search_string), timeout, interval, **kwargs).text
    return "\n".join(line for line in output.splitlines() if search_string in line)


def poll_read_pod_env(namespace, pod, env_name, **kwargs) -> str:
    return poll_read_pod_data(namespace, pod, ["/usr/bin/env"], env_name, **kwargs)
