import argparse
import os
import sys

from convergence import (AnyOf, Contains, ConvergenceError, Equals, MatchesRegexp, NotContains, PollPolicyError,
                         RolloutError, RolloutSelector, poll_counted, poll_until, repeat_until_matched)
from convergence.haproxy import (ensure_haproxy_block_config_contains, ensure_haproxy_block_config_matches_regexp,
                                 ensure_haproxy_block_config_not_contains)
from probes import CurlProbe, FieldQueryProbe, HTTPProbe
from support import Consts, Functions, ProbeEnv, logger_init, logger_poller, logger_probe, logger_rollout


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="routerprobe",
        description="Poll an OpenShift router from the shell until it converges to the expected state.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument("--config", metavar="FILE",
                        help="YAML settings file. Also set by ROUTERPROBE_CONFIG.")
    parser.add_argument("--cli", metavar="BINARY",
                        help="oc or kubectl. Also set by ROUTERPROBE_CLI.")
    parser.add_argument("--kubeconfig", metavar="FILE",
                        help="Kubeconfig passed to the CLI and the API client. Also set by ROUTERPROBE_KUBECONFIG.")
    parser.add_argument("--router-namespace", metavar="NAMESPACE",
                        help="Namespace of the router deployments. Also set by ROUTERPROBE_ROUTER_NAMESPACE.")
    parser.add_argument("--log-level", metavar="LEVEL",
                        choices=["TRACE", "DEBUG", "INFO", "WARN", "ERROR", "FATAL"],
                        help="Log level of every source. Also set by <SOURCE>_LOG_LEVEL.")

    commands = parser.add_subparsers(dest="command", required=True)

    output = commands.add_parser("output", help="Poll a jsonpath query")
    output.add_argument("namespace")
    output.add_argument("resource", help="kind/name, e.g. route/service-unsecure")
    output.add_argument("jsonpath")
    expectation = output.add_mutually_exclusive_group(required=True)
    expectation.add_argument("--equals", metavar="TEXT")
    expectation.add_argument("--contains", metavar="TEXT")
    expectation.add_argument("--not-contains", metavar="TEXT")
    expectation.add_argument("--regexp", metavar="PATTERN")
    _add_policy(output, timeout=180, interval=5)

    curl = commands.add_parser("curl", help="Repeat a curl from this host until enough responses matched")
    curl.add_argument("url")
    curl.add_argument("--expect", metavar="PATTERN", action="append", required=True,
                      help="Regexp; repeat to count several alternatives (e.g. one per backend)")
    curl.add_argument("--times", type=int, default=1, help="Matches needed, summed over all patterns")
    curl.add_argument("--resolve", metavar="HOST:PORT:ADDRESS")
    curl.add_argument("--option", metavar="ARG", action="append", default=[], help="Extra curl argument")
    curl.add_argument("--insecure", "-k", action="store_true")
    _add_policy(curl, timeout=30, interval=1)

    http = commands.add_parser("http", help="Poll a URL with requests")
    http.add_argument("url")
    http.add_argument("--expect", metavar="TEXT", action="append", required=True,
                      help="Text the response must contain; repeat for alternatives")
    http.add_argument("--resolve-to", metavar="ADDRESS", help="Connect to this address, keep the URL host")
    http.add_argument("--header", metavar="NAME:VALUE", action="append", default=[])
    http.add_argument("--attempts", type=int,
                      help="Run exactly this many requests and print how many matched each --expect")
    http.add_argument("--required-matches", type=int, default=0)
    _add_policy(http, timeout=30, interval=5)

    rollout = commands.add_parser("rollout", help="Print a ready pod created by the latest rollout")
    rollout.add_argument("controller", help="Ingress controller (or deployment) name")
    rollout.add_argument("--previous-generation", type=int)
    rollout.add_argument("--target-generation", type=int)
    rollout.add_argument("--namespace", help="Defaults to the router namespace")
    rollout.add_argument("--deployment-prefix", default=Consts.ROUTER_DEPLOYMENT_PREFIX)
    _add_policy(rollout, timeout=180, interval=5)

    haproxy = commands.add_parser("haproxy", help="Poll a block of haproxy.config in a router pod")
    haproxy.add_argument("pod")
    haproxy.add_argument("block_start", help="Text of the block's first line, e.g. 'backend be_http:ns:route'")
    check = haproxy.add_mutually_exclusive_group(required=True)
    check.add_argument("--contains", metavar="TEXT", action="append")
    check.add_argument("--regexp", metavar="PATTERN", action="append")
    check.add_argument("--absent", metavar="TEXT", action="append")
    _add_policy(haproxy, timeout=60, interval=5)

    return parser


def _add_policy(parser, timeout, interval):
    parser.add_argument("--timeout", type=float, default=timeout, help="Seconds before giving up")
    parser.add_argument("--interval", type=float, default=interval, help="Seconds between attempts")


def _apply_args_to_env(args: argparse.Namespace) -> None:
    """Write non-None CLI arguments into os.environ so the rest of the code reads them."""
    mapping = {
        "config":           "ROUTERPROBE_CONFIG",
        "cli":              "ROUTERPROBE_CLI",
        "kubeconfig":       "ROUTERPROBE_KUBECONFIG",
        "router_namespace": "ROUTERPROBE_ROUTER_NAMESPACE",
    }
    for arg_name, env_name in mapping.items():
        value = getattr(args, arg_name, None)
        if value is not None:
            os.environ[env_name] = str(value)

    if args.log_level is not None:
        for source in (logger_init, logger_poller, logger_probe, logger_rollout):
            os.environ[f"{source.name}_LOG_LEVEL"] = args.log_level


def run_output(args):
    if args.equals is not None:
        predicate = Equals(args.equals)
    elif args.contains is not None:
        predicate = Contains(args.contains)
    elif args.not_contains is not None:
        predicate = NotContains(args.not_contains)
    else:
        predicate = MatchesRegexp(args.regexp)

    probe = FieldQueryProbe(args.namespace, args.resource, args.jsonpath)
    print(poll_until(probe, predicate, args.timeout, args.interval).text)


def run_curl(args):
    probe = CurlProbe(args.url, options=args.option, resolve=args.resolve, insecure=args.insecure)
    output, counts = repeat_until_matched(probe, args.expect, args.timeout, args.interval, args.times)
    print(output)
    for pattern, count in zip(args.expect, counts):
        print(f"{count}\t{pattern}")


def run_http(args):
    headers = {}
    for header in args.header:
        name, _, value = header.partition(":")
        headers[name.strip()] = value.strip()

    probe = HTTPProbe(args.url, headers=headers, resolve_to=args.resolve_to)
    classifier = AnyOf([Contains(expected) for expected in args.expect])
    if args.attempts is None:
        print(poll_until(probe, classifier, args.timeout, args.interval).text)
        return

    result = poll_counted(probe, classifier, args.timeout, args.interval, args.attempts, args.required_matches)
    for expected, count in zip(args.expect, result.bucket_counts):
        print(f"{count}\t{expected}")
    print(f"{result.mismatch_count}\t(mismatch, {result.error_count} errors)")


def run_rollout(args):
    selector = RolloutSelector(namespace=args.namespace or Consts.router_namespace,
                               deployment_prefix=args.deployment_prefix)
    print(selector.wait_for_rollout_pod(args.controller, args.previous_generation, args.target_generation,
                                        timeout=args.timeout, interval=args.interval))


def run_haproxy(args):
    if args.contains:
        ensure = ensure_haproxy_block_config_contains
        search_list = args.contains
    elif args.regexp:
        ensure = ensure_haproxy_block_config_matches_regexp
        search_list = args.regexp
    else:
        ensure = ensure_haproxy_block_config_not_contains
        search_list = args.absent
    print(ensure(args.pod, args.block_start, search_list, timeout=args.timeout, interval=args.interval), end="")


COMMANDS = {
    "output": run_output,
    "curl": run_curl,
    "http": run_http,
    "rollout": run_rollout,
    "haproxy": run_haproxy,
}


def main(argv=None):
    parser = _build_parser()
    args = parser.parse_args(argv)
    _apply_args_to_env(args)

    # Reset cached cli so it re-evaluates after --cli may have been applied
    Consts.reset()

    settings = ProbeEnv.load()
    for source in (logger_init, logger_poller, logger_probe, logger_rollout):
        source.setLevel(Functions.log_level(source))
    logger_init.debug(f"Settings: {settings}")

    try:
        COMMANDS[args.command](args)
    except PollPolicyError as e:
        parser.error(str(e))
    except RolloutError as e:
        logger_init.error(f"Rollout failed: {e}")
        return 1
    except ConvergenceError as e:
        logger_init.error(f"{e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
