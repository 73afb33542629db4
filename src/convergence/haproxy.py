from probes import HaproxyConfigProbe

from .poller import poll_until
from .predicates import ContainsAll, ContainsNone, MatchesAllRegexp, MatchesNoRegexp

PRESENT_TIMEOUT = 60
ABSENT_TIMEOUT = 30
INTERVAL = 5


def get_block_config(config: str, block_start: str) -> str:
    """
    Extract the block of an HAProxy configuration that starts on a line containing `block_start`.

    The block goes on while lines are indented deeper than its first line; blank
    lines are kept. A line containing `block_start` always opens a block, even
    right after the previous one ended, so adjacent matching sections come back
    together. Returns an empty string when no line contains `block_start`.

    Args:
        config: Full haproxy.config content
        block_start: Text of the opening line, e.g. "backend be_http:ns:route"

    Returns:
        The block, one line per line with a trailing newline
    """
    block = []
    start_indent = None
    ended = False

    for line in config.split('\n'):
        if block_start in line:
            block.append(line)
            start_indent = len(line) - len(line.lstrip(' '))
            ended = False
        elif ended:
            break
        elif start_indent is None:
            continue
        elif not line:
            block.append(line)
        elif len(line) - len(line.lstrip(' ')) > start_indent:
            block.append(line)
        else:
            ended = True

    return ''.join(line + '\n' for line in block)


def _ensure(router_pod, block_start, predicate, timeout, interval, namespace=None, cli=None, **kwargs):
    probe = HaproxyConfigProbe(router_pod, block_start, namespace=namespace, cli=cli)
    return poll_until(probe, predicate, timeout, interval, **kwargs).text


def ensure_haproxy_block_config_contains(router_pod, block_start, search_list, timeout=PRESENT_TIMEOUT,
                                         interval=INTERVAL, **kwargs):
    """Wait until every string in `search_list` is in the block; returns the block"""
    return _ensure(router_pod, block_start, ContainsAll(search_list), timeout, interval, **kwargs)


def ensure_haproxy_block_config_matches_regexp(router_pod, block_start, search_list, timeout=PRESENT_TIMEOUT,
                                               interval=INTERVAL, **kwargs):
    return _ensure(router_pod, block_start, MatchesAllRegexp(search_list), timeout, interval, **kwargs)


def ensure_haproxy_block_config_not_contains(router_pod, block_start, search_list, timeout=ABSENT_TIMEOUT,
                                             interval=INTERVAL, **kwargs):
    """Wait until none of `search_list` is left in the block"""
    return _ensure(router_pod, block_start, ContainsNone(search_list), timeout, interval, **kwargs)


def ensure_haproxy_block_config_not_matches_regexp(router_pod, block_start, search_list, timeout=ABSENT_TIMEOUT,
                                                   interval=INTERVAL, **kwargs):
    return _ensure(router_pod, block_start, MatchesNoRegexp(search_list), timeout, interval, **kwargs)
