from .errors import (ConvergenceError, ConvergenceTimeout, InsufficientMatches, PollPolicyError, RolloutError,
                     RolloutStuck)
from .haproxy import (ensure_haproxy_block_config_contains, ensure_haproxy_block_config_matches_regexp,
                      ensure_haproxy_block_config_not_contains, ensure_haproxy_block_config_not_matches_regexp,
                      get_block_config)
from .poller import poll_counted, poll_until, repeat_until_matched
from .predicates import (AnyOf, Contains, ContainsAll, ContainsNone, Equals, ErrorMatches, MatchesAllRegexp,
                         MatchesNoRegexp, MatchesRegexp, NotContains, NotMatchesRegexp, Predicate, RepeatedMatches,
                         Satisfies, Successive, as_predicate)
from .rollout import RolloutSelector, ensure_router_deploy_generation_is, get_one_new_router_pod_from_rolling_update
from .types import CountedResult, PollPolicy, PollResult, PollState
