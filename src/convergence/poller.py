import time

from probes import Observation, ProbeError, ProbeInterface
from support import logger_poller

from .errors import ConvergenceTimeout, InsufficientMatches
from .predicates import RepeatedMatches, _short, as_predicate, explain_mismatch
from .types import CountedResult, PollPolicy, PollResult, PollState


def _describe(probe):
    return probe.describe() if isinstance(probe, ProbeInterface) else repr(probe)


def _timeout_message(probe, expected, timeout, attempts, observation, error, detail=""):
    message = f"{_describe(probe)} did not converge within {timeout}s after {attempts} attempt(s): expected {expected}"
    if observation is None:
        message += "; nothing was observed"
        if error is not None:
            message += f", last error: {_short(error.text)}"
        return message

    message += f"; last observed: {_short(observation.text)!r}"
    if detail:
        message += f"\n{detail}"
    return message


def poll_until(probe, predicate, timeout, interval, clock=None, sleep=None) -> PollResult:
    """
    Run `probe` until `predicate` holds or `timeout` seconds pass.

    The first attempt runs immediately. Between attempts the poller sleeps
    `interval`, never past the deadline, and every attempt gets what is left of
    the deadline as its own timeout. ProbeError counts as "not yet"; anything
    else the probe raises propagates.

    Args:
        probe: ProbeInterface to run
        predicate: Predicate (or a regexp string, a list of alternatives, a callable)
        timeout: Seconds before giving up
        interval: Seconds between attempts
        clock: Monotonic clock, `time.monotonic` by default
        sleep: Sleep function, `time.sleep` by default

    Returns:
        PollResult of the matching attempt

    Raises:
        PollPolicyError: timeout or interval unusable
        ConvergenceTimeout: the deadline passed without a match
    """
    PollPolicy(timeout, interval).validate()
    predicate = as_predicate(predicate)
    predicate.reset()
    clock = clock or time.monotonic
    sleep = sleep or time.sleep

    result = PollResult(probe=_describe(probe))
    started = clock()
    deadline = started + timeout

    while True:
        result.state = PollState.PROBING
        result.attempts += 1
        try:
            observation = probe.run(timeout=deadline - clock())
            result.observation = observation
            result.state = PollState.EVALUATING
            matched = predicate(observation)
        except ProbeError as e:
            result.last_error = e
            matched = predicate.judge_error(e)
            if matched:
                result.observation = Observation(e.text, e.exit_code or 0, e.target)
            else:
                logger_poller.debug(f"{result.probe} attempt {result.attempts} failed: {e}")

        if matched:
            result.matched = True
            result.state = PollState.CONVERGED
            result.elapsed = clock() - started
            logger_poller.info(
                f"{result.probe} converged after {result.attempts} attempt(s) in {result.elapsed:.1f}s: "
                f"{predicate.describe()}"
            )
            return result

        if result.observation is not None and result.state == PollState.EVALUATING:
            logger_poller.debug(f"{result.probe} attempt {result.attempts}: not yet {predicate.describe()}")

        remaining = deadline - clock()
        if remaining > 0:
            result.state = PollState.SLEEPING
            sleep(min(interval, remaining))

        if clock() >= deadline:
            result.state = PollState.TIMED_OUT
            result.elapsed = clock() - started
            message = _timeout_message(probe, predicate.describe(), timeout, result.attempts, result.observation,
                                       result.last_error, explain_mismatch(predicate, result.observation))
            logger_poller.warning(message)
            raise ConvergenceTimeout(message, predicate.describe(), result)


def poll_counted(probe, classifier, timeout, interval, attempts, required_matches=0, clock=None,
                 sleep=None) -> CountedResult:
    """
    Run `probe` exactly `attempts` times, `interval` apart, and tally the outcomes.

    Each observation lands in the bucket `classifier.classify()` returns, or counts
    as a mismatch. Failed attempts are mismatches too. The tally is returned even
    when nothing matched, unless `required_matches` asks for more.

    Raises:
        PollPolicyError: unusable policy
        ConvergenceTimeout: the deadline passed before all attempts ran; carries the partial tally
        InsufficientMatches: fewer than `required_matches` attempts matched
    """
    PollPolicy(timeout, interval, attempts, required_matches).validate()
    classifier = as_predicate(classifier)
    classifier.reset()
    clock = clock or time.monotonic
    sleep = sleep or time.sleep

    result = CountedResult(probe=_describe(probe), bucket_counts=[0] * classifier.buckets)
    started = clock()
    deadline = started + timeout

    for attempt in range(attempts):
        if attempt > 0:
            remaining = deadline - clock()
            if remaining > 0:
                sleep(min(interval, remaining))
            if clock() >= deadline:
                result.elapsed = clock() - started
                message = (
                    f"{result.probe} ran {result.attempts} of {attempts} attempts within {timeout}s "
                    f"(matches {result.bucket_counts}, mismatches {result.mismatch_count})"
                )
                logger_poller.warning(message)
                raise ConvergenceTimeout(message, classifier.describe(), result)

        result.attempts += 1
        try:
            observation = probe.run(timeout=deadline - clock())
        except ProbeError as e:
            result.last_error = e
            result.error_count += 1
            result.mismatch_count += 1
            logger_poller.debug(f"{result.probe} attempt {result.attempts} failed: {e}")
            continue

        result.last_observation = observation
        bucket = classifier.classify(observation)
        if bucket is None:
            result.mismatch_count += 1
        else:
            result.bucket_counts[bucket] += 1
        logger_poller.debug(f"{result.probe} attempt {result.attempts}: bucket {bucket}")

    result.elapsed = clock() - started
    logger_poller.info(
        f"{result.probe} counted {result.bucket_counts} matches and {result.mismatch_count} mismatches "
        f"in {result.attempts} attempts"
    )
    if result.match_count < required_matches:
        message = (
            f"{result.probe} matched {result.match_count} of {attempts} attempts, "
            f"{required_matches} required: {classifier.describe()}"
        )
        raise InsufficientMatches(message, required_matches, result)
    return result


def repeat_until_matched(probe, expected, timeout, interval=1, times=1, clock=None, sleep=None):
    """
    Run `probe` until `times` observations matched one of the `expected` regexps.

    Observations matching none of them are not counted. A failed attempt whose
    error text matches `expected[0]` ends the poll successfully.

    Returns:
        (last observed text, number of matches per expected regexp)
    """
    if not expected:
        raise ValueError("expected needs at least one regexp")
    predicate = RepeatedMatches(expected, times)
    result = poll_until(probe, predicate, timeout, interval, clock=clock, sleep=sleep)
    return result.text, list(predicate.bucket_counts)
