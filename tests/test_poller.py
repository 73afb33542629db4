import pytest

from convergence import (AnyOf, Contains, ConvergenceTimeout, Equals, InsufficientMatches, MatchesRegexp,
                         PollPolicyError, PollState, RepeatedMatches, Successive, poll_counted, poll_until,
                         repeat_until_matched)


def test_poll_until_immediate_match(clock, scripted):
    probe = scripted(["HTTP/1.1 200 OK"])
    result = poll_until(probe, Contains("200"), 10, 1, clock=clock.monotonic, sleep=clock.sleep)

    assert result.matched
    assert result.attempts == 1
    assert result.state == PollState.CONVERGED
    assert result.text == "HTTP/1.1 200 OK"
    assert clock.sleeps == []


def test_poll_until_converges_after_transient_errors(clock, scripted, probe_error):
    probe = scripted([probe_error()] * 12 + ["ready"])
    result = poll_until(probe, Equals("ready"), 60, 1, clock=clock.monotonic, sleep=clock.sleep)

    assert result.attempts == 13
    assert clock.now == 12
    assert clock.sleeps == [1] * 12
    assert result.last_error is not None


def test_poll_until_backend_ready_at_second_twelve(clock, scripted, probe_error):
    # each attempt takes 0.25s, so attempts start at 0, 1.25, 2.5, ... and the first one after 12s is at 12.5s
    probe = scripted([probe_error()] * 10 + ["ready"], cost=0.25)
    result = poll_until(probe, Equals("ready"), 60, 1, clock=clock.monotonic, sleep=clock.sleep)

    assert result.attempts == 11
    assert 12 <= result.elapsed < 13
    assert clock.sleeps == [1] * 10


def test_poll_until_twice_on_converged_probe(clock, scripted):
    probe = scripted(["ok"])
    predicate = RepeatedMatches(["ok"], 1)

    first = poll_until(probe, predicate, 10, 1, clock=clock.monotonic, sleep=clock.sleep)
    second = poll_until(probe, predicate, 10, 1, clock=clock.monotonic, sleep=clock.sleep)

    assert first.attempts == 1
    assert second.attempts == 1
    assert predicate.bucket_counts == [1]
    assert clock.sleeps == []


def test_poll_until_reuses_successive_from_scratch(clock, scripted):
    probe = scripted(["ok"])
    predicate = Successive(Equals("ok"), 2)

    first = poll_until(probe, predicate, 10, 1, clock=clock.monotonic, sleep=clock.sleep)
    second = poll_until(probe, predicate, 10, 1, clock=clock.monotonic, sleep=clock.sleep)

    assert first.attempts == 2
    assert second.attempts == 2
    assert clock.sleeps == [1, 1]


def test_poll_until_timeout_reports_last_observation(clock, scripted):
    probe = scripted(["wrong"])
    with pytest.raises(ConvergenceTimeout) as exc_info:
        poll_until(probe, Contains("right"), 10, 3, clock=clock.monotonic, sleep=clock.sleep)

    e = exc_info.value
    assert probe.calls == 4
    assert clock.sleeps == [3, 3, 3, 1]
    assert e.result.elapsed >= 10
    assert e.result.state == PollState.TIMED_OUT
    assert e.last_observation.text == "wrong"
    assert e.expected == "contains 'right'"
    assert "last observed: 'wrong'" in str(e)


def test_poll_until_timeout_with_only_errors(clock, scripted, probe_error):
    probe = scripted([probe_error("exit status 7", "curl: (7) Failed to connect")])
    with pytest.raises(ConvergenceTimeout) as exc_info:
        poll_until(probe, Contains("200"), 5, 1, clock=clock.monotonic, sleep=clock.sleep)

    e = exc_info.value
    assert e.last_observation is None
    assert "nothing was observed" in str(e)
    assert "Failed to connect" in str(e)
    assert e.last_error.exit_code == 7


def test_poll_until_equals_timeout_shows_diff(clock, scripted):
    probe = scripted(["False"])
    with pytest.raises(ConvergenceTimeout) as exc_info:
        poll_until(probe, Equals("True"), 4, 2, clock=clock.monotonic, sleep=clock.sleep)

    message = str(exc_info.value)
    assert "changed from" in message
    assert "True" in message and "False" in message


def test_poll_until_never_sleeps_past_deadline(clock, scripted):
    probe = scripted(["no"], cost=0.5)
    with pytest.raises(ConvergenceTimeout):
        poll_until(probe, Contains("yes"), 7, 3, clock=clock.monotonic, sleep=clock.sleep)

    assert clock.now == 7
    assert all(s <= 3 for s in clock.sleeps)


def test_poll_until_gives_probe_the_remaining_time(clock, scripted):
    probe = scripted(["no", "yes"], cost=2)
    poll_until(probe, Contains("yes"), 10, 1, clock=clock.monotonic, sleep=clock.sleep)

    assert probe.timeouts == [10, 7]


@pytest.mark.parametrize("timeout, interval", [(0, 1), (-1, 1), (10, 0), (5, 10)])
def test_poll_until_rejects_bad_policy(clock, scripted, timeout, interval):
    probe = scripted(["ok"])
    with pytest.raises(PollPolicyError):
        poll_until(probe, Contains("ok"), timeout, interval, clock=clock.monotonic, sleep=clock.sleep)
    assert probe.calls == 0


def test_poll_policy_error_is_a_value_error():
    assert issubclass(PollPolicyError, ValueError)


def test_poll_until_propagates_unexpected_exceptions(clock, scripted):
    probe = scripted([RuntimeError("bug in the test")])
    with pytest.raises(RuntimeError):
        poll_until(probe, Contains("ok"), 10, 1, clock=clock.monotonic, sleep=clock.sleep)
    assert probe.calls == 1


def test_poll_until_expected_error_counts_when_asked(clock, scripted, probe_error):
    probe = scripted([probe_error("exit status 28", "curl: (28) Operation timed out after 5001 milliseconds")])
    result = poll_until(probe, Contains("Operation timed out", on_error=True), 30, 5,
                        clock=clock.monotonic, sleep=clock.sleep)

    assert result.matched
    assert "Operation timed out" in result.text


def test_poll_until_error_text_ignored_by_default(clock, scripted, probe_error):
    probe = scripted([probe_error("exit status 28", "Operation timed out"), "fine"])
    with pytest.raises(ConvergenceTimeout) as exc_info:
        poll_until(probe, Contains("Operation timed out"), 30, 5, clock=clock.monotonic, sleep=clock.sleep)
    assert exc_info.value.last_observation.text == "fine"


def test_poll_until_successive_reads(clock, scripted):
    probe = scripted(["TrueFalseFalse", "TrueTrueFalse", "TrueFalseFalse", "TrueFalseFalse", "TrueTrueFalse"])
    result = poll_until(probe, Successive(Equals("TrueFalseFalse"), 2), 60, 5, clock=clock.monotonic,
                        sleep=clock.sleep)
    assert result.attempts == 4


def test_poll_counted_tallies_every_attempt(clock, scripted, probe_error):
    probe = scripted(["web-1", "web-2", "web-1", probe_error(), "other"])
    result = poll_counted(probe, ["web-1", "web-2"], 20, 1, 5, clock=clock.monotonic, sleep=clock.sleep)

    assert result.bucket_counts == [2, 1]
    assert result.match_count == 3
    assert result.mismatch_count == 2
    assert result.error_count == 1
    assert result.attempts == 5
    assert result.match_count + result.mismatch_count == result.attempts
    assert clock.sleeps == [1, 1, 1, 1]
    assert result.last_observation.text == "other"


def test_poll_counted_never_stops_early(clock, scripted):
    probe = scripted(["web-1"])
    result = poll_counted(probe, Contains("web-1"), 20, 1, 6, clock=clock.monotonic, sleep=clock.sleep)
    assert probe.calls == 6
    assert result.bucket_counts == [6]


def test_poll_counted_zero_matches_is_a_result(clock, scripted):
    probe = scripted(["nothing"])
    result = poll_counted(probe, AnyOf([MatchesRegexp("web-[0-9]")]), 20, 1, 3, clock=clock.monotonic,
                          sleep=clock.sleep)
    assert result.match_count == 0
    assert result.mismatch_count == 3


def test_poll_counted_insufficient_matches(clock, scripted):
    probe = scripted(["web-1", "nope", "nope"])
    with pytest.raises(InsufficientMatches) as exc_info:
        poll_counted(probe, ["web-1"], 20, 1, 3, required_matches=2, clock=clock.monotonic, sleep=clock.sleep)

    assert exc_info.value.required == 2
    assert exc_info.value.result.bucket_counts == [1]
    assert exc_info.value.result.mismatch_count == 2


def test_poll_counted_timeout_keeps_partial_tally(clock, scripted):
    probe = scripted(["web-1", "web-2"])
    with pytest.raises(ConvergenceTimeout) as exc_info:
        poll_counted(probe, ["web-1", "web-2"], 3, 1, 10, clock=clock.monotonic, sleep=clock.sleep)

    result = exc_info.value.result
    assert result.attempts == 3
    assert result.bucket_counts == [1, 2]
    assert clock.now == 3


def test_poll_counted_rejects_bad_policy(clock, scripted):
    probe = scripted(["web-1"])
    with pytest.raises(PollPolicyError):
        poll_counted(probe, ["web-1"], 10, 1, 0, clock=clock.monotonic, sleep=clock.sleep)
    with pytest.raises(PollPolicyError):
        poll_counted(probe, ["web-1"], 10, 1, 3, required_matches=4, clock=clock.monotonic, sleep=clock.sleep)
    assert probe.calls == 0


def test_repeat_until_matched_counts_per_pattern(clock, scripted):
    probe = scripted(["web-1", "junk", "web-2", "web-1", "web-2"])
    output, counts = repeat_until_matched(probe, ["web-1", "web-2"], 30, 1, 3, clock=clock.monotonic,
                                          sleep=clock.sleep)
    assert output == "web-1"
    assert counts == [2, 1]
    assert probe.calls == 4


def test_repeat_until_matched_expected_error(clock, scripted, probe_error):
    probe = scripted([probe_error("exit status 28", "curl: (28) Connection timed out")])
    output, counts = repeat_until_matched(probe, ["timed out", "200 OK"], 30, 1, 5, clock=clock.monotonic,
                                          sleep=clock.sleep)
    assert "Connection timed out" in output
    assert counts == [0, 0]
    assert probe.calls == 1


def test_repeat_until_matched_timeout(clock, scripted):
    probe = scripted(["web-1"])
    with pytest.raises(ConvergenceTimeout):
        repeat_until_matched(probe, ["web-2"], 5, 1, 1, clock=clock.monotonic, sleep=clock.sleep)


def test_poll_counted_sticky_session(clock, scripted):
    before_cookie = scripted(["web-1", "web-2", "web-2", "web-1", "web-1", "web-2"])
    result = poll_counted(before_cookie, ["web-1", "web-2"], 30, 1, 6, clock=clock.monotonic, sleep=clock.sleep)
    assert all(count > 0 for count in result.bucket_counts)
    assert sum(result.bucket_counts) == 6

    with_cookie = scripted(["web-2"])
    result = poll_counted(with_cookie, ["web-2", "web-1"], 30, 1, 6, clock=clock.monotonic, sleep=clock.sleep)
    assert result.bucket_counts == [6, 0]
