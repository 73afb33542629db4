class ConvergenceError(Exception):
    """Base class of everything the convergence helpers raise"""


class PollPolicyError(ConvergenceError, ValueError):
    """The caller passed an unusable timeout, interval or attempt count"""


class ConvergenceTimeout(ConvergenceError):
    """
    The deadline passed and the predicate never matched.

    `last_observation` is None when every attempt failed; the message says so,
    which tells "never started converging" apart from "converged to the wrong value".
    """

    def __init__(self, message, expected, result):
        super().__init__(message)
        self.expected = expected
        self.result = result

    @property
    def last_observation(self):
        return getattr(self.result, "observation", None) or getattr(self.result, "last_observation", None)

    @property
    def last_error(self):
        return self.result.last_error


class InsufficientMatches(ConvergenceError):
    """A counted poll ran all its attempts but fewer of them matched than required"""

    def __init__(self, message, required, result):
        super().__init__(message)
        self.required = required
        self.result = result


class RolloutError(ConvergenceError):
    """The controller could not be read; the rollout state is unknown"""


class RolloutStuck(RolloutError):
    """The generation or the new pod did not show up in time"""
