from dataclasses import dataclass, field
from enum import Enum

from probes import Observation, ProbeError

from .errors import PollPolicyError


class PollState(Enum):
    PROBING = "probing"
    EVALUATING = "evaluating"
    SLEEPING = "sleeping"
    CONVERGED = "converged"
    TIMED_OUT = "timed_out"


@dataclass
class PollPolicy:
    """How long and how often to poll. Always supplied by the caller."""
    timeout: float
    interval: float
    attempts: int = 1
    required_matches: int = 0

    def validate(self):
        if self.timeout is None or self.timeout <= 0:
            raise PollPolicyError(f"timeout must be > 0, got {self.timeout}")
        if self.interval is None or self.interval <= 0:
            raise PollPolicyError(f"interval must be > 0, got {self.interval}")
        if self.interval > self.timeout:
            raise PollPolicyError(f"interval ({self.interval}s) must not exceed timeout ({self.timeout}s)")
        if self.attempts < 1:
            raise PollPolicyError(f"attempts must be >= 1, got {self.attempts}")
        if not 0 <= self.required_matches <= self.attempts:
            raise PollPolicyError(
                f"required_matches must be between 0 and attempts ({self.attempts}), got {self.required_matches}"
            )
        return self


@dataclass
class PollResult:
    """Outcome of poll_until"""
    probe: str
    observation: Observation | None = None
    matched: bool = False
    attempts: int = 0
    elapsed: float = 0.0
    state: PollState = PollState.PROBING
    last_error: ProbeError | None = None

    @property
    def text(self) -> str:
        return self.observation.text if self.observation is not None else ""


@dataclass
class CountedResult:
    """Tally of poll_counted; match_count + mismatch_count == attempts"""
    probe: str
    bucket_counts: list[int] = field(default_factory=list)
    mismatch_count: int = 0
    error_count: int = 0
    attempts: int = 0
    elapsed: float = 0.0
    last_observation: Observation | None = None
    last_error: ProbeError | None = None

    @property
    def match_count(self) -> int:
        return sum(self.bucket_counts)
