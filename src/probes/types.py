from dataclasses import dataclass
from enum import Enum


class Latency(Enum):
    """How long one attempt of a probe is expected to take"""
    FAST = "fast"    # in-cluster API reads
    SLOW = "slow"    # curls through the router, DNS, anything crossing the outside world


@dataclass
class Observation:
    """Text produced by one successful probe attempt"""
    text: str
    exit_code: int = 0
    target: str = ""
    elapsed: float = 0.0

    def __str__(self):
        return self.text


class ProbeError(Exception):
    """
    A probe attempt failed in a way that is expected while the system converges:
    connection refused, pod not found yet, non-zero exit of an exec'd command.
    """

    def __init__(self, message, output="", exit_code=None, target=""):
        super().__init__(message)
        self.message = message
        self.output = output or ""
        self.exit_code = exit_code
        self.target = target

    @property
    def text(self) -> str:
        """Error message and captured output, used when a predicate judges failures"""
        if self.output:
            return f"{self.message}\n{self.output}"
        return self.message
