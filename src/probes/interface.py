import time
from abc import ABC, abstractmethod
from typing import Final

from support import CommandResult, Consts, Functions, logger_probe

from .types import Latency, Observation, ProbeError


class ProbeInterface(ABC):
    """Base class of everything the poller can run repeatedly"""
    SHELL: Final[str] = "shell"
    CURL: Final[str] = "curl"
    EXEC: Final[str] = "exec"
    HAPROXY: Final[str] = "haproxy"
    ENV: Final[str] = "env"
    HTTP: Final[str] = "http"
    FIELD: Final[str] = "field"
    LOGS: Final[str] = "logs"

    latency = Latency.FAST

    @staticmethod
    def factory(kind, **kwargs):
        from .field_query import FieldQueryProbe, LogsProbe
        from .http import HTTPProbe
        from .pod_exec import HaproxyConfigProbe, PodEnvProbe, PodExecProbe
        from .shell import CurlProbe, ShellProbe

        kinds = {
            ProbeInterface.SHELL: ShellProbe,
            ProbeInterface.CURL: CurlProbe,
            ProbeInterface.EXEC: PodExecProbe,
            ProbeInterface.HAPROXY: HaproxyConfigProbe,
            ProbeInterface.ENV: PodEnvProbe,
            ProbeInterface.HTTP: HTTPProbe,
            ProbeInterface.FIELD: FieldQueryProbe,
            ProbeInterface.LOGS: LogsProbe,
        }
        if kind not in kinds:
            raise ValueError(f"Expected probe kind to be one of {', '.join(kinds)}. I got '{kind}'")
        return kinds[kind](**kwargs)

    @property
    @abstractmethod
    def target(self) -> str:
        """Namespace/resource, pod or URL the probe looks at"""
        pass

    @abstractmethod
    def run(self, timeout=None) -> Observation:
        """
        Execute one attempt.

        Args:
            timeout: Upper bound in seconds for this attempt (the poller passes what is left of its deadline)

        Returns:
            Observation with the text to judge

        Raises:
            ProbeError: the attempt failed in an expected, transient way
        """
        pass

    def attempt_timeout(self, remaining=None):
        own = Consts.slow_probe_timeout if self.latency == Latency.SLOW else Consts.fast_probe_timeout
        if remaining is None:
            return own
        return max(min(own, remaining), 0.001)

    def describe(self):
        return f"{type(self).__name__}({self.target})"

    def __repr__(self):
        return self.describe()


class CommandProbe(ProbeInterface):
    """A probe whose attempt is one external command"""

    combine_stderr = False
    env = None

    @abstractmethod
    def command(self) -> list[str]:
        pass

    def run(self, timeout=None) -> Observation:
        started = time.monotonic()
        result = Functions.run_bash(logger_probe, self.command(), timeout=self.attempt_timeout(timeout),
                                     env=self.env)
        elapsed = time.monotonic() - started

        if result.timed_out:
            raise ProbeError(f"timed out after {elapsed:.1f}s", result.output, result.return_code, self.target)
        if result.return_code != 0:
            raise ProbeError(f"exit status {result.return_code}", result.output, result.return_code, self.target)

        return Observation(self.observed_text(result), result.return_code, self.target, elapsed)

    def observed_text(self, result: CommandResult) -> str:
        return result.output if self.combine_stderr else result.stdout
