"""
Pytest configuration and fixtures for routerprobe tests.

Provides a fake clock so polling tests run instantly, and a scripted probe
that plays back a list of outcomes.
"""

import os
import sys

import pytest

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))

from probes import Observation, ProbeError, ProbeInterface  # noqa: E402


_PROBE_ENV_VARS = [
    "ROUTERPROBE_CONFIG",
    "ROUTERPROBE_CLI",
    "ROUTERPROBE_KUBECONFIG",
    "ROUTERPROBE_ROUTER_NAMESPACE",
    "ROUTERPROBE_HAPROXY_CONFIG",
    "ROUTERPROBE_CURL_CONNECT_TIMEOUT",
    "ROUTERPROBE_FAST_PROBE_TIMEOUT",
    "ROUTERPROBE_SLOW_PROBE_TIMEOUT",
    "ROUTERPROBE_LOG_MAX_LENGTH",
    "POLLER_LOG_LEVEL",
    "PROBE_LOG_LEVEL",
    "ROLLOUT_LOG_LEVEL",
    "INIT_LOG_LEVEL",
]


@pytest.fixture(scope="function", autouse=True)
def reset_consts():
    """
    Reset Consts and the ROUTERPROBE_* variables before and after each test,
    so values written by ProbeEnv._yaml_to_env don't bleed across tests.
    """
    from support import Consts
    Consts.reset()
    for var in _PROBE_ENV_VARS:
        os.environ.pop(var, None)
    yield
    Consts.reset()
    for var in _PROBE_ENV_VARS:
        os.environ.pop(var, None)


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds):
        self.now += seconds


class ScriptedProbe(ProbeInterface):
    """
    Plays back `outcomes` one per attempt: a string is observed, a ProbeError is raised.
    The last outcome repeats once the script runs out. Each attempt costs `cost` seconds.
    """

    def __init__(self, outcomes, clock=None, cost=0.0):
        self.outcomes = list(outcomes)
        self.clock = clock
        self.cost = cost
        self.calls = 0
        self.timeouts = []

    @property
    def target(self) -> str:
        return "scripted"

    def run(self, timeout=None) -> Observation:
        self.timeouts.append(timeout)
        outcome = self.outcomes[min(self.calls, len(self.outcomes) - 1)]
        self.calls += 1
        if self.clock is not None:
            self.clock.advance(self.cost)
        if isinstance(outcome, BaseException):
            raise outcome
        return Observation(outcome, 0, self.target)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scripted(clock):
    def build(outcomes, cost=0.0):
        return ScriptedProbe(outcomes, clock, cost)
    return build


@pytest.fixture
def probe_error():
    def build(message="connection refused", output=""):
        return ProbeError(message, output, 7, "scripted")
    return build
