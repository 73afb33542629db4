import re
from abc import ABC, abstractmethod

from deepdiff import DeepDiff

from probes import Observation, ProbeError


def _text(observation) -> str:
    if isinstance(observation, Observation):
        return observation.text
    return "" if observation is None else str(observation)


def _short(text, limit=2000):
    if len(text) <= limit:
        return text
    return text[:limit] + f"... ({len(text) - limit} more characters)"


class Predicate(ABC):
    """
    Judges one observation.

    Predicates are pure except for Successive and RepeatedMatches, which keep a
    count between calls; the poller calls `reset()` before every poll.
    """

    on_error = False

    @abstractmethod
    def matches(self, text: str) -> bool:
        pass

    @abstractmethod
    def describe(self) -> str:
        pass

    def __call__(self, observation) -> bool:
        return self.matches(_text(observation))

    def judge_error(self, error: ProbeError) -> bool:
        """Whether a failed attempt counts as convergence. Only when built with on_error=True."""
        return self.on_error and self.matches(error.text)

    def classify(self, observation):
        """Bucket index for counted polls, or None for a mismatch"""
        return 0 if self(observation) else None

    @property
    def buckets(self) -> int:
        return 1

    def explain(self, observation) -> str:
        """Extra detail for the timeout message"""
        return ""

    def reset(self):
        pass

    def __repr__(self):
        return self.describe()


class Satisfies(Predicate):
    def __init__(self, function, description="a custom condition", on_error=False):
        self.function = function
        self.description = description
        self.on_error = on_error

    def matches(self, text):
        return bool(self.function(text))

    def describe(self):
        return self.description


class Equals(Predicate):
    """Exact match; surrounding whitespace is ignored unless strip=False"""

    def __init__(self, expected, strip=True):
        self.expected = str(expected)
        self.strip = strip

    def _normalize(self, text):
        return text.strip() if self.strip else text

    def matches(self, text):
        return self._normalize(text) == self._normalize(self.expected)

    def describe(self):
        return f"equals {self.expected!r}"

    def explain(self, observation):
        diff = DeepDiff(self._normalize(self.expected), self._normalize(_text(observation)))
        return diff.pretty() if diff else ""


class Contains(Predicate):
    def __init__(self, expected, on_error=False):
        self.expected = expected
        self.on_error = on_error

    def matches(self, text):
        return self.expected in text

    def describe(self):
        return f"contains {self.expected!r}"


class NotContains(Predicate):
    def __init__(self, expected):
        self.expected = expected

    def matches(self, text):
        return self.expected not in text

    def describe(self):
        return f"does not contain {self.expected!r}"


class MatchesRegexp(Predicate):
    def __init__(self, pattern, on_error=False):
        self.pattern = pattern
        self.regexp = re.compile(pattern)
        self.on_error = on_error

    def matches(self, text):
        return self.regexp.search(text) is not None

    def first_match(self, text) -> str:
        found = self.regexp.search(text)
        return found.group(0) if found else ""

    def describe(self):
        return f"matches /{self.pattern}/"


class NotMatchesRegexp(Predicate):
    def __init__(self, pattern):
        self.pattern = pattern
        self.regexp = re.compile(pattern)

    def matches(self, text):
        return self.regexp.search(text) is None

    def describe(self):
        return f"does not match /{self.pattern}/"


class ContainsAll(Predicate):
    """Every item is present in the same observation"""

    def __init__(self, items, on_error=False):
        self.items = list(items)
        self.on_error = on_error

    def missing(self, text):
        return [item for item in self.items if item not in text]

    def matches(self, text):
        return not self.missing(text)

    def describe(self):
        return f"contains all of {self.items!r}"

    def explain(self, observation):
        missing = self.missing(_text(observation))
        return f"missing: {missing!r}" if missing else ""


class MatchesAllRegexp(Predicate):
    def __init__(self, patterns, on_error=False):
        self.patterns = list(patterns)
        self.regexps = [re.compile(p) for p in self.patterns]
        self.on_error = on_error

    def missing(self, text):
        return [p for p, r in zip(self.patterns, self.regexps) if r.search(text) is None]

    def matches(self, text):
        return not self.missing(text)

    def describe(self):
        return f"matches all of {self.patterns!r}"

    def explain(self, observation):
        missing = self.missing(_text(observation))
        return f"unmatched: {missing!r}" if missing else ""


class ContainsNone(Predicate):
    def __init__(self, items):
        self.items = list(items)

    def present(self, text):
        return [item for item in self.items if item in text]

    def matches(self, text):
        return not self.present(text)

    def describe(self):
        return f"contains none of {self.items!r}"

    def explain(self, observation):
        present = self.present(_text(observation))
        return f"still present: {present!r}" if present else ""


class MatchesNoRegexp(Predicate):
    def __init__(self, patterns):
        self.patterns = list(patterns)
        self.regexps = [re.compile(p) for p in self.patterns]

    def present(self, text):
        return [p for p, r in zip(self.patterns, self.regexps) if r.search(text)]

    def matches(self, text):
        return not self.present(text)

    def describe(self):
        return f"matches none of {self.patterns!r}"

    def explain(self, observation):
        present = self.present(_text(observation))
        return f"still matching: {present!r}" if present else ""


class AnyOf(Predicate):
    """
    Matches when one of the alternatives does.

    `classify` returns the index of the first matching alternative, which is
    what poll_counted tallies per bucket (e.g. which backend served a request).
    Plain strings are taken as regular expressions.
    """

    def __init__(self, alternatives, on_error=False):
        self.alternatives = [as_predicate(a) for a in alternatives]
        if not self.alternatives:
            raise ValueError("AnyOf needs at least one alternative")
        self.on_error = on_error

    def classify(self, observation):
        for index, alternative in enumerate(self.alternatives):
            if alternative(observation):
                return index
        return None

    def matches(self, text):
        return self.classify(text) is not None

    def __call__(self, observation):
        return self.classify(observation) is not None

    @property
    def buckets(self):
        return len(self.alternatives)

    def reset(self):
        for alternative in self.alternatives:
            alternative.reset()

    def describe(self):
        return "any of [" + ", ".join(a.describe() for a in self.alternatives) + "]"


class ErrorMatches(Predicate):
    """Converges only on a failed attempt whose message or output matches the pattern"""

    on_error = True

    def __init__(self, pattern):
        self.pattern = pattern
        self.regexp = re.compile(pattern)

    def matches(self, text):
        return False

    def judge_error(self, error):
        return self.regexp.search(error.text) is not None

    def describe(self):
        return f"fails with an error matching /{self.pattern}/"


class Successive(Predicate):
    """The inner predicate holds on `times` consecutive observations; any other outcome starts over"""

    def __init__(self, inner, times):
        if times < 1:
            raise ValueError(f"times must be >= 1, got {times}")
        self.inner = as_predicate(inner)
        self.times = times
        self.streak = 0

    def matches(self, text):
        return self.inner.matches(text)

    def __call__(self, observation):
        if self.inner(observation):
            self.streak += 1
        else:
            self.streak = 0
        return self.streak >= self.times

    def judge_error(self, error):
        self.streak = 0
        return False

    def reset(self):
        self.streak = 0
        self.inner.reset()

    def describe(self):
        return f"{self.inner.describe()} on {self.times} successive reads"


class RepeatedMatches(Predicate):
    """
    Counts observations matching any of the expected patterns until `times` of them did.

    Observations matching none of the patterns are not counted. A failed attempt
    whose text matches the first pattern converges immediately.
    """

    def __init__(self, expected, times):
        if times < 1:
            raise ValueError(f"times must be >= 1, got {times}")
        self.alternatives = AnyOf([MatchesRegexp(p) for p in expected])
        self.first = self.alternatives.alternatives[0]
        self.times = times
        self.bucket_counts = [0] * self.alternatives.buckets

    def matches(self, text):
        return self.alternatives.matches(text)

    def __call__(self, observation):
        index = self.alternatives.classify(observation)
        if index is not None:
            self.bucket_counts[index] += 1
        return sum(self.bucket_counts) >= self.times

    def judge_error(self, error):
        return self.first.matches(error.text)

    def reset(self):
        self.bucket_counts = [0] * self.alternatives.buckets

    def describe(self):
        return f"{self.times} observations matching {self.alternatives.describe()}"


def as_predicate(value) -> Predicate:
    """Predicates pass through, strings become regular expressions, callables are wrapped"""
    if isinstance(value, Predicate):
        return value
    if isinstance(value, str):
        return MatchesRegexp(value)
    if isinstance(value, (list, tuple)):
        return AnyOf(value)
    if callable(value):
        return Satisfies(value, getattr(value, "__name__", "a custom condition"))
    raise TypeError(f"Cannot use {value!r} as a predicate")


def explain_mismatch(predicate: Predicate, observation) -> str:
    if observation is None:
        return ""
    detail = predicate.explain(observation)
    return _short(detail) if detail else ""
