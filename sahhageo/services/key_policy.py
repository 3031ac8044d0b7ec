"""Key-driven cache policy: store routing, TTLs and refresh strategies.

Every decision here is a substring match against the cache key, evaluated
as an ordered table where the first matching rule wins and an explicit
default covers everything else. The tables are plain data so callers and
tests can inspect them directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Iterable, Literal, TypeVar

T = TypeVar("T")

StoreName = Literal["biomarker", "pattern", "resource", "insight"]
Priority = Literal["high", "medium", "low"]

STORE_NAMES: tuple[StoreName, ...] = ("biomarker", "pattern", "resource", "insight")


@dataclass(frozen=True)
class SubstringRule(Generic[T]):
    """Maps any key containing one of ``needles`` to ``result``."""

    needles: tuple[str, ...]
    result: T

    def matches(self, key: str) -> bool:
        return any(needle in key for needle in self.needles)


def first_match(rules: Iterable[SubstringRule[T]], key: str, default: T) -> T:
    """Return the result of the first rule matching *key*, else *default*."""
    for rule in rules:
        if rule.matches(key):
            return rule.result
    return default


# ---------------------------------------------------------------------------
# Store classification
# ---------------------------------------------------------------------------

CLASSIFIER_RULES: tuple[SubstringRule[StoreName], ...] = (
    SubstringRule(("biomarker", "health_score"), "biomarker"),
    SubstringRule(("pattern", "geo"), "pattern"),
    SubstringRule(("resource", "documentation"), "resource"),
    SubstringRule(("insight", "recommendation"), "insight"),
)

DEFAULT_STORE: StoreName = "biomarker"


class KeyClassifier:
    """Routes a cache key to exactly one of the four stores."""

    def __init__(
        self,
        rules: tuple[SubstringRule[StoreName], ...] = CLASSIFIER_RULES,
        default: StoreName = DEFAULT_STORE,
    ) -> None:
        self.rules = rules
        self.default = default

    def classify(self, key: str) -> StoreName:
        return first_match(self.rules, key, self.default)


# ---------------------------------------------------------------------------
# TTL and refresh strategy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RefreshStrategy:
    """When an entry conceptually wants refreshing, independent of its TTL."""

    refresh_time: str
    ttl: int
    priority: Priority
    refresh_times: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        data: dict = {
            "refresh_time": self.refresh_time,
            "ttl": self.ttl,
            "priority": self.priority,
        }
        if self.refresh_times:
            data["refresh_times"] = list(self.refresh_times)
        return data


TTL_RULES: tuple[SubstringRule[int], ...] = (
    SubstringRule(("morning_health_check",), 14400),
    SubstringRule(("workout_readiness",), 3600),
    SubstringRule(("sleep_optimization",), 7200),
    SubstringRule(("stress_management",), 1800),
    SubstringRule(("pattern",), 3600),
    SubstringRule(("resource",), 900),
    SubstringRule(("biomarker",), 1800),
)

DEFAULT_TTL = 1800

REFRESH_RULES: tuple[SubstringRule[RefreshStrategy], ...] = (
    SubstringRule(
        ("morning_health_check",),
        RefreshStrategy(refresh_time="06:00", ttl=14400, priority="high"),
    ),
    SubstringRule(
        ("workout_readiness",),
        RefreshStrategy(
            refresh_time="pre_workout",
            ttl=3600,
            priority="high",
            refresh_times=("06:00", "12:00", "17:00"),
        ),
    ),
    SubstringRule(
        ("sleep_optimization",),
        RefreshStrategy(refresh_time="21:00", ttl=7200, priority="medium"),
    ),
    SubstringRule(
        ("daily_wellness",),
        RefreshStrategy(refresh_time="continuous", ttl=1800, priority="medium"),
    ),
    SubstringRule(
        ("biomarkers",),
        RefreshStrategy(refresh_time="data_dependent", ttl=1800, priority="high"),
    ),
)

DEFAULT_REFRESH_STRATEGY = RefreshStrategy(refresh_time="standard", ttl=1800, priority="low")


class TTLPolicy:
    """Resolves effective TTLs and refresh strategies from key names."""

    def __init__(
        self,
        ttl_rules: tuple[SubstringRule[int], ...] = TTL_RULES,
        refresh_rules: tuple[SubstringRule[RefreshStrategy], ...] = REFRESH_RULES,
        default_ttl: int = DEFAULT_TTL,
        default_strategy: RefreshStrategy = DEFAULT_REFRESH_STRATEGY,
    ) -> None:
        self.ttl_rules = ttl_rules
        self.refresh_rules = refresh_rules
        self.default_ttl = default_ttl
        self.default_strategy = default_strategy

    def resolve_ttl(self, key: str, explicit_ttl: int | None = None) -> int:
        """An explicit TTL wins outright; otherwise the first matching rule."""
        if explicit_ttl is not None:
            return explicit_ttl
        return first_match(self.ttl_rules, key, self.default_ttl)

    def resolve_refresh_strategy(self, key: str) -> RefreshStrategy:
        return first_match(self.refresh_rules, key, self.default_strategy)
