"""Exceptions raised by the pattern layer."""

from __future__ import annotations


class SahhaGeoError(Exception):
    """Base class for pattern lookup and execution failures."""


class PatternNotFoundError(SahhaGeoError):
    """Raised when a caller names a use case the registry does not know."""

    def __init__(self, pattern_id: str) -> None:
        self.pattern_id = pattern_id
        super().__init__(f"Unknown use case: {pattern_id}")


class PatternExecutionError(SahhaGeoError):
    """Raised when fetched data cannot be scored for a pattern."""

    def __init__(self, pattern_id: str, reason: str) -> None:
        self.pattern_id = pattern_id
        self.reason = reason
        super().__init__(f"Pattern {pattern_id} failed: {reason}")


class UnknownResourceError(SahhaGeoError):
    """Raised for a ``sahha://`` resource name that is not served."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown resource: sahha://{name}")
