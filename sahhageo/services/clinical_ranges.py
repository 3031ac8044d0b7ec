"""Clinical reference ranges used to put raw biomarker values on a 0-100 scale."""

from __future__ import annotations

import math
from dataclasses import dataclass

from sahhageo.services.key_policy import SubstringRule, first_match

NEUTRAL_SCORE = 50
UNKNOWN_BIOMARKER_SCORE = 75


@dataclass(frozen=True)
class ClinicalRange:
    """Linear scoring window; ``inverted`` means lower values are healthier."""

    min: float
    max: float
    optimal: float
    unit: str
    inverted: bool = False

    def normalize(self, value: float) -> int:
        span = self.max - self.min
        if self.inverted:
            raw = (self.max - value) / span * 100
        else:
            raw = (value - self.min) / span * 100
        return round(max(0.0, min(100.0, raw)))

    def below_optimal(self, value: float) -> bool:
        """True when *value* sits on the unhealthy side of ``optimal``."""
        return value > self.optimal if self.inverted else value < self.optimal


# Only these biomarkers have a scoring window; everything else scores
# UNKNOWN_BIOMARKER_SCORE.  heart_rate_average is scored higher-is-better.
CLINICAL_RANGES: dict[str, ClinicalRange] = {
    "sleep_duration": ClinicalRange(360, 540, 480, "minutes"),
    "sleep_quality": ClinicalRange(0.6, 1.0, 0.85, "ratio"),
    "steps": ClinicalRange(5000, 15000, 10000, "count"),
    "heart_rate_average": ClinicalRange(60, 100, 70, "bpm"),
    "stress_level": ClinicalRange(0.0, 1.0, 0.3, "ratio", inverted=True),
}

READINESS_BANDS: tuple[tuple[int, str], ...] = (
    (90, "Exceptional"),
    (80, "Optimal"),
    (70, "Good"),
    (60, "Fair"),
)
LOWEST_BAND = "Needs Attention"

CATEGORY_RULES: tuple[SubstringRule[str], ...] = (
    SubstringRule(("sleep",), "sleep"),
    SubstringRule(("steps", "active", "calories", "exercise", "distance", "activity"), "activity"),
    SubstringRule(("heart_rate",), "heart"),
    SubstringRule(("stress", "cognitive", "focus", "mental", "mood"), "mental"),
    SubstringRule(("energy", "hydration", "body_temperature", "recovery"), "body"),
    SubstringRule(("ambient", "humidity", "air_quality", "noise"), "environment"),
)


def normalize_biomarker(biomarker: str, value: float) -> int:
    """Score *value* 0-100 against the range for *biomarker*.

    Unknown biomarker types score ``UNKNOWN_BIOMARKER_SCORE``.  Raises
    ``TypeError`` / ``ValueError`` for non-numeric or non-finite values.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{biomarker} value must be numeric, got {type(value).__name__}")
    if not math.isfinite(value):
        raise ValueError(f"{biomarker} value must be finite, got {value}")
    clinical = CLINICAL_RANGES.get(biomarker)
    if clinical is None:
        return UNKNOWN_BIOMARKER_SCORE
    return clinical.normalize(value)


def readiness_band(score: float) -> str:
    for threshold, label in READINESS_BANDS:
        if score >= threshold:
            return label
    return LOWEST_BAND


def biomarker_category(biomarker: str) -> str:
    return first_match(CATEGORY_RULES, biomarker.lower(), "other")
