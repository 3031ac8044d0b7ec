"""Lightweight models used by the SDK client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True)
class Biomarker:
    """One biomarker reading as returned by ``/v1/profile/{id}/biomarker``."""

    type: str
    value: float | None
    unit: str | None = None
    category: str | None = None
    start_date_time: str | None = None
    end_date_time: str | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Biomarker:
        """Build from a raw JSON record; Sahha uses camelCase timestamps."""
        value = payload.get("value")
        if isinstance(value, str):
            try:
                value = float(value)
            except ValueError:
                value = None
        return cls(
            type=payload["type"],
            value=value,
            unit=payload.get("unit"),
            category=payload.get("category"),
            start_date_time=payload.get("startDateTime"),
            end_date_time=payload.get("endDateTime"),
        )

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "value": self.value,
            "unit": self.unit,
            "category": self.category,
            "start_date_time": self.start_date_time,
            "end_date_time": self.end_date_time,
        }
