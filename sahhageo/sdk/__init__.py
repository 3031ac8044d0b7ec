"""Sahha Python SDK: async client for the Sahha health data API."""

from __future__ import annotations

from sahhageo.sdk.client import AsyncSahhaClient
from sahhageo.sdk.exceptions import (
    AuthenticationError,
    NotFoundError,
    SahhaError,
    ValidationError,
)
from sahhageo.sdk.models import Biomarker

__all__ = [
    "AsyncSahhaClient",
    "SahhaError",
    "AuthenticationError",
    "NotFoundError",
    "ValidationError",
    "Biomarker",
]
