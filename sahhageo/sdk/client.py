"""Async HTTP client for the Sahha health data API."""

from __future__ import annotations

import logging
from typing import Any, Sequence

import httpx

from sahhageo.sdk.exceptions import (
    AuthenticationError,
    NotFoundError,
    SahhaError,
    ValidationError,
)
from sahhageo.sdk.models import Biomarker

logger = logging.getLogger("sahhageo.sdk")

# Maps HTTP status codes to exception classes.
_STATUS_MAP: dict[int, type[SahhaError]] = {
    400: ValidationError,
    401: AuthenticationError,
    403: AuthenticationError,
    404: NotFoundError,
    422: ValidationError,
}


def _build_exception(status_code: int, detail: str) -> SahhaError:
    """Construct the appropriate exception for *status_code*."""
    exc_cls = _STATUS_MAP.get(status_code, SahhaError)
    return exc_cls(status_code, detail)


def _parse_detail(response: httpx.Response) -> str:
    """Extract a message from a JSON error body."""
    try:
        body = response.json()
        return body.get("detail") or body.get("title") or body.get("message") or response.text
    except Exception:
        return response.text


class AsyncSahhaClient:
    """Async client for Sahha (backed by ``httpx.AsyncClient``).

    Sahha expects ``Authorization: account <token>`` rather than a bearer
    token.  Requests are not retried.
    """

    def __init__(
        self,
        base_url: str,
        account_token: str | None = None,
        timeout: float = 30.0,
        *,
        _transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers: dict[str, str] = {"Accept": "application/json"}
        if account_token:
            headers["Authorization"] = f"account {account_token}"
        kwargs: dict[str, Any] = {
            "base_url": base_url,
            "headers": headers,
            "timeout": timeout,
        }
        if _transport is not None:
            kwargs["transport"] = _transport
        self._client = httpx.AsyncClient(**kwargs)

    # -- context manager -----------------------------------------------------

    async def __aenter__(self) -> AsyncSahhaClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    # -- internal ------------------------------------------------------------

    def _handle_response(self, response: httpx.Response) -> None:
        if response.status_code >= 400:
            detail = _parse_detail(response)
            logger.warning(
                "Sahha request failed",
                extra={"status_code": response.status_code, "url": str(response.url)},
            )
            raise _build_exception(response.status_code, detail)

    # -- public methods ------------------------------------------------------

    async def fetch_biomarkers(
        self,
        profile_id: str,
        *,
        fields: Sequence[str] = (),
        optimization: str = "standard",
        time_range: str = "today",
        date: str | None = None,
    ) -> list[dict]:
        """Fetch only *fields* for *profile_id*.

        ``optimization`` is logged for diagnostics; the API itself does not
        read it.
        """
        params: dict[str, Any] = {}
        if date is not None:
            params["date"] = date
        if fields:
            params["types"] = ",".join(fields)
        if time_range != "today":
            params["timeRange"] = time_range
        resp = await self._client.get(f"/v1/profile/{profile_id}/biomarker", params=params)
        self._handle_response(resp)
        body = resp.json()
        records = body.get("data", []) if isinstance(body, dict) else body
        biomarkers = [Biomarker.from_payload(r).to_dict() for r in records if "type" in r]
        logger.debug(
            "Fetched %d biomarkers for %s",
            len(biomarkers),
            profile_id,
            extra={"optimization": optimization, "requested": len(fields)},
        )
        return biomarkers
