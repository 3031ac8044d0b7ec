"""Correlation ID shared by HTTP requests and MCP tool calls.

Log records pick the current id up through ``get_call_id()``; callers open a
``call_scope`` around each unit of work so the id never leaks into the next
request or tool call running on the same context.
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

call_id_var: ContextVar[str] = ContextVar("call_id", default="")


def generate_call_id() -> str:
    return uuid.uuid4().hex


def get_call_id() -> str:
    """Current call id, or ``""`` outside any scope."""
    return call_id_var.get()


@contextmanager
def call_scope(call_id: str | None = None) -> Iterator[str]:
    """Bind *call_id* (or a fresh one) for the duration of the block."""
    cid = call_id or generate_call_id()
    token = call_id_var.set(cid)
    try:
        yield cid
    finally:
        call_id_var.reset(token)
