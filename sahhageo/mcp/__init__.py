"""Sahha GEO MCP server: exposes pattern-optimized biomarker access as agent tools.

Requires the ``mcp`` dependency.
"""

from __future__ import annotations


def __getattr__(name: str):  # noqa: N807
    if name == "mcp":
        from sahhageo.mcp.server import mcp

        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["mcp"]
