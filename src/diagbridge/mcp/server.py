"""MCP server: FastMCP instance with configure/get helpers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastmcp import FastMCP

from diagbridge import __version__
from diagbridge.constants import MCP_SERVER_NAME
from diagbridge.mcp.notifications import McpNotifier
from diagbridge.mcp.resources import register_resources
from diagbridge.mcp.tools import register_tools

if TYPE_CHECKING:
    from diagbridge.engine import DiagnosticsEngine

mcp = FastMCP(
    name=MCP_SERVER_NAME,
    version=__version__,
    instructions=(
        "Workspace diagnostics bridge: every problem the editor's "
        "analyzers report, including files that were never opened"
    ),
)

_engine: DiagnosticsEngine | None = None
_notifier: McpNotifier | None = None

register_tools(mcp)
register_resources(mcp)


def configure(engine: DiagnosticsEngine) -> McpNotifier:
    """Attach the diagnostics engine the tools and resources read.

    Must be called before serving requests. Registers an
    :class:`McpNotifier` on the engine and returns it.
    """
    global _engine, _notifier  # noqa: PLW0603
    if _engine is not None and _notifier is not None:
        _engine.unsubscribe(_notifier.name)
    _engine = engine
    _notifier = McpNotifier()
    engine.subscribe(_notifier)
    return _notifier


def get_engine() -> DiagnosticsEngine:
    """Get the configured engine."""
    if _engine is None:
        msg = "MCP server not configured. Call configure(engine) first."
        raise RuntimeError(msg)
    return _engine


def get_notifier() -> McpNotifier:
    if _notifier is None:
        msg = "MCP server not configured. Call configure(engine) first."
        raise RuntimeError(msg)
    return _notifier
