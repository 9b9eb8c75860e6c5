"""MCP server exposing the diagnostics engine."""

from diagbridge.mcp.server import configure, get_engine, get_notifier, mcp

__all__ = ["configure", "get_engine", "get_notifier", "mcp"]
