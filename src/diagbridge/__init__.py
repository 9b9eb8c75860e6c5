"""diagbridge: aggregate editor diagnostics and serve them over MCP."""

__version__ = "0.1.0"
