"""Singleton logging configuration.

setup_logging() configures the root logger once per process and pins
noisy third-party loggers (the MCP SDK, HTTP transport) to WARNING.
Idempotent (guarded by a module-level flag).

When serving MCP over stdio, stdout carries the protocol, so log
records must go to stderr, logging.basicConfig's default.
"""

import logging

LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s] - %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"

# Third-party loggers to suppress to WARNING
_SUPPRESSED_LOGGERS = (
    "mcp",
    "fastmcp",
    "httpx",
    "uvicorn.access",
    "sse_starlette",
)

_setup_done = False


def setup_logging(level: str = "INFO") -> None:
    """Configure root logger. Second call is a no-op."""
    global _setup_done  # noqa: PLW0603
    if _setup_done:
        return
    _setup_done = True

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )

    for name in _SUPPRESSED_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def set_level(level: str) -> None:
    """Change the root level after setup (e.g. from --verbose)."""
    logging.getLogger().setLevel(getattr(logging, level.upper()))
