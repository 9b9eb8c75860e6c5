"""Environment-based configuration."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode

from diagbridge.constants import (
    DEFAULT_INITIAL_ANALYSIS_DELAY,
    DEFAULT_INTERBATCH_SECONDS,
    DEFAULT_SETTLE_SECONDS,
    DEFAULT_SWEEP_BATCH_SIZE,
    AnalyzerOutputFormat,
)

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Reads from .env file and DIAGBRIDGE_* environment variables."""

    # Logging
    log_level: str = "INFO"

    # Background sweep
    sweep_batch_size: int = DEFAULT_SWEEP_BATCH_SIZE
    sweep_settle_seconds: float = DEFAULT_SETTLE_SECONDS
    sweep_interbatch_seconds: float = DEFAULT_INTERBATCH_SECONDS
    initial_analysis_delay_seconds: float = DEFAULT_INITIAL_ANALYSIS_DELAY
    sweep_include_patterns: Annotated[list[str], NoDecode] = [
        "**/*.ts",
        "**/*.tsx",
        "**/*.js",
        "**/*.jsx",
        "**/*.py",
        "**/*.json",
    ]
    sweep_ignore_patterns: Annotated[list[str], NoDecode] = [
        "**/node_modules/**",
        "**/dist/**",
        "**/build/**",
        "**/out/**",
        "**/*.min.js",
    ]
    skip_directories: Annotated[list[str], NoDecode] = [
        "node_modules",
        "vendor",
        ".venv",
        "__pycache__",
        "build",
        "dist",
        ".git",
        ".svn",
        ".hg",
        ".next",
    ]

    # Store
    max_problems_per_file: int = 1000
    trust_empty_events: bool = False

    # Publishing
    notify_debounce_seconds: float = 0.0
    export_path: Path | None = None

    # Standalone analyzer host
    analyzer_command: str = ""
    analyzer_output_format: AnalyzerOutputFormat = (
        AnalyzerOutputFormat.CANONICAL
    )
    analyzer_timeout_seconds: float = 30.0

    # MCP
    mcp_host: str = "127.0.0.1"
    mcp_port: int = 6070

    @field_validator(
        "sweep_include_patterns",
        "sweep_ignore_patterns",
        "skip_directories",
        mode="before",
    )
    @classmethod
    def _parse_list(cls, v: Any) -> Any:
        """Accept comma-separated string or JSON array."""
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator("sweep_batch_size", "max_problems_per_file")
    @classmethod
    def _validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator(
        "sweep_settle_seconds",
        "sweep_interbatch_seconds",
        "notify_debounce_seconds",
        "analyzer_timeout_seconds",
    )
    @classmethod
    def _validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @field_validator("sweep_ignore_patterns")
    @classmethod
    def _warn_duplicate_patterns(cls, v: list[str]) -> list[str]:
        seen: set[str] = set()
        dupes: list[str] = []
        for p in v:
            if p in seen:
                dupes.append(p)
            seen.add(p)
        if dupes:
            logger.warning(
                "Duplicate patterns in SWEEP_IGNORE_PATTERNS: %s",
                ", ".join(dupes),
            )
        return v

    @property
    def auto_analysis_enabled(self) -> bool:
        """Whether init() schedules the initial workspace sweep."""
        return self.initial_analysis_delay_seconds >= 0

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "DIAGBRIDGE_",
        "extra": "ignore",
    }
