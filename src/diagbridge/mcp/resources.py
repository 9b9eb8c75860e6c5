"""MCP resource definitions: summary, files, per-file and per-workspace."""

# pyright: reportUnusedFunction=false
# All functions are registered via @mcp.resource decorator

from __future__ import annotations

import base64
import binascii
import json

from fastmcp import FastMCP

from diagbridge.constants import (
    RESOURCE_FILE_PREFIX,
    RESOURCE_FILES_URI,
    RESOURCE_SUMMARY_URI,
    RESOURCE_WORKSPACE_PREFIX,
)


def encode_file_id(file_id: str) -> str:
    """URL-safe base64 without padding, as used in file resource URIs."""
    raw = base64.urlsafe_b64encode(file_id.encode("utf-8"))
    return raw.decode("ascii").rstrip("=")


def decode_file_id(encoded: str) -> str | None:
    padded = encoded + "=" * (-len(encoded) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None


def file_resource_uri(file_id: str) -> str:
    return f"{RESOURCE_FILE_PREFIX}{encode_file_id(file_id)}"


def register_resources(mcp: FastMCP) -> None:
    """Register all 4 MCP resources."""

    @mcp.resource(RESOURCE_SUMMARY_URI)
    async def problems_summary() -> str:
        """Totals by severity, source and workspace folder."""
        from diagbridge.mcp.server import get_engine

        return json.dumps(get_engine().get_workspace_summary(), indent=2)

    @mcp.resource(RESOURCE_FILES_URI)
    async def files_with_problems() -> str:
        """Files that currently have problems, with resource URIs."""
        from diagbridge.mcp.server import get_engine

        engine = get_engine()
        items = [
            {
                "file": f,
                "uri": file_resource_uri(f),
                "problem_count": len(engine.get_problems_for_file(f)),
            }
            for f in engine.get_files_with_problems()
        ]
        return json.dumps(items, indent=2)

    @mcp.resource(RESOURCE_FILE_PREFIX + "{encoded_path}")
    async def file_problems(encoded_path: str) -> str:
        """Problems for one file; the path is URL-safe base64."""
        from diagbridge.mcp.server import get_engine

        file_id = decode_file_id(encoded_path)
        if file_id is None:
            return "Invalid file path encoding."
        problems = get_engine().get_problems_for_file(file_id)
        return json.dumps(
            {
                "file": file_id,
                "problems": [p.model_dump(mode="json") for p in problems],
            },
            indent=2,
        )

    @mcp.resource(RESOURCE_WORKSPACE_PREFIX + "{workspace_name}")
    async def workspace_problems(workspace_name: str) -> str:
        """Problems in one workspace folder."""
        from diagbridge.mcp.server import get_engine

        problems = get_engine().get_problems_for_workspace(workspace_name)
        return json.dumps(
            {
                "workspace": workspace_name,
                "problems": [p.model_dump(mode="json") for p in problems],
            },
            indent=2,
        )
