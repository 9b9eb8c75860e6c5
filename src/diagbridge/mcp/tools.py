"""MCP tool definitions: problem queries, analysis and subscriptions."""

# pyright: reportUnusedFunction=false
# All functions are registered via @mcp.tool decorator

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from fastmcp import Context, FastMCP

from diagbridge.constants import GroupBy, Severity
from diagbridge.diagnostics.schemas import Diagnostic, ProblemFilter

if TYPE_CHECKING:
    from diagbridge.engine import DiagnosticsEngine


def register_tools(mcp: FastMCP) -> None:
    """Register all 7 MCP tools."""

    @mcp.tool()
    async def get_problems(
        severity: str = "",
        workspace_folder: str = "",
        file_path: str = "",
        source: str = "",
        limit: int | None = None,
        offset: int = 0,
    ) -> str:
        """Get problems across the workspace with optional filters.

        Severity is one of: error, warning, information, hint.
        """
        sev = _parse_severity(severity)
        if severity and sev is None:
            return _invalid("severity", severity, Severity)
        if (limit is not None and limit < 0) or offset < 0:
            return "limit and offset must not be negative."
        options = ProblemFilter(
            severity=sev,
            workspace_folder=workspace_folder or None,
            file_path=file_path or None,
            source=source or None,
            limit=limit,
            offset=offset,
        )
        problems = _engine().get_filtered_problems(options)
        return _problems_json(problems)

    @mcp.tool()
    async def get_problems_for_file(file_path: str) -> str:
        """Get all problems reported for one file."""
        problems = _engine().get_problems_for_file(file_path)
        if not problems:
            return f"No problems found for '{file_path}'."
        return _problems_json(problems)

    @mcp.tool()
    async def get_problems_for_workspace(workspace_folder: str) -> str:
        """Get all problems in one workspace folder."""
        problems = _engine().get_problems_for_workspace(workspace_folder)
        if not problems:
            return f"No problems found in workspace '{workspace_folder}'."
        return _problems_json(problems)

    @mcp.tool()
    async def get_problem_summary(group_by: str = "") -> str:
        """Problem counts, optionally grouped.

        group_by is one of: severity, source, workspace_folder, file.
        Empty returns the full summary.
        """
        key: GroupBy | None = None
        if group_by:
            try:
                key = GroupBy(group_by.lower())
            except ValueError:
                return _invalid("group_by", group_by, GroupBy)
        summary = _engine().get_workspace_summary(key)
        return json.dumps(summary, indent=2)

    @mcp.tool()
    async def trigger_workspace_analysis() -> str:
        """Sweep workspace files that have never been analyzed.

        Returns when the sweep finishes; concurrent calls share one run.
        """
        engine = _engine()
        report = await engine.trigger_workspace_analysis()
        result: dict[str, Any] = {
            "state": report.state.value,
            "enumerated": report.enumerated,
            "skipped_covered": report.skipped_covered,
            "ignored": report.ignored,
            "visited": len(report.visited),
            "batches": report.batch_sizes,
            "changed_files": report.changed_files,
            "failures": [f.model_dump() for f in report.failures],
            "duration_ms": round(report.duration_ms, 1),
            "summary": engine.get_workspace_summary(),
        }
        return json.dumps(result, indent=2)

    @mcp.tool()
    async def subscribe_problems(ctx: Context) -> str:
        """Receive problemsChanged log notifications on this session."""
        from diagbridge.mcp.server import get_notifier

        if not get_notifier().add(ctx.session):
            return "Already subscribed to problem changes."
        return "Subscribed to problem changes."

    @mcp.tool()
    async def unsubscribe_problems(ctx: Context) -> str:
        """Stop problemsChanged notifications on this session."""
        from diagbridge.mcp.server import get_notifier

        if not get_notifier().remove(ctx.session):
            return "Not subscribed."
        return "Unsubscribed from problem changes."


def _engine() -> DiagnosticsEngine:
    from diagbridge.mcp.server import get_engine

    return get_engine()


def _parse_severity(value: str) -> Severity | None:
    if not value:
        return None
    try:
        return Severity(value.lower())
    except ValueError:
        return None


def _invalid(field: str, value: str, choices: type[Any]) -> str:
    valid = ", ".join(c.value for c in choices)
    return f"Invalid {field} '{value}'. Valid values: {valid}."


def _problems_json(problems: list[Diagnostic]) -> str:
    return json.dumps(
        {
            "count": len(problems),
            "problems": [p.model_dump(mode="json") for p in problems],
        },
        indent=2,
    )
