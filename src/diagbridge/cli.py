"""CLI entry point: ``diagbridge scan`` and ``diagbridge mcp``."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from diagbridge import __version__
from diagbridge.config import Settings
from diagbridge.constants import AnalyzerOutputFormat
from diagbridge.logging_config import set_level, setup_logging

if TYPE_CHECKING:
    from diagbridge.engine import DiagnosticsEngine


def main() -> None:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args()

    if args.version:
        print(f"diagbridge {__version__}")
        return

    if args.command == "scan":
        _run_scan(args)
    elif args.command == "mcp":
        _run_mcp(args)
    else:
        parser.print_help()


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="diagbridge",
        description=(
            "Workspace diagnostics bridge: aggregates analyzer problems "
            "across every file, opened or not."
        ),
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )

    sub = parser.add_subparsers(dest="command")

    scan = sub.add_parser(
        "scan",
        help="Sweep a workspace once and print the problem summary",
    )
    _add_workspace_args(scan)
    scan.add_argument(
        "--output",
        "-o",
        default=None,
        help="Write the full problem list as JSON to this file",
    )
    scan.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    mcp_parser = sub.add_parser(
        "mcp",
        help="Start the MCP server over a workspace",
    )
    _add_workspace_args(mcp_parser)
    mcp_parser.add_argument(
        "--transport",
        "-t",
        choices=["stdio", "sse"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )
    mcp_parser.add_argument(
        "--host",
        default=None,
        help="Bind address for SSE transport (default: from settings)",
    )
    mcp_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for SSE transport (default: from settings)",
    )

    return parser


def _add_workspace_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "workspace",
        type=str,
        help="Path to the workspace root",
    )
    parser.add_argument(
        "--analyzer-cmd",
        "-c",
        default=None,
        help=(
            "Analyzer command run per file; {file} is replaced by the "
            "path (default: DIAGBRIDGE_ANALYZER_COMMAND)"
        ),
    )
    parser.add_argument(
        "--format",
        "-f",
        choices=[f.value for f in AnalyzerOutputFormat],
        default=None,
        help="Analyzer output format (default: from settings)",
    )
    parser.add_argument(
        "--batch-size",
        "-b",
        type=int,
        default=None,
        help="Files opened per sweep batch (default: from settings)",
    )


def _settings_from_args(args: argparse.Namespace) -> Settings:
    """Settings from the environment, overridden by CLI flags."""
    overrides: dict[str, object] = {}
    if args.analyzer_cmd:
        overrides["analyzer_command"] = args.analyzer_cmd
    if args.format:
        overrides["analyzer_output_format"] = args.format
    if args.batch_size is not None:
        overrides["sweep_batch_size"] = args.batch_size
    return Settings(**overrides)  # type: ignore[arg-type]


def _validate(args: argparse.Namespace) -> tuple[Path, Settings]:
    workspace = Path(args.workspace).resolve()
    if not workspace.is_dir():
        print(f"Error: {workspace} is not a directory", file=sys.stderr)
        sys.exit(1)
    try:
        settings = _settings_from_args(args)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    if not settings.analyzer_command.strip():
        print(
            "Error: no analyzer command. Pass --analyzer-cmd or set "
            "DIAGBRIDGE_ANALYZER_COMMAND.",
            file=sys.stderr,
        )
        sys.exit(1)
    return workspace, settings


def _build_engine(
    workspace: Path, settings: Settings
) -> DiagnosticsEngine:
    from diagbridge.engine import DiagnosticsEngine
    from diagbridge.host.command import CommandAnalyzerHost
    from diagbridge.host.filesystem import FilesystemWorkspace

    host = CommandAnalyzerHost(
        settings.analyzer_command,
        output_format=settings.analyzer_output_format,
        timeout=settings.analyzer_timeout_seconds,
    )
    fs = FilesystemWorkspace(
        workspace,
        include_patterns=settings.sweep_include_patterns,
        skip_directories=settings.skip_directories,
    )
    return DiagnosticsEngine(
        source=host,
        opener=host,
        workspace=fs,
        settings=settings,
        resolver=fs,
    )


def _run_scan(args: argparse.Namespace) -> None:
    """Execute the scan command."""
    workspace, settings = _validate(args)
    setup_logging(settings.log_level)
    if args.verbose:
        set_level("DEBUG")

    print(f"Scanning: {workspace}")
    summary = asyncio.run(
        _scan(
            workspace,
            settings,
            Path(args.output) if args.output else None,
        )
    )
    print(json.dumps(summary, indent=2))


async def _scan(
    workspace: Path, settings: Settings, output: Path | None
) -> dict[str, object]:
    # One-shot sweep: no automatic initial analysis
    settings = settings.model_copy(
        update={"initial_analysis_delay_seconds": -1.0}
    )
    engine = _build_engine(workspace, settings)
    async with engine:
        report = await engine.trigger_workspace_analysis()
        if output is not None:
            await engine.export_problems_to_file(output)
        summary = engine.get_workspace_summary()
    return {
        "state": report.state.value,
        "visited": len(report.visited),
        "failures": len(report.failures),
        **summary,
    }


def _run_mcp(args: argparse.Namespace) -> None:
    """Start the MCP server over the workspace."""
    workspace, settings = _validate(args)
    setup_logging(settings.log_level)
    host = args.host or settings.mcp_host
    port = args.port or settings.mcp_port
    asyncio.run(
        _setup_and_run_mcp(workspace, settings, args.transport, host, port)
    )


async def _setup_and_run_mcp(
    workspace: Path,
    settings: Settings,
    transport: str = "stdio",
    host: str = "127.0.0.1",
    port: int = 6070,
) -> None:
    """Initialize the engine, run MCP, dispose the engine."""
    from diagbridge.mcp import configure, mcp

    engine = _build_engine(workspace, settings)
    configure(engine)
    await engine.init()
    try:
        if transport == "stdio":
            await mcp.run_async(transport="stdio")
        else:
            await mcp.run_async(transport="sse", host=host, port=port)
    finally:
        engine.dispose()


if __name__ == "__main__":
    main()
