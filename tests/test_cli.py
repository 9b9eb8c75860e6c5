"""Tests for CLI argument parsing, validation and the scan command."""

from __future__ import annotations

import json
import shlex
import sys
from pathlib import Path

import pytest

from diagbridge.cli import _build_parser, _scan, _settings_from_args, _validate
from diagbridge.config import Settings
from diagbridge.constants import AnalyzerOutputFormat

ANALYZER = """\
import json, sys
print(json.dumps([{
    "range": {"start": {"line": 0, "character": 0},
              "end": {"line": 0, "character": 3}},
    "severity": 1,
    "source": "fake",
    "message": "checked " + sys.argv[1].rsplit("/", 1)[-1],
}]))
"""


class TestArgParser:
    def test_version_flag(self) -> None:
        args = _build_parser().parse_args(["--version"])
        assert args.version is True

    def test_scan_defaults(self) -> None:
        args = _build_parser().parse_args(["scan", "/tmp/ws"])
        assert args.command == "scan"
        assert args.workspace == "/tmp/ws"
        assert args.analyzer_cmd is None
        assert args.format is None
        assert args.batch_size is None
        assert args.output is None
        assert args.verbose is False

    def test_scan_with_options(self) -> None:
        args = _build_parser().parse_args(
            [
                "scan",
                "/tmp/ws",
                "--analyzer-cmd",
                "ruff check --output-format json {file}",
                "--format",
                "ruff",
                "--batch-size",
                "5",
                "--output",
                "problems.json",
                "--verbose",
            ]
        )
        assert args.analyzer_cmd == "ruff check --output-format json {file}"
        assert args.format == "ruff"
        assert args.batch_size == 5
        assert args.output == "problems.json"
        assert args.verbose is True

    def test_mcp_defaults(self) -> None:
        args = _build_parser().parse_args(["mcp", "/tmp/ws"])
        assert args.command == "mcp"
        assert args.transport == "stdio"
        assert args.host is None
        assert args.port is None

    def test_no_command(self) -> None:
        args = _build_parser().parse_args([])
        assert args.command is None


class TestSettingsFromArgs:
    def test_flags_override_settings(self) -> None:
        args = _build_parser().parse_args(
            ["scan", "/tmp/ws", "-c", "lint", "-f", "ruff", "-b", "3"]
        )
        settings = _settings_from_args(args)
        assert settings.analyzer_command == "lint"
        assert settings.analyzer_output_format == AnalyzerOutputFormat.RUFF
        assert settings.sweep_batch_size == 3

    def test_environment_used_without_flags(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("DIAGBRIDGE_ANALYZER_COMMAND", "from-env")
        args = _build_parser().parse_args(["scan", "/tmp/ws"])
        assert _settings_from_args(args).analyzer_command == "from-env"


class TestValidate:
    def test_missing_workspace_exits(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        args = _build_parser().parse_args(
            ["scan", str(tmp_path / "nope"), "-c", "lint"]
        )
        with pytest.raises(SystemExit) as exc:
            _validate(args)
        assert exc.value.code == 1
        assert "is not a directory" in capsys.readouterr().err

    def test_missing_analyzer_exits(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        args = _build_parser().parse_args(["scan", str(tmp_path)])
        with pytest.raises(SystemExit) as exc:
            _validate(args)
        assert exc.value.code == 1
        assert "no analyzer command" in capsys.readouterr().err

    def test_invalid_batch_size_exits(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        args = _build_parser().parse_args(
            ["scan", str(tmp_path), "-c", "lint", "-b", "0"]
        )
        with pytest.raises(SystemExit):
            _validate(args)
        assert "Error:" in capsys.readouterr().err

    def test_valid(self, tmp_path: Path) -> None:
        args = _build_parser().parse_args(["scan", str(tmp_path), "-c", "x"])
        workspace, settings = _validate(args)
        assert workspace == tmp_path.resolve()
        assert settings.analyzer_command == "x"


class TestScan:
    @pytest.mark.asyncio
    async def test_scan_sweeps_workspace_and_exports(
        self, tmp_path: Path
    ) -> None:
        script = tmp_path / "analyzer.py"
        script.write_text(ANALYZER, encoding="utf-8")
        workspace = tmp_path / "ws"
        (workspace / "pkg").mkdir(parents=True)
        (workspace / "pkg" / "a.py").write_text("x = 1\n")
        (workspace / "pkg" / "b.py").write_text("y = 2\n")
        (workspace / "README.md").write_text("not analyzed\n")

        settings = Settings(
            analyzer_command=(
                f"{shlex.quote(sys.executable)} {shlex.quote(str(script))}"
            ),
            sweep_settle_seconds=0.0,
            sweep_interbatch_seconds=0.0,
        )
        output = tmp_path / "out" / "problems.json"

        summary = await _scan(workspace, settings, output)

        assert summary["state"] == "done"
        assert summary["visited"] == 2
        assert summary["failures"] == 0
        assert summary["total_problems"] == 2
        assert summary["warning_count"] == 2

        exported = json.loads(output.read_text(encoding="utf-8"))
        messages = sorted(p["message"] for p in exported["problems"])
        assert messages == ["checked a.py", "checked b.py"]
