"""Tests for FilesystemWorkspace."""

from __future__ import annotations

from pathlib import Path

import pytest

from diagbridge.host.filesystem import FilesystemWorkspace


@pytest.fixture
def workspace_root(tmp_path: Path) -> Path:
    root = tmp_path / "proj"
    (root / "src").mkdir(parents=True)
    (root / "src" / "app.ts").write_text("let x = 1;\n")
    (root / "src" / "util.py").write_text("x = 1\n")
    (root / "README.md").write_text("# readme\n")
    (root / "node_modules" / "lib").mkdir(parents=True)
    (root / "node_modules" / "lib" / "index.js").write_text("")
    (root / ".hidden").mkdir()
    (root / ".hidden" / "secret.ts").write_text("")
    (root / "generated").mkdir()
    (root / "generated" / "out.ts").write_text("")
    (root / ".gitignore").write_text("generated/\n*.log\n")
    (root / "debug.log").write_text("")
    return root


class TestListFiles:
    @pytest.mark.asyncio
    async def test_skips_hidden_skipped_and_ignored(
        self, workspace_root: Path
    ) -> None:
        ws = FilesystemWorkspace(
            workspace_root, skip_directories=["node_modules"]
        )
        files = await ws.list_files()
        names = {Path(f).relative_to(workspace_root.resolve()).as_posix()
                 for f in files}
        assert names == {
            ".gitignore",
            "README.md",
            "src/app.ts",
            "src/util.py",
        }

    @pytest.mark.asyncio
    async def test_include_patterns(self, workspace_root: Path) -> None:
        ws = FilesystemWorkspace(
            workspace_root,
            include_patterns=["**/*.ts", "**/*.py"],
            skip_directories=["node_modules"],
        )
        files = await ws.list_files()
        assert [Path(f).name for f in files] == ["app.ts", "util.py"]

    @pytest.mark.asyncio
    async def test_missing_root_raises(self, tmp_path: Path) -> None:
        ws = FilesystemWorkspace(tmp_path / "missing")
        with pytest.raises(FileNotFoundError):
            await ws.list_files()


class TestWorkspaceFolder:
    def test_inside_root(self, workspace_root: Path) -> None:
        ws = FilesystemWorkspace(workspace_root)
        file_id = str(workspace_root / "src" / "app.ts")
        assert ws.workspace_folder_for(file_id) == "proj"

    def test_outside_root(self, workspace_root: Path, tmp_path: Path) -> None:
        ws = FilesystemWorkspace(workspace_root, name="main")
        assert ws.workspace_folder_for(str(tmp_path / "elsewhere.ts")) is None
        assert ws.name == "main"
