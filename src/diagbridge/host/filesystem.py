"""Workspace enumeration over a local directory tree."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from pathlib import Path

import pathspec

logger = logging.getLogger(__name__)


class FilesystemWorkspace:
    """Lists workspace files on disk and names their workspace folder.

    * Skips hidden directories and those in ``skip_directories``.
    * Honours the root ``.gitignore``.
    * Offers only files matching ``include_patterns`` (all files when
      the list is empty).
    """

    def __init__(
        self,
        root: Path | str,
        include_patterns: Iterable[str] = (),
        skip_directories: Iterable[str] = (),
        name: str | None = None,
    ) -> None:
        self.root = Path(root)
        self.name = name or self.root.resolve().name
        self._include = list(include_patterns)
        self._include_spec = pathspec.PathSpec.from_lines(
            "gitignore", self._include
        )
        self._skip_dirs = set(skip_directories)

    async def list_files(self) -> list[str]:
        return await asyncio.to_thread(self.scan)

    def scan(self) -> list[str]:
        """Synchronous walk; returns absolute POSIX paths, sorted."""
        if not self.root.is_dir():
            raise FileNotFoundError(f"workspace root not found: {self.root}")
        gitignore = _load_gitignore(self.root)
        resolved_root = self.root.resolve()
        files = [
            p.resolve().as_posix()
            for p in _walk(self.root, self.root, self._skip_dirs,
                           gitignore, resolved_root)
            if self._included(p)
        ]
        logger.debug(
            "event=workspace_scanned root=%s files=%d", self.root, len(files)
        )
        return sorted(files)

    def workspace_folder_for(self, file_id: str) -> str | None:
        try:
            Path(file_id).resolve().relative_to(self.root.resolve())
        except ValueError:
            return None
        return self.name

    def _included(self, path: Path) -> bool:
        if not self._include:
            return True
        rel = path.relative_to(self.root).as_posix()
        return self._include_spec.match_file(rel)


def _walk(
    current: Path,
    root: Path,
    skip_dirs: set[str],
    gitignore: pathspec.PathSpec,
    resolved_root: Path,
) -> list[Path]:
    """Recursive walk; symlinks resolving outside the root are skipped."""
    files: list[Path] = []
    try:
        entries = sorted(current.iterdir())
    except OSError as exc:
        logger.warning("event=walk_failed dir=%s error=%s", current, exc)
        return files
    for item in entries:
        if item.is_symlink():
            if not item.resolve().is_relative_to(resolved_root):
                continue
        rel = item.relative_to(root).as_posix()
        if item.is_dir():
            if item.name.startswith(".") or item.name in skip_dirs:
                continue
            if gitignore.match_file(rel + "/"):
                continue
            files.extend(
                _walk(item, root, skip_dirs, gitignore, resolved_root)
            )
        elif item.is_file() and not gitignore.match_file(rel):
            files.append(item)
    return files


def _load_gitignore(root: Path) -> pathspec.PathSpec:
    gitignore = root / ".gitignore"
    if not gitignore.exists():
        return pathspec.PathSpec.from_lines("gitignore", [])
    try:
        with open(gitignore, encoding="utf-8") as f:
            return pathspec.PathSpec.from_lines("gitignore", f)
    except OSError:
        return pathspec.PathSpec.from_lines("gitignore", [])
