"""Tests for identity dedupe and the merge modes."""

from __future__ import annotations

from diagbridge.constants import MergeMode, Severity
from diagbridge.diagnostics.merge import dedupe, merge, sorted_diagnostics
from diagbridge.diagnostics.schemas import Diagnostic, Position, Range


def _d(
    line: int = 0,
    message: str = "m",
    severity: Severity = Severity.ERROR,
    file_id: str = "a.ts",
    code: str | int | None = None,
    workspace_folder: str = "unknown",
) -> Diagnostic:
    return Diagnostic(
        file_id=file_id,
        range=Range(
            start=Position(line=line, character=0),
            end=Position(line=line, character=3),
        ),
        severity=severity,
        source="ts",
        message=message,
        code=code,
        workspace_folder=workspace_folder,
    )


class TestIdentity:
    def test_same_fields_same_key(self) -> None:
        assert _d().identity_key == _d().identity_key

    def test_workspace_folder_not_part_of_identity(self) -> None:
        a = _d(workspace_folder="one")
        b = _d(workspace_folder="two")
        assert a.identity_key == b.identity_key

    def test_code_distinguishes(self) -> None:
        assert _d(code="E1").identity_key != _d(code="E2").identity_key

    def test_severity_distinguishes(self) -> None:
        a = _d(severity=Severity.ERROR)
        b = _d(severity=Severity.WARNING)
        assert a.identity_key != b.identity_key


class TestDedupe:
    def test_collapses_duplicates(self) -> None:
        assert len(dedupe([_d(), _d(), _d(line=1)])) == 2

    def test_later_entry_wins(self) -> None:
        first = _d(workspace_folder="old")
        second = _d(workspace_folder="new")
        result = dedupe([first, second])
        assert list(result.values())[0].workspace_folder == "new"


class TestMerge:
    def test_full_resync_replaces(self) -> None:
        existing = dedupe([_d(line=1), _d(line=2)])
        result = merge(existing, [_d(line=3)], MergeMode.FULL_RESYNC)
        assert [d.range.start.line for d in result.values()] == [3]

    def test_full_resync_is_idempotent(self) -> None:
        incoming = [_d(line=1), _d(line=2)]
        once = merge({}, incoming, MergeMode.FULL_RESYNC)
        twice = merge(once, incoming, MergeMode.FULL_RESYNC)
        assert once == twice

    def test_incremental_unions(self) -> None:
        existing = dedupe([_d(line=1)])
        result = merge(existing, [_d(line=2)], MergeMode.INCREMENTAL)
        assert len(result) == 2

    def test_incremental_never_shrinks(self) -> None:
        existing = dedupe([_d(line=1), _d(line=2), _d(line=3)])
        for incoming in ([], [_d(line=1)], [_d(line=9), _d(line=9)]):
            result = merge(existing, incoming, MergeMode.INCREMENTAL)
            assert len(result) >= len(existing)

    def test_incremental_deduplicates_across_events(self) -> None:
        step1 = merge({}, [_d(line=1)], MergeMode.INCREMENTAL)
        step2 = merge(step1, [_d(line=1)], MergeMode.INCREMENTAL)
        assert len(step2) == 1

    def test_clear_empties(self) -> None:
        existing = dedupe([_d(line=1)])
        assert merge(existing, [_d(line=2)], MergeMode.CLEAR) == {}

    def test_existing_not_mutated(self) -> None:
        existing = dedupe([_d(line=1)])
        snapshot = dict(existing)
        merge(existing, [_d(line=2)], MergeMode.INCREMENTAL)
        merge(existing, [], MergeMode.CLEAR)
        assert existing == snapshot


def test_sorted_by_file_then_range() -> None:
    items = [
        _d(line=5, file_id="b.ts"),
        _d(line=2, file_id="a.ts"),
        _d(line=1, file_id="b.ts"),
    ]
    ordered = sorted_diagnostics(items)
    assert [(d.file_id, d.range.start.line) for d in ordered] == [
        ("a.ts", 2),
        ("b.ts", 1),
        ("b.ts", 5),
    ]
