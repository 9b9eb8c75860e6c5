"""Tests for DiagnosticStore."""

from __future__ import annotations

import logging

import pytest

from diagbridge.constants import MergeMode
from diagbridge.diagnostics.store import DiagnosticStore
from diagbridge.host.fakes import raw_diagnostic


class TestUpsert:
    def test_reports_change(self) -> None:
        store = DiagnosticStore()
        assert store.upsert("a.ts", [raw_diagnostic()], MergeMode.FULL_RESYNC)

    def test_identical_resync_reports_no_change(self) -> None:
        store = DiagnosticStore()
        diags = [raw_diagnostic(line=1), raw_diagnostic(line=2)]
        store.upsert("a.ts", diags, MergeMode.FULL_RESYNC)
        assert not store.upsert("a.ts", diags, MergeMode.FULL_RESYNC)
        assert len(store.get("a.ts")) == 2

    def test_marks_file_covered(self) -> None:
        store = DiagnosticStore()
        store.upsert("a.ts", [], MergeMode.INCREMENTAL)
        assert store.is_covered("a.ts")
        assert store.get("a.ts") == []

    def test_clear_unknown_file_is_no_change(self) -> None:
        store = DiagnosticStore()
        assert not store.upsert("a.ts", [], MergeMode.CLEAR)

    def test_clear_drops_file_from_problem_list(self) -> None:
        store = DiagnosticStore()
        store.upsert("a.ts", [raw_diagnostic()], MergeMode.FULL_RESYNC)
        assert store.upsert("a.ts", [], MergeMode.CLEAR)
        assert store.files_with_problems() == []
        assert store.is_covered("a.ts")


class TestMalformed:
    def test_dropped_with_warning(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        store = DiagnosticStore()
        bad = raw_diagnostic()
        del bad["range"]
        with caplog.at_level(
            logging.WARNING, logger="diagbridge.diagnostics.store"
        ):
            changed = store.upsert(
                "a.ts", [bad, raw_diagnostic(line=3)], MergeMode.INCREMENTAL
            )
        assert changed
        assert len(store.get("a.ts")) == 1
        assert "event=malformed_diagnostic_dropped" in caplog.text

    def test_all_malformed_leaves_store_unchanged(self) -> None:
        store = DiagnosticStore()
        store.upsert("a.ts", [raw_diagnostic()], MergeMode.FULL_RESYNC)
        assert not store.upsert(
            "a.ts", [{"message": "no range"}], MergeMode.INCREMENTAL
        )
        assert len(store) == 1

    def test_all_malformed_full_resync_does_not_clear(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        store = DiagnosticStore()
        store.upsert(
            "a.ts",
            [raw_diagnostic(line=1), raw_diagnostic(line=2)],
            MergeMode.FULL_RESYNC,
        )
        with caplog.at_level(logging.WARNING):
            changed = store.upsert(
                "a.ts", [{"message": "no range"}], MergeMode.FULL_RESYNC
            )
        assert not changed
        assert len(store.get("a.ts")) == 2
        assert "event=malformed_update_ignored" in caplog.text

    def test_all_malformed_does_not_mark_covered(self) -> None:
        store = DiagnosticStore()
        store.upsert("b.ts", [{"message": "no range"}], MergeMode.FULL_RESYNC)
        assert not store.is_covered("b.ts")

    def test_clear_still_clears(self) -> None:
        store = DiagnosticStore()
        store.upsert("a.ts", [raw_diagnostic()], MergeMode.FULL_RESYNC)
        assert store.upsert("a.ts", [], MergeMode.CLEAR)
        assert store.get("a.ts") == []


class TestCap:
    def test_truncates_to_limit(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        store = DiagnosticStore(max_problems_per_file=2)
        diags = [raw_diagnostic(line=n) for n in range(5)]
        with caplog.at_level(logging.WARNING):
            store.upsert("a.ts", diags, MergeMode.FULL_RESYNC)
        kept = store.get("a.ts")
        assert [d.range.start.line for d in kept] == [0, 1]
        assert "event=problems_truncated" in caplog.text


class TestQueries:
    def test_get_all_is_ordered(self) -> None:
        store = DiagnosticStore()
        store.upsert("b.ts", [raw_diagnostic(line=4)], MergeMode.INCREMENTAL)
        store.upsert(
            "a.ts",
            [raw_diagnostic(line=9), raw_diagnostic(line=1)],
            MergeMode.INCREMENTAL,
        )
        got = [(d.file_id, d.range.start.line) for d in store.get_all()]
        assert got == [("a.ts", 1), ("a.ts", 9), ("b.ts", 4)]

    def test_remove_forgets_set_and_coverage(self) -> None:
        store = DiagnosticStore()
        store.upsert("a.ts", [raw_diagnostic()], MergeMode.INCREMENTAL)
        assert store.remove("a.ts")
        assert not store.is_covered("a.ts")
        assert store.get("a.ts") == []
        assert not store.remove("a.ts")

    def test_resolver_sets_workspace_folder(self) -> None:
        store = DiagnosticStore(resolver=lambda f: "web")
        store.upsert("a.ts", [raw_diagnostic()], MergeMode.INCREMENTAL)
        assert store.get("a.ts")[0].workspace_folder == "web"

    def test_clear(self) -> None:
        store = DiagnosticStore()
        store.upsert("a.ts", [raw_diagnostic()], MergeMode.INCREMENTAL)
        store.clear()
        assert len(store) == 0
        assert store.coverage == frozenset()
