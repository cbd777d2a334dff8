"""
Tests for RefreshScheduler: grouping approvals into (project, week) keys
and running one refresh per key without letting failures escape.
"""

import threading
from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest

from invoicing_kernel.logging_config import LogContext
from invoicing_services.refresh_scheduler import (
    ApprovedItem,
    RefreshKey,
    RefreshScheduler,
    group_refresh_keys,
)

WEEK_10 = (date(2025, 3, 3), date(2025, 3, 9))
WEEK_11 = (date(2025, 3, 10), date(2025, 3, 16))


class Recorder:
    """Refresh stand-in that records calls and fails for chosen projects."""

    def __init__(self, failing=()):
        self.calls = []
        self.contexts = []
        self._failing = set(failing)
        self._lock = threading.Lock()

    def __call__(self, project_id, week_start, week_end):
        with self._lock:
            self.calls.append((project_id, week_start, week_end))
            self.contexts.append(LogContext.get_all())
        if project_id in self._failing:
            raise RuntimeError(f"refresh failed for {project_id}")


class TestApprovedItem:
    @pytest.mark.parametrize(
        "raw",
        [
            {"project_id": "p-1", "date": "2025-03-04"},
            {"project_id": "p-1", "date": "2025-03-04T23:30:00Z"},
            {"project_id": "p-1", "date": date(2025, 3, 4)},
            {"project_id": "p-1", "date": datetime(2025, 3, 4, 7, tzinfo=timezone.utc)},
            SimpleNamespace(project_id="p-1", date="2025-03-04"),
        ],
    )
    def test_accepted_shapes(self, raw):
        assert ApprovedItem.parse(raw) == ApprovedItem("p-1", date(2025, 3, 4))

    @pytest.mark.parametrize(
        "raw",
        [
            {"date": "2025-03-04"},
            {"project_id": "", "date": "2025-03-04"},
            {"project_id": "p-1"},
            {"project_id": "p-1", "date": "04/03/2025"},
            {"project_id": "p-1", "date": 20250304},
            None,
        ],
    )
    def test_rejected_shapes(self, raw):
        with pytest.raises(ValueError):
            ApprovedItem.parse(raw)


class TestGrouping:
    def test_one_key_per_project_week(self):
        items = [
            {"project_id": "p-1", "date": "2025-03-03"},
            {"project_id": "p-1", "date": "2025-03-09"},
            {"project_id": "p-1", "date": "2025-03-10"},
            {"project_id": "p-2", "date": "2025-03-05"},
            {"project_id": "p-2", "date": "2025-03-05"},
        ]

        keys, invalid = group_refresh_keys(items)

        assert keys == (
            RefreshKey("p-1", *WEEK_10),
            RefreshKey("p-1", *WEEK_11),
            RefreshKey("p-2", *WEEK_10),
        )
        assert invalid == 0

    def test_invalid_items_counted_and_logged(self, captured_logs):
        items = [
            {"project_id": "p-1", "date": "2025-03-03"},
            {"project_id": None, "date": "2025-03-03"},
            {"project_id": "p-1", "date": "not a date"},
        ]

        keys, invalid = group_refresh_keys(items)

        assert keys == (RefreshKey("p-1", *WEEK_10),)
        assert invalid == 2
        logged = [r for r in captured_logs() if r["message"] == "approval_item_invalid"]
        assert len(logged) == 2

    def test_scheduler_method_returns_keys_only(self):
        scheduler = RefreshScheduler(Recorder())

        assert scheduler.group_refresh_keys([{"project_id": "p-1", "date": "2025-03-12"}]) == (
            RefreshKey("p-1", *WEEK_11),
        )


class TestRun:
    def test_every_key_refreshed_once(self):
        refresh = Recorder()
        items = [{"project_id": f"p-{i % 3}", "date": f"2025-03-0{3 + i % 2}"} for i in range(30)]

        summary = RefreshScheduler(refresh, max_workers=4).run(items)

        assert sorted(refresh.calls) == [
            ("p-0", *WEEK_10),
            ("p-1", *WEEK_10),
            ("p-2", *WEEK_10),
        ]
        assert summary.succeeded == summary.keys
        assert summary.all_succeeded

    def test_failure_does_not_stop_other_keys(self, captured_logs):
        refresh = Recorder(failing={"p-bad"})
        items = [
            {"project_id": "p-bad", "date": "2025-03-04"},
            {"project_id": "p-good", "date": "2025-03-04"},
            {"project_id": "p-good", "date": "2025-03-11"},
        ]

        summary = RefreshScheduler(refresh).run(items)

        assert len(refresh.calls) == 3
        assert [f.key.project_id for f in summary.failed] == ["p-bad"]
        assert summary.failed[0].error_type == "RuntimeError"
        assert len(summary.succeeded) == 2
        assert not summary.all_succeeded
        failed_logs = [r for r in captured_logs() if r["message"] == "approval_refresh_failed"]
        assert failed_logs[0]["project_id"] == "p-bad"
        assert failed_logs[0]["exc_type"] == "RuntimeError"

    def test_all_failing_still_returns(self):
        refresh = Recorder(failing={"p-1", "p-2"})

        summary = RefreshScheduler(refresh).run(
            [{"project_id": "p-1", "date": "2025-03-04"}, {"project_id": "p-2", "date": "2025-03-04"}]
        )

        assert len(summary.failed) == 2
        assert summary.succeeded == ()

    def test_only_invalid_items(self):
        refresh = Recorder()

        summary = RefreshScheduler(refresh).run([{"project_id": "p-1"}])

        assert refresh.calls == []
        assert summary.keys == ()
        assert summary.invalid_items == 1
        assert not summary.all_succeeded

    def test_empty_batch(self):
        summary = RefreshScheduler(Recorder()).run([])

        assert summary.keys == ()
        assert summary.all_succeeded

    def test_log_context_reaches_workers(self):
        refresh = Recorder()

        with LogContext.bind(org_id="org-7"):
            RefreshScheduler(refresh, max_workers=2).run(
                [{"project_id": "p-1", "date": "2025-03-04"}, {"project_id": "p-2", "date": "2025-03-04"}]
            )

        assert all(ctx.get("org_id") == "org-7" for ctx in refresh.contexts)
