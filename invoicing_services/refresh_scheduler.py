"""
RefreshScheduler -- Approval-triggered invoice basis refreshes.

Responsibility:
    Turn a batch of newly approved items ``{project_id, date}`` into unique
    (project, ISO week) keys and run one refresh per key in parallel.
    A single bulk approval can span many dates and projects; the invoice
    basis for every touched week is rebuilt without blocking or failing
    the approval itself.

Architecture position:
    Services -- orchestration over the invoice basis module.  The refresh
    callable is injected, so the scheduler holds no session itself.

Invariants enforced:
    - One refresh per (project, week) key per batch.
    - Settle all: every key runs to completion or failure; no failure
      (including an unparseable item) propagates out of ``run()``.

Failure modes:
    - Per-key exceptions are logged as ``approval_refresh_failed`` and
      recorded in the ``BatchSummary``.
"""

from __future__ import annotations

import contextvars
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Iterable, Mapping

from invoicing_engines.weeks import iso_week_bounds
from invoicing_kernel.logging_config import get_logger
from invoicing_modules.invoice_basis.models import parse_iso_date

logger = get_logger("services.refresh_scheduler")

RefreshFn = Callable[[str, date, date], Any]


@dataclass(frozen=True, order=True)
class RefreshKey:
    """One (project, Monday..Sunday week) to refresh."""

    project_id: str
    week_start: date
    week_end: date


@dataclass(frozen=True)
class ApprovedItem:
    project_id: str
    date: date

    @classmethod
    def parse(cls, item: Any) -> ApprovedItem:
        """
        Read ``project_id`` and ``date`` from a mapping or an object.

        Raises:
            ValueError: project id missing or date not parseable.
        """
        if isinstance(item, ApprovedItem):
            return item
        if isinstance(item, Mapping):
            project_id = item.get("project_id")
            raw_date = item.get("date")
        else:
            project_id = getattr(item, "project_id", None)
            raw_date = getattr(item, "date", None)

        if not project_id:
            raise ValueError("approved item has no project_id")

        if isinstance(raw_date, datetime):
            day = raw_date.date()
        elif isinstance(raw_date, date):
            day = raw_date
        elif isinstance(raw_date, str):
            day = parse_iso_date(raw_date[:10])
        else:
            day = None
        if day is None:
            raise ValueError(f"approved item has unparseable date: {raw_date!r}")
        return cls(project_id=str(project_id), date=day)


@dataclass(frozen=True)
class KeyFailure:
    key: RefreshKey
    error_type: str
    message: str


@dataclass(frozen=True)
class BatchSummary:
    """Outcome of one scheduler run, for logs and tests."""

    keys: tuple[RefreshKey, ...]
    succeeded: tuple[RefreshKey, ...]
    failed: tuple[KeyFailure, ...]
    invalid_items: int = 0

    @property
    def all_succeeded(self) -> bool:
        return not self.failed and not self.invalid_items


def group_refresh_keys(items: Iterable[Any]) -> tuple[tuple[RefreshKey, ...], int]:
    """
    Deduplicate approved items into sorted (project, week) keys.

    Returns:
        The keys and the number of items that could not be parsed.
        Unparseable items are logged and skipped.
    """
    keys: set[RefreshKey] = set()
    invalid = 0
    for item in items:
        try:
            approved = ApprovedItem.parse(item)
        except ValueError as exc:
            invalid += 1
            logger.warning(
                "approval_item_invalid",
                extra={"item": repr(item), "error": str(exc)},
            )
            continue
        week_start, week_end = iso_week_bounds(approved.date)
        keys.add(RefreshKey(approved.project_id, week_start, week_end))
    return tuple(sorted(keys)), invalid


class RefreshScheduler:
    """
    Runs one refresh per (project, week) on a bounded thread pool.

    ``refresh_fn(project_id, week_start, week_end)`` is the full refresh
    pipeline for one key; the org is bound by the caller.
    """

    def __init__(self, refresh_fn: RefreshFn, max_workers: int = 4):
        self._refresh_fn = refresh_fn
        self._max_workers = max(1, max_workers)

    def group_refresh_keys(self, items: Iterable[Any]) -> tuple[RefreshKey, ...]:
        keys, _ = group_refresh_keys(items)
        return keys

    def _run_key(self, key: RefreshKey) -> KeyFailure | None:
        try:
            self._refresh_fn(key.project_id, key.week_start, key.week_end)
        except Exception as exc:
            logger.error(
                "approval_refresh_failed",
                extra={
                    "project_id": key.project_id,
                    "period_start": key.week_start.isoformat(),
                    "period_end": key.week_end.isoformat(),
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
                exc_info=True,
            )
            return KeyFailure(key, type(exc).__name__, str(exc))
        return None

    def run(self, items: Iterable[Any]) -> BatchSummary:
        """Refresh every week touched by ``items``.  Never raises."""
        keys, invalid = group_refresh_keys(items)
        if not keys:
            return BatchSummary(keys=(), succeeded=(), failed=(), invalid_items=invalid)

        logger.info(
            "approval_refresh_started",
            extra={"key_count": len(keys), "invalid_items": invalid},
        )

        with ThreadPoolExecutor(
            max_workers=min(self._max_workers, len(keys)),
            thread_name_prefix="approval-refresh",
        ) as pool:
            futures = [
                pool.submit(contextvars.copy_context().run, self._run_key, key)
                for key in keys
            ]
            outcomes = [future.result() for future in futures]

        failed = tuple(outcome for outcome in outcomes if outcome is not None)
        failed_keys = {failure.key for failure in failed}
        succeeded = tuple(key for key in keys if key not in failed_keys)

        logger.info(
            "approval_refresh_completed",
            extra={
                "key_count": len(keys),
                "succeeded": len(succeeded),
                "failed": len(failed),
            },
        )
        return BatchSummary(
            keys=keys,
            succeeded=succeeded,
            failed=failed,
            invalid_items=invalid,
        )
