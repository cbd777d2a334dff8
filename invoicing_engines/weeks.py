"""ISO week helpers for approval-triggered refreshes."""

from __future__ import annotations

from datetime import date, timedelta


def iso_week_bounds(day: date) -> tuple[date, date]:
    """Monday and Sunday of the ISO week containing ``day``."""
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)
