"""Tests for the clock abstraction and deterministic payload hashing."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID

import pytest

from invoicing_kernel.domain.clock import DeterministicClock, SystemClock
from invoicing_kernel.utils.hashing import canonicalize_json, hash_payload


class TestDeterministicClock:
    def test_repeated_calls_are_stable(self):
        clock = DeterministicClock(datetime(2025, 3, 10, 9, 30, tzinfo=timezone.utc))

        assert clock.now() == clock.now()
        assert clock.today() == date(2025, 3, 10)

    def test_default_time(self):
        assert DeterministicClock().now() == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_advance_and_tick(self):
        start = datetime(2025, 3, 10, 9, 30, tzinfo=timezone.utc)
        clock = DeterministicClock(start)

        clock.advance(59)
        assert clock.tick() == start + timedelta(seconds=60)

    def test_set_time_resets_advance(self):
        clock = DeterministicClock()
        clock.advance(100)
        target = datetime(2026, 1, 1, tzinfo=timezone.utc)

        clock.set_time(target)

        assert clock.now() == target

    def test_now_utc_normalizes_offset(self):
        stockholm = timezone(timedelta(hours=1))
        clock = DeterministicClock(datetime(2025, 3, 10, 0, 30, tzinfo=stockholm))

        assert clock.now_utc() == datetime(2025, 3, 9, 23, 30, tzinfo=timezone.utc)
        assert clock.today() == date(2025, 3, 9)


class TestSystemClock:
    def test_timezone_aware(self):
        assert SystemClock().now_utc().tzinfo is not None


class TestHashing:
    def test_key_order_irrelevant(self):
        assert hash_payload({"a": 1, "b": 2}) == hash_payload({"b": 2, "a": 1})

    def test_decimal_scale_irrelevant(self):
        assert hash_payload({"total": Decimal("1.50")}) == hash_payload({"total": Decimal("1.5")})

    def test_content_change_changes_hash(self):
        assert hash_payload({"total": "1.50"}) != hash_payload({"total": "1.51"})

    def test_hex_digest(self):
        digest = hash_payload({"lines": []})

        assert len(digest) == 64
        int(digest, 16)

    def test_canonical_form(self):
        payload = {
            "d": date(2025, 3, 3),
            "id": UUID("00000000-0000-0000-0000-000000000001"),
            "name": "Sjöstedt",
        }

        assert canonicalize_json(payload) == (
            '{"d":"2025-03-03","id":"00000000-0000-0000-0000-000000000001","name":"Sjöstedt"}'
        )

    def test_unsupported_type_rejected(self):
        with pytest.raises(TypeError):
            canonicalize_json({"x": object()})
