"""Unit tests for pure helpers — no database, no HTTP.

Covers:
- compute_time_by_zone: open/close rules, EXIT skipping, TRANSFER closing
- subtract_months clamping and venue_today
- normalize_unloading for list, JSON and legacy string values
- normalize_plate and normalize_slug
- event_status lifecycle
"""
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from app.config import settings
from app.schemas.accreditation import normalize_unloading
from app.services.accreditation_service import normalize_plate
from app.services.event_service import event_status, normalize_slug
from app.services.zone_time import compute_time_by_zone
from app.timeutils import ensure_utc, subtract_months, venue_today

T0 = datetime(2026, 5, 12, 8, 0, tzinfo=timezone.utc)


def _move(action, to_zone, from_zone=None, minutes=0):
    return SimpleNamespace(action=action, to_zone=to_zone, from_zone=from_zone, timestamp=T0 + timedelta(minutes=minutes))


class TestZoneTime:
    def test_entry_closed_by_leaving_movement(self):
        movements = [_move("ENTRY", "A"), _move("ENTRY", "B", from_zone="A", minutes=10)]
        now = T0 + timedelta(minutes=25)
        assert compute_time_by_zone(movements, now=now) == {"A": 600_000, "B": 900_000}

    def test_open_occupancy_runs_until_now(self):
        now = T0 + timedelta(minutes=3)
        assert compute_time_by_zone([_move("ENTRY", "A")], now=now) == {"A": 180_000}

    def test_exit_does_not_open_occupancy(self):
        movements = [_move("ENTRY", "A"), _move("EXIT", "A", from_zone="A", minutes=5)]
        now = T0 + timedelta(hours=2)
        assert compute_time_by_zone(movements, now=now) == {"A": 300_000}

    def test_transfer_closes_previous_zone(self):
        movements = [_move("ENTRY", "A"), _move("TRANSFER", "B", minutes=7)]
        now = T0 + timedelta(minutes=10)
        assert compute_time_by_zone(movements, now=now) == {"A": 420_000, "B": 180_000}

    def test_repeated_visits_accumulate(self):
        movements = [
            _move("ENTRY", "A"),
            _move("EXIT", "A", from_zone="A", minutes=1),
            _move("ENTRY", "A", minutes=10),
            _move("EXIT", "A", from_zone="A", minutes=12),
        ]
        assert compute_time_by_zone(movements, now=T0 + timedelta(hours=1)) == {"A": 180_000}

    def test_non_positive_durations_dropped(self):
        movements = [_move("ENTRY", "A", minutes=5)]
        assert compute_time_by_zone(movements, now=T0) == {}

    def test_enum_actions_and_naive_timestamps(self):
        action = SimpleNamespace(value="ENTRY")
        movement = SimpleNamespace(action=action, to_zone="A", from_zone=None, timestamp=T0.replace(tzinfo=None))
        assert compute_time_by_zone([movement], now=T0 + timedelta(seconds=2)) == {"A": 2000}


class TestTimeUtils:
    @pytest.mark.parametrize(
        "start, months, expected",
        [
            (datetime(2026, 3, 31, tzinfo=timezone.utc), 1, datetime(2026, 2, 28, tzinfo=timezone.utc)),
            (datetime(2024, 3, 31, tzinfo=timezone.utc), 1, datetime(2024, 2, 29, tzinfo=timezone.utc)),
            (datetime(2026, 1, 15, tzinfo=timezone.utc), 12, datetime(2025, 1, 15, tzinfo=timezone.utc)),
            (datetime(2026, 2, 10, tzinfo=timezone.utc), 3, datetime(2025, 11, 10, tzinfo=timezone.utc)),
        ],
    )
    def test_subtract_months(self, start, months, expected):
        assert subtract_months(start, months) == expected

    def test_ensure_utc_converts_offsets(self):
        paris = timezone(timedelta(hours=2))
        assert ensure_utc(datetime(2026, 5, 12, 10, 0, tzinfo=paris)) == T0
        assert ensure_utc(None) is None

    def test_venue_today_uses_venue_timezone(self, monkeypatch):
        monkeypatch.setattr(settings, "VENUE_TIMEZONE", "Europe/Paris")
        late_utc = datetime(2026, 5, 12, 23, 30, tzinfo=timezone.utc)
        assert venue_today(late_utc).isoformat() == "2026-05-13"


class TestNormalisers:
    @pytest.mark.parametrize(
        "stored, expected",
        [
            (None, []),
            ("", []),
            ("rear", ["rear"]),
            ('["rear", "lateral"]', ["rear", "lateral"]),
            (["lateral"], ["lateral"]),
            ("[broken", ["[broken"]),
        ],
    )
    def test_normalize_unloading(self, stored, expected):
        assert normalize_unloading(stored) == expected

    def test_normalize_plate(self):
        assert normalize_plate(" ab-123 cd ") == normalize_plate("AB123CD") == "ab123cd"
        assert normalize_plate(None) == ""

    def test_normalize_slug(self):
        assert normalize_slug("Cannes Lions 2025!") == "cannes-lions-2025"


class TestEventStatus:
    def _event(self, **overrides):
        fields = {
            "start_date": T0 + timedelta(days=10),
            "end_date": T0 + timedelta(days=12),
            "activation_days": 7,
            "is_archived": False,
        }
        fields.update(overrides)
        return SimpleNamespace(**fields)

    def test_lifecycle(self):
        event = self._event()
        assert event_status(event, now=T0) == "upcoming"
        assert event_status(event, now=T0 + timedelta(days=4)) == "active"
        assert event_status(event, now=T0 + timedelta(days=11)) == "ongoing"
        assert event_status(event, now=T0 + timedelta(days=13)) == "finished"

    def test_archived_wins(self):
        assert event_status(self._event(is_archived=True), now=T0 + timedelta(days=11)) == "archived"
