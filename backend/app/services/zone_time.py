"""Zone dwell-time aggregation over an accreditation's movement log."""
from datetime import datetime
from typing import Iterable, Optional

from app.timeutils import ensure_utc, utcnow


def _value(v):
    return getattr(v, "value", v)


def compute_time_by_zone(movements: Iterable, now: Optional[datetime] = None) -> dict[str, int]:
    """Cumulative milliseconds spent per zone.

    ``movements`` must be ordered by timestamp. Each ENTRY or TRANSFER opens an
    occupancy of its ``to_zone``; it closes at the next movement leaving that
    zone (``from_zone`` matches) or at the next TRANSFER, else at ``now``.
    Non-positive durations are dropped. Quadratic in the number of movements,
    which stays small per accreditation.
    """
    movements = list(movements)
    now = ensure_utc(now or utcnow())
    time_by_zone: dict[str, int] = {}

    for i, movement in enumerate(movements):
        if _value(movement.action) == "EXIT":
            continue
        zone = movement.to_zone
        entry_time = ensure_utc(movement.timestamp)

        exit_time = now
        for later in movements[i + 1:]:
            if later.from_zone == zone or _value(later.action) == "TRANSFER":
                exit_time = ensure_utc(later.timestamp)
                break

        duration_ms = int((exit_time - entry_time).total_seconds() * 1000)
        if duration_ms > 0:
            time_by_zone[zone] = time_by_zone.get(zone, 0) + duration_ms

    return time_by_zone
