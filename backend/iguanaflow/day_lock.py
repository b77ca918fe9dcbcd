# iguanaflow/day_lock.py
"""
Challenge calendar locking.

A challenge day is playable once the day before it is done (completed or rest)
and its scheduled calendar date has arrived. Day 1 is always open, admins see
everything. The evaluator is pure: callers pass the day list snapshot and
"today" explicitly.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_REST = "rest"

# A rest day counts as done for unlocking the next one
DONE_STATUSES = frozenset({STATUS_COMPLETED, STATUS_REST})


def _field(day: Any, name: str) -> Any:
    if isinstance(day, Mapping):
        return day.get(name)
    return getattr(day, name, None)


def _as_date(value: Any) -> Optional[date]:
    """
    Accepts date, datetime, ISO string ("2026-10-19" or full timestamp) or None.
    Unparseable values are treated as "no date".
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        return None


def _find_day(all_days: Iterable[Any], day_number: int) -> Any:
    for d in all_days:
        if _field(d, "day_number") == day_number:
            return d
    return None


def is_day_locked(
    day_number: int,
    all_days: Iterable[Any],
    is_admin: bool = False,
    today: Optional[date] = None,
) -> bool:
    if is_admin:
        return False

    if day_number == 1:
        return False

    days = list(all_days)

    previous = _find_day(days, day_number - 1)
    if previous is None:
        # no history for the previous day -> keep it locked
        return True

    status = (_field(previous, "status") or "").strip().lower()
    if status not in DONE_STATUSES:
        return True

    current = _find_day(days, day_number)
    scheduled = _as_date(_field(current, "calendar_date")) if current is not None else None
    if scheduled is not None:
        if scheduled > (today or date.today()):
            return True

    return False


def day_lock_map(
    all_days: Iterable[Any],
    is_admin: bool = False,
    today: Optional[date] = None,
) -> dict[int, bool]:
    """Lock state for every day in the list, keyed by day_number."""
    days = list(all_days)
    today = today or date.today()
    out: dict[int, bool] = {}
    for d in days:
        n = _field(d, "day_number")
        if n is None:
            continue
        out[int(n)] = is_day_locked(int(n), days, is_admin=is_admin, today=today)
    return out
