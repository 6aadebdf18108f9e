from __future__ import annotations

import enum
from calendar import isleap, monthrange
from datetime import date, timedelta

from app.utils.timezone import to_utc_date

# Upper bound on stepping per rule; ~10 years of daily entries.
MAX_ITERATIONS = 3650


def _add_month(anchor: date, origin: date) -> date:
    next_month = anchor.month + 1
    year = anchor.year + (next_month - 1) // 12
    month = (next_month - 1) % 12 + 1
    day = min(origin.day, monthrange(year, month)[1])
    return date(year, month, day)


def _add_year(anchor: date, origin: date) -> date:
    year = anchor.year + 1
    day = origin.day
    if origin.month == 2 and day == 29 and not isleap(year):
        day = 28
    return date(year, origin.month, day)


class Recurrence(str, enum.Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"

    @classmethod
    def parse(cls, value) -> Recurrence | None:
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    def step(self, anchor: date, origin: date) -> date:
        """Next occurrence after ``anchor``.

        Monthly and yearly steps take the day (and for yearly, the month) from
        ``origin``, the rule's start date, so a clamped Feb 28 springs back to
        the 31st in March.
        """
        if self is Recurrence.daily:
            return anchor + timedelta(days=1)
        if self is Recurrence.weekly:
            return anchor + timedelta(days=7)
        if self is Recurrence.monthly:
            return _add_month(anchor, origin)
        return _add_year(anchor, origin)


def due_dates(
    start,
    recurrence,
    last_occurrence,
    as_of,
    max_iterations: int = MAX_ITERATIONS,
) -> list[date]:
    """All due dates after the checkpoint (or from ``start``) up to ``as_of``.

    Every input is normalized to a UTC calendar date first. Unknown units and
    a start after ``as_of`` both yield an empty list.
    """
    unit = Recurrence.parse(recurrence)
    if unit is None:
        return []

    start_d = to_utc_date(start)
    ref = to_utc_date(as_of)
    if start_d > ref:
        return []

    if last_occurrence is None:
        candidate = start_d
    else:
        candidate = unit.step(to_utc_date(last_occurrence), start_d)

    out: list[date] = []
    for _ in range(max(0, int(max_iterations))):
        if candidate > ref:
            break
        if candidate >= start_d:
            out.append(candidate)
        candidate = unit.step(candidate, start_d)
    return out
