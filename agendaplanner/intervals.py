"""
Interval and scope primitives.

Time-of-day values are "HH:MM" strings compared as minutes since midnight.
Overlap rule (half-open intervals, touching endpoints do not overlap):
    start < other_end AND end > other_start

Holiday windows are inclusive date ranges with a group-scope filter.
Invalid windows (unparsable or inverted dates) are dropped, so they block
nothing instead of raising.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Optional

from agendaplanner.model import Group, Holiday

logger = logging.getLogger(__name__)

WILDCARD_SCOPE = "all"


def to_minutes(hhmm: str) -> int:
    """
    Convert 'HH:MM' to minutes since midnight.
    Raises ValueError for invalid formats.
    """
    parts = str(hhmm).strip().split(":")
    if len(parts) != 2:
        raise ValueError(f"Invalid time format: {hhmm!r}")
    h = int(parts[0])
    m = int(parts[1])
    if not (0 <= h <= 23 and 0 <= m <= 59):
        raise ValueError(f"Invalid time value: {hhmm!r}")
    return h * 60 + m


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    return a_start < b_end and a_end > b_start


def normalize_token(value: Any) -> str:
    return str(value).strip().lower()


def parse_iso_date(value: Any) -> Optional[date]:
    """
    Parse 'YYYY-MM-DD' (or an ISO date-time) into a date. The whole string
    must be valid; returns None otherwise.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def date_within_window(day: date, start: date, end: date) -> bool:
    return start <= day <= end


@dataclass(frozen=True)
class HolidayWindow:
    id: str
    start: date
    end: date
    applies_to_all: bool
    targets: frozenset[str]


def holiday_to_window(holiday: Holiday) -> Optional[HolidayWindow]:
    """
    Resolve a Holiday into a HolidayWindow, or None if its dates are
    unparsable or inverted.
    """
    start = parse_iso_date(holiday.start_date)
    end = parse_iso_date(holiday.end_date)
    if start is None or end is None or end < start:
        logger.debug("Ignoring holiday %s with invalid window %r..%r", holiday.id, holiday.start_date, holiday.end_date)
        return None

    targets = frozenset(normalize_token(x) for x in holiday.affects_groups)
    return HolidayWindow(
        id=holiday.id,
        start=start,
        end=end,
        applies_to_all=WILDCARD_SCOPE in targets,
        targets=targets,
    )


def build_holiday_windows(holidays: Iterable[Holiday]) -> list[HolidayWindow]:
    out: list[HolidayWindow] = []
    for h in holidays:
        window = holiday_to_window(h)
        if window is not None:
            out.append(window)
    return out


def holiday_applies_to_group(window: HolidayWindow, group: Group) -> bool:
    """
    True if the window is scoped to every group, or names this group by id,
    display name or level id.
    """
    if window.applies_to_all:
        return True
    comparisons = (group.id, group.display_name, group.level_id)
    return any(normalize_token(x) in window.targets for x in comparisons)


def date_is_blocked(day: date, windows: Iterable[HolidayWindow]) -> bool:
    return any(date_within_window(day, w.start, w.end) for w in windows)
