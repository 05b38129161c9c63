"""
Recurrence generation.

Expands a weekly schedule into dated placeholder slots:
- every session is stepped week by week from the first matching weekday
  on/after the trimester start, up to and including the trimester end
- dates inside a holiday window that applies to the group are skipped
  (no makeup date is generated)

Important rules:
- invalid trimester dates or a missing trimester/group give no slots, never an error
- sessions whose end is not after their start are skipped
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterable, Optional

from agendaplanner.intervals import (
    HolidayWindow,
    build_holiday_windows,
    date_is_blocked,
    holiday_applies_to_group,
    parse_iso_date,
    to_minutes,
)
from agendaplanner.model import Group, Holiday, PlaceholderSlot, Schedule, ScheduleSession, Trimester

logger = logging.getLogger(__name__)


def first_occurrence(start: date, iso_weekday: int) -> date:
    """
    First date on/after `start` that falls on `iso_weekday` (1 = Monday).
    """
    offset = (iso_weekday - start.isoweekday() + 7) % 7
    return start + timedelta(days=offset)


def session_duration(session: ScheduleSession) -> int:
    """
    Session length in minutes, clamped at 0. Malformed times count as 0.
    """
    try:
        return max(0, to_minutes(session.end_time) - to_minutes(session.start_time))
    except ValueError:
        return 0


def period_bounds(trimester: Trimester) -> Optional[tuple[date, date]]:
    start = parse_iso_date(trimester.start_date)
    end = parse_iso_date(trimester.end_date)
    if start is None or end is None or end < start:
        return None
    return start, end


def generate_occurrences(
    schedule: Schedule,
    trimester: Trimester,
    group: Group,
    holiday_windows: Iterable[HolidayWindow],
) -> list[PlaceholderSlot]:
    """
    Expand one schedule into placeholder slots for its trimester.

    Slots are returned session by session, in date order within a session.
    """
    bounds = period_bounds(trimester)
    if bounds is None:
        logger.debug("Trimester %s has an invalid date range, no slots for %s", trimester.id, schedule.id)
        return []
    start, end = bounds

    # filter once, not per session
    relevant = [w for w in holiday_windows if holiday_applies_to_group(w, group)]

    slots: list[PlaceholderSlot] = []
    seen: set[str] = set()

    for session in schedule.sessions:
        duration = session_duration(session)
        if duration == 0:
            continue
        if not 1 <= session.day_of_week <= 7:
            continue

        occurrence = first_occurrence(start, session.day_of_week)
        while occurrence <= end:
            if not date_is_blocked(occurrence, relevant):
                iso = occurrence.isoformat()
                slot_id = PlaceholderSlot.make_id(schedule.id, iso, session.start_time, session.end_time)
                if slot_id not in seen:
                    seen.add(slot_id)
                    slots.append(
                        PlaceholderSlot(
                            id=slot_id,
                            schedule_id=schedule.id,
                            group_id=schedule.group_id,
                            trimester_id=schedule.trimester_id,
                            date=iso,
                            day_of_week=session.day_of_week,
                            start_time=session.start_time,
                            end_time=session.end_time,
                            duration_minutes=duration,
                        )
                    )
            occurrence += timedelta(days=7)

    return slots


def normalize_range(range_start: date, range_end: date) -> tuple[date, date]:
    """
    Swap reversed bounds; a single-day range stays that day, otherwise the
    end is exclusive and is pulled back one day.
    """
    start, end = (range_start, range_end) if range_start <= range_end else (range_end, range_start)
    inclusive_end = end if start == end else end - timedelta(days=1)
    return start, inclusive_end


def project_range(
    schedules: Iterable[Schedule],
    trimesters: Iterable[Trimester],
    groups: Iterable[Group],
    holidays: Iterable[Holiday],
    range_start: date,
    range_end: date,
) -> list[PlaceholderSlot]:
    """
    Compute the slots that fall into a date window without touching the
    placeholder cache.
    """
    start, inclusive_end = normalize_range(range_start, range_end)

    trimester_by_id = {t.id: t for t in trimesters}
    group_by_id = {g.id: g for g in groups}
    windows = build_holiday_windows(holidays)

    results: list[PlaceholderSlot] = []
    for schedule in schedules:
        trimester = trimester_by_id.get(schedule.trimester_id)
        group = group_by_id.get(schedule.group_id)
        if trimester is None or group is None:
            continue

        for slot in generate_occurrences(schedule, trimester, group, windows):
            day = parse_iso_date(slot.date)
            if day is None:
                continue
            if start <= day <= inclusive_end:
                results.append(slot)

    return results
