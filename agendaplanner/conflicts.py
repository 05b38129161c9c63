"""
Conflict detection for weekly schedules.

A new session conflicts with an existing one if both fall on the same
weekday and their time intervals overlap.
Overlap rule:
    start < other_end AND end > other_start

Touching endpoints (end == start) is NOT a conflict. Only the draft being
edited is checked; stored schedules are not re-validated.
"""

from __future__ import annotations

from typing import Iterable, Optional

from agendaplanner.intervals import intervals_overlap, to_minutes
from agendaplanner.model import ScheduleSession

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

MSG_TIMES_REQUIRED = "Start and end time are required."
MSG_BAD_DAY = "Day of week must be between 1 (Monday) and 7 (Sunday)."
MSG_END_BEFORE_START = "Session end time must be after the start time."
MSG_OVERLAP = "This session overlaps with an existing session for the day."


def has_conflict(sessions: Iterable[ScheduleSession], candidate: ScheduleSession) -> bool:
    """
    True if any session on the candidate's weekday overlaps it.
    """
    try:
        c_start = to_minutes(candidate.start_time)
        c_end = to_minutes(candidate.end_time)
    except ValueError:
        return False

    for s in sessions:
        if s.day_of_week != candidate.day_of_week:
            continue
        try:
            start = to_minutes(s.start_time)
            end = to_minutes(s.end_time)
        except ValueError:
            continue
        if intervals_overlap(c_start, c_end, start, end):
            return True
    return False


def validate_session(draft: list[ScheduleSession], candidate: ScheduleSession) -> Optional[str]:
    """
    Check a session before it is appended to the draft.

    Returns a user-facing message, or None if the session can be added.
    """
    if not candidate.start_time.strip() or not candidate.end_time.strip():
        return MSG_TIMES_REQUIRED
    if not 1 <= candidate.day_of_week <= 7:
        return MSG_BAD_DAY
    try:
        start = to_minutes(candidate.start_time)
        end = to_minutes(candidate.end_time)
    except ValueError as exc:
        return str(exc)
    if end <= start:
        return MSG_END_BEFORE_START
    if has_conflict(draft, candidate):
        return MSG_OVERLAP
    return None


def sort_sessions(sessions: Iterable[ScheduleSession]) -> list[ScheduleSession]:
    return sorted(sessions, key=lambda s: (s.day_of_week, s.start_time))


def total_weekly_minutes(sessions: Iterable[ScheduleSession]) -> int:
    total = 0
    for s in sessions:
        try:
            total += max(0, to_minutes(s.end_time) - to_minutes(s.start_time))
        except ValueError:
            continue
    return total


def day_name(day_of_week: int) -> str:
    if 1 <= day_of_week <= 7:
        return DAY_NAMES[day_of_week - 1]
    return "Day"
