"""
Central data model definitions used across the project.

This module defines the canonical structure of the planner records so that:
- all modules share the same field names
- records read from the store are turned into typed objects in one place
- generated placeholder slots can never be mistaken for authored lessons

Records are persisted as plain dicts (snake_case keys). Every class offers
``from_dict`` (tolerant: unknown keys are ignored, missing optional keys get
defaults) and ``to_dict``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, List, Optional


LESSON_STATUSES = ("draft", "planned", "in_progress", "completed", "cancelled")
PLACEHOLDER_SOURCE = "schedule"


def _str(value: Any, default: str = "") -> str:
    return default if value is None else str(value)


@dataclass
class Trimester:
    """
    Academic period that bounds the expansion of weekly sessions.
    """

    id: str
    start_date: str
    end_date: str
    name: str = ""
    status: str = "upcoming"
    academic_year: str = ""
    color: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Trimester":
        return cls(
            id=_str(data.get("id")),
            start_date=_str(data.get("start_date")),
            end_date=_str(data.get("end_date")),
            name=_str(data.get("name")),
            status=_str(data.get("status"), "upcoming"),
            academic_year=_str(data.get("academic_year")),
            color=_str(data.get("color")),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Holiday:
    """
    Dated window (inclusive) that blocks recurring sessions.

    ``affects_groups`` holds scope tokens: the wildcard "all", or group ids,
    group display names and level ids (compared case-insensitively).
    """

    id: str
    start_date: str
    end_date: str
    affects_groups: List[str] = field(default_factory=list)
    name: str = ""
    type: str = "other"
    show_on_calendar: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Holiday":
        scopes = data.get("affects_groups", [])
        if isinstance(scopes, str):
            scopes = [scopes]
        if not isinstance(scopes, list):
            scopes = []
        return cls(
            id=_str(data.get("id")),
            start_date=_str(data.get("start_date")),
            end_date=_str(data.get("end_date")),
            affects_groups=[str(x) for x in scopes if x is not None],
            name=_str(data.get("name")),
            type=_str(data.get("type"), "other"),
            show_on_calendar=bool(data.get("show_on_calendar", True)),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Level:
    id: str
    grade_number: int = 0
    subject: str = ""
    color: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Level":
        try:
            grade = int(data.get("grade_number", 0) or 0)
        except (TypeError, ValueError):
            grade = 0
        return cls(
            id=_str(data.get("id")),
            grade_number=grade,
            subject=_str(data.get("subject")),
            color=_str(data.get("color")),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Group:
    """
    A class group (e.g. "5A") belonging to one level.
    """

    id: str
    level_id: str
    display_name: str
    letter: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Group":
        return cls(
            id=_str(data.get("id")),
            level_id=_str(data.get("level_id")),
            display_name=_str(data.get("display_name")),
            letter=_str(data.get("letter")),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ScheduleSession:
    """
    One weekly slot: ISO weekday (1 = Monday .. 7 = Sunday) and "HH:MM" times.
    """

    day_of_week: int
    start_time: str
    end_time: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScheduleSession":
        try:
            day = int(data.get("day_of_week", 0))
        except (TypeError, ValueError):
            day = 0
        return cls(
            day_of_week=day,
            start_time=_str(data.get("start_time")).strip(),
            end_time=_str(data.get("end_time")).strip(),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Schedule:
    """
    Weekly template of sessions for one group within one trimester.
    """

    id: str
    group_id: str
    trimester_id: str
    sessions: List[ScheduleSession] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Schedule":
        raw_sessions = data.get("sessions", [])
        sessions: List[ScheduleSession] = []
        if isinstance(raw_sessions, list):
            for s in raw_sessions:
                if isinstance(s, ScheduleSession):
                    sessions.append(s)
                elif isinstance(s, dict):
                    sessions.append(ScheduleSession.from_dict(s))
        return cls(
            id=_str(data.get("id")),
            group_id=_str(data.get("group_id")),
            trimester_id=_str(data.get("trimester_id")),
            sessions=sessions,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "group_id": self.group_id,
            "trimester_id": self.trimester_id,
            "sessions": [s.to_dict() for s in self.sessions],
        }


@dataclass(frozen=True)
class PlaceholderSlot:
    """
    Generated, cache-only occurrence of a weekly session on a concrete date.

    Never authored by hand: the placeholder collection is rebuilt from
    schedules, trimesters, groups and holidays.
    """

    id: str
    schedule_id: str
    group_id: str
    trimester_id: str
    date: str
    day_of_week: int
    start_time: str
    end_time: str
    duration_minutes: int
    source: str = PLACEHOLDER_SOURCE

    @staticmethod
    def make_id(schedule_id: str, date: str, start_time: str, end_time: str) -> str:
        return f"placeholder_{schedule_id}_{date}_{start_time}_{end_time}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PlaceholderSlot":
        return cls(
            id=_str(data.get("id")),
            schedule_id=_str(data.get("schedule_id")),
            group_id=_str(data.get("group_id")),
            trimester_id=_str(data.get("trimester_id")),
            date=_str(data.get("date")),
            day_of_week=int(data.get("day_of_week", 0) or 0),
            start_time=_str(data.get("start_time")),
            end_time=_str(data.get("end_time")),
            duration_minutes=int(data.get("duration_minutes", 0) or 0),
            source=_str(data.get("source"), PLACEHOLDER_SOURCE),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Lesson:
    """
    Authored lesson record. Always wins over a placeholder with the same
    group/date/time identity.
    """

    id: str
    group_id: str
    date: str
    start_time: str
    end_time: str
    status: str = "planned"
    trimester_id: str = ""
    topic_id: str = ""
    completion_notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Lesson":
        notes = data.get("completion_notes")
        return cls(
            id=_str(data.get("id")),
            group_id=_str(data.get("group_id")),
            date=_str(data.get("date")),
            start_time=_str(data.get("start_time")),
            end_time=_str(data.get("end_time")),
            status=_str(data.get("status"), "planned"),
            trimester_id=_str(data.get("trimester_id")),
            topic_id=_str(data.get("topic_id")),
            completion_notes=None if notes is None else str(notes),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
