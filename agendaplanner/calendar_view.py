"""
Calendar reconciliation and incremental range loading.

Reconciliation merges authored lessons with generated placeholder slots for
the visible window. Both are matched on the identity key

    group_id _ date _ start_time _ end_time

and a lesson always wins: a placeholder is only shown when no lesson shares
its key.

CalendarRangeLoader keeps the fetch bookkeeping of one calendar view:
- the last fetched (padded) range, reused while the window stays inside it
- the keys of fetches still in flight, so the same range is never requested twice
- the most recently requested key; results for any other key are dropped
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Mapping, Optional, Union

from agendaplanner.model import Group, Lesson, PlaceholderSlot
from agendaplanner.recurrence import normalize_range
from agendaplanner.storage import DataStore

logger = logging.getLogger(__name__)

RANGE_PADDING_DAYS = 7
FETCH_ERROR_MESSAGE = "Unable to load calendar events for the selected range. Please try again."

UNTITLED_LESSON = "Untitled lesson"

KIND_LESSON = "lesson"
KIND_PLACEHOLDER = "placeholder"

# outcomes of CalendarRangeLoader.on_visible_range_changed
OUTCOME_CACHED = "cached"
OUTCOME_JOINED = "joined"
OUTCOME_APPLIED = "applied"
OUTCOME_STALE = "stale"
OUTCOME_FAILED = "failed"
OUTCOME_IDLE = "idle"


def identity_key(record: Union[Lesson, PlaceholderSlot]) -> str:
    return f"{record.group_id}_{record.date}_{record.start_time}_{record.end_time}"


def status_label(status: str) -> str:
    return " ".join(part[:1].upper() + part[1:] for part in status.split("_"))


@dataclass(frozen=True)
class CalendarFilters:
    trimester_id: Optional[str] = None
    group_id: Optional[str] = None
    level_id: Optional[str] = None
    statuses: frozenset[str] = frozenset()


@dataclass
class CalendarEvent:
    id: str
    kind: str
    group_id: str
    date: str
    start_time: str
    end_time: str
    title: str
    status: Optional[str] = None
    status_label: Optional[str] = None

    @property
    def is_placeholder(self) -> bool:
        return self.kind == KIND_PLACEHOLDER


def _passes(
    record: Union[Lesson, PlaceholderSlot],
    filters: CalendarFilters,
    group_by_id: Optional[dict[str, Group]],
) -> bool:
    if filters.trimester_id and record.trimester_id != filters.trimester_id:
        return False
    if filters.group_id and record.group_id != filters.group_id:
        return False
    if group_by_id is None:
        # without group data a level filter cannot match
        return not filters.level_id
    group = group_by_id.get(record.group_id)
    if group is None:
        return False
    if filters.level_id and group.level_id != filters.level_id:
        return False
    return True


def _lesson_event(lesson: Lesson, group: Optional[Group], topic_name: Optional[str]) -> CalendarEvent:
    name = group.display_name if group else "Lesson"
    topic = topic_name or UNTITLED_LESSON
    return CalendarEvent(
        id=lesson.id,
        kind=KIND_LESSON,
        group_id=lesson.group_id,
        date=lesson.date,
        start_time=lesson.start_time,
        end_time=lesson.end_time,
        title=f"{name} • {topic}",
        status=lesson.status,
        status_label=status_label(lesson.status),
    )


def _placeholder_event(slot: PlaceholderSlot, group: Optional[Group]) -> CalendarEvent:
    name = group.display_name if group else "Group"
    return CalendarEvent(
        id=slot.id,
        kind=KIND_PLACEHOLDER,
        group_id=slot.group_id,
        date=slot.date,
        start_time=slot.start_time,
        end_time=slot.end_time,
        title=f"{name} • Scheduled slot",
    )


def reconcile(
    lessons: Iterable[Lesson],
    placeholders: Iterable[PlaceholderSlot],
    groups: Optional[Iterable[Group]] = None,
    filters: Optional[CalendarFilters] = None,
    topic_names: Optional[Mapping[str, str]] = None,
) -> list[CalendarEvent]:
    """
    Build the render list: lessons first, then placeholders not shadowed by
    a lesson. Lessons are titled "<group> • <topic>"; topic_names maps
    topic ids to display names.

    Lesson keys are collected from every lesson, including ones hidden by
    the filters, so a filtered-out lesson still hides its placeholder.
    """
    lessons = list(lessons)
    filters = filters or CalendarFilters()
    group_by_id = {g.id: g for g in groups} if groups is not None else None

    lesson_keys = {identity_key(lesson) for lesson in lessons}

    events: list[CalendarEvent] = []
    for lesson in lessons:
        if not _passes(lesson, filters, group_by_id):
            continue
        if filters.statuses and lesson.status not in filters.statuses:
            continue
        group = group_by_id.get(lesson.group_id) if group_by_id else None
        events.append(_lesson_event(lesson, group, (topic_names or {}).get(lesson.topic_id)))

    for slot in placeholders:
        if identity_key(slot) in lesson_keys:
            continue
        if not _passes(slot, filters, group_by_id):
            continue
        group = group_by_id.get(slot.group_id) if group_by_id else None
        events.append(_placeholder_event(slot, group))

    return events


def padded_range(start: date, end: date, padding_days: int = RANGE_PADDING_DAYS) -> tuple[str, str]:
    """
    Normalize a visible window (end exclusive) and widen it on both sides.
    """
    range_start, inclusive_end = normalize_range(start, end)
    pad = timedelta(days=padding_days)
    return (range_start - pad).isoformat(), (inclusive_end + pad).isoformat()


@dataclass
class FetchState:
    last_fetched: Optional[tuple[str, str]] = None
    latest_key: Optional[str] = None
    in_flight: set[str] = field(default_factory=set)

    def covers(self, start: str, end: str) -> bool:
        if self.last_fetched is None:
            return False
        return start >= self.last_fetched[0] and end <= self.last_fetched[1]


class CalendarRangeLoader:
    """
    Loads lessons and placeholder slots for the window a calendar view shows.
    """

    def __init__(self, store: DataStore, padding_days: int = RANGE_PADDING_DAYS) -> None:
        self.store = store
        self.padding_days = padding_days
        self.state = FetchState()
        self.lessons: list[Lesson] = []
        self.placeholders: list[PlaceholderSlot] = []
        self.error: Optional[str] = None
        self.loading = False
        self.visible_range: Optional[tuple[date, date]] = None

    async def on_visible_range_changed(self, start: date, end: date) -> str:
        self.visible_range = (start, end)
        return await self._prefetch(start, end)

    async def retry(self) -> str:
        if self.visible_range is None:
            return OUTCOME_IDLE
        return await self._prefetch(*self.visible_range)

    def events(
        self,
        groups: Optional[Iterable[Group]] = None,
        filters: Optional[CalendarFilters] = None,
        topic_names: Optional[Mapping[str, str]] = None,
    ) -> list[CalendarEvent]:
        return reconcile(self.lessons, self.placeholders, groups, filters, topic_names)

    async def _prefetch(self, start: date, end: date) -> str:
        padded_start, padded_end = padded_range(start, end, self.padding_days)
        key = f"{padded_start}_{padded_end}"
        state = self.state

        if state.covers(padded_start, padded_end):
            state.latest_key = key
            self.error = None
            self.loading = False
            return OUTCOME_CACHED

        if key in state.in_flight:
            state.latest_key = key
            return OUTCOME_JOINED

        state.latest_key = key
        state.in_flight.add(key)
        self.loading = True
        self.error = None

        try:
            lessons_raw, slots_raw = await asyncio.gather(
                self.store.get_in_date_range("lessons", padded_start, padded_end),
                self.store.get_in_date_range("placeholder_slots", padded_start, padded_end),
            )
        except Exception:
            if state.latest_key != key:
                return OUTCOME_STALE
            logger.exception("Failed to load calendar events for range %s", key)
            self.error = FETCH_ERROR_MESSAGE
            self.lessons = []
            self.placeholders = []
            return OUTCOME_FAILED
        else:
            if state.latest_key != key:
                logger.debug("Discarding stale calendar range %s", key)
                return OUTCOME_STALE
            self.lessons = [Lesson.from_dict(r) for r in lessons_raw]
            self.placeholders = [PlaceholderSlot.from_dict(r) for r in slots_raw]
            state.last_fetched = (padded_start, padded_end)
            self.error = None
            return OUTCOME_APPLIED
        finally:
            state.in_flight.discard(key)
            if state.latest_key == key:
                self.loading = False
