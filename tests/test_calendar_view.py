"""
Unit tests for calendar reconciliation and the incremental range loader.

Reconciliation: a lesson and a placeholder with the same
group/date/start/end key render as ONE event, taken from the lesson.

Range loader:
- padded ranges already fetched are reused (no new request)
- an identical request in flight is joined, not duplicated
- results of a superseded request are discarded
- a failure clears the events and keeps the last fetched range
"""

import asyncio
import unittest
from datetime import date

from agendaplanner.calendar_view import (
    FETCH_ERROR_MESSAGE,
    OUTCOME_APPLIED,
    OUTCOME_CACHED,
    OUTCOME_FAILED,
    OUTCOME_IDLE,
    OUTCOME_JOINED,
    OUTCOME_STALE,
    CalendarFilters,
    CalendarRangeLoader,
    identity_key,
    padded_range,
    reconcile,
    status_label,
)
from agendaplanner.model import Group, Lesson, PlaceholderSlot
from agendaplanner.storage import DataStore, StoreError


GROUPS = [
    Group(id="group_5a", level_id="level_5_tech", display_name="5A"),
    Group(id="group_6a", level_id="level_6_tech", display_name="6A"),
]


def _slot(group_id: str, day: str, start: str = "08:00", end: str = "10:00", trimester_id: str = "t1") -> PlaceholderSlot:
    return PlaceholderSlot(
        id=PlaceholderSlot.make_id(f"schedule_{group_id}", day, start, end),
        schedule_id=f"schedule_{group_id}",
        group_id=group_id,
        trimester_id=trimester_id,
        date=day,
        day_of_week=date.fromisoformat(day).isoweekday(),
        start_time=start,
        end_time=end,
        duration_minutes=120,
    )


def _lesson(lesson_id: str, group_id: str, day: str, status: str = "planned", start: str = "08:00", end: str = "10:00") -> Lesson:
    return Lesson(id=lesson_id, group_id=group_id, date=day, start_time=start, end_time=end, status=status, trimester_id="t1")


class TestReconcile(unittest.TestCase):
    def test_identity_key_matches_across_types(self) -> None:
        self.assertEqual(identity_key(_slot("group_5a", "2025-09-01")), "group_5a_2025-09-01_08:00_10:00")
        self.assertEqual(identity_key(_lesson("l1", "group_5a", "2025-09-01")), "group_5a_2025-09-01_08:00_10:00")

    def test_lesson_wins_over_placeholder(self) -> None:
        events = reconcile(
            [_lesson("l1", "group_5a", "2025-09-01")],
            [_slot("group_5a", "2025-09-01"), _slot("group_5a", "2025-09-08")],
            GROUPS,
        )
        self.assertEqual([(e.date, e.kind) for e in events], [("2025-09-01", "lesson"), ("2025-09-08", "placeholder")])
        self.assertEqual(events[0].id, "l1")
        self.assertEqual(events[0].status_label, "Planned")
        self.assertEqual(events[0].title, "5A • Untitled lesson")
        self.assertEqual(events[1].title, "5A • Scheduled slot")
        self.assertIsNone(events[1].status)

    def test_different_time_is_not_deduplicated(self) -> None:
        events = reconcile(
            [_lesson("l1", "group_5a", "2025-09-01", start="08:00", end="09:00")],
            [_slot("group_5a", "2025-09-01")],
        )
        self.assertEqual(len(events), 2)

    def test_filtered_lesson_still_hides_placeholder(self) -> None:
        events = reconcile(
            [_lesson("l1", "group_5a", "2025-09-01", status="cancelled")],
            [_slot("group_5a", "2025-09-01")],
            GROUPS,
            CalendarFilters(statuses=frozenset({"planned"})),
        )
        self.assertEqual(events, [])

    def test_group_and_level_filters(self) -> None:
        lessons = [_lesson("l1", "group_5a", "2025-09-01"), _lesson("l2", "group_6a", "2025-09-01")]
        slots = [_slot("group_5a", "2025-09-08"), _slot("group_6a", "2025-09-08")]

        by_level = reconcile(lessons, slots, GROUPS, CalendarFilters(level_id="level_6_tech"))
        self.assertEqual({e.group_id for e in by_level}, {"group_6a"})
        self.assertEqual(len(by_level), 2)

        by_group = reconcile(lessons, slots, GROUPS, CalendarFilters(group_id="group_5a"))
        self.assertEqual({e.group_id for e in by_group}, {"group_5a"})

    def test_unknown_group_hidden_when_groups_given(self) -> None:
        events = reconcile([_lesson("l1", "group_zz", "2025-09-01")], [_slot("group_zz", "2025-09-08")], GROUPS)
        self.assertEqual(events, [])

    def test_lesson_title_uses_topic_name(self) -> None:
        lesson = Lesson(id="l1", group_id="group_5a", date="2025-09-01", start_time="08:00", end_time="10:00", topic_id="topic_circuits")
        events = reconcile([lesson], [], GROUPS, topic_names={"topic_circuits": "Circuits"})
        self.assertEqual(events[0].title, "5A • Circuits")

        # unknown topic and unknown group fall back
        events = reconcile([lesson], [], None, topic_names={"other": "Other"})
        self.assertEqual(events[0].title, "Lesson • Untitled lesson")

    def test_status_label(self) -> None:
        self.assertEqual(status_label("in_progress"), "In Progress")
        self.assertEqual(status_label("draft"), "Draft")


class TestPaddedRange(unittest.TestCase):
    def test_exclusive_end_then_padding(self) -> None:
        self.assertEqual(padded_range(date(2025, 9, 1), date(2025, 9, 8)), ("2025-08-25", "2025-09-14"))

    def test_reversed_and_single_day(self) -> None:
        self.assertEqual(padded_range(date(2025, 9, 8), date(2025, 9, 1)), ("2025-08-25", "2025-09-14"))
        self.assertEqual(padded_range(date(2025, 9, 5), date(2025, 9, 5), 2), ("2025-09-03", "2025-09-07"))


class GatedStore:
    """Fake store whose range reads block until their range is released."""

    def __init__(self) -> None:
        self.rows = {"lessons": [], "placeholder_slots": []}
        self.gates: dict[str, asyncio.Event] = {}
        self.failing: set[str] = set()
        self.calls: list[tuple[str, str]] = []

    def gate(self, key: str) -> asyncio.Event:
        return self.gates.setdefault(key, asyncio.Event())

    async def get_in_date_range(self, collection: str, start: str, end: str) -> list[dict]:
        key = f"{start}_{end}"
        self.calls.append((collection, key))
        await self.gate(key).wait()
        if key in self.failing:
            raise StoreError("read failed")
        return [r for r in self.rows[collection] if start <= r["date"] <= end]


async def _spin() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


KEY_SEPT_WEEK1 = "2025-08-25_2025-09-14"
KEY_OCT_WEEK1 = "2025-09-29_2025-10-19"


class TestCalendarRangeLoader(unittest.IsolatedAsyncioTestCase):
    async def test_fetch_then_reuse_padded_range(self) -> None:
        store = DataStore()
        await store.put("lessons", _lesson("l1", "group_5a", "2025-09-01").to_dict())
        await store.bulk_put(
            "placeholder_slots",
            [_slot("group_5a", "2025-09-01").to_dict(), _slot("group_5a", "2025-09-08").to_dict(), _slot("group_5a", "2025-11-03").to_dict()],
        )
        loader = CalendarRangeLoader(store)

        outcome = await loader.on_visible_range_changed(date(2025, 9, 1), date(2025, 9, 8))
        self.assertEqual(outcome, OUTCOME_APPLIED)
        self.assertEqual(loader.state.last_fetched, ("2025-08-25", "2025-09-14"))
        self.assertFalse(loader.loading)
        self.assertEqual(len(loader.placeholders), 2)

        events = loader.events(GROUPS)
        self.assertEqual([(e.date, e.kind) for e in events], [("2025-09-01", "lesson"), ("2025-09-08", "placeholder")])

        outcome = await loader.on_visible_range_changed(date(2025, 9, 5), date(2025, 9, 5))
        self.assertEqual(outcome, OUTCOME_CACHED)
        self.assertEqual(loader.state.latest_key, "2025-08-29_2025-09-12")

        outcome = await loader.on_visible_range_changed(date(2025, 11, 1), date(2025, 11, 8))
        self.assertEqual(outcome, OUTCOME_APPLIED)
        self.assertEqual([s.date for s in loader.placeholders], ["2025-11-03"])
        self.assertEqual(loader.lessons, [])

    async def test_identical_request_in_flight_is_joined(self) -> None:
        store = GatedStore()
        loader = CalendarRangeLoader(store)

        first = asyncio.create_task(loader.on_visible_range_changed(date(2025, 9, 1), date(2025, 9, 8)))
        await _spin()
        self.assertTrue(loader.loading)

        outcome = await loader.on_visible_range_changed(date(2025, 9, 1), date(2025, 9, 8))
        self.assertEqual(outcome, OUTCOME_JOINED)

        store.gate(KEY_SEPT_WEEK1).set()
        self.assertEqual(await first, OUTCOME_APPLIED)
        self.assertEqual(len([c for c in store.calls if c[0] == "lessons"]), 1)
        self.assertEqual(loader.state.in_flight, set())
        self.assertFalse(loader.loading)

    async def test_out_of_order_response_is_discarded(self) -> None:
        store = GatedStore()
        store.rows["placeholder_slots"] = [_slot("group_5a", "2025-09-01").to_dict(), _slot("group_5a", "2025-10-06").to_dict()]
        loader = CalendarRangeLoader(store)

        older = asyncio.create_task(loader.on_visible_range_changed(date(2025, 9, 1), date(2025, 9, 8)))
        await _spin()
        newer = asyncio.create_task(loader.on_visible_range_changed(date(2025, 10, 6), date(2025, 10, 13)))
        await _spin()

        store.gate(KEY_OCT_WEEK1).set()
        self.assertEqual(await newer, OUTCOME_APPLIED)
        store.gate(KEY_SEPT_WEEK1).set()
        self.assertEqual(await older, OUTCOME_STALE)

        self.assertEqual([s.date for s in loader.placeholders], ["2025-10-06"])
        self.assertEqual(loader.state.last_fetched, ("2025-09-29", "2025-10-19"))
        self.assertFalse(loader.loading)

    async def test_failure_clears_events_and_allows_retry(self) -> None:
        store = GatedStore()
        store.rows["placeholder_slots"] = [_slot("group_5a", "2025-09-01").to_dict(), _slot("group_5a", "2025-10-06").to_dict()]
        store.gate(KEY_SEPT_WEEK1).set()
        store.gate(KEY_OCT_WEEK1).set()
        store.failing.add(KEY_OCT_WEEK1)
        loader = CalendarRangeLoader(store)

        self.assertEqual(await loader.retry(), OUTCOME_IDLE)
        self.assertEqual(await loader.on_visible_range_changed(date(2025, 9, 1), date(2025, 9, 8)), OUTCOME_APPLIED)

        with self.assertLogs("agendaplanner.calendar_view", level="ERROR"):
            outcome = await loader.on_visible_range_changed(date(2025, 10, 6), date(2025, 10, 13))
        self.assertEqual(outcome, OUTCOME_FAILED)
        self.assertEqual(loader.error, FETCH_ERROR_MESSAGE)
        self.assertEqual(loader.events(), [])
        self.assertEqual(loader.state.last_fetched, ("2025-08-25", "2025-09-14"))
        self.assertFalse(loader.loading)

        store.failing.clear()
        self.assertEqual(await loader.retry(), OUTCOME_APPLIED)
        self.assertIsNone(loader.error)
        self.assertEqual([s.date for s in loader.placeholders], ["2025-10-06"])


if __name__ == "__main__":
    unittest.main()
