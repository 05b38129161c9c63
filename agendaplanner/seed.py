"""
Sample data for a development preview.

One fall trimester, three technology levels with their groups, a few
holidays (one scoped to the grade-5 groups only), weekly schedules and a
handful of planned lessons that line up with scheduled slots.
"""

from __future__ import annotations

from typing import Any

from agendaplanner.storage import DataStore

TRIMESTERS: list[dict[str, Any]] = [
    {
        "id": "trim_2025_fall",
        "name": "Trimester 1",
        "start_date": "2025-09-01",
        "end_date": "2025-12-15",
        "status": "upcoming",
        "academic_year": "2025-2026",
        "color": "#4ECDC4",
    },
]

HOLIDAYS: list[dict[str, Any]] = [
    {
        "id": "holiday_national_oct12",
        "name": "National Holiday",
        "start_date": "2025-10-12",
        "end_date": "2025-10-12",
        "affects_groups": ["all"],
        "type": "public_holiday",
    },
    {
        "id": "holiday_all_saints",
        "name": "All Saints Break",
        "start_date": "2025-11-01",
        "end_date": "2025-11-02",
        "affects_groups": ["all"],
        "type": "school_break",
    },
    {
        "id": "holiday_teacher_planning",
        "name": "Teacher Planning Day",
        "start_date": "2025-11-20",
        "end_date": "2025-11-20",
        "affects_groups": ["all"],
        "type": "teacher_day",
    },
    {
        "id": "holiday_field_trip",
        "name": "Robotics Field Trip",
        "start_date": "2025-12-10",
        "end_date": "2025-12-10",
        "affects_groups": ["5A", "5B", "5C"],
        "type": "field_trip",
    },
]

LEVELS: list[dict[str, Any]] = [
    {"id": "level_5_tech", "grade_number": 5, "subject": "Technology", "color": "#4ECDC4"},
    {"id": "level_6_tech", "grade_number": 6, "subject": "Technology", "color": "#EE964B"},
    {"id": "level_7_tech", "grade_number": 7, "subject": "Technology", "color": "#A182E2"},
]

GROUPS: list[dict[str, Any]] = [
    {"id": "group_5a", "level_id": "level_5_tech", "letter": "A", "display_name": "5A"},
    {"id": "group_5b", "level_id": "level_5_tech", "letter": "B", "display_name": "5B"},
    {"id": "group_5c", "level_id": "level_5_tech", "letter": "C", "display_name": "5C"},
    {"id": "group_6a", "level_id": "level_6_tech", "letter": "A", "display_name": "6A"},
    {"id": "group_6b", "level_id": "level_6_tech", "letter": "B", "display_name": "6B"},
    {"id": "group_7a", "level_id": "level_7_tech", "letter": "A", "display_name": "7A"},
]


def _schedule(schedule_id: str, group_id: str, *sessions: tuple[int, str, str]) -> dict[str, Any]:
    return {
        "id": schedule_id,
        "group_id": group_id,
        "trimester_id": "trim_2025_fall",
        "sessions": [{"day_of_week": d, "start_time": s, "end_time": e} for d, s, e in sessions],
    }


SCHEDULES: list[dict[str, Any]] = [
    _schedule("schedule_5a_trim1", "group_5a", (1, "08:00", "10:00"), (3, "09:00", "10:00")),
    _schedule("schedule_5b_trim1", "group_5b", (2, "08:00", "10:00"), (4, "13:00", "15:00")),
    _schedule("schedule_5c_trim1", "group_5c", (3, "13:00", "15:00"), (5, "09:00", "11:00")),
    _schedule("schedule_6a_trim1", "group_6a", (1, "11:00", "12:30"), (3, "11:00", "12:30")),
    _schedule("schedule_6b_trim1", "group_6b", (2, "10:00", "11:30"), (4, "10:00", "11:30")),
    _schedule("schedule_7a_trim1", "group_7a", (1, "13:30", "15:00"), (4, "13:30", "15:00")),
]

LESSONS: list[dict[str, Any]] = [
    {
        "id": "lesson_5a_intro",
        "group_id": "group_5a",
        "trimester_id": "trim_2025_fall",
        "topic_id": "topic_digital_citizenship",
        "date": "2025-09-01",
        "start_time": "08:00",
        "end_time": "10:00",
        "status": "completed",
    },
    {
        "id": "lesson_5a_safety",
        "group_id": "group_5a",
        "trimester_id": "trim_2025_fall",
        "topic_id": "topic_digital_citizenship",
        "date": "2025-09-03",
        "start_time": "09:00",
        "end_time": "10:00",
        "status": "planned",
    },
    {
        "id": "lesson_6a_circuits",
        "group_id": "group_6a",
        "trimester_id": "trim_2025_fall",
        "topic_id": "topic_circuits",
        "date": "2025-09-08",
        "start_time": "11:00",
        "end_time": "12:30",
        "status": "planned",
    },
    {
        "id": "lesson_7a_design",
        "group_id": "group_7a",
        "trimester_id": "trim_2025_fall",
        "topic_id": "topic_design_thinking",
        "date": "2025-09-04",
        "start_time": "13:30",
        "end_time": "15:00",
        "status": "draft",
    },
]


async def ensure_sample_data(store: DataStore) -> bool:
    """
    Insert the sample records unless trimesters already exist.
    Returns True if data was inserted.
    """
    if await store.count("trimesters") > 0:
        return False

    async with store.transaction("trimesters", "holidays", "levels", "groups", "schedules", "lessons"):
        await store.bulk_put("trimesters", TRIMESTERS)
        await store.bulk_put("holidays", HOLIDAYS)
        await store.bulk_put("levels", LEVELS)
        await store.bulk_put("groups", GROUPS)
        await store.bulk_put("schedules", SCHEDULES)
        await store.bulk_put("lessons", LESSONS)
    return True
