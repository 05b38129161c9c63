"""
Unit tests for record conversion.

from_dict must tolerate missing optional keys and unknown keys, because
stored records are authored elsewhere and may lag behind the model.
"""

import unittest

from agendaplanner.model import Holiday, Lesson, PlaceholderSlot, Schedule


class TestModel(unittest.TestCase):
    def test_schedule_from_dict(self) -> None:
        schedule = Schedule.from_dict(
            {
                "id": "s1",
                "group_id": "g1",
                "trimester_id": "t1",
                "sessions": [{"day_of_week": "2", "start_time": " 08:00", "end_time": "09:00"}, "junk"],
                "color": "ignored",
            }
        )
        self.assertEqual(len(schedule.sessions), 1)
        self.assertEqual(schedule.sessions[0].day_of_week, 2)
        self.assertEqual(schedule.sessions[0].start_time, "08:00")
        self.assertEqual(Schedule.from_dict(schedule.to_dict()), schedule)

    def test_holiday_defaults(self) -> None:
        holiday = Holiday.from_dict({"id": "h", "start_date": "2025-10-12", "end_date": "2025-10-12", "affects_groups": "all"})
        self.assertEqual(holiday.affects_groups, ["all"])
        self.assertEqual(holiday.type, "other")
        self.assertTrue(holiday.show_on_calendar)

    def test_lesson_default_status(self) -> None:
        lesson = Lesson.from_dict({"id": "l", "group_id": "g", "date": "2025-09-01", "start_time": "08:00", "end_time": "09:00"})
        self.assertEqual(lesson.status, "planned")
        self.assertIsNone(lesson.completion_notes)

    def test_placeholder_id(self) -> None:
        self.assertEqual(
            PlaceholderSlot.make_id("schedule_5a", "2025-09-01", "08:00", "10:00"),
            "placeholder_schedule_5a_2025-09-01_08:00_10:00",
        )


if __name__ == "__main__":
    unittest.main()
