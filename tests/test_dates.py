import unittest
from datetime import datetime

from dates import completion_delta, due_label, end_of_day, parse_date, parse_iso_day, short_date
from errors import ValidationError

NOW = datetime(2025, 6, 10, 9, 30)  # a Tuesday


class TestParseDate(unittest.TestCase):
    def test_keywords_resolve_to_end_of_day(self) -> None:
        self.assertEqual(parse_date("today", NOW), datetime(2025, 6, 10, 23, 59))
        self.assertEqual(parse_date("Tomorrow", NOW), datetime(2025, 6, 11, 23, 59))
        self.assertEqual(parse_date("next week", NOW), datetime(2025, 6, 17, 23, 59))
        self.assertEqual(parse_date("3d", NOW), datetime(2025, 6, 13, 23, 59))

    def test_calendar_date_without_year_rolls_forward(self) -> None:
        self.assertEqual(parse_date("Jan 5", NOW), datetime(2026, 1, 5, 23, 59))
        self.assertEqual(parse_date("2025-01-05", NOW), datetime(2025, 1, 5, 23, 59))

    def test_leap_day_without_year_rolls_to_end_of_february(self) -> None:
        self.assertEqual(parse_date("Feb 29", datetime(2028, 3, 1, 10)), datetime(2029, 2, 28, 23, 59))

    def test_rejects_garbage(self) -> None:
        with self.assertRaises(ValidationError):
            parse_date("someday soon-ish", NOW)
        with self.assertRaises(ValidationError):
            parse_date("   ", NOW)


class TestIsoDay(unittest.TestCase):
    def test_strict_format(self) -> None:
        self.assertEqual(parse_iso_day("2025-07-01"), datetime(2025, 7, 1, 23, 59))
        with self.assertRaises(ValidationError) as ctx:
            parse_iso_day("07/01/2025")
        self.assertEqual(str(ctx.exception), "Invalid date format (use YYYY-MM-DD)")
        with self.assertRaises(ValidationError):
            parse_iso_day("")


class TestLabels(unittest.TestCase):
    def test_due_label_kinds(self) -> None:
        today = end_of_day(NOW)
        self.assertEqual(due_label(today, NOW), ("Today", "today"))
        self.assertEqual(due_label(datetime(2025, 6, 9, 23, 59), NOW), ("Overdue", "overdue"))
        self.assertEqual(due_label(datetime(2025, 6, 11, 23, 59), NOW), ("Tomorrow", "normal"))
        self.assertEqual(due_label(datetime(2025, 6, 13, 23, 59), NOW), ("Fri", "normal"))
        self.assertEqual(due_label(datetime(2025, 7, 1, 23, 59), NOW), ("25/7/1", "normal"))

    def test_short_date_has_no_padding(self) -> None:
        self.assertEqual(short_date(datetime(2026, 1, 9)), "26/1/9")

    def test_completion_delta_sign(self) -> None:
        due = datetime(2025, 6, 10, 23, 59)
        self.assertIsNone(completion_delta(NOW, None))
        self.assertEqual(completion_delta(datetime(2025, 6, 12, 8, 0), due), 2)
        self.assertEqual(completion_delta(datetime(2025, 6, 8, 8, 0), due), -2)
        self.assertEqual(completion_delta(NOW, due), 0)


if __name__ == "__main__":
    unittest.main()
