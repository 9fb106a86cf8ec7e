import unittest
from datetime import datetime
from unittest import mock

from errors import GatewayError, NotFoundError, ValidationError
from models import Priority, Recurrence, RecurrencePattern, Status, Task
from recurrence import calculate_next_due, complete_task_with_recurrence, parse_repeat
from storage import Store, TaskFilter


class TestNextDue(unittest.TestCase):
    def test_units(self) -> None:
        start = datetime(2025, 6, 10, 23, 59)
        self.assertEqual(calculate_next_due(RecurrencePattern.DAILY, 1, start), datetime(2025, 6, 11, 23, 59))
        self.assertEqual(calculate_next_due(RecurrencePattern.WEEKLY, 2, start), datetime(2025, 6, 24, 23, 59))
        self.assertEqual(calculate_next_due(RecurrencePattern.MONTHLY, 1, start), datetime(2025, 7, 10, 23, 59))
        self.assertEqual(calculate_next_due(RecurrencePattern.YEARLY, 1, start), datetime(2026, 6, 10, 23, 59))

    def test_month_end_overflows_into_next_month(self) -> None:
        self.assertEqual(
            calculate_next_due(RecurrencePattern.MONTHLY, 1, datetime(2025, 1, 31)),
            datetime(2025, 3, 3),
        )
        self.assertEqual(
            calculate_next_due(RecurrencePattern.YEARLY, 1, datetime(2024, 2, 29)),
            datetime(2025, 3, 1),
        )
        self.assertEqual(
            calculate_next_due(RecurrencePattern.MONTHLY, 13, datetime(2024, 12, 15)),
            datetime(2026, 1, 15),
        )

    def test_interval_must_be_positive(self) -> None:
        with self.assertRaises(ValidationError):
            calculate_next_due(RecurrencePattern.DAILY, 0, datetime(2025, 1, 1))


class TestParseRepeat(unittest.TestCase):
    def test_accepts_names_aliases_and_intervals(self) -> None:
        self.assertEqual(parse_repeat("daily"), (RecurrencePattern.DAILY, 1))
        self.assertEqual(parse_repeat("w"), (RecurrencePattern.WEEKLY, 1))
        self.assertEqual(parse_repeat("weekly:2"), (RecurrencePattern.WEEKLY, 2))

    def test_rejects_bad_specs(self) -> None:
        for raw in ("fortnightly", "daily:0", "daily:x"):
            with self.subTest(raw=raw):
                with self.assertRaises(ValidationError):
                    parse_repeat(raw)


class TestCompleteWithRecurrence(unittest.TestCase):
    NOW = datetime(2025, 6, 10, 15, 30)

    def setUp(self) -> None:
        self.store = Store()
        self.addCleanup(self.store.close)

    def test_plain_task_is_only_completed(self) -> None:
        task = self.store.create_task(Task(id=0, title="Write report"))
        result = complete_task_with_recurrence(self.store, task.id, self.NOW)
        self.assertIsNone(result.spawned)
        self.assertEqual(result.completed.status, Status.DONE)
        self.assertEqual(result.completed.completed_at, self.NOW)
        self.assertEqual(len(self.store.list_tasks()), 1)

    def test_buy_milk_spawns_next_occurrence(self) -> None:
        errand = self.store.create_tag("errand")
        task = self.store.create_task(Task(
            id=0, title="Buy milk", priority=Priority.HIGH, due_date=datetime(2025, 6, 10, 23, 59)))
        self.store.add_tag_to_task(task.id, errand.id)
        self.store.set_recurrence(Recurrence(task.id, RecurrencePattern.DAILY, 1, datetime(2025, 6, 11, 23, 59)))

        result = complete_task_with_recurrence(self.store, task.id, self.NOW)

        spawned = result.spawned
        self.assertIsNotNone(spawned)
        self.assertNotEqual(spawned.id, task.id)
        self.assertEqual(spawned.title, "Buy milk")
        self.assertEqual(spawned.status, Status.TODO)
        self.assertEqual(spawned.priority, Priority.HIGH)
        self.assertEqual(spawned.due_date, datetime(2025, 6, 11, 23, 59))
        self.assertEqual([t.name for t in spawned.tags], ["errand"])
        # the series moved to the new occurrence
        self.assertIsNone(self.store.get_recurrence(task.id))
        moved = self.store.get_recurrence(spawned.id)
        self.assertEqual(moved.task_id, spawned.id)
        self.assertEqual(moved.next_due, datetime(2025, 6, 11, 23, 59))
        self.assertEqual(self.store.get_task(task.id).status, Status.DONE)

        todo = self.store.list_tasks(TaskFilter(status=Status.TODO))
        self.assertEqual([t.id for t in todo], [spawned.id])

    def test_missing_task_changes_nothing(self) -> None:
        with self.assertRaises(NotFoundError):
            complete_task_with_recurrence(self.store, 42, self.NOW)
        self.assertEqual(self.store.list_tasks(), [])

    def test_failure_after_spawning_rolls_everything_back(self) -> None:
        task = self.store.create_task(Task(id=0, title="Water plants", due_date=datetime(2025, 6, 10, 23, 59)))
        self.store.set_recurrence(Recurrence(task.id, RecurrencePattern.WEEKLY, 1, datetime(2025, 6, 17, 23, 59)))

        with mock.patch.object(self.store, "set_recurrence", side_effect=GatewayError("disk I/O error")):
            with self.assertRaises(GatewayError):
                complete_task_with_recurrence(self.store, task.id, self.NOW)

        listed = self.store.list_tasks()
        self.assertEqual([t.id for t in listed], [task.id])
        self.assertEqual(listed[0].status, Status.TODO)
        self.assertIsNone(listed[0].completed_at)
        self.assertEqual(self.store.get_recurrence(task.id).task_id, task.id)


if __name__ == "__main__":
    unittest.main()
