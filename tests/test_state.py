import tempfile
import unittest
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from config import Config
from messages import ClearStatus, ErrorMsg, KeyPressed, Resized, TaskCreated, TasksLoaded, TaskUpdated
from models import Priority, RecurrencePattern, Status, Task
from state import ERROR_TTL, AppState, Controller, InputMode, Overlay, View, selected_task
from storage import Store

NOW = datetime(2025, 6, 10, 9, 30)


def names(commands) -> list:
    return [c.name for c in commands]


class ControllerTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.store = Store()
        self.addCleanup(self.store.close)
        td = tempfile.TemporaryDirectory()
        self.addCleanup(td.cleanup)
        self.config = Config(config_path=Path(td.name) / "config.json")
        self.controller = Controller(self.store, self.config, clock=lambda: NOW)

    def press(self, state: AppState, *keys: str):
        commands = []
        for key in keys:
            state, issued = self.controller.update(state, KeyPressed(key))
            commands.extend(issued)
        return state, commands

    def with_tasks(self, *titles: str, **fields) -> AppState:
        for title in titles:
            self.store.create_task(Task(id=0, title=title, **fields))
        return AppState(ready=True, tasks=tuple(self.store.list_tasks()),
                        projects=tuple(self.store.list_projects()))


class TestKeyPrecedence(ControllerTestCase):
    def test_overlay_wins_over_globals(self) -> None:
        state, commands = self.press(AppState(ready=True, overlay=Overlay.HELP), "q")
        self.assertIs(state.overlay, Overlay.NONE)
        self.assertFalse(state.quit)
        self.assertEqual(commands, [])

    def test_text_input_wins_over_globals(self) -> None:
        state, _ = self.press(AppState(ready=True), "a", "q")
        self.assertIs(state.input_mode, InputMode.ADD)
        self.assertEqual(state.input_text, "q")
        self.assertFalse(state.quit)
        state, _ = self.press(state, "esc")
        self.assertIs(state.input_mode, InputMode.NONE)

    def test_quit(self) -> None:
        state, _ = self.press(AppState(ready=True), "ctrl+c")
        self.assertTrue(state.quit)

    def test_task_actions_without_selection_do_nothing(self) -> None:
        start = AppState(ready=True)
        state, commands = self.press(start, "d", "t", "r", "x", "enter", "D")
        self.assertIs(state.overlay, Overlay.NONE)
        self.assertEqual(commands, [])


class TestInput(ControllerTestCase):
    def test_blank_title_is_rejected_before_any_command(self) -> None:
        state, commands = self.press(AppState(ready=True), "a", " ", "enter")
        self.assertEqual(state.status_text, "Task title is required")
        self.assertTrue(state.status_error)
        self.assertEqual(names(commands), ["clear-status"])
        self.assertEqual(commands[0].delay, ERROR_TTL)

    def test_add_creates_then_reloads(self) -> None:
        state, commands = self.press(AppState(ready=True), "a", "H", "i", "enter")
        self.assertEqual(names(commands), ["create-task"])
        msg = commands[0].execute()
        self.assertIsInstance(msg, TaskCreated)
        state, commands = self.controller.update(state, msg)
        self.assertEqual(state.status_text, "✓ Created: Hi")
        self.assertEqual(names(commands), ["load-tasks", "load-projects", "clear-status"])

    def test_tab_fills_placeholder(self) -> None:
        state, _ = self.press(AppState(ready=True), "a", "tab")
        self.assertEqual(state.input_text, "Enter task title...")

    def test_edit_updates_title(self) -> None:
        state = self.with_tasks("Draft")
        state, commands = self.press(state, "e", "!", "enter")
        self.assertEqual(names(commands), ["update-task"])
        self.assertEqual(commands[0].execute().task.title, "Draft!")

    def test_edit_of_vanished_task_reports_error(self) -> None:
        state = AppState(ready=True, input_mode=InputMode.EDIT, input_text="x", edit_task_id=999)
        state, commands = self.press(state, "enter")
        self.assertEqual(state.status_text, "Task no longer exists")
        self.assertEqual(names(commands), ["clear-status"])

    def test_search_and_clear(self) -> None:
        state, commands = self.press(AppState(ready=True, cursor=3), "/", "m", "enter")
        self.assertEqual(state.search_query, "m")
        self.assertEqual(state.cursor, 0)
        self.assertEqual(names(commands), ["load-tasks"])
        state, commands = self.press(state, "c")
        self.assertEqual(state.search_query, "")
        self.assertEqual(names(commands), ["load-tasks"])


class TestBanner(ControllerTestCase):
    def test_stale_clear_is_ignored(self) -> None:
        state = AppState(ready=True)
        state, _ = self.controller.update(state, ErrorMsg("first"))
        first_seq = state.status_seq
        state, _ = self.controller.update(state, ErrorMsg("second"))
        state, _ = self.controller.update(state, ClearStatus(first_seq))
        self.assertEqual(state.status_text, "second")
        state, _ = self.controller.update(state, ClearStatus(state.status_seq))
        self.assertEqual(state.status_text, "")
        self.assertFalse(state.status_error)


class TestTaskActions(ControllerTestCase):
    def test_enter_moves_forward(self) -> None:
        state = self.with_tasks("Laundry")
        _, commands = self.press(state, "enter")
        doing = commands[0].execute().task
        self.assertEqual(doing.status, Status.DOING)

        state = replace(state, tasks=(doing,))
        _, commands = self.press(state, "enter")
        self.assertEqual(names(commands), ["complete-task"])
        self.assertEqual(commands[0].execute().task.status, Status.DONE)

    def test_backward_and_direct_toggle(self) -> None:
        task = self.store.create_task(Task(id=0, title="Laundry"))
        done = self.store.update_task(task.mark_done(NOW))
        state = AppState(ready=True, tasks=(done,), in_done=True)
        _, commands = self.press(state, "b")
        self.assertEqual(commands[0].execute().task.status, Status.DOING)
        _, commands = self.press(state, "D")
        self.assertEqual(commands[0].execute().task.status, Status.TODO)

    def test_priority_digits(self) -> None:
        state = self.with_tasks("Taxes")
        _, commands = self.press(state, "1")
        self.assertEqual(commands[0].execute().task.priority, Priority.HIGH)

    def test_delete_needs_y(self) -> None:
        state = self.with_tasks("Old idea")
        state, _ = self.press(state, "x")
        self.assertIs(state.overlay, Overlay.CONFIRM_DELETE)
        state, commands = self.press(state, "n")
        self.assertIs(state.overlay, Overlay.NONE)
        self.assertEqual(commands, [])
        state, commands = self.press(state, "x", "y")
        self.assertEqual(names(commands), ["delete-task"])

    def test_due_today(self) -> None:
        state = self.with_tasks("Taxes")
        state, commands = self.press(state, "d", "enter")
        self.assertIs(state.overlay, Overlay.NONE)
        self.assertEqual(commands[0].execute().task.due_date, datetime(2025, 6, 10, 23, 59))

    def test_custom_due_date(self) -> None:
        state = self.with_tasks("Taxes")
        state, _ = self.press(state, "d", "j", "j", "j", "j", "enter")
        self.assertIs(state.overlay, Overlay.DUE_DATE_CUSTOM)
        state, _ = self.press(state, "tab")
        self.assertEqual(state.due_form_value, "2025-06-13")
        state, commands = self.press(state, "enter")
        self.assertEqual(commands[0].execute().task.due_date, datetime(2025, 6, 13, 23, 59))

    def test_custom_due_date_rejects_bad_format(self) -> None:
        state = self.with_tasks("Taxes")
        state, _ = self.press(state, "d", "j", "j", "j", "j", "enter", *"2025-13-01", "enter")
        self.assertIs(state.overlay, Overlay.DUE_DATE_CUSTOM)
        self.assertEqual(state.status_text, "Invalid date format (use YYYY-MM-DD)")

    def test_recurrence_select(self) -> None:
        state = self.with_tasks("Standup")
        state, commands = self.press(state, "r", "j", "enter")
        rec = commands[0].execute().recurrence
        self.assertIs(rec.pattern, RecurrencePattern.WEEKLY)
        self.assertEqual(rec.next_due, datetime(2025, 6, 17, 23, 59))


class TestOverlayNavigation(ControllerTestCase):
    def test_escape_returns_to_parent(self) -> None:
        state = self.with_tasks("Taxes")
        state, _ = self.press(state, "d", "j", "j", "j", "j", "enter", "esc")
        self.assertIs(state.overlay, Overlay.DUE_DATE)
        state, _ = self.press(state, "esc", "t", "enter")
        self.assertIs(state.overlay, Overlay.TAG_CREATE)
        state, _ = self.press(state, "esc")
        self.assertIs(state.overlay, Overlay.TAG_SELECT)

    def test_tag_create_attaches(self) -> None:
        state = self.with_tasks("Taxes")
        state, commands = self.press(state, "t", "enter", *"money", "enter")
        self.assertIs(state.overlay, Overlay.NONE)
        commands[0].execute()
        self.assertEqual([t.name for t in self.store.list_tasks()[0].tags], ["money"])

    def test_project_deletion_guards(self) -> None:
        work = self.store.create_project("Work")
        state = self.with_tasks()
        state, _ = self.press(state, "p", "x")
        self.assertEqual(state.status_text, "Cannot delete 'All' filter")
        state, _ = self.press(state, "j", "x")
        self.assertEqual(state.status_text, "Cannot delete Inbox project")
        state, _ = self.press(state, "j", "x")
        self.assertIs(state.overlay, Overlay.CONFIRM_DELETE_PROJECT)
        state, _ = self.press(state, "n")
        self.assertIs(state.overlay, Overlay.PROJECT_SELECT)
        state, commands = self.press(state, "x", "y")
        self.assertEqual(names(commands), ["delete-project"])
        commands[0].execute()
        self.assertNotIn(work.id, [p.id for p in self.store.list_projects()])

    def test_project_filter(self) -> None:
        work = self.store.create_project("Work")
        self.store.create_task(Task(id=0, title="Report", project_id=work.id))
        state = self.with_tasks("Groceries")
        state, commands = self.press(state, "p", "j", "j", "enter")
        self.assertEqual((state.project_id, state.project_name), (work.id, "Work"))
        self.assertEqual([t.title for t in commands[0].execute().tasks], ["Report"])

    def test_theme_switch_is_saved(self) -> None:
        state, _ = self.press(AppState(ready=True), "T", "j")
        state, commands = self.press(state, "enter")
        self.assertEqual(state.theme_name, "ocean")
        self.assertEqual(state.status_text, "Theme: Ocean")
        self.assertEqual(names(commands), ["save-theme", "clear-status"])
        commands[0].execute()
        self.assertIn("ocean", self.config.config_path.read_text(encoding="utf-8"))


class TestListNavigation(ControllerTestCase):
    def tasks(self) -> tuple:
        return (
            Task(id=1, title="a"),
            Task(id=2, title="b"),
            Task(id=3, title="c", status=Status.DONE, completed_at=NOW),
            Task(id=4, title="d", status=Status.DONE, completed_at=NOW),
        )

    def test_cursor_crosses_into_done_section(self) -> None:
        state = AppState(ready=True, tasks=self.tasks(), cursor=1)
        state, _ = self.press(state, "j")
        self.assertTrue(state.in_done)
        self.assertEqual(selected_task(state).id, 3)
        state, _ = self.press(state, "k")
        self.assertFalse(state.in_done)
        self.assertEqual(selected_task(state).id, 2)

    def test_collapsing_done_moves_cursor_back(self) -> None:
        state = AppState(ready=True, tasks=self.tasks(), in_done=True, done_cursor=1)
        state, _ = self.press(state, "A")
        self.assertTrue(state.done_collapsed)
        self.assertFalse(state.in_done)
        self.assertEqual(selected_task(state).id, 2)
        state, _ = self.press(state, "j")
        self.assertFalse(state.in_done)

    def test_scroll_follows_cursor(self) -> None:
        tasks = tuple(Task(id=i, title=f"t{i}") for i in range(1, 21))
        state, _ = self.controller.update(AppState(tasks=tasks), Resized(80, 12))
        state, _ = self.press(state, *["j"] * 10)
        self.assertEqual(state.cursor, 10)
        self.assertEqual(state.list_scroll, 4)

    def test_reload_clamps_cursor(self) -> None:
        state = AppState(ready=True, tasks=self.tasks(), cursor=1)
        state, _ = self.controller.update(state, TasksLoaded((Task(id=9, title="only"),)))
        self.assertEqual(state.cursor, 0)
        self.assertEqual(selected_task(state).id, 9)


class TestBoard(ControllerTestCase):
    def test_toggle_and_columns(self) -> None:
        tasks = (Task(id=1, title="a"), Task(id=2, title="b", status=Status.DOING))
        state, commands = self.press(AppState(ready=True, tasks=tasks), "tab")
        self.assertIs(state.view, View.BOARD)
        self.assertEqual(names(commands), ["load-tasks"])
        state, _ = self.press(state, "l")
        self.assertEqual(selected_task(state).id, 2)
        state, _ = self.press(state, "l", "l")
        self.assertEqual(state.board_col, 2)
        self.assertIsNone(selected_task(state))

    def test_updated_message_reloads(self) -> None:
        state, commands = self.controller.update(AppState(ready=True), TaskUpdated(None))
        self.assertEqual(state.status_text, "✓ Updated")
        self.assertEqual(names(commands), ["load-tasks", "load-projects", "clear-status"])


if __name__ == "__main__":
    unittest.main()
