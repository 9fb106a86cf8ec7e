import json
import logging
import tempfile
import unittest
from pathlib import Path

from click.testing import CliRunner

from cli import cli


class CliTestCase(unittest.TestCase):
    def setUp(self) -> None:
        td = tempfile.TemporaryDirectory()
        self.addCleanup(td.cleanup)
        self.root = Path(td.name)
        self.db = str(self.root / "tsk.db")
        self.runner = CliRunner()
        self.env = {
            "TSK_CONFIG": str(self.root / "config.json"),
            "TSK_LOG_FILE": str(self.root / "tsk.log"),
            "TSK_DB": None,
        }
        self.addCleanup(self._close_log_handlers)

    @staticmethod
    def _close_log_handlers() -> None:
        root = logging.getLogger()
        for handler in list(root.handlers):
            if isinstance(handler, logging.FileHandler):
                root.removeHandler(handler)
                handler.close()

    def run_cli(self, *args: str, input: str = None, ok: bool = True):
        result = self.runner.invoke(cli, ["--db", self.db, *args], input=input, env=self.env)
        if ok:
            self.assertEqual(result.exit_code, 0, result.output)
        else:
            self.assertEqual(result.exit_code, 1, result.output)
        return result.output


class TestTaskCommands(CliTestCase):
    def test_add_and_list(self) -> None:
        out = self.run_cli("add", "Buy", "milk", "-t", "errand", "--priority", "high", "-d", "2030-01-02")
        self.assertIn("Created task #1: Buy milk", out)

        out = self.run_cli("list")
        self.assertIn("ID", out)
        self.assertIn("[ ]", out)
        self.assertIn("High", out)
        self.assertIn("2030-01-02", out)
        self.assertIn("errand", out)

        data = json.loads(self.run_cli("ls", "-f", "json"))
        self.assertEqual(data[0]["title"], "Buy milk")
        self.assertEqual(data[0]["tags"], ["errand"])
        self.assertEqual(data[0]["priority"], "high")

    def test_done_hides_task_unless_all(self) -> None:
        self.run_cli("add", "Laundry")
        self.assertIn("Completed task #1: Laundry", self.run_cli("done", "1"))
        self.assertIn("No tasks found.", self.run_cli("list"))
        self.assertIn("[x]", self.run_cli("list", "-a"))
        self.assertIn("Laundry", self.run_cli("list", "-s", "done"))

    def test_doing(self) -> None:
        self.run_cli("add", "Laundry")
        self.assertIn("Started task #1: Laundry", self.run_cli("doing", "1"))
        self.assertIn("[~]", self.run_cli("list", "-s", "ip"))

    def test_recurring_task_spawns_next(self) -> None:
        out = self.run_cli("add", "Standup", "-r", "weekly:2")
        self.assertIn("  Recurrence: every 2 weeks", out)
        out = self.run_cli("done", "1")
        self.assertIn("Completed task #1: Standup (next occurrence created)", out)
        listed = json.loads(self.run_cli("list", "-f", "json"))
        self.assertEqual([(t["id"], t["recurrence"]) for t in listed], [(2, "every 2 weeks")])

    def test_rm_confirms(self) -> None:
        self.run_cli("add", "Old idea")
        self.assertIn("Cancelled.", self.run_cli("rm", "1", input="n\n"))
        self.assertIn("Deleted task #1: Old idea", self.run_cli("delete", "1", input="y\n"))
        self.assertIn("task not found: 1", self.run_cli("rm", "-f", "1", ok=False))

    def test_errors_exit_with_status_one(self) -> None:
        self.assertIn("project not found: Nope", self.run_cli("add", "x", "-p", "Nope", ok=False))
        self.assertIn("unknown priority", self.run_cli("add", "x", "--priority", "urgent", ok=False))
        self.assertIn("unknown status", self.run_cli("list", "-s", "later", ok=False))

    def test_no_subcommand_needs_a_terminal(self) -> None:
        self.assertIn("interactive mode needs a terminal", self.run_cli(ok=False))


class TestProjectCommands(CliTestCase):
    def test_lifecycle(self) -> None:
        self.assertIn("Created project #2: Work", self.run_cli("project", "add", "Work", "-d", "day job"))
        self.run_cli("add", "Report", "-p", "work")
        out = self.run_cli("proj", "list")
        self.assertIn("Inbox", out)
        self.assertIn("0/1 (0%)", out)
        out = self.run_cli("project", "rm", "Work")
        self.assertIn("Deleted project: Work (tasks moved to Inbox)", out)
        self.assertIn("Cannot delete Inbox project", self.run_cli("project", "remove", "Inbox", ok=False))


class TestTagCommands(CliTestCase):
    def test_lifecycle(self) -> None:
        self.assertIn("No tags found.", self.run_cli("tag", "list"))
        self.assertIn("Created tag #1: urgent", self.run_cli("tag", "add", "urgent", "-c", "#FF0000"))
        self.assertIn("#FF0000", self.run_cli("tag", "ls"))
        self.assertIn("invalid tag color: red", self.run_cli("tag", "add", "home", "-c", "red", ok=False))
        self.assertIn("tag already exists: urgent", self.run_cli("tag", "add", "urgent", ok=False))
        self.assertIn("Deleted tag: urgent", self.run_cli("tag", "rm", "urgent", "-f"))


class TestRecurrenceCommands(CliTestCase):
    def test_remove(self) -> None:
        self.run_cli("add", "Standup", "-r", "daily")
        self.run_cli("add", "Once")
        self.assertIn("task #2 has no recurrence", self.run_cli("rec", "rm", "2", ok=False))
        self.assertIn("Removed recurrence from task #1: Standup", self.run_cli("recurrence", "clear", "1"))
        listed = json.loads(self.run_cli("list", "-f", "json"))
        self.assertEqual([t["recurrence"] for t in listed], [None, None])


if __name__ == "__main__":
    unittest.main()
