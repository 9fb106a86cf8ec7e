import json
import tempfile
import unittest
from dataclasses import replace
from pathlib import Path

from config import load_config, save_config
from errors import GatewayError
from theme import DEFAULT_THEME


class TestLoadConfig(unittest.TestCase):
    def setUp(self) -> None:
        td = tempfile.TemporaryDirectory()
        self.addCleanup(td.cleanup)
        self.root = Path(td.name)
        self.config_path = self.root / "config.json"

    def env(self, **extra: str) -> dict:
        return {"TSK_CONFIG": str(self.config_path), **extra}

    def test_defaults_follow_xdg_dirs(self) -> None:
        config = load_config(self.env(XDG_DATA_HOME=str(self.root / "data"),
                                      XDG_STATE_HOME=str(self.root / "state")))
        self.assertEqual(config.theme, DEFAULT_THEME)
        self.assertEqual(config.db_path, self.root / "data" / "tsk" / "tsk.db")
        self.assertEqual(config.log_file, self.root / "state" / "tsk" / "tsk.log")
        self.assertTrue(config.alt_screen)

    def test_db_path_priority(self) -> None:
        env = self.env(TSK_DB=str(self.root / "env.db"), XDG_DATA_HOME=str(self.root / "data"))
        self.assertEqual(load_config(env).db_path, self.root / "env.db")
        self.assertEqual(load_config(env, db_path=self.root / "flag.db").db_path, self.root / "flag.db")

    def test_color_and_screen_switches(self) -> None:
        config = load_config(self.env(NO_COLOR="", FORCE_COLOR="1", COLORTERM="TrueColor", TSK_ALT_SCREEN="off"))
        self.assertTrue(config.no_color)
        self.assertTrue(config.force_color)
        self.assertEqual(config.colorterm, "truecolor")
        self.assertFalse(config.alt_screen)

    def test_unknown_theme_falls_back(self) -> None:
        self.config_path.write_text(json.dumps({"theme": "neon"}), encoding="utf-8")
        with self.assertLogs("config", level="WARNING"):
            config = load_config(self.env())
        self.assertEqual(config.theme, DEFAULT_THEME)

    def test_unreadable_file_is_ignored(self) -> None:
        self.config_path.write_text("{not json", encoding="utf-8")
        with self.assertLogs("config", level="WARNING"):
            self.assertEqual(load_config(self.env()).theme, DEFAULT_THEME)

    def test_save_then_load(self) -> None:
        config = load_config(self.env())
        save_config(replace(config, theme="ocean"))
        self.assertEqual(json.loads(self.config_path.read_text(encoding="utf-8")), {"theme": "ocean"})
        self.assertEqual(load_config(self.env()).theme, "ocean")

    def test_save_failure_is_a_gateway_error(self) -> None:
        blocker = self.root / "file"
        blocker.write_text("", encoding="utf-8")
        config = load_config({"TSK_CONFIG": str(blocker / "config.json")})
        with self.assertRaises(GatewayError):
            save_config(config)


if __name__ == "__main__":
    unittest.main()
