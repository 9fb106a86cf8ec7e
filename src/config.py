"""Configuration and logging setup.

Decisions:
- ``.env`` values are loaded with python-dotenv; real environment variables win.
- The JSON config file only stores user preferences (currently the theme).
  A missing file means defaults; an unreadable one is logged and ignored.
- Database path priority: --db option > TSK_DB > XDG data dir.
- Logs always go to a file: the terminal belongs to the UI.
"""
from __future__ import annotations
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from errors import GatewayError
from theme import DEFAULT_THEME, THEME_NAMES

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
APP_DIR = "tsk"


def _truthy_env(value: Optional[str], default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off", ""}


def _xdg_dir(env: Mapping[str, str], var: str, fallback: str) -> Path:
    base = env.get(var)
    if base:
        return Path(base).expanduser() / APP_DIR
    return Path.home() / fallback / APP_DIR


@dataclass(frozen=True)
class Config:
    theme: str = DEFAULT_THEME
    db_path: Path = field(default_factory=lambda: Path.home() / ".local/share" / APP_DIR / "tsk.db")
    config_path: Path = field(default_factory=lambda: Path.home() / ".config" / APP_DIR / "config.json")
    log_file: Path = field(default_factory=lambda: Path.home() / ".local/state" / APP_DIR / "tsk.log")
    log_level: str = "WARNING"
    alt_screen: bool = True
    no_color: bool = False
    force_color: bool = False
    colorterm: str = ""


def load_config(env: Optional[Mapping[str, str]] = None, db_path: Optional[Path] = None) -> Config:
    """Resolve the configuration from the environment and the config file.

    Passing ``env`` skips ``.env`` loading and reads only the given mapping.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    config_path = Path(env["TSK_CONFIG"]).expanduser() if env.get("TSK_CONFIG") \
        else _xdg_dir(env, "XDG_CONFIG_HOME", ".config") / "config.json"
    if db_path is None:
        db_path = Path(env["TSK_DB"]).expanduser() if env.get("TSK_DB") \
            else _xdg_dir(env, "XDG_DATA_HOME", ".local/share") / "tsk.db"
    log_file = Path(env["TSK_LOG_FILE"]).expanduser() if env.get("TSK_LOG_FILE") \
        else _xdg_dir(env, "XDG_STATE_HOME", ".local/state") / "tsk.log"

    theme = DEFAULT_THEME
    data = _read_config_file(config_path)
    requested = data.get("theme")
    if isinstance(requested, str):
        if requested in THEME_NAMES:
            theme = requested
        else:
            logger.warning("unknown theme %r in %s; using %s", requested, config_path, DEFAULT_THEME)

    return Config(
        theme=theme,
        db_path=db_path,
        config_path=config_path,
        log_file=log_file,
        log_level=env.get("TSK_LOG_LEVEL", "WARNING").upper(),
        alt_screen=_truthy_env(env.get("TSK_ALT_SCREEN"), True),
        no_color=env.get("NO_COLOR") is not None,
        force_color=_truthy_env(env.get("FORCE_COLOR"), False),
        colorterm=env.get("COLORTERM", "").lower(),
    )


def _read_config_file(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("ignoring unreadable config %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("ignoring config %s: expected an object", path)
        return {}
    return data


def save_config(config: Config) -> None:
    try:
        config.config_path.parent.mkdir(parents=True, exist_ok=True)
        config.config_path.write_text(json.dumps({"theme": config.theme}, indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        raise GatewayError(f"save config: {exc}") from exc
    logger.info("saved config to %s", config.config_path)


def configure_logging(config: Config) -> None:
    """Send every log record to the log file; nothing goes to the terminal."""
    config.log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.addHandler(file_handler)
    root.setLevel(getattr(logging, config.log_level, logging.WARNING))
