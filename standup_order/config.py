"""Settings for the order bot.

Layers, last one wins: built-in defaults, config.yaml (or the file named by
STANDUP_ORDER_CONFIG), then a handful of environment variables. Relative
paths are taken from the project root.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional, Set, Tuple

import yaml
from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_ENV_VAR = "STANDUP_ORDER_CONFIG"

DEFAULTS: Dict[str, Dict[str, Any]] = {
    "memory": {"db_path": "data/standup.db"},
    "paths": {"log_file": "logs/standup-order.log"},
    "logging": {"level": "INFO", "json_format": False},
    "telegram": {"bot_token_env_var": "TELEGRAM_BOT_TOKEN", "admin_user_ids": []},
    "smtp": {"enabled": False},
}


def _ids(values: Iterable[Any]) -> Set[int]:
    ids = set()
    for value in values:
        try:
            ids.add(int(str(value).strip()))
        except ValueError:
            continue
    return ids


# env var, section, key, parser
_ENV_OVERRIDES: Tuple[Tuple[str, str, str, Callable[[str], Any]], ...] = (
    ("STANDUP_ORDER_DB_PATH", "memory", "db_path", str),
    ("STANDUP_ORDER_LOG_FILE", "paths", "log_file", str),
    ("STANDUP_ORDER_LOG_LEVEL", "logging", "level", str.upper),
    ("TELEGRAM_ADMIN_USER_IDS", "telegram", "admin_user_ids", lambda raw: sorted(_ids(raw.split(",")))),
)


def _config_file() -> Path:
    named = os.getenv(CONFIG_ENV_VAR, "").strip()
    if named:
        return (Path.cwd() / named).resolve()
    return PROJECT_ROOT / "config.yaml"


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    return loaded if isinstance(loaded, dict) else {}


@lru_cache(maxsize=1)
def load_config() -> Dict[str, Any]:
    load_dotenv(dotenv_path=PROJECT_ROOT / ".env")

    config: Dict[str, Any] = {name: dict(values) for name, values in DEFAULTS.items()}
    for name, values in _read_yaml(_config_file()).items():
        if isinstance(values, dict):
            config.setdefault(name, {}).update(values)
        else:
            config[name] = values

    for env_var, name, key, parse in _ENV_OVERRIDES:
        raw = os.getenv(env_var, "").strip()
        value = parse(raw) if raw else None
        if value:
            config.setdefault(name, {})[key] = value
    return config


def reload_config() -> Dict[str, Any]:
    load_config.cache_clear()
    return load_config()


def section(name: str, config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    values = (config or load_config()).get(name)
    return values if isinstance(values, dict) else {}


def _project_path(value: str) -> Path:
    path = Path(value)
    return (path if path.is_absolute() else PROJECT_ROOT / path).resolve()


def get_db_path(config: Optional[Dict[str, Any]] = None) -> Path:
    return _project_path(str(section("memory", config).get("db_path") or DEFAULTS["memory"]["db_path"]))


def get_log_path(config: Optional[Dict[str, Any]] = None) -> Path:
    return _project_path(str(section("paths", config).get("log_file") or DEFAULTS["paths"]["log_file"]))


def get_admin_user_ids(config: Optional[Dict[str, Any]] = None) -> Set[int]:
    return _ids(section("telegram", config).get("admin_user_ids") or [])
