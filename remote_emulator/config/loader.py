"""Configuration loading: JSON file, env settings and legacy env names."""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any

from loguru import logger

from remote_emulator.config.schema import Config
from remote_emulator.utils.helpers import get_data_path

LEGACY_TOKEN_ENV = "EMULATOR_REMOTE_TOKEN"
LEGACY_ADB_PATH_ENV = "ADB_PATH"

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def get_config_path() -> Path:
    """Default config file location."""
    return get_data_path() / "config.json"


def camel_to_snake(name: str) -> str:
    return _CAMEL_RE.sub("_", name).lower()


def convert_keys(data: Any) -> Any:
    """Convert camelCase keys to snake_case recursively."""
    if isinstance(data, dict):
        return {camel_to_snake(str(k)): convert_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration; a missing file means defaults plus environment."""
    path = (config_path or get_config_path()).expanduser()
    data: dict[str, Any] = {}
    if path.exists():
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load config from {path}: {e}, using defaults")
            raw = {}
        if isinstance(raw, dict):
            data = convert_keys(raw)

    config = Config(**data)
    _apply_legacy_env(config)
    return config


def _apply_legacy_env(config: Config) -> None:
    token = str(os.environ.get(LEGACY_TOKEN_ENV) or "").strip()
    if token:
        config.broker.token = token
    adb_path = str(os.environ.get(LEGACY_ADB_PATH_ENV) or "").strip()
    if adb_path:
        config.adb.path = adb_path
