from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Optional, get_type_hints

import yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = "STORYSAVES_"


@dataclass
class SaveConfig:
    """Tunables for the save subsystem.

    Times are in milliseconds, except ``notification_duration`` which is
    advisory for the renderer and given in seconds.
    """

    store_key: str = "gameSaveData"
    user_key: str = "currentUser"
    autosave_interval_ms: int = 30000
    debounce_ms: int = 1000
    max_saves: int = 20
    default_max_items: int = 16
    restore_delay_ms: int = 1000
    notification_text: str = "游戏已自动保存"
    notification_duration: float = 3.0
    chapters_file: Optional[str] = None
    data_dir: Optional[str] = None

    def __post_init__(self) -> None:
        if self.max_saves < 1:
            raise ValueError("max_saves must be at least 1")
        if self.autosave_interval_ms <= 0:
            raise ValueError("autosave_interval_ms must be positive")
        if self.debounce_ms < 0 or self.restore_delay_ms < 0:
            raise ValueError("debounce_ms and restore_delay_ms must not be negative")

    @staticmethod
    def _load_yaml(path: Path) -> dict:
        with path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    @classmethod
    def _deep_merge(cls, base: dict, overlay: dict) -> dict:
        merged = dict(base)
        for k, v in (overlay or {}).items():
            if isinstance(v, dict) and isinstance(base.get(k), dict):
                merged[k] = cls._deep_merge(base[k], v)
            else:
                merged[k] = v
        return merged

    @classmethod
    def _env_overrides(cls) -> Dict[str, Any]:
        """``STORYSAVES_<FIELD>`` values, converted to the field's type.

        Text fields take the raw string; numeric fields that do not parse are
        ignored with a warning.
        """
        hints = get_type_hints(cls)
        overrides: Dict[str, Any] = {}
        for f in dataclasses.fields(cls):
            name = ENV_PREFIX + f.name.upper()
            raw = os.getenv(name)
            if raw is None:
                continue
            kind = hints.get(f.name)
            if kind in (int, float):
                try:
                    overrides[f.name] = kind(raw.strip())
                except ValueError:
                    logger.warning("Ignoring %s=%r: expected a %s", name, raw, kind.__name__)
            else:
                overrides[f.name] = raw
        return overrides

    @classmethod
    def _from_dict(cls, data: dict) -> "SaveConfig":
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown save config keys: %s", unknown)
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def load(cls, user_path: Optional[Path] = None) -> "SaveConfig":
        """Load config from built-in defaults, an optional user YAML file and env vars.

        Later sources win: packaged defaults < user file < ``STORYSAVES_*`` env vars.
        """
        try:
            default_text = resources.files("storysaves.data").joinpath("default_config.yaml").read_text(encoding="utf-8")
            default_data = yaml.safe_load(default_text) or {}
        except FileNotFoundError:
            logger.warning("Default save config not found; falling back to dataclass defaults.")
            default_data = dataclasses.asdict(cls())

        user_data = {}
        if user_path is not None:
            if user_path.exists():
                user_data = cls._load_yaml(user_path)
                logger.info("Loaded user save config from %s", user_path)
            else:
                logger.warning("User save config file not found: %s", user_path)

        merged = cls._deep_merge(default_data, user_data)
        merged = cls._deep_merge(merged, cls._env_overrides())
        config = cls._from_dict(merged)
        logger.debug("Save config merged: %s", config)
        return config
