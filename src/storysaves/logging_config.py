from __future__ import annotations

import logging
import os
from typing import Optional, Union

PACKAGE_LOGGER = "storysaves"

Level = Union[int, str]


def _parse_level(value: Optional[Level], fallback: int) -> int:
    if value is None or value == "":
        return fallback
    if isinstance(value, int):
        return value
    level = logging.getLevelName(value.strip().upper())
    return level if isinstance(level, int) else fallback


def configure_logging(default_level: int = logging.INFO, package_level: Optional[Level] = None) -> None:
    """Configure root logger with a sane default format.

    Respects STORYSAVES_LOG_LEVEL for the root logger. ``package_level`` (or
    STORYSAVES_PACKAGE_LOG_LEVEL) sets the ``storysaves`` logger on its own,
    e.g. DEBUG for the save system while the host game stays at INFO.
    """
    level = _parse_level(os.getenv("STORYSAVES_LOG_LEVEL"), default_level)
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )
    if package_level is None:
        package_level = os.getenv("STORYSAVES_PACKAGE_LOG_LEVEL")
    if package_level:
        logging.getLogger(PACKAGE_LOGGER).setLevel(_parse_level(package_level, level))
