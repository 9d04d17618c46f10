"""Configuration loading utilities for game parameters."""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
import os
from typing import Any, Dict, Tuple

import yaml

logger = logging.getLogger(__name__)

DEFAULT_START_DATE = datetime(1931, 9, 1, 8, 0)
DEFAULT_CUSTOM_ROLL_ITEMS = ("Lantern", "Climbing Rope", "Map of the Catacombs")


@dataclass(frozen=True)
class GameConfig:
    """Container for gameplay configuration values."""

    start_date: datetime = DEFAULT_START_DATE
    start_entry: str = "1"
    default_locale: str = "Arkham"
    location_travel_hours: int = 1
    default_choice_hours: int = 0
    notification_duration_ms: int = 6000
    custom_roll_deadline_hour: int = 18
    custom_roll_items: Tuple[str, ...] = DEFAULT_CUSTOM_ROLL_ITEMS
    night_start_hour: int = 21
    night_end_hour: int = 5


_DEFAULT_CONFIG_PATH = os.path.join(
    os.path.dirname(__file__), "..", "game_config.yaml"
)


def _coerce_int(value: Any, fallback: int) -> int:
    """Return ``value`` coerced to ``int`` when possible."""

    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(
            "Invalid integer value %r encountered in configuration; using %d",
            value,
            fallback,
        )
        return fallback


def _coerce_hour(value: Any, fallback: int) -> int:
    """Return ``value`` as an hour of the day in ``[0, 23]``."""

    hour = _coerce_int(value, fallback)
    if not 0 <= hour <= 23:
        logger.warning("Hour %r outside 0-23 in configuration; using %d", value, fallback)
        return fallback
    return hour


def _coerce_datetime(value: Any, fallback: datetime) -> datetime:
    """Return ``value`` parsed as an ISO date or datetime."""

    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).strip())
    except ValueError:
        logger.warning(
            "Invalid date value %r encountered in configuration; using %s",
            value,
            fallback.isoformat(),
        )
        return fallback


def _coerce_items(value: Any, fallback: Tuple[str, ...]) -> Tuple[str, ...]:
    if isinstance(value, (list, tuple)):
        return tuple(str(item).strip() for item in value if str(item).strip())
    logger.warning("Expected a list of item names in configuration, got %r", value)
    return fallback


def load_game_config(path: str | None = None) -> GameConfig:
    """Load the gameplay configuration from ``path`` if available."""

    config_path = path or os.environ.get("GAMEBOOK_CONFIG") or _DEFAULT_CONFIG_PATH
    data: Dict[str, Any] = {}
    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            payload = yaml.safe_load(fh) or {}
    except FileNotFoundError:
        logger.warning(
            "Game configuration file %s not found; falling back to defaults",
            config_path,
        )
        return GameConfig()
    except yaml.YAMLError as exc:
        logger.warning(
            "Failed to parse game configuration %s: %s; using defaults",
            config_path,
            exc,
        )
        return GameConfig()
    if isinstance(payload, dict):
        if "game" in payload and isinstance(payload["game"], dict):
            data = payload["game"]
        else:
            data = payload
    defaults = GameConfig()
    start_entry = str(data.get("start_entry", defaults.start_entry)).strip()
    default_locale = str(data.get("default_locale", defaults.default_locale)).strip()
    custom_items = defaults.custom_roll_items
    if "custom_roll_items" in data:
        custom_items = _coerce_items(data["custom_roll_items"], custom_items)
    return GameConfig(
        start_date=_coerce_datetime(
            data.get("start_date", defaults.start_date), defaults.start_date
        ),
        start_entry=start_entry or defaults.start_entry,
        default_locale=default_locale or defaults.default_locale,
        location_travel_hours=max(
            0, _coerce_int(data.get("location_travel_hours", 1), 1)
        ),
        default_choice_hours=max(
            0, _coerce_int(data.get("default_choice_hours", 0), 0)
        ),
        notification_duration_ms=max(
            0, _coerce_int(data.get("notification_duration_ms", 6000), 6000)
        ),
        custom_roll_deadline_hour=_coerce_hour(
            data.get("custom_roll_deadline_hour", 18), 18
        ),
        custom_roll_items=custom_items,
        night_start_hour=_coerce_hour(data.get("night_start_hour", 21), 21),
        night_end_hour=_coerce_hour(data.get("night_end_hour", 5), 5),
    )


__all__ = ["GameConfig", "load_game_config"]
