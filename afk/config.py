"""Configuration loading utilities for the AFK tracker."""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from typing import Any, Dict, Tuple

import yaml

from .constants import DEFAULT_IDENTITY_PREFIX, NON_PLAYING_TEAMS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackerConfig:
    """Container for session accounting and flush configuration values."""

    identity_prefix: str = DEFAULT_IDENTITY_PREFIX
    buffer_threshold_seconds: float = 90.0
    flush_interval_seconds: float = 60.0
    flush_max_workers: int = 4
    write_timeout_seconds: float = 10.0
    non_playing_teams: Tuple[int, ...] = NON_PLAYING_TEAMS
    insert_missing_players: bool = True
    api_key: str | None = None


_CONFIG_PATH_ENV = "AFK_TRACKER_CONFIG"
_API_KEY_ENV = "AFK_TRACKER_API_KEY"
_DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "afk_tracker.yaml")


def _coerce_int(key: str, value: Any, fallback: int) -> int:
    """Return ``value`` coerced to ``int`` when possible."""

    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(
            "Invalid integer value %r for tracker setting %s; using %d",
            value,
            key,
            fallback,
        )
        return fallback


def _coerce_float(key: str, value: Any, fallback: float) -> float:
    """Return ``value`` coerced to ``float`` when possible."""

    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning(
            "Invalid float value %r for tracker setting %s; using %s",
            value,
            key,
            fallback,
        )
        return fallback


def _coerce_bool(key: str, value: Any, fallback: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    if isinstance(value, int):
        return bool(value)
    logger.warning(
        "Invalid boolean value %r for tracker setting %s; using %s",
        value,
        key,
        fallback,
    )
    return fallback


def _coerce_teams(key: str, value: Any, fallback: Tuple[int, ...]) -> Tuple[int, ...]:
    if not isinstance(value, (list, tuple)):
        logger.warning(
            "Invalid team list %r for tracker setting %s; using %s",
            value,
            key,
            fallback,
        )
        return fallback
    teams = []
    for entry in value:
        try:
            teams.append(int(entry))
        except (TypeError, ValueError):
            logger.warning("Ignoring non-integer team id %r in tracker setting %s", entry, key)
    return tuple(teams)


def _read_payload(config_path: str) -> Dict[str, Any] | None:
    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            payload = yaml.safe_load(fh) or {}
    except FileNotFoundError:
        logger.warning(
            "Tracker configuration file %s not found; falling back to defaults",
            config_path,
        )
        return None
    except yaml.YAMLError as exc:
        logger.warning(
            "Failed to parse tracker configuration %s: %s; using defaults",
            config_path,
            exc,
        )
        return None
    if not isinstance(payload, dict):
        return {}
    if "tracker" in payload and isinstance(payload["tracker"], dict):
        return payload["tracker"]
    return payload


def load_tracker_config(path: str | None = None) -> TrackerConfig:
    """Load the tracker configuration from ``path`` if available.

    The path defaults to ``$AFK_TRACKER_CONFIG`` and then to the
    ``afk_tracker.yaml`` shipped inside the ``afk`` package.
    ``$AFK_TRACKER_API_KEY`` overrides any ``api_key`` found in the file.
    """

    config_path = path or os.environ.get(_CONFIG_PATH_ENV) or _DEFAULT_CONFIG_PATH
    env_api_key = os.environ.get(_API_KEY_ENV) or None
    data = _read_payload(config_path)
    if data is None:
        return TrackerConfig(api_key=env_api_key)
    defaults = TrackerConfig()

    prefix = str(data.get("identity_prefix", defaults.identity_prefix)).strip()
    threshold = _coerce_float(
        "buffer_threshold_seconds",
        data.get("buffer_threshold_seconds", defaults.buffer_threshold_seconds),
        defaults.buffer_threshold_seconds,
    )
    flush_interval = _coerce_float(
        "flush_interval_seconds",
        data.get("flush_interval_seconds", defaults.flush_interval_seconds),
        defaults.flush_interval_seconds,
    )
    max_workers = _coerce_int(
        "flush_max_workers",
        data.get("flush_max_workers", defaults.flush_max_workers),
        defaults.flush_max_workers,
    )
    write_timeout = _coerce_float(
        "write_timeout_seconds",
        data.get("write_timeout_seconds", defaults.write_timeout_seconds),
        defaults.write_timeout_seconds,
    )
    non_playing = _coerce_teams(
        "non_playing_teams",
        data.get("non_playing_teams", list(defaults.non_playing_teams)),
        defaults.non_playing_teams,
    )
    insert_missing = _coerce_bool(
        "insert_missing_players",
        data.get("insert_missing_players", defaults.insert_missing_players),
        defaults.insert_missing_players,
    )
    file_api_key = data.get("api_key")
    api_key = env_api_key or (str(file_api_key) if file_api_key else None)

    return TrackerConfig(
        identity_prefix=prefix or defaults.identity_prefix,
        buffer_threshold_seconds=max(0.0, threshold),
        flush_interval_seconds=max(0.0, flush_interval),
        flush_max_workers=max(1, max_workers),
        write_timeout_seconds=max(0.1, write_timeout),
        non_playing_teams=non_playing,
        insert_missing_players=insert_missing,
        api_key=api_key,
    )


__all__ = ["TrackerConfig", "load_tracker_config"]
