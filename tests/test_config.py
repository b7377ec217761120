# SPDX-License-Identifier: GPL-3.0-or-later

import logging
import os
import sys

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT)

import pytest

from afk.config import TrackerConfig, load_tracker_config


def test_missing_file_returns_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("AFK_TRACKER_API_KEY", raising=False)

    config = load_tracker_config(str(tmp_path / "absent.yaml"))

    assert config == TrackerConfig()
    assert config.buffer_threshold_seconds == 90.0


def test_tracker_section_is_read(tmp_path, monkeypatch):
    monkeypatch.delenv("AFK_TRACKER_API_KEY", raising=False)
    path = tmp_path / "afk.yaml"
    path.write_text(
        "tracker:\n"
        "  identity_prefix: CS\n"
        "  buffer_threshold_seconds: 120\n"
        "  flush_interval_seconds: 30\n"
        "  flush_max_workers: 8\n"
        "  non_playing_teams: [3]\n"
        "  insert_missing_players: 'no'\n"
        "  api_key: secret\n",
        encoding="utf-8",
    )

    config = load_tracker_config(str(path))

    assert config.identity_prefix == "CS"
    assert config.buffer_threshold_seconds == 120.0
    assert config.flush_interval_seconds == 30.0
    assert config.flush_max_workers == 8
    assert config.non_playing_teams == (3,)
    assert config.insert_missing_players is False
    assert config.api_key == "secret"


def test_invalid_values_fall_back_and_clamp(tmp_path, monkeypatch):
    monkeypatch.delenv("AFK_TRACKER_API_KEY", raising=False)
    path = tmp_path / "afk.yaml"
    path.write_text(
        "buffer_threshold_seconds: soon\n"
        "flush_max_workers: 0\n"
        "write_timeout_seconds: -5\n"
        "non_playing_teams: spectators\n",
        encoding="utf-8",
    )

    config = load_tracker_config(str(path))

    assert config.buffer_threshold_seconds == 90.0
    assert config.flush_max_workers == 1
    assert config.write_timeout_seconds == 0.1
    assert config.non_playing_teams == (0, 3)


def test_unparsable_yaml_returns_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("AFK_TRACKER_API_KEY", raising=False)
    path = tmp_path / "afk.yaml"
    path.write_text("tracker: [unclosed\n", encoding="utf-8")

    assert load_tracker_config(str(path)) == TrackerConfig()


def test_environment_overrides_api_key_and_path(tmp_path, monkeypatch):
    path = tmp_path / "afk.yaml"
    path.write_text("api_key: from-file\nbuffer_threshold_seconds: 45\n", encoding="utf-8")
    monkeypatch.setenv("AFK_TRACKER_CONFIG", str(path))
    monkeypatch.setenv("AFK_TRACKER_API_KEY", "from-env")

    config = load_tracker_config()

    assert config.buffer_threshold_seconds == 45.0
    assert config.api_key == "from-env"


def test_invalid_value_warning_names_the_setting(tmp_path, monkeypatch, caplog):
    monkeypatch.delenv("AFK_TRACKER_API_KEY", raising=False)
    path = tmp_path / "afk.yaml"
    path.write_text(
        "tracker:\n"
        "  flush_max_workers: many\n"
        "  write_timeout_seconds: later\n"
        "  insert_missing_players: maybe\n",
        encoding="utf-8",
    )

    with caplog.at_level(logging.WARNING, logger="afk.config"):
        config = load_tracker_config(str(path))

    assert config.flush_max_workers == 4
    assert "tracker setting flush_max_workers" in caplog.text
    assert "tracker setting write_timeout_seconds" in caplog.text
    assert "tracker setting insert_missing_players" in caplog.text


def test_default_path_loads_packaged_file(monkeypatch, caplog):
    monkeypatch.delenv("AFK_TRACKER_CONFIG", raising=False)
    monkeypatch.delenv("AFK_TRACKER_API_KEY", raising=False)

    with caplog.at_level(logging.WARNING, logger="afk.config"):
        config = load_tracker_config()

    assert "not found" not in caplog.text
    assert config == TrackerConfig()


def test_packaging_ships_default_config():
    tomllib = pytest.importorskip("tomllib")
    with open(os.path.join(ROOT, "pyproject.toml"), "rb") as fh:
        pyproject = tomllib.load(fh)

    assert os.path.isfile(os.path.join(ROOT, "afk", "afk_tracker.yaml"))
    assert "*.yaml" in pyproject["tool"]["setuptools"]["package-data"]["afk"]
    assert "readme" not in pyproject["project"]
