# SPDX-License-Identifier: GPL-3.0-or-later

import os
import sys
from datetime import datetime, timezone

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from afk.constants import STATUS_ACTIVE, STATUS_INACTIVE_ESTIMATED
from afk.live_status import get_live_status
from afk.session_tracker import SessionTracker


START = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc).timestamp()


def test_live_status_reports_rounded_minutes_and_status():
    tracker = SessionTracker(buffer_threshold_seconds=60, started_at=START)
    tracker.process_poll([{"name": "Alice", "score": 0, "team": 1}], now=START + 90)
    tracker.process_poll([{"name": "Alice", "score": 0, "team": 1}], now=START + 180.4)

    status = get_live_status(tracker)

    assert status == [
        {
            "name": "Alice",
            "active_minutes": 2,
            "afk_minutes": 2,
            "last_activity_time": "2026-10-19T12:01:30.000Z",
            "status": STATUS_INACTIVE_ESTIMATED,
            "buffer_seconds": 90,
        }
    ]


def test_live_status_rounds_half_minutes_up():
    tracker = SessionTracker(started_at=START)
    tracker.process_poll([{"name": "Bob", "score": 0, "team": 2}], now=START + 30)

    (entry,) = get_live_status(tracker)

    assert entry["active_minutes"] == 1
    assert entry["afk_minutes"] == 0
    assert entry["status"] == STATUS_ACTIVE
    assert entry["buffer_seconds"] == 0


def test_live_status_does_not_mutate_sessions():
    tracker = SessionTracker(started_at=START)
    tracker.process_poll([{"name": "Bob", "score": 0, "team": 2}], now=START + 30)
    before = tracker.sessions()

    get_live_status(tracker)
    get_live_status(tracker)

    assert tracker.sessions() == before


def test_live_status_includes_disconnected_sessions_until_flushed():
    tracker = SessionTracker(started_at=START)
    tracker.process_poll([{"name": "Bob"}], now=START + 6)
    tracker.process_poll([], now=START + 12)

    assert [entry["name"] for entry in get_live_status(tracker)] == ["Bob"]
