"""Read-only live view of the sessions currently held in memory."""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Dict, List

from .constants import STATUS_ACTIVE, STATUS_INACTIVE_ESTIMATED
from .session_tracker import Session, SessionTracker


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _format_timestamp(ts: float) -> str:
    moment = datetime.fromtimestamp(ts, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def session_status(session: Session) -> Dict[str, Any]:
    """Return the consumer-facing status record for ``session``."""

    return {
        "name": session.name,
        "active_minutes": _round_half_up(session.session_active_seconds / 60),
        "afk_minutes": _round_half_up(session.session_afk_seconds / 60),
        "last_activity_time": _format_timestamp(session.last_activity_ts),
        "status": STATUS_INACTIVE_ESTIMATED if session.is_afk else STATUS_ACTIVE,
        "buffer_seconds": _round_half_up(session.buffer_accumulated),
    }


def get_live_status(tracker: SessionTracker) -> List[Dict[str, Any]]:
    """Return a status record for every session tracked by ``tracker``."""

    return [session_status(session) for session in tracker.sessions()]


__all__ = ["get_live_status", "session_status"]
