"""Per-player session accounting driven by periodic server snapshots."""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Any, Iterable, Iterator, List, Sequence

from .config import TrackerConfig
from .constants import DEFAULT_IDENTITY_PREFIX, NON_PLAYING_TEAMS
from .snapshot import PlayerRecord, parse_snapshot

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """Accumulated state for one player identity."""

    identity: str
    name: str
    last_score: float
    last_team: int
    last_activity_ts: float
    buffer_accumulated: float = 0.0
    is_afk: bool = False
    session_active_seconds: float = 0.0
    session_afk_seconds: float = 0.0
    unsaved_active: float = 0.0
    unsaved_afk: float = 0.0
    disconnected: bool = False
    # Recorded for diagnostics only; never changes the active/inactive branch.
    is_spectator: bool = False


@dataclass
class PollSummary:
    """Outcome of a single :meth:`SessionTracker.process_poll` call."""

    delta_seconds: float
    observed: int
    created: int
    skipped: int
    disconnected: int

    def to_payload(self) -> dict:
        return {
            "delta_seconds": self.delta_seconds,
            "observed": self.observed,
            "created": self.created,
            "skipped": self.skipped,
            "disconnected": self.disconnected,
        }


@dataclass(frozen=True)
class FlushRequest:
    """Unsaved minutes drained from a session for one durable update."""

    identity: str
    name: str
    active_minutes: float
    afk_minutes: float
    disconnected: bool


class SessionTracker:
    """Attribute elapsed poll time to active or AFK buckets per player.

    Every poll applies one global slice, the time since the previous poll, to
    each player present in the snapshot. A player whose score or team changed
    is active for that slice. A player with no change accumulates the slice
    into an inactivity buffer; once the buffer exceeds the threshold the whole
    slice counts as AFK, otherwise it still counts as active.

    The tracker owns the session table. Polls, flush draining, evictions and
    reads take the same re-entrant lock. Each call holds it only for its own
    table access, so slow storage never stalls a poll.
    """

    def __init__(
        self,
        *,
        buffer_threshold_seconds: float = 90.0,
        identity_prefix: str = DEFAULT_IDENTITY_PREFIX,
        non_playing_teams: Sequence[int] = NON_PLAYING_TEAMS,
        started_at: float | None = None,
    ) -> None:
        if buffer_threshold_seconds < 0:
            raise ValueError("buffer_threshold_seconds must be >= 0")
        self.buffer_threshold_seconds = float(buffer_threshold_seconds)
        self.identity_prefix = identity_prefix
        self.non_playing_teams = frozenset(non_playing_teams)
        self._sessions: dict[str, Session] = {}
        self._last_poll_time = started_at
        self._lock = threading.RLock()

    @classmethod
    def from_config(
        cls, config: TrackerConfig, *, started_at: float | None = None
    ) -> "SessionTracker":
        return cls(
            buffer_threshold_seconds=config.buffer_threshold_seconds,
            identity_prefix=config.identity_prefix,
            non_playing_teams=config.non_playing_teams,
            started_at=started_at,
        )

    @property
    def last_poll_time(self) -> float | None:
        with self._lock:
            return self._last_poll_time

    def identity_for(self, name: str) -> str:
        """Return the stable identity key derived from a reported name."""

        return f"{self.identity_prefix}_{name.strip()}"

    def process_poll(
        self, players: Iterable[PlayerRecord | Any], now: float | None = None
    ) -> PollSummary:
        """Integrate the time since the previous poll into every session.

        ``players`` may hold :class:`PlayerRecord` instances or raw relay
        dictionaries; entries without a name are skipped. The first poll of a
        tracker created without ``started_at`` applies a zero-length slice.
        """

        entries = list(players)
        records = parse_snapshot(entries)
        skipped = len(entries) - len(records)
        with self._lock:
            # Read the clock under the lock so concurrent polls stay ordered.
            observed = now if now is not None else time.time()
            delta = self._advance_clock(observed)
            timestamp = self._last_poll_time
            present: set[str] = set()
            created = 0
            for record in records:
                identity = self.identity_for(record.name)
                if identity in present:
                    logger.debug(
                        "Ignoring duplicate entry for %s in the same snapshot", identity
                    )
                    skipped += 1
                    continue
                present.add(identity)
                session = self._sessions.get(identity)
                if session is None:
                    session = Session(
                        identity=identity,
                        name=record.name,
                        last_score=record.score,
                        last_team=record.team,
                        last_activity_ts=timestamp,
                        is_spectator=record.team in self.non_playing_teams,
                    )
                    self._sessions[identity] = session
                    created += 1
                    self._mark_active(session, delta, timestamp)
                    continue

                activity = (
                    record.score != session.last_score
                    or record.team != session.last_team
                )
                session.name = record.name
                session.last_score = record.score
                session.last_team = record.team
                session.is_spectator = record.team in self.non_playing_teams
                if activity:
                    self._mark_active(session, delta, timestamp)
                else:
                    self._process_inactive(session, delta)

            disconnected = 0
            for identity, session in self._sessions.items():
                session.disconnected = identity not in present
                if session.disconnected:
                    disconnected += 1

        return PollSummary(
            delta_seconds=delta,
            observed=len(present),
            created=created,
            skipped=skipped,
            disconnected=disconnected,
        )

    def _advance_clock(self, timestamp: float) -> float:
        previous = self._last_poll_time
        if previous is None:
            self._last_poll_time = timestamp
            return 0.0
        delta = timestamp - previous
        if delta < 0:
            # Keep the newest time seen; moving back would re-apply elapsed time.
            logger.warning(
                "Poll clock moved backwards by %.3fs; applying an empty slice",
                -delta,
            )
            return 0.0
        self._last_poll_time = timestamp
        return delta

    def _mark_active(self, session: Session, delta: float, timestamp: float) -> None:
        session.buffer_accumulated = 0.0
        session.is_afk = False
        session.last_activity_ts = timestamp
        session.session_active_seconds += delta
        session.unsaved_active += delta

    def _process_inactive(self, session: Session, delta: float) -> None:
        session.buffer_accumulated += delta
        if session.buffer_accumulated > self.buffer_threshold_seconds:
            # The whole slice is AFK, including the part still under the threshold.
            session.is_afk = True
            session.session_afk_seconds += delta
            session.unsaved_afk += delta
        else:
            session.session_active_seconds += delta
            session.unsaved_active += delta

    def drain_unsaved(self) -> List[FlushRequest]:
        """Return pending updates and zero the unsaved accumulators.

        A session is drained when at least one whole second is pending in
        either bucket or when it is disconnected. The accumulators are reset
        here, before any write is attempted.
        """

        requests: List[FlushRequest] = []
        with self._lock:
            for session in self._sessions.values():
                if (
                    session.unsaved_active < 1
                    and session.unsaved_afk < 1
                    and not session.disconnected
                ):
                    continue
                requests.append(
                    FlushRequest(
                        identity=session.identity,
                        name=session.name,
                        active_minutes=session.unsaved_active / 60,
                        afk_minutes=session.unsaved_afk / 60,
                        disconnected=session.disconnected,
                    )
                )
                session.unsaved_active = 0.0
                session.unsaved_afk = 0.0
        return requests

    def evict(
        self, identities: Iterable[str], *, only_disconnected: bool = False
    ) -> List[str]:
        """Remove ``identities`` from the table and return those removed.

        With ``only_disconnected`` a session is kept when it reappeared in a
        later poll or has unsaved time again.
        """

        removed: List[str] = []
        with self._lock:
            for identity in identities:
                session = self._sessions.get(identity)
                if session is None:
                    continue
                if only_disconnected and (
                    not session.disconnected
                    or session.unsaved_active
                    or session.unsaved_afk
                ):
                    continue
                del self._sessions[identity]
                removed.append(identity)
        return removed

    def get(self, identity: str) -> Session | None:
        """Return a copy of the session stored under ``identity``."""

        with self._lock:
            session = self._sessions.get(identity)
            return replace(session) if session is not None else None

    def sessions(self) -> List[Session]:
        """Return point-in-time copies of every tracked session."""

        with self._lock:
            return [replace(session) for session in self._sessions.values()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __iter__(self) -> Iterator[Session]:
        return iter(self.sessions())


__all__ = ["FlushRequest", "PollSummary", "Session", "SessionTracker"]
