"""Drain unsaved session time into the durable player store."""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Dict, List

from afk.config import TrackerConfig
from afk.session_tracker import FlushRequest, SessionTracker

from .sqlite3_connector import SQLiteConnector

logger = logging.getLogger(__name__)


@dataclass
class FlushReport:
    """Summary of one flush pass over a tracker."""

    attempted: int = 0
    failed: List[str] = field(default_factory=list)
    evicted: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return self.attempted - len(self.failed)


class PersistenceFlusher:
    """Write pending session minutes to storage and evict departed players.

    Writes are best effort. Unsaved accumulators are zeroed when the batch is
    built, so a write that fails or times out loses its slice from the durable
    totals while the in-memory session totals stay intact. Failed writes are
    logged and not retried.
    """

    def __init__(
        self,
        connector: SQLiteConnector,
        *,
        max_workers: int = 4,
        write_timeout_seconds: float = 10.0,
        insert_missing: bool = True,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        if write_timeout_seconds <= 0:
            raise ValueError("write_timeout_seconds must be > 0")
        self.connector = connector
        self.max_workers = max_workers
        self.write_timeout_seconds = write_timeout_seconds
        self.insert_missing = insert_missing

    @classmethod
    def from_config(
        cls, connector: SQLiteConnector, config: TrackerConfig
    ) -> "PersistenceFlusher":
        return cls(
            connector,
            max_workers=config.flush_max_workers,
            write_timeout_seconds=config.write_timeout_seconds,
            insert_missing=config.insert_missing_players,
        )

    def _write(self, request: FlushRequest) -> bool:
        return self.connector.apply_minutes_delta(
            request.identity,
            request.active_minutes,
            request.afk_minutes,
            name=request.name,
            insert_missing=self.insert_missing,
        )

    def flush(self, tracker: SessionTracker) -> FlushReport:
        """Persist every pending session of ``tracker`` and evict departures.

        Only the drain and the eviction hold the tracker lock; polls keep
        running while the writes are in flight. The whole batch shares one
        deadline of ``write_timeout_seconds``.
        """

        report = FlushReport()
        requests = tracker.drain_unsaved()
        if not requests:
            return report
        report.attempted = len(requests)
        departed = [request.identity for request in requests if request.disconnected]

        executor = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(requests)),
            thread_name_prefix="afk-flush",
        )
        try:
            pending: Dict[Future, FlushRequest] = {
                executor.submit(self._write, request): request for request in requests
            }
            _, not_done = wait(pending, timeout=self.write_timeout_seconds)
            for future, request in pending.items():
                if future in not_done:
                    report.failed.append(request.identity)
                    logger.warning(
                        "Timed out after %.1fs persisting %s; outcome unknown",
                        self.write_timeout_seconds,
                        request.identity,
                    )
                    continue
                error = future.exception()
                if error is not None:
                    report.failed.append(request.identity)
                    logger.error(
                        "Failed to persist %.2f active / %.2f AFK minutes for %s",
                        request.active_minutes,
                        request.afk_minutes,
                        request.identity,
                        exc_info=error,
                    )
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        # A player who came back during the writes keeps their session.
        report.evicted = tracker.evict(departed, only_disconnected=True)

        logger.info(
            "Flushed stats for %d player(s); %d failed, %d evicted",
            report.attempted,
            len(report.failed),
            len(report.evicted),
        )
        return report


__all__ = ["FlushReport", "PersistenceFlusher"]
