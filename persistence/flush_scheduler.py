"""Background scheduler that flushes session trackers on a fixed cadence."""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, List

from afk.session_tracker import SessionTracker

from .flush import FlushReport, PersistenceFlusher

logger = logging.getLogger(__name__)


class FlushScheduler:
    """Periodically flush every tracker returned by ``trackers``."""

    def __init__(
        self,
        *,
        flusher: PersistenceFlusher,
        trackers: Callable[[], Iterable[SessionTracker]],
        interval_seconds: float,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.flusher = flusher
        self.trackers = trackers
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="flush-scheduler", daemon=True)
        self._thread.start()
        logger.info("Flush scheduler started (every %.1fs)", self.interval_seconds)

    def stop(self, *, final_flush: bool = True) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
        if final_flush:
            self.run_once()

    def run_once(self) -> List[FlushReport]:
        """Flush every tracker once; a failing tracker does not stop the rest."""

        reports: List[FlushReport] = []
        for tracker in list(self.trackers()):
            try:
                reports.append(self.flusher.flush(tracker))
            except Exception:
                logger.exception("Flush pass failed for tracker %r", tracker)
        return reports

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.run_once()
            except Exception:
                logger.exception("Flush scheduler encountered an error")


__all__ = ["FlushScheduler"]
