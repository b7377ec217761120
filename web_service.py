"""Flask web service receiving relayed server snapshots and serving live AFK status."""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
from typing import Any, Dict, List, Mapping

from flask import Flask, Response, abort, request
from dotenv import load_dotenv

from afk.config import TrackerConfig, load_tracker_config
from afk.live_status import get_live_status
from afk.session_tracker import SessionTracker
from persistence.flush import PersistenceFlusher
from persistence.flush_scheduler import FlushScheduler
from persistence.sqlite3_connector import SQLiteConnector


logger = logging.getLogger(__name__)


load_dotenv()


# Expose the active configuration at module scope so tests can patch it.
current_config: TrackerConfig = load_tracker_config()


def _json_response(payload: Any, status: int = 200) -> Response:
    return Response(json.dumps(payload), status=status, mimetype="application/json")


def _open_connector(config: TrackerConfig) -> SQLiteConnector | None:
    """Return an initialised connector, or ``None`` when storage is unusable."""

    try:
        connector = SQLiteConnector(busy_timeout_seconds=config.write_timeout_seconds)
        connector.initialise()
    except (OSError, sqlite3.Error) as exc:
        logger.warning(
            "Player store unavailable (%s); running without persistence", exc
        )
        return None
    return connector


def _require_key(config: TrackerConfig, payload: Mapping[str, Any]) -> None:
    if config.api_key and payload.get("key") != config.api_key:
        logger.warning("Rejected request with an invalid API key from %s", request.remote_addr)
        abort(403)


def create_app(
    config: TrackerConfig | None = None,
    connector: SQLiteConnector | None = None,
    *,
    start_scheduler: bool = True,
) -> Flask:
    """Return a configured Flask application tracking player activity."""

    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    app = Flask(__name__)
    config_in_use = config or current_config
    if connector is None:
        connector = _open_connector(config_in_use)
    else:
        connector.initialise()
    trackers: Dict[int, SessionTracker] = {}
    trackers_lock = threading.Lock()

    def _all_trackers() -> List[SessionTracker]:
        with trackers_lock:
            return list(trackers.values())

    flusher = (
        PersistenceFlusher.from_config(connector, config_in_use)
        if connector is not None
        else None
    )
    scheduler: FlushScheduler | None = None
    if flusher is not None and config_in_use.flush_interval_seconds > 0:
        scheduler = FlushScheduler(
            flusher=flusher,
            trackers=_all_trackers,
            interval_seconds=config_in_use.flush_interval_seconds,
        )
        if start_scheduler:
            scheduler.start()
    app.config["FLUSH_SCHEDULER"] = scheduler

    def _tracker_for(server_port: int) -> SessionTracker:
        with trackers_lock:
            tracker = trackers.get(server_port)
            if tracker is None:
                tracker = SessionTracker.from_config(config_in_use)
                trackers[server_port] = tracker
                logger.info("Tracking new server on port %d", server_port)
            return tracker

    def _json_body() -> Dict[str, Any]:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            abort(400)
        return payload

    @app.route("/snapshots", methods=["POST"])
    def receive_snapshot() -> Response:
        payload = _json_body()
        _require_key(config_in_use, payload)
        try:
            server_port = int(payload.get("server_port"))
        except (TypeError, ValueError):
            abort(400)
        if payload.get("error"):
            logger.warning(
                "Server on port %d reported as %s; skipping poll",
                server_port,
                payload.get("error"),
            )
            return _json_response({"server_port": server_port, "skipped": True})
        players = payload.get("players", [])
        if not isinstance(players, list):
            abort(400)
        summary = _tracker_for(server_port).process_poll(players)
        logger.debug(
            "Processed poll for port %d: %d observed, %d new, %d disconnected",
            server_port,
            summary.observed,
            summary.created,
            summary.disconnected,
        )
        body = {"server_port": server_port, "skipped": False}
        body.update(summary.to_payload())
        return _json_response(body)

    @app.route("/status", methods=["GET"])
    def all_statuses() -> Response:
        with trackers_lock:
            items = sorted(trackers.items())
        payload = {
            "servers": {str(port): get_live_status(tracker) for port, tracker in items}
        }
        return _json_response(payload)

    @app.route("/status/<int:server_port>", methods=["GET"])
    def server_status(server_port: int) -> Response:
        with trackers_lock:
            tracker = trackers.get(server_port)
        if tracker is None:
            abort(404)
        return _json_response(get_live_status(tracker))

    @app.route("/flush", methods=["POST"])
    def flush_now() -> Response:
        payload = request.get_json(silent=True) or {}
        if not isinstance(payload, dict):
            abort(400)
        _require_key(config_in_use, payload)
        if flusher is None:
            abort(503)
        reports = []
        for tracker in _all_trackers():
            report = flusher.flush(tracker)
            reports.append(
                {
                    "attempted": report.attempted,
                    "failed": report.failed,
                    "evicted": report.evicted,
                }
            )
        return _json_response({"reports": reports})

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 8080)))
