# SPDX-License-Identifier: GPL-3.0-or-later
"""Command-line replay of recorded server snapshots through the AFK tracker."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import List, Sequence

import yaml

from afk.config import load_tracker_config
from afk.live_status import get_live_status
from afk.session_tracker import SessionTracker
from persistence.flush import PersistenceFlusher
from persistence.sqlite3_connector import sqlite_connector


logger = logging.getLogger(__name__)


def _load_yaml(path: str) -> object:
    """Return parsed YAML content from ``path`` or an empty structure."""

    with open(path, "r", encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def _snapshot_entries(payload: object) -> List[dict]:
    """Return the ordered snapshot documents found in a YAML payload.

    Accepts either a bare list or a mapping with a ``snapshots`` list. Each
    document needs a numeric ``ts`` and a ``players`` list; anything else is
    skipped with a warning.
    """

    if isinstance(payload, dict):
        payload = payload.get("snapshots", [])
    if not isinstance(payload, list):
        return []
    entries: List[dict] = []
    for index, entry in enumerate(payload):
        if not isinstance(entry, dict):
            logger.warning("Skipping snapshot #%d: not a mapping", index)
            continue
        try:
            ts = float(entry.get("ts"))
        except (TypeError, ValueError):
            logger.warning("Skipping snapshot #%d: missing numeric ts", index)
            continue
        players = entry.get("players", [])
        if not isinstance(players, list):
            logger.warning("Skipping snapshot #%d: players is not a list", index)
            continue
        entries.append({"ts": ts, "players": players})
    return entries


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Replay recorded snapshots and print the resulting live status."
    )
    parser.add_argument("snapshots", help="YAML file with a list of {ts, players} entries")
    parser.add_argument("--config", help="Tracker configuration YAML", default=None)
    parser.add_argument("--db", help="SQLite file to flush totals into", default=None)
    parser.add_argument(
        "--flush-every",
        type=int,
        default=0,
        help="Flush after every N snapshots (requires --db); 0 flushes only at the end",
    )
    return parser


def replay(
    entries: Sequence[dict],
    tracker: SessionTracker,
    flusher: PersistenceFlusher | None = None,
    flush_every: int = 0,
) -> List[dict]:
    """Feed ``entries`` to ``tracker`` and return the final live status."""

    for index, entry in enumerate(entries, 1):
        tracker.process_poll(entry["players"], now=entry["ts"])
        if flusher is not None and flush_every > 0 and index % flush_every == 0:
            flusher.flush(tracker)
    status = get_live_status(tracker)
    if flusher is not None:
        flusher.flush(tracker)
    return status


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    args = _build_parser().parse_args(argv)
    config = load_tracker_config(args.config)
    try:
        entries = _snapshot_entries(_load_yaml(args.snapshots))
    except (OSError, yaml.YAMLError) as exc:
        logger.error("Could not read snapshots from %s: %s", args.snapshots, exc)
        return 1
    entries.sort(key=lambda entry: entry["ts"])
    tracker = SessionTracker.from_config(config)
    if args.db:
        with sqlite_connector(args.db) as connector:
            flusher = PersistenceFlusher.from_config(connector, config)
            status = replay(entries, tracker, flusher, args.flush_every)
    else:
        status = replay(entries, tracker)
    json.dump(status, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
