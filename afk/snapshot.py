"""Typed player records parsed from relayed server snapshots."""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping

from .constants import UNKNOWN_TEAM

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayerRecord:
    """One player as observed in a single server snapshot."""

    name: str
    score: float = 0
    team: int = UNKNOWN_TEAM

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "PlayerRecord | None":
        """Create a :class:`PlayerRecord` from a relay payload dictionary.

        Returns ``None`` when the entry carries no usable name. ``score`` and
        ``team`` may be reported at the top level or inside the ``raw``
        sub-object emitted by the game-server query library; top-level values
        win.
        """

        raw_name = data.get("name")
        if not isinstance(raw_name, str) or not raw_name.strip():
            return None
        raw = data.get("raw")
        nested: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}

        def _pick(key: str) -> Any:
            value = data.get(key)
            if value is None:
                value = nested.get(key)
            return value

        def _normalize_score(value: object) -> float:
            if isinstance(value, bool):
                return 0
            if isinstance(value, (int, float)):
                return value
            if isinstance(value, str):
                try:
                    return float(value.strip())
                except ValueError:
                    return 0
            return 0

        def _normalize_team(value: object) -> int:
            if isinstance(value, bool):
                return UNKNOWN_TEAM
            if isinstance(value, int):
                return value
            if isinstance(value, float) and value.is_integer():
                return int(value)
            if isinstance(value, str):
                try:
                    return int(value.strip())
                except ValueError:
                    return UNKNOWN_TEAM
            return UNKNOWN_TEAM

        return cls(
            name=raw_name,
            score=_normalize_score(_pick("score")),
            team=_normalize_team(_pick("team")),
        )


def parse_snapshot(entries: Iterable[Any]) -> List[PlayerRecord]:
    """Return the valid :class:`PlayerRecord` entries found in ``entries``."""

    records: List[PlayerRecord] = []
    for entry in entries:
        if isinstance(entry, PlayerRecord):
            records.append(entry)
            continue
        if not isinstance(entry, Mapping):
            logger.debug("Skipping non-mapping player entry: %r", entry)
            continue
        record = PlayerRecord.from_payload(entry)
        if record is None:
            logger.debug("Skipping player entry without a name: %r", entry)
            continue
        records.append(record)
    return records


__all__ = ["PlayerRecord", "parse_snapshot"]
