# SPDX-License-Identifier: GPL-3.0-or-later

import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from afk.constants import UNKNOWN_TEAM
from afk.snapshot import PlayerRecord, parse_snapshot


def test_team_and_score_read_from_raw_object():
    record = PlayerRecord.from_payload({"name": "Bob", "raw": {"team": 2, "score": 7}})

    assert record == PlayerRecord(name="Bob", score=7, team=2)


def test_top_level_values_take_precedence_over_raw():
    record = PlayerRecord.from_payload(
        {"name": "Bob", "score": 3, "team": 1, "raw": {"team": 2, "score": 7}}
    )

    assert record.score == 3
    assert record.team == 1


def test_missing_fields_use_defaults():
    record = PlayerRecord.from_payload({"name": "Bob"})

    assert record.score == 0
    assert record.team == UNKNOWN_TEAM


def test_malformed_values_fall_back_to_defaults():
    record = PlayerRecord.from_payload(
        {"name": "Bob", "score": "lots", "team": "blue", "raw": "garbage"}
    )

    assert record.score == 0
    assert record.team == UNKNOWN_TEAM


def test_numeric_strings_are_accepted():
    record = PlayerRecord.from_payload({"name": "Bob", "score": " 12 ", "team": "3"})

    assert record.score == 12.0
    assert record.team == 3


def test_parse_snapshot_drops_unnamed_entries():
    records = parse_snapshot(
        [
            {"name": "Alice", "score": 1},
            {"name": None},
            {"score": 4},
            "not a player",
            PlayerRecord(name="Carol"),
        ]
    )

    assert [record.name for record in records] == ["Alice", "Carol"]
