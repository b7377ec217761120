"""Common constants used throughout the AFK tracker package."""

# SPDX-License-Identifier: GPL-3.0-or-later

DEFAULT_IDENTITY_PREFIX = "NAME"

STATUS_ACTIVE = "ACTIVE"
STATUS_INACTIVE_ESTIMATED = "INACTIVE_ESTIMATED"

# Team reported when the snapshot carries no team information.
UNKNOWN_TEAM = -1
# CS 1.6 team ids: 0 unassigned, 1 terrorists, 2 counter-terrorists, 3 spectators.
NON_PLAYING_TEAMS = (0, 3)

__all__ = [
    "DEFAULT_IDENTITY_PREFIX",
    "NON_PLAYING_TEAMS",
    "STATUS_ACTIVE",
    "STATUS_INACTIVE_ESTIMATED",
    "UNKNOWN_TEAM",
]
