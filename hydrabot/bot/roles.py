"""
StarCraft race and rank roles.

Guild members pick roles such as "Zerg" or "B rank". These are read back
to show a race and rank emoji next to each user and to sort user lists.
"""

from __future__ import annotations

from typing import Any

# Sort order of races
RACE_ORDER = {
    "terran": 0,
    "protoss": 1,
    "zerg": 2,
    "random": 3,
    "racepicker": 4,
    "racepick/random": 5,
    "raceless": 6,
    "unknown": 100,
}

# Sort order of ladder ranks
RANK_ORDER = {
    "s": 0,
    "a": 1,
    "b": 2,
    "c": 3,
    "d": 4,
    "e": 5,
    "f": 6,
    "u": 7,
    "unknown": 100,
}

RANKS = ("S", "A", "B", "C", "D", "E", "F", "U")
RACES = ("terran", "protoss", "zerg", "racepick/random", "raceless")


def detect_rank_role(role_name: str) -> str | None:
    """Return the rank letter for roles like 'B rank', else None."""
    parts = role_name.strip().split()
    if len(parts) != 2 or parts[1] != "rank":
        return None
    if parts[0] in RANKS:
        return parts[0].lower()
    return None


def detect_race_role(role_name: str) -> str | None:
    """Return the race for roles like 'Zerg', else None."""
    name = role_name.strip().lower()
    return name if name in RACES else None


def detect_role_type(role_name: str) -> dict[str, Any] | None:
    """Return race or rank metadata for a role, or None if it's neither."""
    if race := detect_race_role(role_name):
        return {"race": race, "race_order": RACE_ORDER.get(race, RACE_ORDER["unknown"])}
    if rank := detect_rank_role(role_name):
        return {"rank": rank, "rank_order": RANK_ORDER.get(rank, RANK_ORDER["unknown"])}
    return None


def role_metadata(role_names: list[str]) -> dict[str, Any]:
    """Merge the race and rank metadata of all of a member's roles."""
    meta: dict[str, Any] = {}
    for name in role_names:
        meta.update(detect_role_type(name) or {})
    return meta
