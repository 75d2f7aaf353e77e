#!/usr/bin/env python3
from __future__ import annotations

from typing import Any, Iterable, Mapping

from conquest.models import GAME_CONFIG, Player

PLAYER_PALETTE: list[str] = list(GAME_CONFIG.player_palette)


def player_color(index: int) -> str:
    """Deterministic palette colour for a roster slot (wraps around)."""
    return PLAYER_PALETTE[index % len(PLAYER_PALETTE)]


def _field(entry: Any, *keys: str, default: Any = None) -> Any:
    for key in keys:
        if isinstance(entry, Mapping):
            if key in entry:
                return entry[key]
        elif hasattr(entry, key):
            return getattr(entry, key)
    return default


def build_roster(members: Iterable[Any]) -> list[Player]:
    """
    Build player records from lobby membership. Entries may be dicts
    ({"id", "name", "isAI"}) or objects with id/name/is_ai attributes.
    Roster order is turn order.
    """
    roster: list[Player] = []
    for idx, member in enumerate(members):
        player_id = str(_field(member, "id"))
        roster.append(
            Player(
                id=player_id,
                name=str(_field(member, "name", default=player_id)),
                color=player_color(idx),
                is_ai=bool(_field(member, "is_ai", "isAI", default=False)),
            )
        )
    return roster
