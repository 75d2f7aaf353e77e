#!/usr/bin/env python3
"""
Helpers for building public-facing snapshots from the in-memory game state,
and for rebuilding a state from a snapshot received over the wire.
"""
from __future__ import annotations

from typing import Any, Dict, List

from pydantic import ValidationError

from conquest.models import (
    SNAPSHOT_VERSION,
    GamePhase,
    GameState,
    Player,
    Point,
    SnapshotIn,
    Territory,
)


class SnapshotError(ValueError):
    """Raised when a snapshot is malformed or structurally inconsistent."""


def _point(p: Point) -> dict:
    return {"x": p.x, "y": p.y}


def snapshot_from_state(state: GameState) -> dict:
    """
    Generate a snapshot payload suitable for API/WebSocket consumers.
    """
    territories_payload = []
    for t in state.territories:
        territories_payload.append(
            {
                "id": t.id,
                "vertices": [_point(v) for v in t.vertices],
                "center": _point(t.center),
                "owner": t.owner,
                "troops": t.troops,
                "neighbors": list(t.neighbors),
            }
        )

    players_payload = []
    for p in state.players:
        players_payload.append(
            {
                "id": p.id,
                "name": p.name,
                "color": p.color,
                "isAI": p.is_ai,
                "isAlive": p.is_alive,
                "territoriesOwned": p.territories_owned,
                "totalTroops": p.total_troops,
            }
        )

    return {
        "version": SNAPSHOT_VERSION,
        "territories": territories_payload,
        "players": players_payload,
        "currentTurn": state.current_turn,
        "turnTimeLimit": state.turn_time_limit,
        "turnStartTime": state.turn_start_time,
        "gamePhase": state.game_phase,
        "winner": state.winner,
        "mapWidth": state.map_width,
        "mapHeight": state.map_height,
        "territoryCount": state.territory_count,
        "troopGenerationRate": state.troop_generation_rate,
    }


def _check_structure(parsed: SnapshotIn) -> None:
    if parsed.version != SNAPSHOT_VERSION:
        raise SnapshotError(f"unsupported snapshot version {parsed.version}")

    count = len(parsed.territories)
    ids = [t.id for t in parsed.territories]
    if ids != list(range(count)):
        raise SnapshotError("territory ids must be dense and ordered 0..N-1")

    neighbor_sets: List[set[int]] = []
    for t in parsed.territories:
        for nid in t.neighbors:
            if not 0 <= nid < count or nid == t.id:
                raise SnapshotError(f"territory {t.id} has invalid neighbor {nid}")
        neighbor_sets.append(set(t.neighbors))
    for t in parsed.territories:
        for nid in t.neighbors:
            if t.id not in neighbor_sets[nid]:
                raise SnapshotError(f"adjacency {t.id}->{nid} is not symmetric")

    player_ids = [p.id for p in parsed.players]
    if len(set(player_ids)) != len(player_ids):
        raise SnapshotError("duplicate player ids")
    roster = set(player_ids)
    for t in parsed.territories:
        if t.owner is not None and t.owner not in roster:
            raise SnapshotError(f"territory {t.id} owned by unknown player {t.owner}")
    if parsed.winner is not None and parsed.winner not in roster:
        raise SnapshotError(f"winner {parsed.winner} is not in the roster")

    # player aggregates are derived from ownership and must agree with it
    owned: Dict[str, int] = {pid: 0 for pid in player_ids}
    troops: Dict[str, int] = {pid: 0 for pid in player_ids}
    for t in parsed.territories:
        if t.owner is not None:
            owned[t.owner] += 1
            troops[t.owner] += t.troops
    for p in parsed.players:
        if p.territories_owned != owned[p.id] or p.total_troops != troops[p.id]:
            raise SnapshotError(f"player {p.id} totals do not match territory ownership")
        # lobby rosters have not been dealt territories yet
        if parsed.game_phase != GamePhase.LOBBY and p.is_alive != (owned[p.id] > 0):
            raise SnapshotError(f"player {p.id} alive flag does not match territory ownership")


def state_from_snapshot(snapshot: Any) -> GameState:
    """
    Rebuild a GameState from a snapshot dict. Malformed input raises
    SnapshotError instead of producing a corrupt state.
    """
    try:
        parsed = SnapshotIn.model_validate(snapshot)
    except ValidationError as exc:
        raise SnapshotError(f"invalid snapshot: {exc}") from exc
    _check_structure(parsed)

    territories = [
        Territory(
            id=t.id,
            vertices=[Point(v.x, v.y) for v in t.vertices],
            center=Point(t.center.x, t.center.y),
            owner=t.owner,
            troops=t.troops,
            neighbors=list(t.neighbors),
        )
        for t in parsed.territories
    ]
    players = [
        Player(
            id=p.id,
            name=p.name,
            color=p.color,
            is_ai=p.is_ai,
            is_alive=p.is_alive,
            territories_owned=p.territories_owned,
            total_troops=p.total_troops,
        )
        for p in parsed.players
    ]

    optional: Dict[str, Any] = {}
    if parsed.territory_count is not None:
        optional["territory_count"] = parsed.territory_count
    if parsed.troop_generation_rate is not None:
        optional["troop_generation_rate"] = parsed.troop_generation_rate

    return GameState(
        territories=territories,
        players=players,
        current_turn=parsed.current_turn,
        turn_time_limit=parsed.turn_time_limit,
        turn_start_time=parsed.turn_start_time,
        game_phase=parsed.game_phase,
        winner=parsed.winner,
        map_width=parsed.map_width,
        map_height=parsed.map_height,
        **optional,
    )


def serialize(state: GameState) -> dict:
    return snapshot_from_state(state)


def deserialize(snapshot: Any) -> GameState:
    return state_from_snapshot(snapshot)
