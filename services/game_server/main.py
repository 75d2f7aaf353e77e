#!/usr/bin/env python3
"""
Game server: lobbies, matches and live state over a WebSocket.

- Clients speak JSON frames {"type": <event>, ...fields} on /ws.
- Server frames are {"type": <event>, "data": <payload>}; every match
  mutation is followed by a full gameStateUpdate snapshot for the room.
- A deterministic map preview is available without starting a match.
"""
from __future__ import annotations

import json
import uuid
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from conquest.helper.map_helpers import MAP_HEIGHT, MAP_WIDTH, generate_map, make_rng
from conquest.match import LobbyError, MatchRegistry, Publisher
from conquest.models import GameServerSettings, GameState
from conquest.state_utils import snapshot_from_state


config = GameServerSettings()


class ConnectionManager:
    """Tracks open sockets and which room (lobby id) each one listens to."""

    def __init__(self) -> None:
        self.connections: Dict[str, WebSocket] = {}
        self.rooms: Dict[str, set[str]] = {}

    async def connect(self, ws: WebSocket) -> str:
        await ws.accept()
        client_id = uuid.uuid4().hex[:12]
        self.connections[client_id] = ws
        return client_id

    def disconnect(self, client_id: str) -> None:
        self.connections.pop(client_id, None)
        for room, members in list(self.rooms.items()):
            members.discard(client_id)
            if not members:
                del self.rooms[room]

    def join(self, room: str, client_id: str) -> None:
        self.rooms.setdefault(room, set()).add(client_id)

    async def send(self, client_id: str, event: str, data: Any) -> None:
        ws = self.connections.get(client_id)
        if ws is None:
            return
        try:
            await ws.send_json({"type": event, "data": data})
        except (WebSocketDisconnect, RuntimeError):
            self.disconnect(client_id)

    async def broadcast(self, room: str, event: str, data: Any) -> None:
        for client_id in list(self.rooms.get(room, ())):
            await self.send(client_id, event, data)

    def publisher_for(self, room: str) -> Publisher:
        async def publish(event: str, data: dict) -> None:
            await self.broadcast(room, event, data)

        return publish


manager = ConnectionManager()
registry = MatchRegistry(
    publisher_for=manager.publisher_for,
    max_players=config.max_lobby_players,
    ai_action_delay=config.ai_action_delay,
    ai_turn_end_delay=config.ai_turn_end_delay,
)

app = FastAPI(title="Conquest Game Server", version="0.1.0")

origins = [o.strip() for o in config.cors_allow_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Inbound messages ----------


class _Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateLobbyIn(_Message):
    player_name: str = Field(..., alias="playerName", min_length=1, max_length=32)


class JoinLobbyIn(_Message):
    lobby_id: str = Field(..., alias="lobbyId")
    player_name: str = Field(..., alias="playerName", min_length=1, max_length=32)


class LobbyActionIn(_Message):
    lobby_id: str = Field(..., alias="lobbyId")


class AddBotIn(LobbyActionIn):
    difficulty: str = "medium"


class AttackIn(_Message):
    room_id: str = Field(..., alias="roomId")
    from_id: int = Field(..., alias="fromId")
    to_id: int = Field(..., alias="toId")


class EndTurnIn(_Message):
    room_id: str = Field(..., alias="roomId")


async def _handle_message(client_id: str, message: dict) -> None:
    kind = message.get("type")

    if kind == "createLobby":
        create = CreateLobbyIn.model_validate(message)
        lobby = registry.create_lobby(client_id, create.player_name)
        manager.join(lobby.id, client_id)
        await manager.send(client_id, "lobbyCreated", lobby.to_dict())
    elif kind == "joinLobby":
        join = JoinLobbyIn.model_validate(message)
        lobby = registry.join_lobby(join.lobby_id, client_id, join.player_name)
        manager.join(lobby.id, client_id)
        await manager.broadcast(lobby.id, "lobbyUpdate", lobby.to_dict())
    elif kind == "addBot":
        add = AddBotIn.model_validate(message)
        lobby = registry.add_bot(add.lobby_id, client_id, add.difficulty)
        await manager.broadcast(lobby.id, "lobbyUpdate", lobby.to_dict())
    elif kind == "toggleReady":
        action = LobbyActionIn.model_validate(message)
        lobby = registry.toggle_ready(action.lobby_id, client_id)
        await manager.broadcast(lobby.id, "lobbyUpdate", lobby.to_dict())
    elif kind == "startGame":
        action = LobbyActionIn.model_validate(message)
        await registry.start_game(action.lobby_id, client_id)
    elif kind == "attack":
        attack = AttackIn.model_validate(message)
        match = registry.get_match(attack.room_id)
        result = await match.attack(client_id, attack.from_id, attack.to_id)
        if not result.success:
            await manager.send(client_id, "error", {"message": result.error})
    elif kind == "endTurn":
        end = EndTurnIn.model_validate(message)
        match = registry.get_match(end.room_id)
        await match.end_turn(client_id)
    else:
        raise LobbyError(f"Unknown message type {kind!r}")


@app.websocket("/ws")
async def ws(websocket: WebSocket):
    client_id = await manager.connect(websocket)
    print(f"[game-server] player connected: {client_id}")
    await manager.send(client_id, "connected", {"id": client_id})
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                message = None
            if not isinstance(message, dict):
                await manager.send(client_id, "error", {"message": "Malformed message"})
                continue
            try:
                await _handle_message(client_id, message)
            except ValidationError:
                await manager.send(client_id, "error", {"message": "Malformed message"})
            except LobbyError as exc:
                await manager.send(client_id, "error", {"message": str(exc)})
    except WebSocketDisconnect:
        pass
    finally:
        print(f"[game-server] player disconnected: {client_id}")
        manager.disconnect(client_id)
        for lobby in registry.remove_player(client_id):
            await manager.broadcast(lobby.id, "lobbyUpdate", lobby.to_dict())


# ---------- HTTP ----------


@app.get("/health")
async def health() -> Dict[str, Any]:
    return {
        "status": "ok",
        "lobbies": len(registry.lobbies),
        "matches": len(registry.matches),
    }


@app.get("/matches/{match_id}/snapshot")
async def match_snapshot(match_id: str) -> Dict[str, Any]:
    try:
        match = registry.get_match(match_id)
    except LobbyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return match.snapshot()


@app.get("/preview")
async def preview(
    seed: Optional[str] = None,
    territories: int = Query(60, ge=2, le=200),
) -> Dict[str, Any]:
    """
    Generate a deterministic preview of a map without starting a match.
    """
    rng, effective_seed = make_rng(seed)
    state = GameState(
        territories=generate_map(territories, MAP_WIDTH, MAP_HEIGHT, rng),
        map_width=MAP_WIDTH,
        map_height=MAP_HEIGHT,
        territory_count=territories,
        map_seed=effective_seed,
    )
    snap = snapshot_from_state(state)
    snap["seed"] = effective_seed
    return snap


if __name__ == "__main__":
    uvicorn.run(
        "services.game_server.main:app",
        host=config.host,
        port=config.port,
        reload=False,
    )
