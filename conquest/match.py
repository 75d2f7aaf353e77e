#!/usr/bin/env python3
"""
Lobby and match registry.

Each running match owns one GameEngine, the bots for its AI players and an
asyncio turn timer. All engine calls for a match happen on the event loop
that drives it, so they are naturally serialized.
"""
from __future__ import annotations

import asyncio
import secrets
import string
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from conquest.bots import AIBot, DIFFICULTIES
from conquest.engine import GameEngine
from conquest.models import AttackResult, GamePhase

Publisher = Callable[[str, dict], Awaitable[None]]

DEFAULT_MAX_PLAYERS = 8
MIN_PLAYERS = 2
_ID_ALPHABET = string.ascii_lowercase + string.digits


class LobbyError(ValueError):
    """A lobby or match request the caller is not allowed to make."""


async def _discard(event: str, payload: dict) -> None:
    return None


@dataclass
class LobbyMember:
    id: str
    name: str
    is_ready: bool = False
    is_ai: bool = False
    difficulty: str = "medium"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "isReady": self.is_ready,
            "isAI": self.is_ai,
            "difficulty": self.difficulty if self.is_ai else None,
        }


@dataclass
class Lobby:
    id: str
    host: str
    players: List[LobbyMember] = field(default_factory=list)
    game_started: bool = False
    max_players: int = DEFAULT_MAX_PLAYERS

    def member(self, player_id: str) -> Optional[LobbyMember]:
        for m in self.players:
            if m.id == player_id:
                return m
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "host": self.host,
            "players": [m.to_dict() for m in self.players],
            "gameStarted": self.game_started,
            "maxPlayers": self.max_players,
        }


class Match:
    def __init__(
        self,
        match_id: str,
        engine: GameEngine,
        bots: Dict[str, AIBot],
        publish: Publisher = _discard,
        ai_action_delay: float = 0.0,
        ai_turn_end_delay: float = 0.0,
        on_finished: Optional[Callable[["Match"], None]] = None,
    ) -> None:
        self.id = match_id
        self.engine = engine
        self.bots = bots
        self.publish = publish
        self.ai_action_delay = ai_action_delay
        self.ai_turn_end_delay = ai_turn_end_delay
        self.on_finished = on_finished
        self.closed = False
        self._timer: Optional[asyncio.Task] = None
        self._ai_task: Optional[asyncio.Task] = None

    @property
    def state(self):
        return self.engine.state

    def snapshot(self) -> dict:
        return self.engine.serialize()

    # --- timers ---

    def _cancel_timer(self) -> None:
        timer = self._timer
        self._timer = None
        if timer is not None and timer is not asyncio.current_task() and not timer.done():
            timer.cancel()

    def _arm_timer(self) -> None:
        self._cancel_timer()
        turn = self.state.current_turn
        self._timer = asyncio.create_task(self._turn_timeout(turn))

    async def _turn_timeout(self, turn: int) -> None:
        await asyncio.sleep(self.state.turn_time_limit / 1000)
        if self.closed or turn != self.state.current_turn:
            return
        print(f"[game-server] match={self.id} turn={turn} timed out")
        await self.handle_turn_end(expected_turn=turn)

    def _schedule_ai_turn(self) -> None:
        current = self.engine.get_current_player()
        if current is None or current.id not in self.bots:
            return
        self._ai_task = asyncio.create_task(self.run_ai_turn(self.state.current_turn))

    # --- lifecycle ---

    async def start(self) -> None:
        await self.publish("gameStarted", self.snapshot())
        self._arm_timer()
        self._schedule_ai_turn()

    async def _finish(self) -> None:
        self._cancel_timer()
        self.closed = True
        winner = None
        for player in self.snapshot()["players"]:
            if player["id"] == self.state.winner:
                winner = player
        await self.publish("gameEnded", {"winner": winner})
        if self.on_finished is not None:
            self.on_finished(self)

    def close(self) -> None:
        self.closed = True
        self._cancel_timer()
        task = self._ai_task
        self._ai_task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    # --- player actions ---

    def _require_current(self, player_id: str) -> None:
        current = self.engine.get_current_player()
        if current is None or current.id != player_id:
            raise LobbyError("Not your turn")

    async def attack(self, player_id: str, from_id: Any, to_id: Any) -> AttackResult:
        self._require_current(player_id)
        result = self.engine.process_attack(from_id, to_id, player_id)
        if result.success:
            await self.publish("attackResult", {**result.to_dict(), "playerId": player_id})
            await self.publish("gameStateUpdate", self.snapshot())
            if self.state.game_phase == GamePhase.ENDED:
                await self._finish()
        return result

    async def end_turn(self, player_id: str) -> None:
        self._require_current(player_id)
        await self.handle_turn_end(expected_turn=self.state.current_turn)

    async def handle_turn_end(self, expected_turn: Optional[int] = None) -> None:
        """
        Advance exactly one turn. A stale caller (timer or AI task from an
        already-advanced turn) is ignored.
        """
        if self.closed or self.state.game_phase != GamePhase.PLAYING:
            return
        if expected_turn is not None and expected_turn != self.state.current_turn:
            return

        self._cancel_timer()
        self.engine.next_turn()
        await self.publish("gameStateUpdate", self.snapshot())

        if self.state.game_phase == GamePhase.ENDED:
            await self._finish()
            return

        self._arm_timer()
        self._schedule_ai_turn()

    async def run_ai_turn(self, turn: int) -> None:
        if self.ai_action_delay:
            await asyncio.sleep(self.ai_action_delay)
        if self.closed or turn != self.state.current_turn:
            return
        current = self.engine.get_current_player()
        bot = self.bots.get(current.id) if current else None
        if current is None or bot is None:
            return

        for _ in range(bot.actions_per_turn()):
            if self.closed or turn != self.state.current_turn:
                return
            if self.state.game_phase != GamePhase.PLAYING:
                break
            decision = bot.make_decision(self.state, current.id)
            if decision is None or decision.score <= 0:
                continue
            result = self.engine.process_attack(decision.from_id, decision.to_id, current.id)
            await self.publish("attackResult", {**result.to_dict(), "playerId": current.id})

        await self.publish("gameStateUpdate", self.snapshot())
        if self.state.game_phase == GamePhase.ENDED:
            await self._finish()
            return

        if self.ai_turn_end_delay:
            await asyncio.sleep(self.ai_turn_end_delay)
        await self.handle_turn_end(expected_turn=turn)


class MatchRegistry:
    """
    Explicit registry of lobbies and running matches, keyed by lobby id.
    A match is created when its lobby starts and removed when it ends.
    """

    def __init__(
        self,
        publisher_for: Optional[Callable[[str], Publisher]] = None,
        max_players: int = DEFAULT_MAX_PLAYERS,
        ai_action_delay: float = 0.0,
        ai_turn_end_delay: float = 0.0,
        engine_options: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.publisher_for = publisher_for or (lambda _room: _discard)
        self.max_players = max_players
        self.ai_action_delay = ai_action_delay
        self.ai_turn_end_delay = ai_turn_end_delay
        self.engine_options = dict(engine_options or {})
        self.lobbies: Dict[str, Lobby] = {}
        self.matches: Dict[str, Match] = {}

    def _gen_id(self) -> str:
        while True:
            lid = "".join(secrets.choice(_ID_ALPHABET) for _ in range(7))
            if lid not in self.lobbies:
                return lid

    def get_lobby(self, lobby_id: str) -> Lobby:
        lobby = self.lobbies.get(lobby_id)
        if lobby is None:
            raise LobbyError("Lobby not found")
        return lobby

    def get_match(self, match_id: str) -> Match:
        match = self.matches.get(match_id)
        if match is None:
            raise LobbyError("Game not found")
        return match

    # --- lobby ---

    def create_lobby(self, host_id: str, host_name: str) -> Lobby:
        lobby = Lobby(
            id=self._gen_id(),
            host=host_id,
            players=[LobbyMember(id=host_id, name=host_name)],
            max_players=self.max_players,
        )
        self.lobbies[lobby.id] = lobby
        print(f"[game-server] lobby created id={lobby.id} host={host_name}")
        return lobby

    def join_lobby(self, lobby_id: str, player_id: str, name: str) -> Lobby:
        lobby = self.get_lobby(lobby_id)
        if lobby.game_started:
            raise LobbyError("Game already started")
        if lobby.member(player_id) is not None:
            return lobby
        if len(lobby.players) >= lobby.max_players:
            raise LobbyError("Lobby is full")
        lobby.players.append(LobbyMember(id=player_id, name=name))
        print(f"[game-server] player {name} joined lobby {lobby.id}")
        return lobby

    def add_bot(self, lobby_id: str, requester_id: str, difficulty: str = "medium") -> Lobby:
        lobby = self.get_lobby(lobby_id)
        if lobby.host != requester_id:
            raise LobbyError("Not authorized")
        if lobby.game_started:
            raise LobbyError("Game already started")
        if len(lobby.players) >= lobby.max_players:
            raise LobbyError("Lobby is full")
        if difficulty not in DIFFICULTIES:
            raise LobbyError(f"Unknown difficulty {difficulty}")
        bot_number = sum(1 for m in lobby.players if m.is_ai) + 1
        lobby.players.append(
            LobbyMember(
                id=self._gen_id(),
                name=f"Bot {bot_number}",
                is_ready=True,
                is_ai=True,
                difficulty=difficulty,
            )
        )
        return lobby

    def toggle_ready(self, lobby_id: str, player_id: str) -> Lobby:
        lobby = self.get_lobby(lobby_id)
        member = lobby.member(player_id)
        if member is not None and not member.is_ai:
            member.is_ready = not member.is_ready
        return lobby

    async def start_game(self, lobby_id: str, requester_id: str) -> Match:
        lobby = self.get_lobby(lobby_id)
        if lobby.host != requester_id:
            raise LobbyError("Not authorized")
        if lobby.game_started:
            raise LobbyError("Game already started")
        if len(lobby.players) < MIN_PLAYERS:
            raise LobbyError("Need at least 2 players")
        if not all(m.is_ai or m.is_ready for m in lobby.players):
            raise LobbyError("Not all players are ready")

        engine = GameEngine(**self.engine_options)
        engine.initialize_game(
            [{"id": m.id, "name": m.name, "isAI": m.is_ai} for m in lobby.players]
        )
        bots = {m.id: AIBot(m.difficulty) for m in lobby.players if m.is_ai}
        match = Match(
            match_id=lobby.id,
            engine=engine,
            bots=bots,
            publish=self.publisher_for(lobby.id),
            ai_action_delay=self.ai_action_delay,
            ai_turn_end_delay=self.ai_turn_end_delay,
            on_finished=self._match_finished,
        )
        lobby.game_started = True
        self.matches[lobby.id] = match
        print(f"[game-server] match started id={lobby.id} players={len(lobby.players)}")
        await match.start()
        return match

    def _match_finished(self, match: Match) -> None:
        self.remove_match(match.id)

    def remove_match(self, match_id: str) -> None:
        match = self.matches.pop(match_id, None)
        self.lobbies.pop(match_id, None)
        if match is not None:
            match.close()
            print(f"[game-server] match removed id={match_id}")

    def remove_player(self, player_id: str) -> List[Lobby]:
        """
        Drop a disconnected player from lobbies that have not started.
        Returns the lobbies that changed and still exist. In-game players keep
        their roster slot.
        """
        changed: List[Lobby] = []
        for lobby_id, lobby in list(self.lobbies.items()):
            if lobby.game_started:
                if lobby.member(player_id) is not None:
                    print(f"[game-server] player {player_id} disconnected from match {lobby_id}")
                continue
            member = lobby.member(player_id)
            if member is None:
                continue
            lobby.players.remove(member)
            if lobby.host == player_id:
                humans = [m for m in lobby.players if not m.is_ai]
                if not humans:
                    del self.lobbies[lobby_id]
                    continue
                lobby.host = humans[0].id
            changed.append(lobby)
        return changed
