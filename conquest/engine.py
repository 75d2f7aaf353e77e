#!/usr/bin/env python3
from __future__ import annotations

import math
import random
import time
from typing import Any, Callable, Iterable, List, Optional

from conquest.helper.map_helpers import generate_map, make_rng
from conquest.helper.players_helper import build_roster
from conquest.state_utils import snapshot_from_state, state_from_snapshot
from conquest.models import GAME_CONFIG
from conquest.models import AttackResult, GamePhase, GameState, Player


# Turn tuning
DEFAULT_TURN_TIME_LIMIT: int = GAME_CONFIG.turn_modifiers.turn_time_limit  # ms
DEFAULT_TROOP_GENERATION_RATE: int = GAME_CONFIG.turn_modifiers.troop_generation_rate

# Starting deal
STARTING_TROOPS: int = GAME_CONFIG.setup_modifiers.starting_troops
NEUTRAL_TROOPS: int = GAME_CONFIG.setup_modifiers.neutral_troops
SHARE_DIVISOR: int = GAME_CONFIG.setup_modifiers.share_divisor  # half the map starts neutral

# Combat tuning
ROLL_MIN: float = GAME_CONFIG.combat_modifiers.roll_minimum
ROLL_MAX: float = GAME_CONFIG.combat_modifiers.roll_maximum
CONQUEST_MOVE_RATIO: float = GAME_CONFIG.combat_modifiers.conquest_move_ratio
SURVIVOR_RATIO: float = GAME_CONFIG.combat_modifiers.survivor_ratio
FAILED_ATTACK_LOSS_RATIO: float = GAME_CONFIG.combat_modifiers.failed_attack_loss_ratio
FAILED_DEFENSE_LOSS_RATIO: float = GAME_CONFIG.combat_modifiers.failed_defense_loss_ratio


def _now_ms() -> int:
    return int(time.time() * 1000)


def _pick(value: Any, default: Any) -> Any:
    return default if value is None else value


# ---------- Game State Engine ----------


class GameEngine:
    """
    Sole owner of one match's authoritative GameState.

    Calls must be serialized by the caller (one engine per match, one caller
    at a time); nothing in here suspends mid-mutation.
    """

    def __init__(
        self,
        turn_time_limit: Optional[int] = None,
        map_width: Optional[int] = None,
        map_height: Optional[int] = None,
        territory_count: Optional[int] = None,
        troop_generation_rate: Optional[int] = None,
        seed: Optional[object] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        if rng is None:
            rng, effective_seed = make_rng(seed)
        else:
            # injected rng carries its own state; no seed to report
            effective_seed = None
        self.rng = rng
        self.clock = clock or _now_ms
        self.state = GameState(
            turn_time_limit=_pick(turn_time_limit, DEFAULT_TURN_TIME_LIMIT),
            turn_start_time=self.clock(),
            map_width=_pick(map_width, GAME_CONFIG.map_modifiers.map_width),
            map_height=_pick(map_height, GAME_CONFIG.map_modifiers.map_height),
            territory_count=_pick(
                territory_count, GAME_CONFIG.map_modifiers.territory_count
            ),
            troop_generation_rate=_pick(
                troop_generation_rate, DEFAULT_TROOP_GENERATION_RATE
            ),
            map_seed=effective_seed,
        )

    # --- setup ---

    def initialize_game(self, players: Iterable[Any]) -> None:
        """
        Build the roster, generate the map and deal starting territories.
        The caller guarantees at least two players; with none the game is
        left in an unplayable state rather than raising.
        """
        state = self.state
        state.players = build_roster(players)
        state.territories = generate_map(
            state.territory_count, state.map_width, state.map_height, self.rng
        )
        self._assign_starting_territories()

        state.game_phase = GamePhase.PLAYING
        state.winner = None
        state.current_turn = 0
        state.turn_start_time = self.clock()
        print(
            f"[conquest] game initialized players={len(state.players)} "
            f"territories={len(state.territories)} seed={state.map_seed}"
        )

    def _assign_starting_territories(self) -> None:
        state = self.state
        if state.players:
            per_player = len(state.territories) // len(state.players) // SHARE_DIVISOR
        else:
            per_player = 0

        shuffled = list(state.territories)
        self.rng.shuffle(shuffled)

        index = 0
        for player in state.players:
            for _ in range(per_player):
                if index >= len(shuffled):
                    break
                shuffled[index].owner = player.id
                shuffled[index].troops = STARTING_TROOPS
                index += 1

        for territory in shuffled[index:]:
            territory.owner = None
            territory.troops = NEUTRAL_TROOPS

        self.update_player_stats()

    # --- combat ---

    def validate_attack(self, from_id: object, to_id: object, player_id: str) -> Optional[str]:
        """Return a human-readable reason the attack is illegal, or None."""
        state = self.state
        if state.game_phase != GamePhase.PLAYING:
            return "Game is not in progress"
        origin = state.get_territory(from_id)
        target = state.get_territory(to_id)
        if origin is None or target is None:
            return "Unknown territory"
        if origin.owner != player_id:
            return "You do not own the attacking territory"
        if target.owner == player_id:
            return "Cannot attack your own territory"
        if origin.troops <= 1:
            return "Not enough troops to attack"
        if not origin.is_adjacent_to(target.id):
            return "Territories are not adjacent"
        return None

    def process_attack(self, from_id: object, to_id: object, player_id: str) -> AttackResult:
        """
        Resolve one attack. Invalid requests come back as a failed result and
        leave the state untouched.
        """
        error = self.validate_attack(from_id, to_id, player_id)
        if error is not None:
            return AttackResult(success=False, from_id=from_id, to_id=to_id, error=error)

        origin = self.state.territories[from_id]  # type: ignore[index]
        target = self.state.territories[to_id]  # type: ignore[index]

        # one troop always stays home
        attack_power = origin.troops - 1
        defense_power = target.troops
        attack_roll = attack_power * self.rng.uniform(ROLL_MIN, ROLL_MAX)
        defense_roll = defense_power * self.rng.uniform(ROLL_MIN, ROLL_MAX)

        result = AttackResult(success=True, from_id=origin.id, to_id=target.id)

        if attack_roll > defense_roll:
            moved = math.floor(origin.troops * CONQUEST_MOVE_RATIO)
            survivors = max(1, math.floor(moved * SURVIVOR_RATIO))

            origin.troops -= moved
            target.owner = origin.owner
            target.troops = survivors

            result.conquered = True
            result.attacker_losses = moved - survivors
            result.defender_losses = defense_power
        else:
            attacker_losses = math.floor(attack_power * FAILED_ATTACK_LOSS_RATIO)
            defender_losses = math.floor(defense_power * FAILED_DEFENSE_LOSS_RATIO)

            origin.troops -= attacker_losses
            target.troops = max(1, target.troops - defender_losses)

            result.attacker_losses = attacker_losses
            result.defender_losses = defender_losses

        self.update_player_stats()
        self.check_win_condition()
        return result

    # --- turns ---

    def next_turn(self) -> None:
        """
        Advance to the next alive player and grow every owned garrison.
        The caller must invoke this at most once per turn boundary.
        """
        state = self.state
        state.current_turn += 1
        state.turn_start_time = self.clock()

        self.generate_troops()

        attempts = 0
        while attempts < len(state.players):
            current = self.get_current_player()
            if current is None or current.is_alive:
                break
            state.current_turn += 1
            attempts += 1

        self.update_player_stats()
        self.check_win_condition()

    def generate_troops(self) -> None:
        rate = self.state.troop_generation_rate
        for territory in self.state.territories:
            if territory.owner is not None:
                territory.troops += rate

    def get_current_player(self) -> Optional[Player]:
        players = self.state.players
        if not players:
            return None
        return players[self.state.current_turn % len(players)]

    def get_turn_time_remaining(self) -> int:
        elapsed = self.clock() - self.state.turn_start_time
        return max(0, self.state.turn_time_limit - elapsed)

    # --- derived data ---

    def update_player_stats(self) -> None:
        """Recompute every player's aggregates from territory ownership."""
        owned: dict[str, int] = {p.id: 0 for p in self.state.players}
        troops: dict[str, int] = {p.id: 0 for p in self.state.players}
        for territory in self.state.territories:
            if territory.owner in owned:
                owned[territory.owner] += 1
                troops[territory.owner] += territory.troops
        for player in self.state.players:
            player.territories_owned = owned[player.id]
            player.total_troops = troops[player.id]
            player.is_alive = player.territories_owned > 0

    def check_win_condition(self) -> None:
        state = self.state
        if state.game_phase != GamePhase.PLAYING:
            return
        alive: List[Player] = [p for p in state.players if p.is_alive]
        if len(alive) == 1:
            state.game_phase = GamePhase.ENDED
            state.winner = alive[0].id
            print(f"[conquest] game ended winner={alive[0].name} turn={state.current_turn}")
        elif not alive:
            state.game_phase = GamePhase.ENDED
            state.winner = None
            print(f"[conquest] game ended in a draw turn={state.current_turn}")

    # --- snapshots ---

    def serialize(self) -> dict:
        return snapshot_from_state(self.state)

    @classmethod
    def from_snapshot(
        cls,
        snapshot: dict,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> "GameEngine":
        """Wrap a deserialized snapshot in a fresh engine."""
        state = state_from_snapshot(snapshot)
        engine = cls(rng=rng, clock=clock)
        engine.state = state
        return engine
