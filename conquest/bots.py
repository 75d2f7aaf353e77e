#!/usr/bin/env python3
from __future__ import annotations

import random
from typing import Any, Dict, List, Optional

from conquest.models import GAME_CONFIG
from conquest.models import GameState, ProposedAttack, Territory
from conquest.state_utils import state_from_snapshot


_AI = GAME_CONFIG.ai_modifiers

# Aggressiveness per difficulty: how much a bad troop ratio is tolerated
AGGRESSIVENESS: Dict[str, float] = dict(_AI.aggressiveness)
DIFFICULTIES = tuple(AGGRESSIVENESS)

# Scoring weights
TROOP_ADVANTAGE_WEIGHT: float = _AI.troop_advantage_weight
NEUTRAL_TARGET_BONUS: float = _AI.neutral_target_bonus
WEAK_OPPONENT_BASELINE: int = _AI.weak_opponent_baseline
WEAK_OPPONENT_WEIGHT: float = _AI.weak_opponent_weight
TARGET_NEIGHBOR_WEIGHT: float = _AI.target_neighbor_weight
WEAK_BORDER_PENALTY: float = _AI.weak_border_penalty
WEAK_BORDER_TROOPS: int = _AI.weak_border_troops
OWNED_NEIGHBOR_WEIGHT: float = _AI.owned_neighbor_weight

# Selection policy
EASY_TOP_FRACTION: float = _AI.easy_top_fraction
MEDIUM_TOP_FRACTION: float = _AI.medium_top_fraction
HARD_BEST_PICK_CHANCE: float = _AI.hard_best_pick_chance
MIN_ACTIONS_PER_TURN: int = _AI.minimum_actions_per_turn
MAX_ACTIONS_PER_TURN: int = _AI.maximum_actions_per_turn


# ---------- Helpers ----------


def _view(state: GameState | dict) -> GameState:
    if isinstance(state, dict):
        return state_from_snapshot(state)
    return state


def _is_border(state: GameState, territory: Territory, player_id: str) -> bool:
    """A territory is on the border if any neighbor is not owned by the player."""
    for nid in territory.neighbors:
        if state.territories[nid].owner != player_id:
            return True
    return False


# ---------- Public bot API ----------


class AIBot:
    """
    Stateless-per-call attack picker for one difficulty level.

    make_decision only reads the state it is given; the returned proposal is
    applied (or not) by whoever owns the engine.
    """

    def __init__(self, difficulty: str = "medium", rng: Optional[random.Random] = None) -> None:
        if difficulty not in AGGRESSIVENESS:
            raise ValueError(
                f"unknown AI difficulty {difficulty!r}; expected one of {DIFFICULTIES}"
            )
        self.difficulty = difficulty
        self.aggressiveness = AGGRESSIVENESS[difficulty]
        self.rng = rng or random.Random()

    def evaluate_attack(
        self, origin: Territory, target: Territory, state: GameState, player_id: str
    ) -> float:
        """
        Desirability of attacking `target` from `origin`. Higher = more attractive.
        """
        score = 0.0

        troop_advantage = origin.troops - target.troops
        score += troop_advantage * TROOP_ADVANTAGE_WEIGHT

        # Neutral land is cheaper than a war
        if target.owner is None:
            score += NEUTRAL_TARGET_BONUS
        else:
            opponent = state.get_player(target.owner)
            if opponent is not None:
                score += (WEAK_OPPONENT_BASELINE - opponent.territories_owned) * WEAK_OPPONENT_WEIGHT

        score += len(target.neighbors) * TARGET_NEIGHBOR_WEIGHT

        # Don't hollow out a thin frontier
        if _is_border(state, origin, player_id) and origin.troops < WEAK_BORDER_TROOPS:
            score -= WEAK_BORDER_PENALTY

        owned_neighbors = sum(
            1 for nid in target.neighbors if state.territories[nid].owner == player_id
        )
        score += owned_neighbors * OWNED_NEIGHBOR_WEIGHT

        if troop_advantage < 0:
            score *= 1 - self.aggressiveness
        return score

    def possible_attacks(self, state: GameState, player_id: str) -> List[ProposedAttack]:
        """Every legal attack for the player, best first."""
        options: List[ProposedAttack] = []
        for origin in state.territories:
            if origin.owner != player_id or origin.troops <= 1:
                continue
            for nid in origin.neighbors:
                target = state.territories[nid]
                if target.owner == player_id:
                    continue
                options.append(
                    ProposedAttack(
                        from_id=origin.id,
                        to_id=target.id,
                        score=self.evaluate_attack(origin, target, state, player_id),
                    )
                )
        options.sort(key=lambda o: o.score, reverse=True)
        return options

    def make_decision(self, state: GameState | dict, player_id: str) -> Optional[ProposedAttack]:
        view = _view(state)
        if not any(t.owner == player_id for t in view.territories):
            return None

        options = self.possible_attacks(view, player_id)
        if not options:
            return None

        if self.difficulty == "easy":
            top = options[: max(1, int(len(options) * EASY_TOP_FRACTION))]
            return self.rng.choice(top)
        if self.difficulty == "hard":
            if self.rng.random() < HARD_BEST_PICK_CHANCE:
                return options[0]
            return options[min(1, len(options) - 1)]
        top = options[: max(1, int(len(options) * MEDIUM_TOP_FRACTION))]
        return self.rng.choice(top)

    def actions_per_turn(self) -> int:
        return self.rng.randint(MIN_ACTIONS_PER_TURN, MAX_ACTIONS_PER_TURN)


def make_decision_from_snapshot(
    snapshot: dict, player_id: str, difficulty: str = "medium", rng: Any = None
) -> Optional[ProposedAttack]:
    """
    Decide an attack for one player based on a snapshot payload.
    """
    return AIBot(difficulty, rng=rng).make_decision(snapshot, player_id)
