"""
AI opponent: attack scoring, legal-move enumeration and per-difficulty picks.
"""
import copy
import random

import pytest

from conquest.bots import AIBot, make_decision_from_snapshot
from conquest.engine import GameEngine

from helpers import FakeClock, ScriptedRng, make_engine


def _triangle():
    # A:8 borders a neutral 3 and B's only territory (2 troops)
    return make_engine([("A", 8), (None, 3), ("B", 2)], [(0, 1), (0, 2), (1, 2)])


def test_scores_follow_the_weights():
    engine = _triangle()
    state = engine.state
    bot = AIBot("medium", rng=random.Random(0))
    t0, t1, t2 = state.territories

    # 5*10 + 20 neutral + 2*3 neighbors + 1*8 owned neighbor
    assert bot.evaluate_attack(t0, t1, state, "A") == 84
    # 6*10 + (10-1)*5 weak opponent + 2*3 + 1*8
    assert bot.evaluate_attack(t0, t2, state, "A") == 119


def test_bad_odds_are_damped_by_aggressiveness():
    engine = make_engine([("A", 3), (None, 6)], [(0, 1)])
    state = engine.state
    origin, target = state.territories
    # -30 advantage + 20 neutral + 3 neighbor - 30 thin border + 8 owned neighbor
    raw = -29
    assert AIBot("easy").evaluate_attack(origin, target, state, "A") == pytest.approx(raw * 0.7)
    assert AIBot("medium").evaluate_attack(origin, target, state, "A") == pytest.approx(raw * 0.5)
    assert AIBot("hard").evaluate_attack(origin, target, state, "A") == pytest.approx(raw * 0.2)


def test_possible_attacks_are_sorted_best_first():
    options = AIBot("medium").possible_attacks(_triangle().state, "A")
    assert [(o.from_id, o.to_id) for o in options] == [(0, 2), (0, 1)]


def test_hard_usually_takes_the_best_attack():
    state = _triangle().state
    best = AIBot("hard", rng=ScriptedRng(0.1)).make_decision(state, "A")
    assert (best.from_id, best.to_id) == (0, 2)
    second = AIBot("hard", rng=ScriptedRng(0.9)).make_decision(state, "A")
    assert (second.from_id, second.to_id) == (0, 1)


def test_single_legal_attack_is_chosen_on_easy():
    engine = make_engine([("A", 5), (None, 4), ("A", 1), ("B", 5)], [(0, 1), (1, 2), (2, 3)])
    decision = AIBot("easy", rng=random.Random(0)).make_decision(engine.state, "A")
    assert (decision.from_id, decision.to_id) == (0, 1)


def test_no_legal_attack_returns_none():
    engine = make_engine([("A", 1), ("B", 5)], [(0, 1)])
    for difficulty in ("easy", "medium", "hard"):
        assert AIBot(difficulty).make_decision(engine.state, "A") is None


def test_player_without_territories_returns_none():
    engine = make_engine([("A", 5), (None, 5)], [(0, 1)])
    assert AIBot("hard").make_decision(engine.state, "B") is None


def test_negative_scores_are_still_proposed():
    engine = make_engine([("A", 3), (None, 6)], [(0, 1)])
    decision = AIBot("medium").make_decision(engine.state, "A")
    assert decision is not None
    assert decision.score < 0


def test_easy_picks_from_the_top_half():
    engine = GameEngine(territory_count=30, map_width=600, map_height=400, seed=9, clock=FakeClock())
    engine.initialize_game([{"id": "A", "name": "A"}, {"id": "B", "name": "B"}])
    bot = AIBot("easy", rng=random.Random(4))
    options = bot.possible_attacks(engine.state, "A")
    top = {(o.from_id, o.to_id) for o in options[: max(1, int(len(options) * 0.5))]}
    for _ in range(30):
        decision = bot.make_decision(engine.state, "A")
        assert (decision.from_id, decision.to_id) in top


def test_decision_does_not_mutate_state():
    engine = _triangle()
    before = copy.deepcopy(engine.serialize())
    for difficulty in ("easy", "medium", "hard"):
        AIBot(difficulty, rng=random.Random(1)).make_decision(engine.state, "A")
    assert engine.serialize() == before


def test_decision_from_snapshot_dict():
    snapshot = _triangle().serialize()
    decision = make_decision_from_snapshot(snapshot, "A", "hard", rng=ScriptedRng(0.1))
    assert (decision.from_id, decision.to_id) == (0, 2)


def test_actions_per_turn_range():
    bot = AIBot("medium", rng=random.Random(2))
    counts = {bot.actions_per_turn() for _ in range(200)}
    assert counts == {1, 2, 3}


def test_unknown_difficulty_is_rejected():
    with pytest.raises(ValueError):
        AIBot("nightmare")


def test_medium_picks_from_the_top_thirty_percent():
    engine = GameEngine(territory_count=30, map_width=600, map_height=400, seed=9, clock=FakeClock())
    engine.initialize_game([{"id": "A", "name": "A"}, {"id": "B", "name": "B"}])
    bot = AIBot("medium", rng=random.Random(6))
    options = bot.possible_attacks(engine.state, "A")
    top = {(o.from_id, o.to_id) for o in options[: max(1, int(len(options) * 0.3))]}
    for _ in range(30):
        decision = bot.make_decision(engine.state, "A")
        assert (decision.from_id, decision.to_id) in top


def test_hard_falls_back_to_the_only_option():
    engine = make_engine([("A", 5), (None, 4)], [(0, 1)])
    decision = AIBot("hard", rng=ScriptedRng(0.9)).make_decision(engine.state, "A")
    assert (decision.from_id, decision.to_id) == (0, 1)
