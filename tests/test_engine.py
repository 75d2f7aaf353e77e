"""
GameEngine rules: setup deal, attack validation and resolution, turn order,
troop growth and the win condition.
"""
import copy
import random

import pytest

from conquest.engine import GameEngine
from conquest.models import GamePhase

from helpers import FakeClock, FixedRollRng, make_engine


def _players(*ids, ai=()):
    return [{"id": pid, "name": f"Player {pid}", "isAI": pid in ai} for pid in ids]


# ──────────────────────────────────────────────────────────────────────────────
# setup
# ──────────────────────────────────────────────────────────────────────────────

def test_initialize_game_deals_half_the_map():
    engine = GameEngine(territory_count=40, map_width=800, map_height=600, seed=5, clock=FakeClock())
    engine.initialize_game(_players("A", "B", "C", "D", ai=("D",)))
    state = engine.state

    assert state.game_phase == GamePhase.PLAYING
    assert state.current_turn == 0
    assert len(state.territories) == 40
    for player in state.players:
        owned = [t for t in state.territories if t.owner == player.id]
        assert len(owned) == 5
        assert all(t.troops == 15 for t in owned)
        assert player.territories_owned == 5
        assert player.total_troops == 75
        assert player.is_alive
    neutral = [t for t in state.territories if t.owner is None]
    assert len(neutral) == 20
    assert all(t.troops == 5 for t in neutral)
    assert state.players[3].is_ai


def test_roster_order_is_turn_order_with_palette_colours():
    engine = GameEngine(territory_count=20, map_width=400, map_height=300, seed=1, clock=FakeClock())
    engine.initialize_game(_players("x", "y"))
    assert [p.id for p in engine.state.players] == ["x", "y"]
    assert engine.get_current_player().id == "x"
    colours = [p.color for p in engine.state.players]
    assert colours[0] != colours[1]


def test_same_seed_same_deal():
    def deal():
        engine = GameEngine(territory_count=30, map_width=600, map_height=400, seed="rematch", clock=FakeClock())
        engine.initialize_game(_players("A", "B"))
        return [(t.owner, t.troops) for t in engine.state.territories]

    assert deal() == deal()


def test_initialize_without_players_does_not_raise():
    engine = GameEngine(territory_count=10, map_width=300, map_height=200, seed=2, clock=FakeClock())
    engine.initialize_game([])
    assert all(t.owner is None for t in engine.state.territories)
    assert engine.get_current_player() is None


# ──────────────────────────────────────────────────────────────────────────────
# attacks
# ──────────────────────────────────────────────────────────────────────────────

def test_conquest_with_even_rolls():
    # A:10 attacks B:3, both rolls 1.0 -> 9 > 3
    engine = make_engine([("A", 10), ("B", 3), ("B", 4)], [(0, 1), (1, 2)])
    result = engine.process_attack(0, 1, "A")

    assert result.success and result.conquered
    origin, target = engine.state.territories[0], engine.state.territories[1]
    assert origin.troops == 3
    assert target.owner == "A"
    assert target.troops == 4
    assert result.attacker_losses == 3
    assert result.defender_losses == 3


def test_failed_attack_costs_both_sides():
    # A:4 attacks B:5 -> 3 vs 5, attacker loses floor(1.5), defender floor(1.5)
    engine = make_engine([("A", 4), ("B", 5)], [(0, 1)])
    result = engine.process_attack(0, 1, "A")

    assert result.success and not result.conquered
    assert engine.state.territories[0].troops == 3
    assert engine.state.territories[1].troops == 4
    assert engine.state.territories[1].owner == "B"
    assert (result.attacker_losses, result.defender_losses) == (1, 1)


def test_tied_rolls_favour_the_defender():
    # 1 vs 1: no conquest, losses floor(0.5) and floor(0.3) are both zero
    engine = make_engine([("A", 2), ("B", 1)], [(0, 1)])
    result = engine.process_attack(0, 1, "A")
    assert result.success and not result.conquered
    assert engine.state.territories[0].troops == 2
    assert engine.state.territories[1].troops == 1
    assert engine.state.territories[1].owner == "B"


def test_attack_roll_is_drawn_before_defense_roll():
    class Ordered(random.Random):
        def __init__(self):
            super().__init__(0)
            self.calls = 0

        def uniform(self, a, b):
            self.calls += 1
            return b if self.calls == 1 else a

    # 5 attack power * 1.2 beats 6 defenders * 0.8
    engine = make_engine([("A", 6), ("B", 6)], [(0, 1)], rng=Ordered())
    assert engine.process_attack(0, 1, "A").conquered


def test_conquering_last_enemy_territory_ends_game():
    engine = make_engine([("A", 10), ("B", 3)], [(0, 1)])
    engine.process_attack(0, 1, "A")
    assert engine.state.game_phase == GamePhase.ENDED
    assert engine.state.winner == "A"
    assert not engine.state.get_player("B").is_alive


@pytest.mark.parametrize(
    "from_id,to_id,player,reason",
    [
        (1, 0, "A", "You do not own the attacking territory"),
        (0, 2, "A", "Cannot attack your own territory"),
        (2, 1, "A", "Not enough troops to attack"),
        (0, 3, "A", "Territories are not adjacent"),
        (0, 99, "A", "Unknown territory"),
        ("0", 1, "A", "Unknown territory"),
        (None, 1, "A", "Unknown territory"),
        (-1, 1, "A", "Unknown territory"),
    ],
)
def test_invalid_attacks_leave_state_untouched(from_id, to_id, player, reason):
    engine = make_engine(
        [("A", 8), ("B", 5), ("A", 1), (None, 5)],
        [(0, 1), (0, 2), (1, 2), (2, 3)],
    )
    before = copy.deepcopy(engine.serialize())
    result = engine.process_attack(from_id, to_id, player)

    assert not result.success
    assert result.error == reason
    assert engine.serialize() == before


def test_attacks_rejected_once_game_is_over():
    engine = make_engine([("A", 10), ("B", 3), ("B", 3)], [(0, 1), (1, 2)])
    engine.state.game_phase = GamePhase.ENDED
    result = engine.process_attack(0, 1, "A")
    assert not result.success
    assert result.error == "Game is not in progress"


def test_attack_result_wire_format():
    engine = make_engine([("A", 10), ("B", 3), ("B", 3)], [(0, 1), (1, 2)])
    payload = engine.process_attack(0, 1, "A").to_dict()
    assert payload == {
        "success": True,
        "conquered": True,
        "attackerLosses": 3,
        "defenderLosses": 3,
        "fromId": 0,
        "toId": 1,
    }


def test_aggregates_match_territories_after_attacks():
    engine = make_engine(
        [("A", 12), ("B", 3), ("B", 6), (None, 2), ("A", 4)],
        [(0, 1), (1, 2), (0, 3), (3, 4)],
    )
    engine.process_attack(0, 1, "A")
    engine.process_attack(4, 3, "A")
    for player in engine.state.players:
        owned = [t for t in engine.state.territories if t.owner == player.id]
        assert player.territories_owned == len(owned)
        assert player.total_troops == sum(t.troops for t in owned)
        assert player.is_alive == bool(owned)
    for t in engine.state.territories:
        assert t.troops >= 1


def test_four_player_game_ends_when_three_are_eliminated():
    # each weak enemy sits next to its own strong A territory
    engine = make_engine(
        [("A", 20), ("B", 1), ("A", 20), ("C", 1), ("A", 20), ("D", 1)],
        [(0, 1), (2, 3), (4, 5), (1, 2), (3, 4)],
        players=("A", "B", "C", "D"),
    )
    engine.process_attack(0, 1, "A")
    assert engine.state.game_phase == GamePhase.PLAYING
    engine.process_attack(2, 3, "A")
    assert engine.state.game_phase == GamePhase.PLAYING
    engine.process_attack(4, 5, "A")
    assert engine.state.game_phase == GamePhase.ENDED
    assert engine.state.winner == "A"


def test_nobody_alive_is_a_draw():
    engine = make_engine([(None, 5), (None, 5)], [(0, 1)])
    engine.check_win_condition()
    assert engine.state.game_phase == GamePhase.ENDED
    assert engine.state.winner is None


def test_rolls_vary_with_the_rng():
    engine = make_engine([("A", 10), ("B", 8)], [(0, 1)], rng=random.Random(3))
    result = engine.process_attack(0, 1, "A")
    assert result.success
    assert engine.state.territories[0].troops >= 1


# ──────────────────────────────────────────────────────────────────────────────
# turns
# ──────────────────────────────────────────────────────────────────────────────

def test_next_turn_skips_eliminated_players():
    engine = make_engine(
        [("A", 5), ("C", 5), (None, 5)],
        [(0, 1), (1, 2)],
        players=("A", "B", "C"),
    )
    assert engine.get_current_player().id == "A"
    engine.next_turn()
    assert engine.state.current_turn == 2
    assert engine.get_current_player().id == "C"
    engine.next_turn()
    assert engine.get_current_player().id == "A"


def test_next_turn_grows_owned_territories_only():
    engine = make_engine([("A", 5), ("B", 5), (None, 5)], [(0, 1), (1, 2)], troop_generation_rate=3)
    engine.next_turn()
    assert [t.troops for t in engine.state.territories] == [8, 8, 5]
    assert engine.state.get_player("A").total_troops == 8


def test_next_turn_resets_the_turn_clock():
    clock = FakeClock(1_000)
    engine = make_engine([("A", 5), ("B", 5)], [(0, 1)], clock=clock)
    clock.now = 50_000
    engine.next_turn()
    assert engine.state.turn_start_time == 50_000


def test_turn_time_remaining():
    clock = FakeClock(1_000)
    engine = make_engine([("A", 5), ("B", 5)], [(0, 1)], clock=clock, turn_time_limit=45_000)
    engine.state.turn_start_time = 1_000
    clock.now = 11_000
    assert engine.get_turn_time_remaining() == 35_000
    clock.now = 100_000
    assert engine.get_turn_time_remaining() == 0


# ──────────────────────────────────────────────────────────────────────────────
# snapshots
# ──────────────────────────────────────────────────────────────────────────────

def test_engine_restored_from_snapshot_keeps_playing():
    engine = make_engine([("A", 10), ("B", 3), ("B", 3)], [(0, 1), (1, 2)])
    restored = GameEngine.from_snapshot(engine.serialize(), rng=FixedRollRng(0), clock=FakeClock())
    result = restored.process_attack(0, 1, "A")
    assert result.conquered
    assert restored.state.territories[1].owner == "A"
    # the source engine is untouched
    assert engine.state.territories[1].owner == "B"


def test_reported_seed_is_the_one_that_seeded_the_rng():
    assert GameEngine(seed=5, clock=FakeClock()).state.map_seed == 5
    assert GameEngine(seed=5, rng=random.Random(1), clock=FakeClock()).state.map_seed is None
