"""
Shared builders for engine/bot tests: tiny hand-made maps with known owners,
troops and adjacency, plus deterministic random and clock stand-ins.
"""
import random

from conquest.engine import GameEngine
from conquest.helper.players_helper import build_roster
from conquest.models import GamePhase, Point, Territory


class FixedRollRng(random.Random):
    """Every combat multiplier comes out as exactly 1.0."""

    def uniform(self, a, b):
        return 1.0


class ScriptedRng(random.Random):
    """random() returns the scripted values in order (then repeats the last)."""

    def __init__(self, *values):
        super().__init__(0)
        self.values = list(values)

    def random(self):
        if len(self.values) > 1:
            return self.values.pop(0)
        return self.values[0]


class FakeClock:
    def __init__(self, now=1_000):
        self.now = now

    def __call__(self):
        return self.now


def square(x, y, size=10.0):
    return [Point(x, y), Point(x + size, y), Point(x + size, y + size), Point(x, y + size)]


def make_engine(layout, edges, players=("A", "B"), rng=None, clock=None, **options):
    """
    layout: list of (owner, troops) per territory id.
    edges:  list of (a, b) undirected adjacency pairs.
    """
    engine = GameEngine(rng=rng or FixedRollRng(0), clock=clock or FakeClock(), **options)
    state = engine.state
    state.players = build_roster([{"id": p, "name": f"Player {p}"} for p in players])
    state.territories = [
        Territory(
            id=i,
            vertices=square(i * 20.0, 0.0),
            center=Point(i * 20.0 + 5, 5.0),
            owner=owner,
            troops=troops,
        )
        for i, (owner, troops) in enumerate(layout)
    ]
    for a, b in edges:
        state.territories[a].add_neighbor(b)
        state.territories[b].add_neighbor(a)
    state.territory_count = len(layout)
    state.game_phase = GamePhase.PLAYING
    engine.update_player_stats()
    return engine
