from conquest.helper.map_helpers import (
    normalize_seed,
    make_rng,
    generate_map,
    convex_hull,
    calculate_neighbors,
)
from conquest.helper.players_helper import build_roster, player_color


__all__ = [
    "normalize_seed",
    "make_rng",
    "generate_map",
    "convex_hull",
    "calculate_neighbors",
    "build_roster",
    "player_color",
]
