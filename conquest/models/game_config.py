from pathlib import Path
from pydantic import BaseModel, PositiveInt, PositiveFloat, model_validator
from pydantic import Field  # type: ignore
from typing import Annotated, List, Dict

# NOTE: the loaded config lives in-process only. Per-match overrides are
# passed to GameEngine and never written back here.


class MapModifiers(BaseModel):
    territory_count: PositiveInt
    map_width: PositiveInt
    map_height: PositiveInt
    grid_size: PositiveInt
    minimum_distance_factor: PositiveFloat
    maximum_placement_attempts: PositiveInt
    neighbor_distance: PositiveFloat
    hull_vertex_threshold: Annotated[int, Field(ge=3)]


class TurnModifiers(BaseModel):
    turn_time_limit: PositiveInt  # milliseconds
    troop_generation_rate: Annotated[int, Field(ge=0)]


class SetupModifiers(BaseModel):
    starting_troops: PositiveInt
    neutral_troops: PositiveInt
    share_divisor: PositiveInt


class CombatModifiers(BaseModel):
    roll_minimum: PositiveFloat
    roll_maximum: PositiveFloat
    conquest_move_ratio: Annotated[float, Field(gt=0, le=1)]
    survivor_ratio: Annotated[float, Field(gt=0, le=1)]
    failed_attack_loss_ratio: Annotated[float, Field(ge=0, le=1)]
    failed_defense_loss_ratio: Annotated[float, Field(ge=0, le=1)]

    @model_validator(mode="after")
    def _check_roll_range(self) -> "CombatModifiers":
        if self.roll_minimum > self.roll_maximum:
            raise ValueError("roll_minimum must not exceed roll_maximum")
        return self


class AiModifiers(BaseModel):
    aggressiveness: Dict[str, Annotated[float, Field(ge=0, le=1)]]
    troop_advantage_weight: float
    neutral_target_bonus: float
    weak_opponent_baseline: int
    weak_opponent_weight: float
    target_neighbor_weight: float
    weak_border_penalty: float
    weak_border_troops: PositiveInt
    owned_neighbor_weight: float
    easy_top_fraction: Annotated[float, Field(gt=0, le=1)]
    medium_top_fraction: Annotated[float, Field(gt=0, le=1)]
    hard_best_pick_chance: Annotated[float, Field(ge=0, le=1)]
    minimum_actions_per_turn: PositiveInt
    maximum_actions_per_turn: PositiveInt


class GameSettings(BaseModel):
    map_modifiers: MapModifiers
    turn_modifiers: TurnModifiers
    setup_modifiers: SetupModifiers
    combat_modifiers: CombatModifiers
    ai_modifiers: AiModifiers
    player_palette: Annotated[List[str], Field(min_length=1)]
    map_seed: int | None


_BASE_DIR = Path(__file__).resolve().parents[1]
_CONFIG_PATH = _BASE_DIR / "config" / "game_config.json"

GAME_CONFIG = GameSettings.model_validate_json(
    _CONFIG_PATH.read_text(encoding="utf-8")
)
