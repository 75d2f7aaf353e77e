from pydantic import BaseModel, ConfigDict, Field
from typing import Annotated, List, Optional

SNAPSHOT_VERSION = 1


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PointIn(_WireModel):
    x: float
    y: float


class TerritoryIn(_WireModel):
    id: Annotated[int, Field(ge=0)]
    vertices: List[PointIn]
    center: PointIn
    owner: Optional[str] = None
    troops: Annotated[int, Field(ge=0)]
    neighbors: List[int]


class PlayerIn(_WireModel):
    id: Annotated[str, Field(min_length=1)]
    name: str
    color: str
    is_ai: bool = Field(False, alias="isAI")
    is_alive: bool = Field(True, alias="isAlive")
    territories_owned: Annotated[int, Field(ge=0)] = Field(0, alias="territoriesOwned")
    total_troops: Annotated[int, Field(ge=0)] = Field(0, alias="totalTroops")


class SnapshotIn(_WireModel):
    """Wire schema of a full game snapshot (see state_utils.snapshot_from_state)."""

    version: int = SNAPSHOT_VERSION
    territories: List[TerritoryIn]
    players: List[PlayerIn]
    current_turn: Annotated[int, Field(ge=0)] = Field(alias="currentTurn")
    turn_time_limit: Annotated[int, Field(gt=0)] = Field(alias="turnTimeLimit")
    turn_start_time: int = Field(alias="turnStartTime")
    game_phase: str = Field(alias="gamePhase", pattern="^(lobby|playing|ended)$")
    winner: Optional[str] = None
    map_width: Annotated[int, Field(gt=0)] = Field(alias="mapWidth")
    map_height: Annotated[int, Field(gt=0)] = Field(alias="mapHeight")
    territory_count: Optional[int] = Field(None, alias="territoryCount")
    troop_generation_rate: Optional[int] = Field(None, alias="troopGenerationRate")
