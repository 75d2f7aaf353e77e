from .game_config import GAME_CONFIG
from .server_config import GameServerSettings
from .game_models import (
    Point,
    GamePhase,
    Territory,
    Player,
    GameState,
    AttackResult,
    ProposedAttack,
)
from .snapshot import SNAPSHOT_VERSION, SnapshotIn

__all__ = [
    "GAME_CONFIG",
    "GameServerSettings",
    "Point",
    "GamePhase",
    "Territory",
    "Player",
    "GameState",
    "AttackResult",
    "ProposedAttack",
    "SNAPSHOT_VERSION",
    "SnapshotIn",
]
