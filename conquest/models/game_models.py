from dataclasses import dataclass, field
from typing import Optional, List, NamedTuple


class Point(NamedTuple):
    x: float
    y: float


class GamePhase:
    LOBBY = "lobby"
    PLAYING = "playing"
    ENDED = "ended"


@dataclass
class Territory:
    id: int  # dense 0..N-1, doubles as index into GameState.territories
    vertices: List[Point]
    center: Point
    owner: Optional[str] = None  # player id or None (neutral)
    troops: int = 10
    neighbors: List[int] = field(default_factory=list)

    def add_neighbor(self, territory_id: int) -> None:
        if territory_id not in self.neighbors:
            self.neighbors.append(territory_id)

    def is_adjacent_to(self, territory_id: int) -> bool:
        return territory_id in self.neighbors


@dataclass
class Player:
    id: str
    name: str
    color: str
    is_ai: bool = False
    is_alive: bool = True  # derived: territories_owned > 0
    territories_owned: int = 0  # derived
    total_troops: int = 0  # derived


@dataclass
class GameState:
    territories: List[Territory] = field(default_factory=list)
    players: List[Player] = field(default_factory=list)  # insertion order = turn order
    current_turn: int = 0
    turn_time_limit: int = 45000  # ms
    turn_start_time: int = 0  # ms since epoch
    game_phase: str = GamePhase.LOBBY
    winner: Optional[str] = None  # player id, set when the game ends
    map_width: int = 1200
    map_height: int = 800
    territory_count: int = 60
    troop_generation_rate: int = 1
    map_seed: Optional[int] = None

    def get_player(self, player_id: Optional[str]) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def get_territory(self, territory_id: object) -> Optional[Territory]:
        if not isinstance(territory_id, int) or isinstance(territory_id, bool):
            return None
        if 0 <= territory_id < len(self.territories):
            return self.territories[territory_id]
        return None


@dataclass
class AttackResult:
    """Outcome of a single attack request, sent to every viewer of the match."""

    success: bool
    from_id: object
    to_id: object
    conquered: bool = False
    attacker_losses: int = 0
    defender_losses: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        payload = {
            "success": self.success,
            "conquered": self.conquered,
            "attackerLosses": self.attacker_losses,
            "defenderLosses": self.defender_losses,
            "fromId": self.from_id,
            "toId": self.to_id,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass
class ProposedAttack:
    """An attack the AI would like to make. Never applied by the AI itself."""

    from_id: int
    to_id: int
    score: float
