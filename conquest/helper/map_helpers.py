import hashlib
import math
import numpy as np
from typing import Optional, List, Sequence
import random

# pairwise seed distances for adjacency inference
from scipy.spatial.distance import cdist  # type: ignore

# game config import
from conquest.models import GAME_CONFIG
from conquest.models import Point, Territory

# Map-level config from JSON
TERRITORY_COUNT: int = GAME_CONFIG.map_modifiers.territory_count
MAP_WIDTH: int = GAME_CONFIG.map_modifiers.map_width
MAP_HEIGHT: int = GAME_CONFIG.map_modifiers.map_height
# pixel resolution of the nearest-seed grid
GRID_SIZE: int = GAME_CONFIG.map_modifiers.grid_size
MIN_DISTANCE_FACTOR: float = GAME_CONFIG.map_modifiers.minimum_distance_factor
MAX_PLACEMENT_ATTEMPTS: int = GAME_CONFIG.map_modifiers.maximum_placement_attempts
# seed centers closer than this are neighbors
NEIGHBOR_DISTANCE: float = GAME_CONFIG.map_modifiers.neighbor_distance
# boundaries with more cells than this are reduced to their convex hull
HULL_VERTEX_THRESHOLD: int = GAME_CONFIG.map_modifiers.hull_vertex_threshold


# ---------- Seeds ----------

SEED_BITS = 48
SEED_MASK = (1 << SEED_BITS) - 1


def normalize_seed(value: Optional[object]) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value & SEED_MASK
    if isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return None
        try:
            return int(cleaned, 0) & SEED_MASK
        except ValueError:
            digest = hashlib.sha256(cleaned.encode("utf-8")).hexdigest()
            return int(digest, 16) & SEED_MASK
    if isinstance(value, (bytes, bytearray)):
        digest = hashlib.sha256(value).hexdigest()
        return int(digest, 16) & SEED_MASK
    try:
        return int(value) & SEED_MASK  # type: ignore[arg-type]
    except (TypeError, ValueError):
        digest = hashlib.sha256(str(value).encode("utf-8")).hexdigest()
        return int(digest, 16) & SEED_MASK


def make_rng(seed: Optional[object] = None) -> tuple[random.Random, int]:
    """Build a Random from any seed-like value; returns (rng, effective_seed)."""
    effective_seed = normalize_seed(seed if seed is not None else GAME_CONFIG.map_seed)
    if effective_seed is None:
        effective_seed = random.SystemRandom().randrange(1 << SEED_BITS)
    return random.Random(effective_seed), effective_seed


# ---------- Map generation ----------


def generate_points(
    count: int, width: float, height: float, rng: random.Random
) -> List[Point]:
    """
    Scatter seed points with a minimum spacing. A point that still collides
    after MAX_PLACEMENT_ATTEMPTS draws is accepted anyway.
    """
    if count <= 0:
        return []
    min_dist = math.sqrt((width * height) / count) * MIN_DISTANCE_FACTOR
    min_dist2 = min_dist * min_dist
    points: List[Point] = []
    for _ in range(count):
        for _ in range(MAX_PLACEMENT_ATTEMPTS):
            x = rng.random() * width
            y = rng.random() * height
            if all((x - px) ** 2 + (y - py) ** 2 >= min_dist2 for px, py in points):
                break
        points.append(Point(x, y))
    return points


def assign_cells(
    points: Sequence[Point], width: float, height: float, grid_size: int = GRID_SIZE
) -> np.ndarray:
    """
    Label every grid cell with the index of its nearest seed (first index wins
    ties). This is a plain nearest-neighbor scan, not an exact Voronoi diagram.
    """
    cols = math.ceil(width / grid_size)
    rows = math.ceil(height / grid_size)
    seeds = np.array([(p.x, p.y) for p in points], dtype=float)
    cell_x = np.arange(cols) * grid_size + grid_size / 2
    cell_y = np.arange(rows) * grid_size + grid_size / 2
    dx = cell_x[None, :, None] - seeds[None, None, :, 0]
    dy = cell_y[:, None, None] - seeds[None, None, :, 1]
    return np.argmin(dx * dx + dy * dy, axis=2)


def edge_mask(grid: np.ndarray) -> np.ndarray:
    """True for cells on the grid border or touching a cell of another region."""
    edge = np.zeros(grid.shape, dtype=bool)
    edge[0, :] = True
    edge[-1, :] = True
    edge[:, 0] = True
    edge[:, -1] = True
    vertical = grid[1:, :] != grid[:-1, :]
    horizontal = grid[:, 1:] != grid[:, :-1]
    edge[1:, :] |= vertical
    edge[:-1, :] |= vertical
    edge[:, 1:] |= horizontal
    edge[:, :-1] |= horizontal
    return edge


def cross_product(o: Point, a: Point, b: Point) -> float:
    return (a.x - o.x) * (b.y - o.y) - (a.y - o.y) * (b.x - o.x)


def convex_hull(points: Sequence[Point]) -> List[Point]:
    """
    Graham scan. Pivot is the lowest-then-leftmost point; collinear points are
    dropped (cross product <= 0 pops the top of the hull).
    """
    if len(points) < 3:
        return list(points)

    start = 0
    for i in range(1, len(points)):
        p, s = points[i], points[start]
        if p.y < s.y or (p.y == s.y and p.x < s.x):
            start = i
    pivot = points[start]

    rest = [p for i, p in enumerate(points) if i != start]
    rest.sort(key=lambda p: math.atan2(p.y - pivot.y, p.x - pivot.x))

    hull = [pivot, rest[0]]
    for p in rest[1:]:
        while len(hull) > 1 and cross_product(hull[-2], hull[-1], p) <= 0:
            hull.pop()
        hull.append(p)
    return hull


def _cell_square(x: float, y: float, size: float) -> List[Point]:
    return [Point(x, y), Point(x + size, y), Point(x + size, y + size), Point(x, y + size)]


def extract_boundary(
    grid: np.ndarray, edges: np.ndarray, territory_id: int, grid_size: int = GRID_SIZE
) -> List[Point]:
    rows, cols = np.nonzero((grid == territory_id) & edges)
    vertices = [
        Point(float(c * grid_size), float(r * grid_size)) for r, c in zip(rows, cols)
    ]
    if not vertices:
        # region swallowed by its neighbors: placeholder square at the origin
        return _cell_square(0.0, 0.0, float(grid_size))
    if len(vertices) > HULL_VERTEX_THRESHOLD:
        vertices = convex_hull(vertices)
    if len(vertices) < 3:
        # a single cell, or a hull that collapsed onto a line
        min_x = min(p.x for p in vertices)
        min_y = min(p.y for p in vertices)
        max_x = max(p.x for p in vertices) + grid_size
        max_y = max(p.y for p in vertices) + grid_size
        return [
            Point(min_x, min_y),
            Point(max_x, min_y),
            Point(max_x, max_y),
            Point(min_x, max_y),
        ]
    return vertices


def create_territories(
    points: Sequence[Point], width: float, height: float, grid_size: int = GRID_SIZE
) -> List[Territory]:
    if not points:
        return []
    grid = assign_cells(points, width, height, grid_size)
    edges = edge_mask(grid)
    return [
        Territory(
            id=i,
            vertices=extract_boundary(grid, edges, i, grid_size),
            center=point,
        )
        for i, point in enumerate(points)
    ]


def calculate_neighbors(
    territories: List[Territory], threshold: float = NEIGHBOR_DISTANCE
) -> int:
    """
    Link territories whose seed centers are closer than `threshold`, then
    connect any isolated territory to its nearest other territory.
    Returns the number of territories that needed the fallback edge.
    """
    if len(territories) < 2:
        return 0
    centers = np.array([(t.center.x, t.center.y) for t in territories], dtype=float)
    dist = cdist(centers, centers)

    count = len(territories)
    for i in range(count):
        for j in range(i + 1, count):
            if dist[i, j] < threshold:
                territories[i].add_neighbor(territories[j].id)
                territories[j].add_neighbor(territories[i].id)

    np.fill_diagonal(dist, np.inf)
    patched = 0
    for territory in territories:
        if territory.neighbors:
            continue
        closest = int(np.argmin(dist[territory.id]))
        territory.add_neighbor(closest)
        territories[closest].add_neighbor(territory.id)
        patched += 1
    return patched


def generate_map(
    count: int = TERRITORY_COUNT,
    width: float = MAP_WIDTH,
    height: float = MAP_HEIGHT,
    rng: Optional[random.Random] = None,
) -> List[Territory]:
    """
    Build a complete partitioned map: seeds, grid regions, hull boundaries and
    adjacency. Deterministic for a given rng state.
    """
    if rng is None:
        rng, _ = make_rng()
    points = generate_points(count, width, height, rng)
    territories = create_territories(points, width, height)
    patched = calculate_neighbors(territories)
    print(
        f"[conquest] map generated territories={len(territories)} "
        f"size={width}x{height} isolated_patched={patched}"
    )
    return territories
