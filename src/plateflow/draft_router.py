"""
Draft edge router for plate diagrams.

Implements cheap, deterministic orthogonal routing with:
- Obstacle rasterization into a set of blocked grid cells
- Obstacle inflation so routes keep clear of node borders
- A* pathfinding (4-connected, Manhattan heuristic) per edge
- Path simplification down to corner points
- Blocking of consumed cells so later edges route around earlier ones

Edges are routed in order of their id. Because consumed cells are blocked
for the rest of the call, this order decides which edge wins a contested
cell and is part of the observable result.
"""

import heapq
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .models import GridPoint, GridRect, RouteCost, RoutedEdge

log = logging.getLogger("plateflow.draft_router")

# =============================================================================
# ROUTING CONFIGURATION
# =============================================================================

# Grid spacing in routing coordinates
DEFAULT_GRID_STEP = 1

# Cells of clearance added around every obstacle rectangle
DEFAULT_OBSTACLE_PADDING = 1

# Penalty per direction change in evaluate_route_cost
BEND_PENALTY = 5

# Penalty per crossing between different edges in evaluate_route_cost
CROSSING_PENALTY = 20

# Free margin (in cells) around the blocked region that A* may explore
SEARCH_MARGIN = 1

# Expansion order of neighbours; with the heap key this fixes tie-breaking
NEIGHBOR_DIRS: Tuple[Tuple[int, int], ...] = ((1, 0), (0, 1), (0, -1), (-1, 0))

# =============================================================================

Cell = Tuple[int, int]


@dataclass
class DraftRouterEdge:
    """An edge to route between two points."""

    id: str
    source: GridPoint
    target: GridPoint


@dataclass
class DraftRouterInput:
    """
    Input for one draft routing call.

    Attributes:
        edges: Edges to route, in any order.
        obstacles: Rectangles to keep routes out of.
        blocked_cells: Extra points whose cells are impassable.
        grid_step: Grid spacing (floored, at least 1).
        obstacle_padding: Cells of inflation around obstacles (floored, at least 0).
    """

    edges: Sequence[DraftRouterEdge] = field(default_factory=list)
    obstacles: Sequence[GridRect] = field(default_factory=list)
    blocked_cells: Sequence[GridPoint] = field(default_factory=list)
    grid_step: float = DEFAULT_GRID_STEP
    obstacle_padding: float = DEFAULT_OBSTACLE_PADDING


@dataclass
class DraftRouterResult:
    """Routes and their geometric cost."""

    routes: List[RoutedEdge]
    cost: RouteCost
    mode: str = "draft"


def _snap(value: float, step: int) -> int:
    # Round half up so -0.5 and 0.5 snap like the rest of the grid
    return math.floor(value / step + 0.5)


def normalize_to_cell(point: GridPoint, step: int) -> Cell:
    """Snap a point to the nearest grid cell."""
    return (_snap(point.x, step), _snap(point.y, step))


def denormalize_from_cell(cell: Cell, step: int) -> GridPoint:
    return GridPoint(cell[0] * step, cell[1] * step)


def build_blocked_set(
    obstacles: Iterable[GridRect],
    blocked_cells: Iterable[GridPoint],
    step: int,
    obstacle_padding: int,
) -> Set[Cell]:
    """
    Rasterize obstacles and explicit blocked points into grid cells.

    Obstacles cover every cell from the floor of their near edge to the
    ceiling of their far edge, grown by ``obstacle_padding`` on each side.
    """
    blocked: Set[Cell] = set()

    for point in blocked_cells:
        blocked.add(normalize_to_cell(point, step))

    for obstacle in obstacles:
        min_x = math.floor(obstacle.x / step) - obstacle_padding
        max_x = math.ceil((obstacle.x + obstacle.width) / step) + obstacle_padding
        min_y = math.floor(obstacle.y / step) - obstacle_padding
        max_y = math.ceil((obstacle.y + obstacle.height) / step) + obstacle_padding

        for x in range(min_x, max_x + 1):
            for y in range(min_y, max_y + 1):
                blocked.add((x, y))

    return blocked


def _manhattan(a: Cell, b: Cell) -> int:
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


def _search_bounds(start: Cell, goal: Cell, blocked: Set[Cell]) -> Tuple[int, ...]:
    xs = [start[0], goal[0]] + [c[0] for c in blocked]
    ys = [start[1], goal[1]] + [c[1] for c in blocked]
    return (
        min(xs) - SEARCH_MARGIN,
        max(xs) + SEARCH_MARGIN,
        min(ys) - SEARCH_MARGIN,
        max(ys) + SEARCH_MARGIN,
    )


def _reconstruct_path(came_from: Dict[Cell, Cell], end: Cell) -> List[Cell]:
    path = [end]
    cursor = end
    while cursor in came_from:
        cursor = came_from[cursor]
        path.append(cursor)
    path.reverse()
    return path


def find_path(start: Cell, goal: Cell, blocked: Set[Cell]) -> List[Cell]:
    """
    A* search from ``start`` to ``goal`` avoiding ``blocked`` cells.

    The open set pops the lowest estimated total first, then the lowest x,
    then the lowest y. The goal is always enterable. Exploration stays within
    the bounding box of the endpoints and the blocked cells, grown by
    SEARCH_MARGIN, which always contains a shortest path when one exists.

    Returns:
        The cell path including both endpoints, or ``[start, goal]`` when no
        path exists.
    """
    if start == goal:
        return [start]

    min_x, max_x, min_y, max_y = _search_bounds(start, goal, blocked)

    g_score: Dict[Cell, int] = {start: 0}
    came_from: Dict[Cell, Cell] = {}
    open_heap: List[Tuple[int, int, int]] = [
        (_manhattan(start, goal), start[0], start[1])
    ]
    closed: Set[Cell] = set()

    while open_heap:
        _, x, y = heapq.heappop(open_heap)
        current = (x, y)
        if current in closed:
            continue
        closed.add(current)

        if current == goal:
            return _reconstruct_path(came_from, current)

        for dx, dy in NEIGHBOR_DIRS:
            neighbor = (x + dx, y + dy)
            if not (min_x <= neighbor[0] <= max_x and min_y <= neighbor[1] <= max_y):
                continue
            if neighbor != goal and neighbor in blocked:
                continue

            tentative_g = g_score[current] + 1
            if tentative_g >= g_score.get(neighbor, math.inf):
                continue

            came_from[neighbor] = current
            g_score[neighbor] = tentative_g
            f_score = tentative_g + _manhattan(neighbor, goal)
            heapq.heappush(open_heap, (f_score, neighbor[0], neighbor[1]))

    log.debug("No path from %s to %s; using direct segment", start, goal)
    return [start, goal]


def simplify_path(path: Sequence[Cell]) -> List[Cell]:
    """Remove redundant collinear points and consecutive duplicates."""
    if len(path) <= 2:
        return list(path)

    corners = [path[0]]
    prev_dir: Optional[Cell] = None

    for i in range(1, len(path)):
        prev = path[i - 1]
        curr = path[i]
        direction = (curr[0] - prev[0], curr[1] - prev[1])
        if prev_dir is not None and direction != prev_dir:
            corners.append(prev)
        prev_dir = direction

    corners.append(path[-1])

    final = [corners[0]]
    for point in corners[1:]:
        if point != final[-1]:
            final.append(point)
    return final


def _direction(a: GridPoint, b: GridPoint) -> Cell:
    def sign(v: float) -> int:
        return (v > 0) - (v < 0)

    return (sign(b.x - a.x), sign(b.y - a.y))


def count_bends(points: Sequence[GridPoint]) -> int:
    """Count direction changes along one polyline."""
    bends = 0
    for i in range(2, len(points)):
        d1 = _direction(points[i - 2], points[i - 1])
        d2 = _direction(points[i - 1], points[i])
        if d1 != d2:
            bends += 1
    return bends


def count_crossings(routes: Sequence[RoutedEdge]) -> int:
    """
    Count crossings between perpendicular segments of different edges.

    A vertical segment crosses a horizontal one when its x lies within the
    horizontal x-span and the horizontal y lies within its y-span, ends
    included.
    """
    segments: List[Tuple[GridPoint, GridPoint, str]] = []
    for route in routes:
        for i in range(1, len(route.points)):
            segments.append((route.points[i - 1], route.points[i], route.id))

    crossings = 0
    for i, (a1, b1, id1) in enumerate(segments):
        for a2, b2, id2 in segments[i + 1 :]:
            if id1 == id2:
                continue

            s1_vertical = a1.x == b1.x
            s2_vertical = a2.x == b2.x
            if s1_vertical == s2_vertical:
                continue

            if s1_vertical:
                (va, vb), (ha, hb) = (a1, b1), (a2, b2)
            else:
                (va, vb), (ha, hb) = (a2, b2), (a1, b1)

            vx = va.x
            hy = ha.y
            if (
                min(ha.x, hb.x) <= vx <= max(ha.x, hb.x)
                and min(va.y, vb.y) <= hy <= max(va.y, vb.y)
            ):
                crossings += 1

    return crossings


def evaluate_route_cost(routes: Sequence[RoutedEdge]) -> RouteCost:
    """
    Score a set of routed polylines.

    Returns:
        RouteCost with total = length + bends * BEND_PENALTY
        + crossings * CROSSING_PENALTY.
    """
    length = 0
    bends = 0

    for route in routes:
        points = route.points
        for i in range(1, len(points)):
            length += abs(points[i].x - points[i - 1].x) + abs(
                points[i].y - points[i - 1].y
            )
        bends += count_bends(points)

    crossings = count_crossings(routes)
    return RouteCost(
        length=length,
        bends=bends,
        crossings=crossings,
        total=length + bends * BEND_PENALTY + crossings * CROSSING_PENALTY,
    )


def route_draft(router_input: DraftRouterInput) -> DraftRouterResult:
    """
    Route every edge on the grid and score the result.

    Args:
        router_input: Edges, obstacles and grid settings.

    Returns:
        DraftRouterResult with one simplified route per edge, in id order.
    """
    grid_step = max(1, math.floor(router_input.grid_step or DEFAULT_GRID_STEP))
    padding = router_input.obstacle_padding
    if padding is None:
        padding = DEFAULT_OBSTACLE_PADDING
    obstacle_padding = max(0, math.floor(padding))
    blocked = build_blocked_set(
        router_input.obstacles or [],
        router_input.blocked_cells or [],
        grid_step,
        obstacle_padding,
    )
    log.debug(
        "Draft routing %d edges over %d blocked cells (step=%d, padding=%d)",
        len(router_input.edges),
        len(blocked),
        grid_step,
        obstacle_padding,
    )

    routes: List[RoutedEdge] = []

    for edge in sorted(router_input.edges, key=lambda e: e.id):
        start = normalize_to_cell(edge.source, grid_step)
        goal = normalize_to_cell(edge.target, grid_step)

        # Endpoints are passable for their own edge only
        endpoints_blocked = {cell for cell in (start, goal) if cell in blocked}
        blocked.difference_update(endpoints_blocked)

        raw_path = find_path(start, goal, blocked)
        points = [denormalize_from_cell(c, grid_step) for c in simplify_path(raw_path)]
        routes.append(RoutedEdge(id=edge.id, points=points))

        for cell in raw_path:
            if cell != start and cell != goal:
                blocked.add(cell)
        blocked.update(endpoints_blocked)

    return DraftRouterResult(routes=routes, cost=evaluate_route_cost(routes))
