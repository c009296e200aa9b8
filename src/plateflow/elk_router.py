"""
Adapter for an external precise layout engine.

The precise engine is an injected async callable taking a graph descriptor
(node rectangles and edges by id) and returning the laid-out graph with edge
geometry. It is awaited exactly once per call; failures propagate to the
caller unchanged and no timeout is imposed.

When no engine is supplied, or an edge comes back with fewer than two
points, the draft router's route is used instead.
"""

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from .draft_router import (
    DraftRouterEdge,
    DraftRouterInput,
    evaluate_route_cost,
    route_draft,
)
from .models import GridPoint, RouteCost, RoutedEdge

log = logging.getLogger("plateflow.elk_router")

# Layout options sent with every descriptor
ELK_LAYOUT_OPTIONS: Dict[str, str] = {
    "org.eclipse.elk.algorithm": "layered",
    "org.eclipse.elk.edgeRouting": "ORTHOGONAL",
    "org.eclipse.elk.interactive": "true",
    "org.eclipse.elk.interactiveLayout": "true",
    "org.eclipse.elk.layered.considerModelOrder": "NODES_AND_EDGES",
}


@dataclass
class ElkNode:
    """A node rectangle in the descriptor."""

    id: str
    x: float
    y: float
    width: float
    height: float


@dataclass
class ElkEdge:
    """An edge between two node ids."""

    id: str
    source: str
    target: str


@dataclass
class ElkSection:
    """One geometry section of a laid-out edge."""

    start_point: Optional[GridPoint] = None
    end_point: Optional[GridPoint] = None
    bend_points: List[GridPoint] = field(default_factory=list)


@dataclass
class ElkLayoutEdge:
    id: str
    sections: List[ElkSection] = field(default_factory=list)


@dataclass
class ElkGraph:
    """Graph descriptor handed to the precise engine."""

    id: str
    children: List[ElkNode]
    edges: List[ElkEdge]
    layout_options: Dict[str, str] = field(default_factory=dict)


@dataclass
class ElkLayoutGraph:
    """Laid-out graph returned by the precise engine."""

    id: str
    children: List[ElkNode] = field(default_factory=list)
    edges: List[ElkLayoutEdge] = field(default_factory=list)


ElkLayout = Callable[[ElkGraph], Awaitable[ElkLayoutGraph]]


@dataclass
class ElkRouterInput:
    """
    Input for one precise routing call.

    Attributes:
        nodes: Node rectangles.
        edges: Edges by node id.
        draft_input: Draft routing input used for fallback routes. When
            omitted, edges are drafted between node origins.
        elk_layout: The precise engine; optional.
    """

    nodes: Sequence[ElkNode] = field(default_factory=list)
    edges: Sequence[ElkEdge] = field(default_factory=list)
    draft_input: Optional[DraftRouterInput] = None
    elk_layout: Optional[ElkLayout] = None


@dataclass
class ElkRouterResult:
    """Precise routes and their cost."""

    routes: List[RoutedEdge]
    cost: RouteCost
    fallback_used: bool
    mode: str = "elk"


def to_elk_graph(router_input: ElkRouterInput) -> ElkGraph:
    return ElkGraph(
        id="root",
        children=list(router_input.nodes),
        edges=list(router_input.edges),
        layout_options=dict(ELK_LAYOUT_OPTIONS),
    )


def points_from_section(section: ElkSection) -> List[GridPoint]:
    """Start point, bend points and end point of a section, where present."""
    points = []
    if section.start_point is not None:
        points.append(section.start_point)
    points.extend(section.bend_points or [])
    if section.end_point is not None:
        points.append(section.end_point)
    return points


def unique_consecutive(points: Sequence[GridPoint]) -> List[GridPoint]:
    """Collapse runs of identical consecutive points."""
    out: List[GridPoint] = []
    for point in points:
        if not out or (out[-1].x, out[-1].y) != (point.x, point.y):
            out.append(point)
    return out


def _default_draft_input(router_input: ElkRouterInput) -> DraftRouterInput:
    nodes = {node.id: node for node in router_input.nodes}

    def origin(node_id: str) -> GridPoint:
        node = nodes.get(node_id)
        return GridPoint(node.x, node.y) if node is not None else GridPoint(0, 0)

    return DraftRouterInput(
        edges=[
            DraftRouterEdge(
                id=edge.id, source=origin(edge.source), target=origin(edge.target)
            )
            for edge in router_input.edges
        ]
    )


async def route_elk(router_input: ElkRouterInput) -> ElkRouterResult:
    """
    Route edges with the precise engine, falling back to draft routes.

    Args:
        router_input: Nodes, edges, optional draft input and engine.

    Returns:
        ElkRouterResult. ``fallback_used`` is True only when no engine was
        supplied.

    Raises:
        Whatever the engine raises, unmodified.
    """
    draft_fallback = route_draft(
        router_input.draft_input
        if router_input.draft_input is not None
        else _default_draft_input(router_input)
    )

    if router_input.elk_layout is None:
        log.info("No precise layout engine configured; using draft routes")
        return ElkRouterResult(
            routes=draft_fallback.routes,
            cost=draft_fallback.cost,
            fallback_used=True,
        )

    layout = await router_input.elk_layout(to_elk_graph(router_input))

    fallback_by_id = {route.id: route for route in draft_fallback.routes}
    routes: List[RoutedEdge] = []
    for edge in layout.edges:
        points: List[GridPoint] = []
        for section in edge.sections or []:
            points.extend(points_from_section(section))
        route = RoutedEdge(id=edge.id, points=unique_consecutive(points))

        if len(route.points) < 2 and edge.id in fallback_by_id:
            log.debug(
                "Edge %s has %d points; using draft route", edge.id, len(route.points)
            )
            route = fallback_by_id[edge.id]
        routes.append(route)

    return ElkRouterResult(
        routes=routes,
        cost=evaluate_route_cost(routes),
        fallback_used=False,
    )
