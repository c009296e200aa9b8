"""Pytest configuration and shared fixtures for PlateFlow tests."""

import pytest

from plateflow import (
    AnnealProblem,
    DraftRouterEdge,
    DraftRouterInput,
    ElkLayoutEdge,
    ElkLayoutGraph,
    ElkSection,
    GridPoint,
    GridRect,
    LayoutCostInput,
    RoutingCostInput,
    compute_cost,
)


def inversion_cost(layout):
    """Cost that rewards sorted layouts: crossings are out-of-order pairs."""
    crossings = sum(
        1
        for i in range(len(layout))
        for j in range(i + 1, len(layout))
        if layout[i] > layout[j]
    )
    return compute_cost(
        LayoutCostInput(positions=layout),
        RoutingCostInput(crossings=crossings * 10),
    )


@pytest.fixture
def cost_fn():
    """Deterministic layout cost callback."""
    return inversion_cost


@pytest.fixture
def problem():
    """Small annealing problem over [4, 2, 7, 1]."""
    return AnnealProblem(initial_layout=[4, 2, 7, 1], evaluate_cost=inversion_cost)


@pytest.fixture
def straight_edge_input():
    """A single edge along the x axis with no obstacles."""
    return DraftRouterInput(
        edges=[DraftRouterEdge("e1", GridPoint(0, 0), GridPoint(4, 0))]
    )


@pytest.fixture
def obstacle_input():
    """An edge whose straight path is covered by an obstacle on x 1..3, y -1..1."""
    return DraftRouterInput(
        edges=[DraftRouterEdge("e1", GridPoint(0, 0), GridPoint(4, 0))],
        obstacles=[GridRect(1, -1, 2, 2)],
        obstacle_padding=0,
    )


def make_elk_layout(sections_by_edge, calls=None):
    """
    Build an async precise-layout stub.

    Each call records the graph it received in ``calls`` and returns the
    given sections per edge id.
    """

    async def elk_layout(graph):
        if calls is not None:
            calls.append(graph)
        return ElkLayoutGraph(
            id=graph.id,
            children=list(graph.children),
            edges=[
                ElkLayoutEdge(id=edge_id, sections=sections)
                for edge_id, sections in sections_by_edge.items()
            ],
        )

    return elk_layout


@pytest.fixture
def l_shaped_section():
    """One precise section from (0, 0) bending at (0, 3) to (5, 3)."""
    return ElkSection(
        start_point=GridPoint(0, 0),
        end_point=GridPoint(5, 3),
        bend_points=[GridPoint(0, 3)],
    )


@pytest.fixture
def elk_layout_factory():
    """Factory for async precise-layout stubs."""
    return make_elk_layout
