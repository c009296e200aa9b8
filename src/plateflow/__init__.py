"""
PlateFlow - Deterministic layout optimization and edge routing for plate diagrams

A Python library that anneals diagram layouts with a seeded, replayable
simulated-annealing engine and routes edges on a grid, either with a fast
A* draft router, a precise layout engine, or a hybrid of both.

Example:
    >>> from plateflow import AnnealProblem, initialize_anneal, run_anneal
    >>> state = initialize_anneal(AnnealProblem([4, 2, 7, 1], cost_fn), seed=7)
    >>> run_anneal(state, 200)
    >>> print(state.cost_breakdown.total)

Routing Example:
    >>> from plateflow import DraftRouterEdge, DraftRouterInput, GridPoint
    >>> from plateflow import route_draft
    >>> edge = DraftRouterEdge("e1", GridPoint(0, 0), GridPoint(3, 0))
    >>> result = route_draft(DraftRouterInput(edges=[edge]))
    >>> print(result.cost.total)
"""

from .anneal import (
    AcceptReason,
    AnnealMove,
    AnnealProblem,
    AnnealSnapshot,
    AnnealState,
    AnnealTransition,
    BlockShiftMove,
    MoveType,
    NudgeMove,
    ReinsertMove,
    RngState,
    SwapMove,
    TransitionRingBuffer,
    accept_move,
    apply_move,
    export_full_trace,
    export_transition_ring,
    initialize_anneal,
    propose_move,
    run_anneal,
    step_anneal,
)
from .cost import (
    COST_TERMS,
    CostBreakdown,
    CostConfig,
    LayoutCostInput,
    RoutingCostInput,
    compute_cost,
    compute_delta_cost,
    zero_cost_breakdown,
)
from .draft_router import (
    DraftRouterEdge,
    DraftRouterInput,
    DraftRouterResult,
    evaluate_route_cost,
    route_draft,
)
from .elk_router import (
    ElkEdge,
    ElkGraph,
    ElkLayoutEdge,
    ElkLayoutGraph,
    ElkNode,
    ElkRouterInput,
    ElkRouterResult,
    ElkSection,
    route_elk,
)
from .fixtures import build_default_fixture_config, create_default_fixture_layout
from .history import (
    HistoryPoint,
    append_history_point,
    history_to_csv,
    history_to_json,
    rolling_acceptance_ratio,
    summarize_cost_trends,
)
from .ir import (
    DimDecl,
    EdgeTemplate,
    NodeTemplate,
    PlateHierarchy,
    infer_plate_hierarchies,
    normalize_dims,
)
from .models import GridPoint, GridRect, RouteCost, RoutedEdge
from .router_facade import (
    RouterFacadeInput,
    RouterFacadeResult,
    RouterMode,
    RouterStep,
    route_with_facade,
)
from .tracer import RouteDebugTrace, summarize_route_trace

__version__ = "0.1.0"

__all__ = [
    # Models
    "GridPoint",
    "GridRect",
    "RoutedEdge",
    "RouteCost",
    # Cost
    "COST_TERMS",
    "CostBreakdown",
    "CostConfig",
    "LayoutCostInput",
    "RoutingCostInput",
    "compute_cost",
    "compute_delta_cost",
    "zero_cost_breakdown",
    # Annealing
    "AnnealProblem",
    "AnnealState",
    "AnnealSnapshot",
    "AnnealTransition",
    "AnnealMove",
    "NudgeMove",
    "SwapMove",
    "ReinsertMove",
    "BlockShiftMove",
    "MoveType",
    "AcceptReason",
    "RngState",
    "TransitionRingBuffer",
    "initialize_anneal",
    "propose_move",
    "apply_move",
    "accept_move",
    "step_anneal",
    "run_anneal",
    "export_transition_ring",
    "export_full_trace",
    # Routing
    "DraftRouterEdge",
    "DraftRouterInput",
    "DraftRouterResult",
    "evaluate_route_cost",
    "route_draft",
    "ElkNode",
    "ElkEdge",
    "ElkSection",
    "ElkLayoutEdge",
    "ElkGraph",
    "ElkLayoutGraph",
    "ElkRouterInput",
    "ElkRouterResult",
    "route_elk",
    "RouterMode",
    "RouterStep",
    "RouterFacadeInput",
    "RouterFacadeResult",
    "route_with_facade",
    # History
    "HistoryPoint",
    "append_history_point",
    "rolling_acceptance_ratio",
    "summarize_cost_trends",
    "history_to_json",
    "history_to_csv",
    # Plate IR and fixtures
    "DimDecl",
    "NodeTemplate",
    "EdgeTemplate",
    "PlateHierarchy",
    "normalize_dims",
    "infer_plate_hierarchies",
    "build_default_fixture_config",
    "create_default_fixture_layout",
    # Debug/Tracing
    "RouteDebugTrace",
    "summarize_route_trace",
]
