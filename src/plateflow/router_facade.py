"""
Router facade: chooses between draft and precise routing per step.

Modes:
- draft: always use the grid router
- elk: always attempt the precise router (with its own draft fallbacks)
- hybrid: walk a sequence of steps and only pay for the precise router once
  enough accepted steps have accumulated, or on the final step

Every mode returns a trace with one entry per step.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence, Union

from .draft_router import DraftRouterInput, DraftRouterResult, route_draft
from .elk_router import ElkRouterInput, ElkRouterResult, route_elk
from .models import RouteCost
from .tracer import RouteDebugTrace

log = logging.getLogger("plateflow.router_facade")

# Accepted steps between precise rescorings in hybrid mode
DEFAULT_HYBRID_RESCORE_EVERY_ACCEPTED = 10


class RouterMode(Enum):
    """Routing policy."""

    DRAFT = "draft"
    ELK = "elk"
    HYBRID = "hybrid"


@dataclass
class RouterStep:
    """
    One optimization step as seen by the facade.

    Attributes:
        draft: Draft routing input for this step.
        elk: Precise routing input (its draft_input is replaced by ``draft``).
        accepted: Whether the optimizer accepted this step.
        label: Optional label copied into the trace.
    """

    draft: DraftRouterInput
    elk: Optional[ElkRouterInput] = None
    accepted: bool = False
    label: Optional[str] = None


ScoreFunction = Callable[[RouteCost], float]


@dataclass
class RouterFacadeInput:
    """
    Input for one facade call.

    Attributes:
        mode: Routing policy.
        step: The step routed in draft and elk modes (and the lone hybrid
            step when no sequence is given).
        steps_for_hybrid: Step sequence for hybrid mode.
        hybrid_rescore_every_accepted: Accepted steps between precise
            rescorings (floored, at least 1).
        score: Optional scoring of a RouteCost; defaults to its total.
    """

    mode: RouterMode
    step: RouterStep
    steps_for_hybrid: Optional[Sequence[RouterStep]] = None
    hybrid_rescore_every_accepted: float = DEFAULT_HYBRID_RESCORE_EVERY_ACCEPTED
    score: Optional[ScoreFunction] = None


@dataclass
class RouterFacadeResult:
    selected: Union[DraftRouterResult, ElkRouterResult]
    trace: List[RouteDebugTrace] = field(default_factory=list)


def score_cost(cost: RouteCost, score: Optional[ScoreFunction] = None) -> float:
    return score(cost) if score is not None else cost.total


def _with_draft(elk: ElkRouterInput, draft: DraftRouterInput) -> ElkRouterInput:
    return ElkRouterInput(
        nodes=elk.nodes,
        edges=elk.edges,
        draft_input=draft,
        elk_layout=elk.elk_layout,
    )


async def _run_hybrid(facade_input: RouterFacadeInput) -> RouterFacadeResult:
    steps = list(facade_input.steps_for_hybrid or [facade_input.step])
    cadence = facade_input.hybrid_rescore_every_accepted
    if cadence is None:
        cadence = DEFAULT_HYBRID_RESCORE_EVERY_ACCEPTED
    every = max(1, math.floor(cadence))
    accepted_since_elk = 0

    selected: Optional[Union[DraftRouterResult, ElkRouterResult]] = None
    trace: List[RouteDebugTrace] = []

    for i, step in enumerate(steps):
        accepted = bool(step.accepted)
        draft = route_draft(step.draft)

        if accepted:
            accepted_since_elk += 1

        elk: Optional[ElkRouterResult] = None
        is_last = i == len(steps) - 1
        if step.elk is not None and (accepted_since_elk >= every or is_last):
            log.debug(
                "Hybrid step %d: precise rescoring after %d accepted steps",
                i,
                accepted_since_elk,
            )
            elk = await route_elk(_with_draft(step.elk, step.draft))
            accepted_since_elk = 0

        selected_cost = elk.cost if elk is not None else draft.cost
        trace.append(
            RouteDebugTrace(
                step_index=i,
                label=step.label,
                mode=RouterMode.HYBRID.value,
                accepted=accepted,
                draft_cost=draft.cost.copy(),
                elk_cost=elk.cost.copy() if elk is not None else None,
                selected_cost=selected_cost.copy(),
                selected_score=score_cost(selected_cost, facade_input.score),
            )
        )
        selected = elk if elk is not None else draft

    return RouterFacadeResult(selected=selected, trace=trace)


async def route_with_facade(facade_input: RouterFacadeInput) -> RouterFacadeResult:
    """
    Route according to ``facade_input.mode``.

    Args:
        facade_input: Mode, step(s), cadence and scoring.

    Returns:
        RouterFacadeResult with the selected routing of the last step and a
        trace entry per step.

    Raises:
        Any exception raised by the precise layout engine, unmodified.
    """
    mode = RouterMode(facade_input.mode)
    step = facade_input.step

    if mode == RouterMode.DRAFT:
        draft = route_draft(step.draft)
        return RouterFacadeResult(
            selected=draft,
            trace=[
                RouteDebugTrace(
                    step_index=0,
                    label=step.label,
                    mode=mode.value,
                    accepted=bool(step.accepted),
                    draft_cost=draft.cost.copy(),
                    selected_cost=draft.cost.copy(),
                    selected_score=score_cost(draft.cost, facade_input.score),
                )
            ],
        )

    if mode == RouterMode.ELK:
        elk_input = step.elk if step.elk is not None else ElkRouterInput()
        elk = await route_elk(_with_draft(elk_input, step.draft))
        draft_cost = route_draft(step.draft).cost
        return RouterFacadeResult(
            selected=elk,
            trace=[
                RouteDebugTrace(
                    step_index=0,
                    label=step.label,
                    mode=mode.value,
                    accepted=bool(step.accepted),
                    draft_cost=draft_cost.copy(),
                    elk_cost=elk.cost.copy(),
                    selected_cost=elk.cost.copy(),
                    selected_score=score_cost(elk.cost, facade_input.score),
                )
            ],
        )

    return await _run_hybrid(facade_input)
