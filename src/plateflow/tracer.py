"""
Decision tracing for the router facade.

Every facade call produces one RouteDebugTrace entry per step, recording the
draft cost, the precise cost when the precise router ran, and the cost and
score that were selected. This shows when an optimization run trusted the
cheap approximation and when it paid for a precise rescoring.

Usage:
    >>> result = asyncio.run(route_with_facade(facade_input))
    >>> print(summarize_route_trace(result.trace))
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .models import RouteCost


@dataclass
class RouteDebugTrace:
    """
    Record of one facade step.

    Attributes:
        step_index: Position of the step in the sequence.
        label: Optional caller-supplied label.
        mode: Facade mode value ("draft", "elk" or "hybrid").
        accepted: Whether the caller marked the step accepted.
        draft_cost: Cost of the draft routes.
        elk_cost: Cost of the precise routes, when the precise router ran.
        selected_cost: Cost of the routes that were selected.
        selected_score: Score of the selected cost.
    """

    step_index: int
    mode: str
    accepted: bool
    draft_cost: RouteCost
    selected_cost: RouteCost
    selected_score: float
    label: Optional[str] = None
    elk_cost: Optional[RouteCost] = None

    @property
    def rescored(self) -> bool:
        return self.elk_cost is not None

    def __str__(self) -> str:
        label = f" {self.label}" if self.label else ""
        source = "elk" if self.rescored else "draft"
        return (
            f"[{self.step_index}]{label} mode={self.mode} "
            f"accepted={self.accepted} selected={source} "
            f"draft={self.draft_cost.total:g} "
            f"score={self.selected_score:g}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_index": self.step_index,
            "label": self.label,
            "mode": self.mode,
            "accepted": self.accepted,
            "draft_cost": self.draft_cost.to_dict(),
            "elk_cost": self.elk_cost.to_dict() if self.elk_cost else None,
            "selected_cost": self.selected_cost.to_dict(),
            "selected_score": self.selected_score,
        }


def summarize_route_trace(trace: Sequence[RouteDebugTrace]) -> str:
    """
    Generate a human-readable summary of a facade trace.

    Returns a string with step, acceptance and rescoring counts followed by
    one line per step.
    """
    lines: List[str] = [
        "=" * 60,
        "ROUTER TRACE SUMMARY",
        "=" * 60,
        "",
        f"Steps: {len(trace)}",
        f"Accepted steps: {sum(1 for entry in trace if entry.accepted)}",
        f"Precise rescorings: {sum(1 for entry in trace if entry.rescored)}",
        "",
    ]
    for entry in trace:
        lines.append(f"  {entry}")
    return "\n".join(lines)
