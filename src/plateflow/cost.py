"""
Layout cost model.

Turns raw layout and routing measurements into a weighted, decomposable
scalar cost. Every term is scaled by its own weight and ``total`` is the sum
of the nine weighted terms.

The aggregate terms ``F`` and ``S`` recombine ``F_out + F_down`` and
``S_span + S_waste``. Giving non-zero weight to both the parts and the
aggregate counts that contribution twice.
"""

import math
from dataclasses import dataclass, field, fields
from typing import Dict, Mapping, Optional, Sequence

# Order used by history export and trend summaries
COST_TERMS = (
    "total",
    "L",
    "X",
    "B",
    "F_out",
    "F_down",
    "F",
    "S_span",
    "S_waste",
    "S",
)

WEIGHTED_TERMS = COST_TERMS[1:]

DEFAULT_TERM_WEIGHT = 1.0


@dataclass
class CostBreakdown:
    """
    Named decomposition of a layout cost.

    Attributes:
        total: Sum of the nine weighted terms.
        L: Compactness, weighted sum of absolute positions.
        X: Weighted edge crossing count.
        B: Weighted bend count.
        F_out: Weighted outward flow violations.
        F_down: Weighted downward flow violations.
        F: Weighted aggregate of both flow violation counts.
        S_span: Weighted sum of absolute spans.
        S_waste: Weighted waste.
        S: Weighted aggregate of span and waste.
    """

    total: float = 0.0
    L: float = 0.0
    X: float = 0.0
    B: float = 0.0
    F_out: float = 0.0
    F_down: float = 0.0
    F: float = 0.0
    S_span: float = 0.0
    S_waste: float = 0.0
    S: float = 0.0

    def copy(self) -> "CostBreakdown":
        return CostBreakdown(**self.to_dict())

    def to_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Mapping[str, float]) -> "CostBreakdown":
        return cls(**{term: data.get(term, 0.0) for term in COST_TERMS})


@dataclass
class LayoutCostInput:
    """Measurements taken from the node layout."""

    positions: Optional[Sequence[float]] = None
    spans: Optional[Sequence[float]] = None
    waste: Optional[float] = None


@dataclass
class RoutingCostInput:
    """Measurements taken from routed edges."""

    crossings: Optional[float] = None
    bends: Optional[float] = None
    flow_out_violations: Optional[float] = None
    flow_down_violations: Optional[float] = None
    spans: Optional[Sequence[float]] = None


@dataclass
class CostConfig:
    """Per-term weights; a missing, None or non-finite weight counts as 1."""

    weights: Dict[str, Optional[float]] = field(default_factory=dict)

    def weight(self, term: str) -> float:
        value = self.weights.get(term)
        if value is None or not math.isfinite(value):
            return DEFAULT_TERM_WEIGHT
        return value


def _finite_or_zero(value: Optional[float]) -> float:
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _abs_sum(values: Sequence[float]) -> float:
    return sum(abs(_finite_or_zero(v)) for v in values)


def compute_cost(
    layout: LayoutCostInput,
    routing: RoutingCostInput,
    config: Optional[CostConfig] = None,
) -> CostBreakdown:
    """
    Compute the full cost decomposition.

    Missing or non-finite measurements count as 0. When both the layout and
    the routing input carry spans, the layout spans are used.

    Args:
        layout: Position, span and waste measurements.
        routing: Crossing, bend, flow and span measurements.
        config: Optional per-term weights.

    Returns:
        CostBreakdown whose total is the sum of the weighted terms.
    """
    config = config or CostConfig()

    positions = layout.positions if layout.positions is not None else []
    if layout.spans is not None:
        spans = layout.spans
    elif routing.spans is not None:
        spans = routing.spans
    else:
        spans = []

    base_f_out = _finite_or_zero(routing.flow_out_violations)
    base_f_down = _finite_or_zero(routing.flow_down_violations)
    base_s_span = _abs_sum(spans)
    base_s_waste = _finite_or_zero(layout.waste)

    raw = {
        "L": _abs_sum(positions),
        "X": _finite_or_zero(routing.crossings),
        "B": _finite_or_zero(routing.bends),
        "F_out": base_f_out,
        "F_down": base_f_down,
        "F": base_f_out + base_f_down,
        "S_span": base_s_span,
        "S_waste": base_s_waste,
        "S": base_s_span + base_s_waste,
    }

    terms = {term: raw[term] * config.weight(term) for term in WEIGHTED_TERMS}
    return CostBreakdown(total=sum(terms.values()), **terms)


def compute_delta_cost(prev: CostBreakdown, next: CostBreakdown) -> CostBreakdown:
    """Field-wise ``next - prev``, total included."""
    return CostBreakdown(
        **{term: getattr(next, term) - getattr(prev, term) for term in COST_TERMS}
    )


def zero_cost_breakdown() -> CostBreakdown:
    return CostBreakdown()
