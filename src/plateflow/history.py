"""
Optimization history tooling.

Accumulates one HistoryPoint per annealing step and derives debugging views
from it:
- Rolling acceptance ratio over a sliding window
- Per-term cost trend summaries over the most recent points
- CSV and JSON exports (write-once snapshots, never parsed back)

Usage:
    >>> history = []
    >>> for transition in export_full_trace(state):
    ...     history = append_history_point(
    ...         history,
    ...         iter=transition.after.iteration,
    ...         temp=transition.after.temperature,
    ...         accepted=transition.accepted,
    ...         move_type=transition.proposal.type,
    ...         cost=transition.after.cost_breakdown,
    ...     )
    >>> print(history_to_csv(history))
"""

import csv
import io
import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from .cost import COST_TERMS, CostBreakdown

DEFAULT_ACCEPTANCE_WINDOW = 50
DEFAULT_TREND_WINDOW = 200

HISTORY_HEADERS = ("iter", "temp", "accepted", "moveType") + COST_TERMS


@dataclass
class HistoryPoint:
    """State of the optimization after one step."""

    iter: int
    temp: float
    accepted: bool
    move_type: str
    cost: CostBreakdown = field(default_factory=CostBreakdown)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "iter": self.iter,
            "temp": self.temp,
            "accepted": self.accepted,
            "moveType": self.move_type,
            **self.cost.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryPoint":
        return cls(
            iter=data["iter"],
            temp=data["temp"],
            accepted=data["accepted"],
            move_type=data["moveType"],
            cost=CostBreakdown.from_dict(data),
        )

    def term(self, name: str) -> float:
        return getattr(self.cost, name)


@dataclass
class AcceptancePoint:
    iter: int
    acceptance_ratio: float
    window_size: int


@dataclass
class TermTrendSummary:
    """Trend of one cost term over a window of history."""

    term: str
    start: float = 0.0
    end: float = 0.0
    min: float = 0.0
    max: float = 0.0
    mean: float = 0.0
    delta: float = 0.0
    slope_per_iter: float = 0.0
    direction: str = "flat"


@dataclass
class HistoryTrendSummary:
    window_size: int
    points: int
    terms: List[TermTrendSummary] = field(default_factory=list)


def append_history_point(
    history: Sequence[HistoryPoint],
    iter: int,
    temp: float,
    accepted: bool,
    move_type: str,
    cost: CostBreakdown,
) -> List[HistoryPoint]:
    """Return a new history list with one point appended."""
    point = HistoryPoint(
        iter=iter,
        temp=temp,
        accepted=accepted,
        move_type=move_type,
        cost=cost.copy(),
    )
    return [*history, point]


def rolling_acceptance_ratio(
    history: Sequence[HistoryPoint], window_size: int = DEFAULT_ACCEPTANCE_WINDOW
) -> List[AcceptancePoint]:
    """
    Acceptance ratio over the trailing window ending at each point.

    The window holds up to ``window_size`` points (floored, at least 1) and
    is shorter at the start of the history.
    """
    safe_window = max(1, math.floor(window_size))
    out = []

    for i, point in enumerate(history):
        window = history[max(0, i - safe_window + 1) : i + 1]
        accepted = sum(1 for p in window if p.accepted)
        out.append(
            AcceptancePoint(
                iter=point.iter,
                acceptance_ratio=accepted / len(window) if window else 0.0,
                window_size=len(window),
            )
        )

    return out


def _summarize_term(
    term: str, history: Sequence[HistoryPoint], start_index: int
) -> TermTrendSummary:
    if not history or start_index >= len(history):
        return TermTrendSummary(term=term)

    window = history[start_index:]
    values = [point.term(term) for point in window]
    first = values[0]
    last = values[-1]
    delta = last - first
    iter_delta = max(1, window[-1].iter - window[0].iter)

    if delta > 0:
        direction = "up"
    elif delta < 0:
        direction = "down"
    else:
        direction = "flat"

    return TermTrendSummary(
        term=term,
        start=first,
        end=last,
        min=min(values),
        max=max(values),
        mean=sum(values) / len(values),
        delta=delta,
        slope_per_iter=delta / iter_delta,
        direction=direction,
    )


def summarize_cost_trends(
    history: Sequence[HistoryPoint], window_size: int = DEFAULT_TREND_WINDOW
) -> HistoryTrendSummary:
    """Summarize every cost term over the last ``window_size`` points."""
    safe_window = max(1, math.floor(window_size))
    start_index = max(0, len(history) - safe_window)

    return HistoryTrendSummary(
        window_size=safe_window,
        points=max(0, len(history) - start_index),
        terms=[_summarize_term(term, history, start_index) for term in COST_TERMS],
    )


def history_to_json(history: Sequence[HistoryPoint]) -> str:
    return json.dumps([point.to_dict() for point in history])


def _csv_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _write_csv(headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_csv_value(v) for v in row])
    return buffer.getvalue().rstrip("\n")


def history_to_csv(history: Sequence[HistoryPoint]) -> str:
    """
    Render history as CSV.

    Header: ``iter,temp,accepted,moveType`` followed by every cost term.
    Values containing a comma, quote or newline are quoted with internal
    quotes doubled.
    """
    rows = []
    for point in history:
        data = point.to_dict()
        rows.append([data[header] for header in HISTORY_HEADERS])
    return _write_csv(HISTORY_HEADERS, rows)


def acceptance_to_csv(points: Sequence[AcceptancePoint]) -> str:
    return _write_csv(
        ("iter", "acceptanceRatio", "windowSize"),
        [(p.iter, p.acceptance_ratio, p.window_size) for p in points],
    )


def trend_summary_to_json(summary: HistoryTrendSummary) -> str:
    return json.dumps(
        {
            "windowSize": summary.window_size,
            "points": summary.points,
            "terms": [
                {
                    "term": t.term,
                    "start": t.start,
                    "end": t.end,
                    "min": t.min,
                    "max": t.max,
                    "mean": t.mean,
                    "delta": t.delta,
                    "slopePerIter": t.slope_per_iter,
                    "direction": t.direction,
                }
                for t in summary.terms
            ],
        }
    )
