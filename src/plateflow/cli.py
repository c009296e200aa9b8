"""
Command-line debug harness for the annealing engine.

Keeps a persisted debug session in a JSON state file and lets you step,
run, rewind and jump through an annealing run, then export its history.
The session is replayed from its seed on every command, so the file only
needs the seed, the problem configuration and the cursor to reproduce any
state; snapshots, transitions and history are kept for inspection.

Usage:
    plateflow-anneal-debug init --seed 7 --load-default-fixture
    plateflow-anneal-debug run 100
    plateflow-anneal-debug rewind 10
    plateflow-anneal-debug step
    plateflow-anneal-debug export csv history.csv
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .anneal import (
    AnnealProblem,
    AnnealState,
    AnnealTransition,
    initialize_anneal,
    run_anneal,
    step_anneal,
)
from .cost import CostBreakdown, LayoutCostInput, RoutingCostInput, compute_cost
from .fixtures import build_default_fixture_config, create_default_fixture_layout
from .history import HistoryPoint, append_history_point, history_to_csv, history_to_json

log = logging.getLogger("plateflow.cli")

DEFAULT_STATE_PATH = ".anneal-debug-state.json"
RECORD_VERSION = 1

DEFAULT_SEED = 1337
DEFAULT_MANUAL_LAYOUT = [4, 2, 7, 1, 3, 6, 8, 5]

# Values beyond this magnitude count as waste in the debug cost
WASTE_THRESHOLD = 6


@dataclass
class DebugProblemConfig:
    """Serializable part of an AnnealProblem."""

    initial_layout: List[int]
    max_nudge_step: int = 2
    initial_temperature: float = 12.0
    cooling_rate: float = 0.992
    min_temperature: float = 0.0001
    transition_buffer_size: int = 256
    enable_block_shift: bool = True


@dataclass
class AnnealDebugRecord:
    """Persisted debug session."""

    seed: int
    fixture: str
    cursor: int
    problem: DebugProblemConfig
    snapshots: List[Dict[str, Any]] = field(default_factory=list)
    transitions: List[Dict[str, Any]] = field(default_factory=list)
    history: List[HistoryPoint] = field(default_factory=list)
    version: int = RECORD_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "seed": self.seed,
            "fixture": self.fixture,
            "cursor": self.cursor,
            "problem": asdict(self.problem),
            "snapshots": self.snapshots,
            "transitions": self.transitions,
            "history": [point.to_dict() for point in self.history],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnnealDebugRecord":
        return cls(
            version=data.get("version", RECORD_VERSION),
            seed=data["seed"],
            fixture=data.get("fixture", "manual"),
            cursor=data.get("cursor", 0),
            problem=DebugProblemConfig(**data["problem"]),
            snapshots=list(data.get("snapshots", [])),
            transitions=list(data.get("transitions", [])),
            history=[HistoryPoint.from_dict(p) for p in data.get("history", [])],
        )


# --- Debug cost ---------------------------------------------------------------


def count_inversions(values: Sequence[int]) -> int:
    inversions = 0
    for i in range(len(values)):
        for j in range(i + 1, len(values)):
            if values[i] > values[j]:
                inversions += 1
    return inversions


def debug_cost(layout: Sequence[int]) -> CostBreakdown:
    """
    Synthetic cost used by the harness.

    Spans are differences between neighbours. A span longer than 1 counts as
    a bend, a negative span as a downward flow violation, a negative value
    as an outward flow violation, and every out-of-order pair as a crossing.
    """
    spans = [layout[i + 1] - layout[i] for i in range(len(layout) - 1)]
    bends = sum(1 for span in spans if abs(span) > 1)
    flow_down = sum(1 for span in spans if span < 0)
    flow_out = sum(1 for value in layout if value < 0)
    waste = sum(max(0, abs(value) - WASTE_THRESHOLD) for value in layout)

    return compute_cost(
        LayoutCostInput(positions=list(layout), spans=spans, waste=waste),
        RoutingCostInput(
            crossings=count_inversions(layout),
            bends=bends,
            flow_out_violations=flow_out,
            flow_down_violations=flow_down,
            spans=spans,
        ),
    )


def build_problem(config: DebugProblemConfig) -> AnnealProblem:
    return AnnealProblem(
        initial_layout=list(config.initial_layout),
        evaluate_cost=debug_cost,
        max_nudge_step=config.max_nudge_step,
        initial_temperature=config.initial_temperature,
        cooling_rate=config.cooling_rate,
        min_temperature=config.min_temperature,
        transition_buffer_size=config.transition_buffer_size,
        enable_block_shift=config.enable_block_shift,
    )


# --- Persistence --------------------------------------------------------------


def load_record(path: str) -> AnnealDebugRecord:
    state_path = Path(path).resolve()
    if not state_path.exists():
        raise FileNotFoundError(
            f"No state file found at {state_path}. Run 'init' first."
        )
    return AnnealDebugRecord.from_dict(
        json.loads(state_path.read_text(encoding="utf-8"))
    )


def save_record(record: AnnealDebugRecord, path: str) -> None:
    state_path = Path(path).resolve()
    state_path.write_text(
        json.dumps(record.to_dict(), indent=2) + "\n", encoding="utf-8"
    )


# --- Replay -------------------------------------------------------------------


def state_at_cursor(record: AnnealDebugRecord) -> AnnealState:
    """Replay the session from its seed up to the cursor."""
    state = initialize_anneal(build_problem(record.problem), record.seed)
    if record.cursor > 0:
        run_anneal(state, record.cursor)
    return state


def trim_to_cursor(record: AnnealDebugRecord) -> AnnealDebugRecord:
    """Drop everything recorded after the cursor."""
    kept = max(0, record.cursor)
    return AnnealDebugRecord(
        version=record.version,
        seed=record.seed,
        fixture=record.fixture,
        cursor=record.cursor,
        problem=record.problem,
        snapshots=record.snapshots[: record.cursor + 1],
        transitions=record.transitions[:kept],
        history=record.history[:kept],
    )


def summarize_transition(transition: AnnealTransition) -> str:
    proposal = transition.proposal.to_dict()
    detail = " ".join(
        f"{key}={value}"
        for key, value in proposal.items()
        if key not in ("type", "rng_state_after_proposal")
    )
    after = transition.after
    return " ".join(
        [
            f"iter={after.iteration}",
            f"temp={after.temperature:.4f}",
            f"move={transition.proposal.type}({detail})",
            f"delta={transition.delta_cost:.4f}",
            f"accepted={str(transition.accepted).lower()}",
            f"reason={transition.reason.value}",
            f"total={after.cost_breakdown.total:.4f}",
        ]
    )


def step_like(record: AnnealDebugRecord, steps: int) -> AnnealDebugRecord:
    """Advance ``steps`` steps from the cursor, discarding any later record."""
    record = trim_to_cursor(record)
    state = state_at_cursor(record)

    for _ in range(steps):
        transition = step_anneal(state)
        record.transitions.append(transition.to_dict())
        record.snapshots.append(state.snapshot().to_dict())
        record.history = append_history_point(
            record.history,
            iter=transition.after.iteration,
            temp=transition.after.temperature,
            accepted=transition.accepted,
            move_type=transition.proposal.type,
            cost=transition.after.cost_breakdown,
        )
        record.cursor = transition.after.iteration
        print(summarize_transition(transition))

    return record


# --- Commands -----------------------------------------------------------------


def cmd_init(args: argparse.Namespace) -> None:
    if args.load_default_fixture:
        fixture = build_default_fixture_config()
        graph = fixture.graph()
        log.info(
            "Default fixture: %d templates, %d edges",
            graph.number_of_nodes(),
            graph.number_of_edges(),
        )
        initial_layout = create_default_fixture_layout(fixture)
    else:
        initial_layout = list(DEFAULT_MANUAL_LAYOUT)

    problem = DebugProblemConfig(
        initial_layout=initial_layout,
        max_nudge_step=args.max_nudge_step,
        initial_temperature=args.initial_temperature,
        cooling_rate=args.cooling_rate,
        min_temperature=args.min_temperature,
        transition_buffer_size=args.buffer,
        enable_block_shift=not args.disable_block_shift,
    )
    state = initialize_anneal(build_problem(problem), args.seed)
    snapshot = state.snapshot()

    record = AnnealDebugRecord(
        seed=args.seed,
        fixture="default" if args.load_default_fixture else "manual",
        cursor=0,
        problem=problem,
        snapshots=[snapshot.to_dict()],
    )
    save_record(record, args.state)
    print(
        f"initialized state at iter=0 "
        f"total={snapshot.cost_breakdown.total:.4f} seed={args.seed}"
    )
    if args.load_default_fixture:
        print("loaded default fixture layout")


def cmd_step(args: argparse.Namespace) -> None:
    save_record(step_like(load_record(args.state), 1), args.state)


def cmd_run(args: argparse.Namespace) -> None:
    save_record(step_like(load_record(args.state), max(0, args.n)), args.state)


def cmd_rewind(args: argparse.Namespace) -> None:
    record = load_record(args.state)
    record.cursor = max(0, record.cursor - max(1, args.n))
    save_record(record, args.state)

    snapshot = record.snapshots[record.cursor]
    print(
        f"rewound to iter={snapshot['iteration']} "
        f"total={snapshot['cost_breakdown']['total']:.4f}"
    )


def cmd_jump(args: argparse.Namespace) -> None:
    record = load_record(args.state)
    record.cursor = max(0, min(args.iter, len(record.snapshots) - 1))
    save_record(record, args.state)

    snapshot = record.snapshots[record.cursor]
    print(
        f"jumped to iter={snapshot['iteration']} "
        f"total={snapshot['cost_breakdown']['total']:.4f}"
    )


def cmd_export(args: argparse.Namespace) -> None:
    record = load_record(args.state)
    extension = "csv" if args.format == "csv" else "json"
    out_path = Path(args.out or f"anneal-debug-history.{extension}").resolve()

    if args.format == "csv":
        content = history_to_csv(record.history)
    else:
        content = history_to_json(record.history)
    out_path.write_text(content + "\n", encoding="utf-8")

    print(f"exported {len(record.history)} history rows to {out_path}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="plateflow-anneal-debug",
        description="Step through a deterministic annealing run.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )

    state_parent = argparse.ArgumentParser(add_help=False)
    state_parent.add_argument(
        "--state", default=DEFAULT_STATE_PATH, help="Path of the state file"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    init = subparsers.add_parser(
        "init", parents=[state_parent], help="Create a new debug session"
    )
    init.add_argument("--seed", type=int, default=DEFAULT_SEED)
    init.add_argument("--load-default-fixture", action="store_true")
    init.add_argument("--max-nudge-step", type=int, default=2)
    init.add_argument("--initial-temperature", type=float, default=12.0)
    init.add_argument("--cooling-rate", type=float, default=0.992)
    init.add_argument("--min-temperature", type=float, default=0.0001)
    init.add_argument("--buffer", type=int, default=256)
    init.add_argument("--disable-block-shift", action="store_true")
    init.set_defaults(handler=cmd_init)

    step = subparsers.add_parser(
        "step", parents=[state_parent], help="Advance one step"
    )
    step.set_defaults(handler=cmd_step)

    run = subparsers.add_parser("run", parents=[state_parent], help="Advance N steps")
    run.add_argument("n", type=int)
    run.set_defaults(handler=cmd_run)

    rewind = subparsers.add_parser(
        "rewind", parents=[state_parent], help="Move the cursor back N steps"
    )
    rewind.add_argument("n", type=int, nargs="?", default=1)
    rewind.set_defaults(handler=cmd_rewind)

    jump = subparsers.add_parser(
        "jump", parents=[state_parent], help="Move the cursor to an iteration"
    )
    jump.add_argument("iter", type=int)
    jump.set_defaults(handler=cmd_jump)

    export = subparsers.add_parser(
        "export", parents=[state_parent], help="Write the history to a file"
    )
    export.add_argument(
        "format", nargs="?", default="json", type=str.lower, choices=("json", "csv")
    )
    export.add_argument("out", nargs="?")
    export.set_defaults(handler=cmd_export)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(name)s: %(message)s",
    )

    try:
        args.handler(args)
    except FileNotFoundError as e:
        log.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
