"""
Simulated annealing engine for 1-D node placement.

The engine holds one optimization session (``AnnealState``) and advances it
one step at a time:

1. ``propose_move`` draws a random move without touching the session
2. ``apply_move`` builds a candidate session with the move applied
3. ``accept_move`` decides acceptance with the Metropolis rule
4. ``step_anneal`` composes the three and updates the session in place

Randomness is threaded functionally: every draw takes an ``RngState`` and
returns a new one, so a seed and a problem fully determine the transition
sequence. Transitions and snapshots are deep copies and never alias the live
session.

Usage:
    >>> problem = AnnealProblem(initial_layout=[4, 2, 7, 1], evaluate_cost=cost_fn)
    >>> state = initialize_anneal(problem, seed=1337)
    >>> run_anneal(state, 500)
    >>> history = export_transition_ring(state)
"""

import logging
import math
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from .cost import CostBreakdown

log = logging.getLogger("plateflow.anneal")

# =============================================================================
# ANNEALING CONFIGURATION
# =============================================================================

DEFAULT_INITIAL_TEMPERATURE = 10.0
DEFAULT_COOLING_RATE = 0.995
DEFAULT_MIN_TEMPERATURE = 0.0001
DEFAULT_TRANSITION_BUFFER_SIZE = 256
DEFAULT_MAX_NUDGE_STEP = 1

# xorshift32 has an absorbing all-zero state; zero seeds are remapped to this
ZERO_SEED_REPLACEMENT = 0x6D2B79F5

# Floor for the temperature in the Metropolis exponent
MIN_METROPOLIS_TEMPERATURE = 1e-12

# =============================================================================

_UINT32_MASK = 0xFFFFFFFF
_UINT32_RANGE = 4294967296


class MoveType(Enum):
    """Kinds of layout perturbation."""

    NUDGE = "nudge"
    SWAP = "swap"
    REINSERT = "reinsert"
    BLOCK_SHIFT = "blockShift"


class AcceptReason(Enum):
    """Why a transition was accepted or rejected."""

    IMPROVED = "improved"
    EQUAL = "equal"
    METROPOLIS = "metropolis"
    REJECTED = "rejected"


# --- RNG ----------------------------------------------------------------------


@dataclass(frozen=True)
class RngState:
    """Immutable xorshift32 state. Never zero once sanitized."""

    seed: int


def _to_int32(value: int) -> int:
    value &= _UINT32_MASK
    return value - _UINT32_RANGE if value >= 0x80000000 else value


def sanitize_seed(seed: Union[int, float]) -> int:
    """Truncate to a signed 32-bit integer, mapping 0 to a fixed constant."""
    if isinstance(seed, float) and not math.isfinite(seed):
        n = 0
    else:
        n = _to_int32(int(seed))
    return ZERO_SEED_REPLACEMENT if n == 0 else n


def next_rng(state: RngState) -> Tuple[float, RngState]:
    """
    Draw one value in [0, 1).

    Returns:
        Tuple of (value, next state). The input state is not modified.
    """
    x = state.seed & _UINT32_MASK
    x ^= (x << 13) & _UINT32_MASK
    x ^= x >> 17
    x ^= (x << 5) & _UINT32_MASK

    next_state = RngState(sanitize_seed(_to_int32(x)))
    value = (next_state.seed & _UINT32_MASK) / _UINT32_RANGE
    return value, next_state


def rand_int(max_exclusive: int, state: RngState) -> Tuple[int, RngState]:
    """Draw an integer in [0, max_exclusive); an empty range draws nothing."""
    if max_exclusive <= 0:
        return 0, state

    u, next_state = next_rng(state)
    return math.floor(u * max_exclusive), next_state


# --- Moves --------------------------------------------------------------------


class AnnealMove:
    """Base class for proposed moves; each carries the RNG state after its draws."""

    move_type: ClassVar[MoveType]
    rng_state_after_proposal: RngState

    @property
    def type(self) -> str:
        return self.move_type.value

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["rng_state_after_proposal"] = self.rng_state_after_proposal.seed
        return {"type": self.type, **data}


@dataclass(frozen=True)
class NudgeMove(AnnealMove):
    move_type: ClassVar[MoveType] = MoveType.NUDGE

    index: int
    delta: int
    rng_state_after_proposal: RngState


@dataclass(frozen=True)
class SwapMove(AnnealMove):
    move_type: ClassVar[MoveType] = MoveType.SWAP

    a: int
    b: int
    rng_state_after_proposal: RngState


@dataclass(frozen=True)
class ReinsertMove(AnnealMove):
    move_type: ClassVar[MoveType] = MoveType.REINSERT

    from_index: int
    to_index: int
    rng_state_after_proposal: RngState


@dataclass(frozen=True)
class BlockShiftMove(AnnealMove):
    move_type: ClassVar[MoveType] = MoveType.BLOCK_SHIFT

    start: int
    end: int
    shift: int
    rng_state_after_proposal: RngState


# --- Problem, snapshots, transitions -----------------------------------------

CostFunction = Callable[[Sequence[int]], CostBreakdown]


@dataclass
class AnnealProblem:
    """
    Problem description and schedule for one annealing session.

    Attributes:
        initial_layout: Starting placement, one integer per diagram element.
        evaluate_cost: Pure cost callback over a layout.
        max_nudge_step: Largest nudge magnitude (at least 1).
        initial_temperature: Starting temperature (negative values become 0).
        cooling_rate: Multiplicative cooling per step.
        min_temperature: Temperature floor.
        transition_buffer_size: Ring buffer capacity (at least 1).
        capture_full_trace: Keep every transition in an unbounded list.
        enable_block_shift: Add the block-shift move to the proposal mix.
    """

    initial_layout: List[int]
    evaluate_cost: CostFunction
    max_nudge_step: int = DEFAULT_MAX_NUDGE_STEP
    initial_temperature: float = DEFAULT_INITIAL_TEMPERATURE
    cooling_rate: float = DEFAULT_COOLING_RATE
    min_temperature: float = DEFAULT_MIN_TEMPERATURE
    transition_buffer_size: int = DEFAULT_TRANSITION_BUFFER_SIZE
    capture_full_trace: bool = False
    enable_block_shift: bool = False


@dataclass(frozen=True)
class AnnealSnapshot:
    """Independent copy of the optimization state at one iteration."""

    iteration: int
    temperature: float
    layout: List[int]
    cost_breakdown: CostBreakdown
    rng_state: RngState

    def to_dict(self) -> Dict[str, Any]:
        return {
            "iteration": self.iteration,
            "temperature": self.temperature,
            "layout": list(self.layout),
            "cost_breakdown": self.cost_breakdown.to_dict(),
            "rng_state": self.rng_state.seed,
        }


@dataclass(frozen=True)
class AnnealTransition:
    """Record of one optimization step."""

    proposal: AnnealMove
    delta_cost: float
    accepted: bool
    reason: AcceptReason
    before: AnnealSnapshot
    after: AnnealSnapshot

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposal": self.proposal.to_dict(),
            "delta_cost": self.delta_cost,
            "accepted": self.accepted,
            "reason": self.reason.value,
            "before": self.before.to_dict(),
            "after": self.after.to_dict(),
        }


class TransitionRingBuffer:
    """
    Fixed-capacity log of the most recent transitions.

    Appending to a full buffer silently evicts the oldest entry.
    """

    def __init__(self, capacity: int):
        self.capacity = max(1, int(capacity))
        self.head = 0
        self.size = 0
        self.entries: List[Optional[AnnealTransition]] = [None] * self.capacity

    def __len__(self) -> int:
        return self.size

    def append(self, transition: AnnealTransition) -> None:
        self.entries[self.head] = transition
        self.head = (self.head + 1) % self.capacity
        self.size = min(self.size + 1, self.capacity)

    def export(self) -> List[AnnealTransition]:
        """Return retained transitions oldest first, as a new list."""
        out = []
        for i in range(self.size):
            index = (self.head - self.size + i) % self.capacity
            transition = self.entries[index]
            if transition is not None:
                out.append(transition)
        return out


@dataclass
class AnnealState:
    """
    Mutable optimization session.

    Updated in place by ``step_anneal``; candidate sessions built during a
    step share ``problem`` and the buffers but are never stored.
    """

    problem: AnnealProblem
    iteration: int
    temperature: float
    layout: List[int]
    cost_breakdown: CostBreakdown
    rng_state: RngState
    transition_buffer: TransitionRingBuffer
    full_trace_enabled: bool = False
    full_trace: List[AnnealTransition] = field(default_factory=list)

    def snapshot(self) -> AnnealSnapshot:
        return AnnealSnapshot(
            iteration=self.iteration,
            temperature=self.temperature,
            layout=list(self.layout),
            cost_breakdown=self.cost_breakdown.copy(),
            rng_state=self.rng_state,
        )


def _cool(problem: AnnealProblem, temperature: float) -> float:
    return max(problem.min_temperature, temperature * problem.cooling_rate)


# --- Operations ---------------------------------------------------------------


def initialize_anneal(problem: AnnealProblem, seed: int) -> AnnealState:
    """
    Create a session at iteration 0.

    Args:
        problem: Problem description and schedule.
        seed: RNG seed; 0 is remapped to a fixed non-zero constant.

    Returns:
        A fresh AnnealState whose layout is a copy of the initial layout.
    """
    layout = list(problem.initial_layout)
    cost_breakdown = problem.evaluate_cost(list(layout)).copy()

    state = AnnealState(
        problem=problem,
        iteration=0,
        temperature=max(problem.initial_temperature, 0),
        layout=layout,
        cost_breakdown=cost_breakdown,
        rng_state=RngState(sanitize_seed(seed)),
        transition_buffer=TransitionRingBuffer(problem.transition_buffer_size),
        full_trace_enabled=bool(problem.capture_full_trace),
    )
    log.debug(
        "Initialized anneal: %d elements, seed=%d, total=%.4f",
        len(layout),
        state.rng_state.seed,
        cost_breakdown.total,
    )
    return state


def propose_move(state: AnnealState) -> AnnealMove:
    """
    Draw a random move for the current layout.

    The session's RNG state is read but never written; the move carries the
    state after its own draws.
    """
    layout = state.layout
    problem = state.problem
    n = len(layout)
    rng = state.rng_state

    options = [MoveType.NUDGE, MoveType.SWAP, MoveType.REINSERT]
    if problem.enable_block_shift:
        options.append(MoveType.BLOCK_SHIFT)

    move_index, rng = rand_int(len(options), rng)
    move_type = options[move_index]

    if move_type == MoveType.SWAP:
        a, rng = rand_int(n, rng)
        b, rng = rand_int(n, rng)
        if n > 1:
            while b == a:
                b, rng = rand_int(n, rng)
        return SwapMove(a=a, b=b, rng_state_after_proposal=rng)

    if move_type == MoveType.REINSERT:
        from_index, rng = rand_int(n, rng)
        to_index, rng = rand_int(n, rng)
        return ReinsertMove(
            from_index=from_index, to_index=to_index, rng_state_after_proposal=rng
        )

    if move_type == MoveType.BLOCK_SHIFT:
        start, rng = rand_int(n, rng)
        end, rng = rand_int(n, rng)
        if start > end:
            start, end = end, start
        shift, rng = rand_int(3, rng)
        return BlockShiftMove(
            start=start, end=end, shift=shift - 1, rng_state_after_proposal=rng
        )

    index, rng = rand_int(n, rng)
    step_max = max(1, problem.max_nudge_step)
    magnitude, rng = rand_int(step_max, rng)
    sign_roll, rng = rand_int(2, rng)

    delta = (magnitude + 1) * (-1 if sign_roll == 0 else 1)
    return NudgeMove(index=index, delta=delta, rng_state_after_proposal=rng)


def _apply_to_layout(layout: List[int], move: AnnealMove) -> List[int]:
    """Return a new layout with ``move`` applied; degenerate moves are no-ops."""
    out = list(layout)
    n = len(out)

    if isinstance(move, NudgeMove):
        if 0 <= move.index < n:
            out[move.index] += move.delta
    elif isinstance(move, SwapMove):
        if n > 1 and 0 <= move.a < n and 0 <= move.b < n:
            out[move.a], out[move.b] = out[move.b], out[move.a]
    elif isinstance(move, ReinsertMove):
        if n > 1:
            item = out.pop(max(0, min(move.from_index, n - 1)))
            out.insert(max(0, min(move.to_index, len(out))), item)
    elif isinstance(move, BlockShiftMove):
        if n > 0 and move.shift != 0:
            start = max(0, min(move.start, n - 1))
            end = max(start, min(move.end, n - 1))
            block = out[start : end + 1]
            del out[start : end + 1]
            insertion = max(0, min(start + move.shift, len(out)))
            out[insertion:insertion] = block

    return out


def apply_move(state: AnnealState, move: AnnealMove) -> AnnealState:
    """
    Build a candidate session with ``move`` applied and its cost re-evaluated.

    The input session is left untouched.
    """
    next_layout = _apply_to_layout(state.layout, move)
    return replace(
        state,
        layout=next_layout,
        cost_breakdown=state.problem.evaluate_cost(list(next_layout)).copy(),
        rng_state=move.rng_state_after_proposal,
    )


def accept_move(
    state: AnnealState,
    candidate: AnnealState,
    proposal: Optional[AnnealMove] = None,
) -> AnnealTransition:
    """
    Decide whether ``candidate`` replaces ``state``.

    Improvements and equal-cost moves are always accepted. Worse moves draw
    one value ``u`` from the candidate's RNG state and are accepted when
    ``u < exp(-delta / temperature)``.

    Args:
        state: Current session.
        candidate: Session produced by apply_move.
        proposal: Move that produced the candidate, recorded in the
            transition. Defaults to a zero nudge.

    Returns:
        The transition; neither session is modified.
    """
    delta_cost = candidate.cost_breakdown.total - state.cost_breakdown.total
    before = state.snapshot()

    accepted = False
    reason = AcceptReason.REJECTED
    rng_after = candidate.rng_state

    if delta_cost < 0:
        accepted = True
        reason = AcceptReason.IMPROVED
    elif delta_cost == 0:
        accepted = True
        reason = AcceptReason.EQUAL
    else:
        u, rng_after = next_rng(candidate.rng_state)
        cutoff = math.exp(
            -delta_cost / max(state.temperature, MIN_METROPOLIS_TEMPERATURE)
        )
        if u < cutoff:
            accepted = True
            reason = AcceptReason.METROPOLIS

    source = candidate if accepted else state
    after = AnnealSnapshot(
        iteration=state.iteration + 1,
        temperature=_cool(state.problem, state.temperature),
        layout=list(source.layout),
        cost_breakdown=source.cost_breakdown.copy(),
        rng_state=rng_after,
    )

    if proposal is None:
        proposal = NudgeMove(
            index=0, delta=0, rng_state_after_proposal=candidate.rng_state
        )

    return AnnealTransition(
        proposal=proposal,
        delta_cost=delta_cost,
        accepted=accepted,
        reason=reason,
        before=before,
        after=after,
    )


def step_anneal(state: AnnealState) -> AnnealTransition:
    """
    Propose, apply and decide one move, then update ``state`` in place.

    The transition is appended to the ring buffer and, when enabled, to the
    full trace.
    """
    proposal = propose_move(state)
    candidate = apply_move(state, proposal)
    transition = accept_move(state, candidate, proposal)

    after = transition.after
    state.iteration = after.iteration
    state.temperature = after.temperature
    state.layout = list(after.layout)
    state.cost_breakdown = after.cost_breakdown.copy()
    state.rng_state = after.rng_state

    state.transition_buffer.append(transition)
    if state.full_trace_enabled:
        state.full_trace.append(transition)

    return transition


def run_anneal(
    state: AnnealState,
    budget: float,
    on_step: Optional[Callable[[AnnealTransition, AnnealState], None]] = None,
) -> AnnealState:
    """
    Run ``max(0, floor(budget))`` steps sequentially; a NaN or infinite
    budget runs none.

    Args:
        state: Session to advance in place.
        budget: Number of steps.
        on_step: Optional observer called after every step.

    Returns:
        The same session object.
    """
    steps = max(0, math.floor(budget)) if math.isfinite(budget) else 0
    accepted = 0
    for _ in range(steps):
        transition = step_anneal(state)
        if transition.accepted:
            accepted += 1
        if on_step is not None:
            on_step(transition, state)

    if steps:
        log.debug(
            "Ran %d steps (%d accepted): iter=%d temp=%.6f total=%.4f",
            steps,
            accepted,
            state.iteration,
            state.temperature,
            state.cost_breakdown.total,
        )
    return state


def export_transition_ring(state: AnnealState) -> List[AnnealTransition]:
    """Retained transitions, oldest first."""
    return state.transition_buffer.export()


def export_full_trace(state: AnnealState) -> List[AnnealTransition]:
    """Every transition since initialization, when full tracing is enabled."""
    return list(state.full_trace)
