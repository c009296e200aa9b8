"""
Tests for the anneal module.

These tests verify the seeded RNG, move proposal and application, the
Metropolis acceptance rule and the bounded transition log.
"""

import math
from dataclasses import replace

import pytest

from plateflow.anneal import (
    ZERO_SEED_REPLACEMENT,
    AcceptReason,
    AnnealProblem,
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
    next_rng,
    propose_move,
    rand_int,
    run_anneal,
    sanitize_seed,
    step_anneal,
)
from plateflow.cost import CostBreakdown


def constant_cost(layout):
    return CostBreakdown(total=1.0, L=1.0)


def sum_cost(layout):
    total = float(sum(layout))
    return CostBreakdown(total=total, L=total)


class TestRng:
    """Tests for the xorshift32 generator."""

    def test_zero_seed_is_remapped(self):
        """Test that seed 0 maps to the fixed replacement constant."""
        assert sanitize_seed(0) == ZERO_SEED_REPLACEMENT

    def test_seed_is_truncated_to_int32(self):
        """Test that seeds are coerced to signed 32-bit integers."""
        assert sanitize_seed(2**32 + 5) == 5
        assert sanitize_seed(2**31) == -(2**31)

    def test_first_value_for_seed_one(self):
        """Test the first xorshift32 output for seed 1."""
        u, state = next_rng(RngState(1))
        assert state.seed == 270369
        assert u == pytest.approx(270369 / 2**32)

    def test_values_in_unit_interval(self):
        """Test that draws stay within [0, 1)."""
        state = RngState(sanitize_seed(1337))
        for _ in range(1000):
            u, state = next_rng(state)
            assert 0 <= u < 1

    def test_rand_int_empty_range_draws_nothing(self):
        """Test that rand_int(0) returns 0 and keeps the state."""
        state = RngState(42)
        value, next_state = rand_int(0, state)
        assert value == 0
        assert next_state == state

    def test_rand_int_bounds(self):
        """Test that rand_int stays in range."""
        state = RngState(99)
        for _ in range(200):
            value, state = rand_int(5, state)
            assert 0 <= value < 5


class TestInitialize:
    """Tests for initialize_anneal."""

    def test_initial_state(self, problem):
        """Test iteration, temperature and layout of a fresh session."""
        state = initialize_anneal(problem, seed=7)
        assert state.iteration == 0
        assert state.temperature == problem.initial_temperature
        assert state.layout == [4, 2, 7, 1]
        assert state.cost_breakdown == problem.evaluate_cost([4, 2, 7, 1])

    def test_layout_is_copied(self, problem):
        """Test that the session does not alias the problem's layout."""
        state = initialize_anneal(problem, seed=7)
        state.layout[0] = 100
        assert problem.initial_layout[0] == 4

    def test_negative_temperature_clamped(self, cost_fn):
        """Test that a negative initial temperature starts at 0."""
        problem = AnnealProblem([1, 2], cost_fn, initial_temperature=-5)
        assert initialize_anneal(problem, seed=1).temperature == 0


class TestApplyMove:
    """Tests for apply_move on each move type."""

    def _apply(self, layout, move):
        state = initialize_anneal(AnnealProblem(layout, sum_cost), seed=3)
        return apply_move(state, move)

    def test_nudge(self):
        """Test that a nudge adds delta at the index."""
        move = NudgeMove(index=1, delta=-2, rng_state_after_proposal=RngState(5))
        candidate = self._apply([4, 2, 7, 1], move)
        assert candidate.layout == [4, 0, 7, 1]
        assert candidate.cost_breakdown.total == 12
        assert candidate.rng_state == RngState(5)

    def test_swap(self):
        """Test that a swap exchanges two positions."""
        move = SwapMove(a=0, b=3, rng_state_after_proposal=RngState(5))
        assert self._apply([4, 2, 7, 1], move).layout == [1, 2, 7, 4]

    def test_swap_on_single_element_is_noop(self):
        """Test that swapping in a length-1 layout leaves it unchanged."""
        move = SwapMove(a=0, b=0, rng_state_after_proposal=RngState(5))
        assert self._apply([5], move).layout == [5]

    def test_reinsert(self):
        """Test removing an element and inserting it elsewhere."""
        move = ReinsertMove(
            from_index=0, to_index=2, rng_state_after_proposal=RngState(5)
        )
        assert self._apply([4, 2, 7, 1], move).layout == [2, 7, 4, 1]

    def test_reinsert_clamps_target(self):
        """Test that an out-of-range target appends."""
        move = ReinsertMove(
            from_index=1, to_index=10, rng_state_after_proposal=RngState(5)
        )
        assert self._apply([4, 2, 7, 1], move).layout == [4, 7, 1, 2]

    def test_block_shift(self):
        """Test moving a contiguous block right by one."""
        move = BlockShiftMove(
            start=0, end=1, shift=1, rng_state_after_proposal=RngState(5)
        )
        assert self._apply([4, 2, 7, 1], move).layout == [7, 4, 2, 1]

    def test_block_shift_zero_is_noop(self):
        """Test that a zero shift leaves the layout unchanged."""
        move = BlockShiftMove(
            start=0, end=2, shift=0, rng_state_after_proposal=RngState(5)
        )
        assert self._apply([4, 2, 7, 1], move).layout == [4, 2, 7, 1]

    def test_input_state_untouched(self):
        """Test that apply_move never mutates its input session."""
        state = initialize_anneal(AnnealProblem([4, 2, 7, 1], sum_cost), seed=3)
        apply_move(state, SwapMove(a=0, b=1, rng_state_after_proposal=RngState(5)))
        assert state.layout == [4, 2, 7, 1]
        assert state.cost_breakdown.total == 14


class TestProposeMove:
    """Tests for propose_move."""

    def test_does_not_touch_session(self, problem):
        """Test that proposing leaves the session RNG and layout alone."""
        state = initialize_anneal(problem, seed=11)
        before = (list(state.layout), state.rng_state)
        propose_move(state)
        assert (state.layout, state.rng_state) == before

    def _proposals(self, problem, steps=400, seed=1337):
        traced = replace(problem, capture_full_trace=True)
        state = run_anneal(initialize_anneal(traced, seed=seed), steps)
        return [t.proposal for t in export_full_trace(state)]

    def test_swap_indices_differ(self, problem):
        """Test that swaps on layouts of length 2+ pick distinct indices."""
        swaps = [m for m in self._proposals(problem) if isinstance(m, SwapMove)]
        assert swaps
        for move in swaps:
            assert move.a != move.b

    def test_nudge_magnitude_bounded(self, cost_fn):
        """Test nudge deltas stay within the configured maximum."""
        problem = AnnealProblem([0, 0, 0], cost_fn, max_nudge_step=3)
        nudges = [m for m in self._proposals(problem) if isinstance(m, NudgeMove)]
        assert nudges
        for move in nudges:
            assert 1 <= abs(move.delta) <= 3

    def test_block_shift_only_when_enabled(self, cost_fn):
        """Test that block shifts are proposed only when enabled."""
        disabled = AnnealProblem([3, 1, 2, 5], cost_fn)
        enabled = AnnealProblem([3, 1, 2, 5], cost_fn, enable_block_shift=True)

        disabled_types = {m.type for m in self._proposals(disabled)}
        shifts = [
            m for m in self._proposals(enabled) if isinstance(m, BlockShiftMove)
        ]

        assert MoveType.BLOCK_SHIFT.value not in disabled_types
        assert shifts
        for move in shifts:
            assert move.start <= move.end
            assert move.shift in (-1, 0, 1)


class TestAcceptMove:
    """Tests for the Metropolis acceptance rule."""

    def test_improvement_always_accepted(self):
        """Test that a lower-cost candidate is accepted even at zero temperature."""
        problem = AnnealProblem([4, 2, 7, 1], sum_cost, initial_temperature=0)
        state = initialize_anneal(problem, seed=5)
        move = NudgeMove(index=2, delta=-3, rng_state_after_proposal=RngState(77))
        candidate = apply_move(state, move)

        transition = accept_move(state, candidate, move)

        assert transition.accepted is True
        assert transition.reason == AcceptReason.IMPROVED
        assert transition.delta_cost == -3
        assert transition.after.layout == [4, 2, 4, 1]
        assert transition.after.rng_state == RngState(77)

    def test_equal_cost_accepted(self):
        """Test that a zero delta is accepted without a draw."""
        state = initialize_anneal(AnnealProblem([4, 2], constant_cost), seed=5)
        move = SwapMove(a=0, b=1, rng_state_after_proposal=RngState(9))
        transition = accept_move(state, apply_move(state, move), move)
        assert transition.reason == AcceptReason.EQUAL
        assert transition.after.rng_state == RngState(9)

    def test_worse_move_rejected_when_frozen(self):
        """Test that a worse move at near-zero temperature is rejected."""
        problem = AnnealProblem([4, 2], sum_cost, initial_temperature=0)
        state = initialize_anneal(problem, seed=5)
        move = NudgeMove(index=0, delta=50, rng_state_after_proposal=RngState(9))
        transition = accept_move(state, apply_move(state, move), move)

        assert transition.accepted is False
        assert transition.reason == AcceptReason.REJECTED
        assert transition.after.layout == [4, 2]
        # the Metropolis draw still advances the RNG
        assert transition.after.rng_state == next_rng(RngState(9))[1]

    def test_worse_move_accepted_when_hot(self):
        """Test that a tiny worsening at a huge temperature is accepted."""
        problem = AnnealProblem([4, 2], sum_cost, initial_temperature=1e9)
        state = initialize_anneal(problem, seed=5)
        move = NudgeMove(index=0, delta=1, rng_state_after_proposal=RngState(9))
        transition = accept_move(state, apply_move(state, move), move)
        assert transition.reason == AcceptReason.METROPOLIS
        assert transition.after.layout == [5, 2]

    def test_metropolis_rate_matches_boltzmann_factor(self):
        """Test that worse moves are accepted at rate exp(-delta / T)."""
        problem = AnnealProblem([0], sum_cost, initial_temperature=2.0)
        state = initialize_anneal(problem, seed=1337)
        move = NudgeMove(index=0, delta=1, rng_state_after_proposal=state.rng_state)
        candidate = apply_move(state, move)

        trials = 20000
        accepted = 0
        rng = state.rng_state
        for _ in range(trials):
            transition = accept_move(state, replace(candidate, rng_state=rng), move)
            assert transition.delta_cost == 1
            accepted += transition.accepted
            rng = transition.after.rng_state

        assert accepted / trials == pytest.approx(math.exp(-1 / 2.0), abs=0.02)

    def test_after_is_cooled(self, problem):
        """Test that the after snapshot advances iteration and cools."""
        state = initialize_anneal(problem, seed=5)
        move = propose_move(state)
        transition = accept_move(state, apply_move(state, move), move)
        assert transition.after.iteration == 1
        assert transition.after.temperature == pytest.approx(
            problem.initial_temperature * problem.cooling_rate
        )


class TestStepAndRun:
    """Tests for step_anneal and run_anneal."""

    def test_same_seed_same_run(self, problem):
        """Test that a seed and problem fully determine the run."""
        first = run_anneal(initialize_anneal(problem, seed=1337), 300)
        second = run_anneal(initialize_anneal(problem, seed=1337), 300)

        assert first.layout == second.layout
        assert first.rng_state == second.rng_state
        assert [t.to_dict() for t in export_transition_ring(first)] == [
            t.to_dict() for t in export_transition_ring(second)
        ]

    def test_different_seeds_diverge(self, problem):
        """Test that different seeds produce different move sequences."""
        first = run_anneal(initialize_anneal(problem, seed=1), 50)
        second = run_anneal(initialize_anneal(problem, seed=1337), 50)
        assert [t.proposal for t in export_transition_ring(first)] != [
            t.proposal for t in export_transition_ring(second)
        ]

    def test_step_updates_state_from_after(self, problem):
        """Test that a step copies the after snapshot into the session."""
        state = initialize_anneal(problem, seed=21)
        transition = step_anneal(state)
        assert state.iteration == 1
        assert state.layout == transition.after.layout
        assert state.rng_state == transition.after.rng_state
        assert state.cost_breakdown == transition.after.cost_breakdown

    def test_transition_does_not_alias_state(self, problem):
        """Test that recorded snapshots are independent copies."""
        state = initialize_anneal(problem, seed=21)
        transition = step_anneal(state)
        state.layout[0] = 999
        assert 999 not in transition.after.layout

    def test_temperature_monotone_and_floored(self, cost_fn):
        """Test that temperature never rises and never drops below the floor."""
        problem = AnnealProblem(
            [4, 2, 7, 1], cost_fn, cooling_rate=0.5, min_temperature=0.01
        )
        state = initialize_anneal(problem, seed=3)
        temperatures = [state.temperature]
        run_anneal(state, 40, lambda t, s: temperatures.append(s.temperature))

        assert all(b <= a for a, b in zip(temperatures, temperatures[1:]))
        assert temperatures[-1] == 0.01

    def test_budget_is_floored(self, problem):
        """Test fractional and negative budgets."""
        state = initialize_anneal(problem, seed=3)
        run_anneal(state, 2.9)
        assert state.iteration == 2
        run_anneal(state, -4)
        assert state.iteration == 2

    def test_non_finite_budget_runs_nothing(self, problem):
        """Test that NaN and infinite budgets run no steps."""
        state = initialize_anneal(problem, seed=3)
        run_anneal(state, float("nan"))
        run_anneal(state, float("inf"))
        assert state.iteration == 0
        assert export_transition_ring(state) == []

    def test_on_step_called_each_step(self, problem):
        """Test that the observer sees every transition."""
        seen = []
        run_anneal(initialize_anneal(problem, seed=3), 5, lambda t, s: seen.append(t))
        assert [t.after.iteration for t in seen] == [1, 2, 3, 4, 5]

    def test_cost_matches_evaluator(self, problem):
        """Test that the session cost always equals the callback's cost."""
        state = initialize_anneal(problem, seed=8)
        for _ in range(50):
            step_anneal(state)
            assert state.cost_breakdown == problem.evaluate_cost(state.layout)

    def test_single_element_layout_never_fails(self, cost_fn):
        """Test that every move type is safe on a length-1 layout."""
        problem = AnnealProblem([5], cost_fn, enable_block_shift=True)
        state = initialize_anneal(problem, seed=4)
        run_anneal(state, 100)
        assert len(state.layout) == 1


class TestTransitionLog:
    """Tests for the ring buffer and the full trace."""

    def test_ring_buffer_keeps_most_recent(self, cost_fn):
        """Test that the ring retains the last capacity transitions in order."""
        problem = AnnealProblem([4, 2, 7, 1], cost_fn, transition_buffer_size=8)
        state = initialize_anneal(problem, seed=9)
        run_anneal(state, 20)

        ring = export_transition_ring(state)
        assert len(ring) == 8
        assert [t.after.iteration for t in ring] == list(range(13, 21))

    def test_ring_buffer_capacity_at_least_one(self):
        """Test that a zero capacity becomes one."""
        buffer = TransitionRingBuffer(0)
        assert buffer.capacity == 1
        assert buffer.export() == []

    def test_full_trace_disabled_by_default(self, problem):
        """Test that the full trace is empty unless enabled."""
        state = run_anneal(initialize_anneal(problem, seed=9), 10)
        assert export_full_trace(state) == []

    def test_full_trace_keeps_everything(self, cost_fn):
        """Test that the full trace outlives the ring buffer."""
        problem = AnnealProblem(
            [4, 2, 7, 1], cost_fn, transition_buffer_size=4, capture_full_trace=True
        )
        state = run_anneal(initialize_anneal(problem, seed=9), 30)
        trace = export_full_trace(state)
        assert len(trace) == 30
        assert trace[-4:] == export_transition_ring(state)

    def test_transition_to_dict(self, problem):
        """Test the serialized transition shape."""
        state = initialize_anneal(problem, seed=9)
        data = step_anneal(state).to_dict()
        assert set(data) == {
            "proposal",
            "delta_cost",
            "accepted",
            "reason",
            "before",
            "after",
        }
        assert data["proposal"]["type"] in {m.value for m in MoveType}
        assert isinstance(data["proposal"]["rng_state_after_proposal"], int)
        assert data["after"]["iteration"] == 1
