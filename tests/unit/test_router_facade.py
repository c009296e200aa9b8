"""
Tests for the router_facade module.

These tests verify mode selection and the hybrid rescoring cadence.
"""

import asyncio

import pytest

from plateflow import router_facade
from plateflow.draft_router import DraftRouterResult, route_draft
from plateflow.elk_router import ElkEdge, ElkNode, ElkRouterInput, ElkRouterResult
from plateflow.router_facade import (
    RouterFacadeInput,
    RouterMode,
    RouterStep,
    route_with_facade,
)


@pytest.fixture
def elk_input(l_shaped_section, elk_layout_factory):
    """Precise input whose engine returns an L-shaped route."""
    calls = []
    elk = ElkRouterInput(
        nodes=[ElkNode("n1", 0, 0, 1, 1), ElkNode("n2", 4, 0, 1, 1)],
        edges=[ElkEdge("e1", "n1", "n2")],
        elk_layout=elk_layout_factory({"e1": [l_shaped_section]}, calls),
    )
    return elk, calls


def run(facade_input):
    return asyncio.run(route_with_facade(facade_input))


class TestDraftMode:
    """Tests for draft mode."""

    def test_selects_draft(self, straight_edge_input):
        """Test that draft mode routes on the grid only."""
        step = RouterStep(draft=straight_edge_input, accepted=True, label="s0")
        result = run(RouterFacadeInput(mode=RouterMode.DRAFT, step=step))

        assert isinstance(result.selected, DraftRouterResult)
        assert len(result.trace) == 1
        entry = result.trace[0]
        assert entry.mode == "draft"
        assert entry.label == "s0"
        assert entry.accepted is True
        assert entry.elk_cost is None
        assert entry.selected_score == 4

    def test_custom_score(self, straight_edge_input):
        """Test that a score callback replaces the cost total."""
        result = run(
            RouterFacadeInput(
                mode=RouterMode.DRAFT,
                step=RouterStep(draft=straight_edge_input),
                score=lambda cost: cost.length * 100,
            )
        )
        assert result.trace[0].selected_score == 400

    def test_mode_given_as_string(self, straight_edge_input):
        """Test that the plain mode value is accepted."""
        result = run(
            RouterFacadeInput(mode="draft", step=RouterStep(draft=straight_edge_input))
        )
        assert result.trace[0].mode == "draft"


class TestElkMode:
    """Tests for elk mode."""

    def test_selects_precise(self, straight_edge_input, elk_input):
        """Test that elk mode selects the precise routes and records both costs."""
        elk, calls = elk_input
        step = RouterStep(draft=straight_edge_input, elk=elk)
        result = run(RouterFacadeInput(mode=RouterMode.ELK, step=step))

        assert isinstance(result.selected, ElkRouterResult)
        assert len(calls) == 1
        entry = result.trace[0]
        assert entry.mode == "elk"
        assert entry.draft_cost.total == 4
        assert entry.elk_cost.total == 13
        assert entry.selected_score == 13

    def test_without_precise_input_falls_back(self, straight_edge_input):
        """Test that elk mode without an engine uses the step's draft routes."""
        step = RouterStep(draft=straight_edge_input)
        result = run(RouterFacadeInput(mode=RouterMode.ELK, step=step))

        assert result.selected.fallback_used is True
        assert result.selected.cost.total == 4
        assert result.trace[0].elk_cost.total == 4


class TestHybridMode:
    """Tests for hybrid mode."""

    def test_cadence_with_final_step(self, straight_edge_input, elk_input):
        """Test rescoring on the tenth acceptance and on the final step."""
        elk, calls = elk_input
        steps = [
            RouterStep(draft=straight_edge_input, elk=elk, accepted=i < 10)
            for i in range(12)
        ]
        result = run(
            RouterFacadeInput(
                mode=RouterMode.HYBRID,
                step=steps[0],
                steps_for_hybrid=steps,
                hybrid_rescore_every_accepted=10,
            )
        )

        rescored = [entry.step_index for entry in result.trace if entry.rescored]
        assert rescored == [9, 11]
        assert len(calls) == 2
        assert len(result.trace) == 12
        assert all(entry.mode == "hybrid" for entry in result.trace)
        assert isinstance(result.selected, ElkRouterResult)

    def test_unrescored_steps_select_draft(self, straight_edge_input, elk_input):
        """Test that steps without rescoring report the draft cost."""
        elk, _ = elk_input
        steps = [
            RouterStep(draft=straight_edge_input, elk=elk, accepted=True)
            for _ in range(3)
        ]
        result = run(
            RouterFacadeInput(
                mode=RouterMode.HYBRID,
                step=steps[0],
                steps_for_hybrid=steps,
                hybrid_rescore_every_accepted=5,
            )
        )

        first, second, last = result.trace
        assert not first.rescored and not second.rescored
        assert first.selected_cost.total == 4
        assert last.rescored
        assert last.selected_cost.total == 13

    def test_steps_without_precise_input_never_rescore(self, straight_edge_input):
        """Test that a missing precise input skips rescoring even on cadence."""
        steps = [RouterStep(draft=straight_edge_input, accepted=True) for _ in range(4)]
        result = run(
            RouterFacadeInput(
                mode=RouterMode.HYBRID,
                step=steps[0],
                steps_for_hybrid=steps,
                hybrid_rescore_every_accepted=1,
            )
        )
        assert not any(entry.rescored for entry in result.trace)
        assert isinstance(result.selected, DraftRouterResult)

    def test_cadence_floored_to_one(self, straight_edge_input, elk_input):
        """Test that a cadence below one rescores every accepted step."""
        elk, calls = elk_input
        steps = [
            RouterStep(draft=straight_edge_input, elk=elk, accepted=accepted)
            for accepted in (True, False, True, False)
        ]
        result = run(
            RouterFacadeInput(
                mode=RouterMode.HYBRID,
                step=steps[0],
                steps_for_hybrid=steps,
                hybrid_rescore_every_accepted=0.3,
            )
        )
        rescored = [entry.step_index for entry in result.trace if entry.rescored]
        assert rescored == [0, 2, 3]

    def test_one_draft_pass_per_step(self, straight_edge_input, monkeypatch):
        """Test that hybrid mode drafts each step exactly once."""
        drafted = []

        def counting_route_draft(draft_input):
            drafted.append(draft_input)
            return route_draft(draft_input)

        monkeypatch.setattr(router_facade, "route_draft", counting_route_draft)
        steps = [RouterStep(draft=straight_edge_input) for _ in range(3)]
        result = run(
            RouterFacadeInput(
                mode=RouterMode.HYBRID, step=steps[0], steps_for_hybrid=steps
            )
        )

        assert len(drafted) == 3
        assert result.selected.cost.total == 4

    def test_single_step_without_sequence(self, straight_edge_input, elk_input):
        """Test that the lone step is routed and rescored as the final step."""
        elk, _ = elk_input
        step = RouterStep(draft=straight_edge_input, elk=elk)
        result = run(RouterFacadeInput(mode=RouterMode.HYBRID, step=step))

        assert len(result.trace) == 1
        assert result.trace[0].rescored
