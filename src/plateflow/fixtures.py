"""
Default plate-diagram fixture.

A small hierarchical model over three dimensions (condition, participant,
time) used to seed the annealing debug harness with a realistic layout.
"""

import math
from dataclasses import dataclass, field, replace
from typing import Dict, List, Mapping, Optional

import networkx as nx

from .ir import DimDecl, EdgeTemplate, NodeTemplate, template_digraph

DEFAULT_FIXTURE_DIMS = (
    DimDecl(id="c", label="Condition"),
    DimDecl(id="p", label="Participant"),
    DimDecl(id="t", label="Time"),
)

DEFAULT_FIXTURE_CARDINALITIES: Dict[str, int] = {"c": 2, "p": 2, "t": 3}

# Node sizes in grid cells, by node type
DEFAULT_NODE_SIZE_CELLS_BY_TYPE: Dict[str, int] = {
    "source": 1,
    "latent": 2,
    "deterministic": 2,
    "observed": 3,
    "query": 2,
    "auxiliary": 1,
}

DEFAULT_FIXTURE_NODES = (
    NodeTemplate(id="alpha", type="source"),
    NodeTemplate(id="beta", type="source"),
    NodeTemplate(id="gamma", type="source"),
    NodeTemplate(id="delta", type="source"),
    NodeTemplate(id="r_c", type="latent", dims=["c"], symbol="r"),
    NodeTemplate(id="r_p", type="latent", dims=["p"], symbol="r"),
    NodeTemplate(id="r_cp", type="latent", dims=["c", "p"], symbol="r"),
    NodeTemplate(id="l_c", type="latent", dims=["c"], symbol="l"),
    NodeTemplate(id="l_p", type="latent", dims=["p"], symbol="l"),
    NodeTemplate(id="l_cp", type="latent", dims=["c", "p"], symbol="l"),
    NodeTemplate(id="s_cpt", type="deterministic", dims=["c", "p", "t"], symbol="s"),
    NodeTemplate(id="B_cpt", type="observed", dims=["c", "p", "t"], symbol="B"),
    NodeTemplate(id="V_ct", type="query", dims=["c", "t"], symbol="V"),
    NodeTemplate(id="T_c", type="auxiliary", dims=["c"], symbol="T"),
    NodeTemplate(id="q_cpt", type="query", dims=["c", "p", "t"], symbol="q"),
    NodeTemplate(id="K_cp", type="auxiliary", dims=["c", "p"], symbol="K"),
    NodeTemplate(id="A_cp", type="deterministic", dims=["c", "p"], symbol="A"),
)

DEFAULT_FIXTURE_EDGES = tuple(
    EdgeTemplate(source, target)
    for source, target in (
        # alpha -> r[c,p] <- beta
        ("alpha", "r_cp"),
        ("beta", "r_cp"),
        # gamma -> l[c,p] <- delta
        ("gamma", "l_cp"),
        ("delta", "l_cp"),
        # r[c] -> r[c,p] <- r[p]
        ("r_c", "r_cp"),
        ("r_p", "r_cp"),
        # l[c] -> l[c,p] <- l[p]
        ("l_c", "l_cp"),
        ("l_p", "l_cp"),
        # r[c,p] -> s[c,p,t] -> B[c,p,t]
        ("r_cp", "s_cpt"),
        ("s_cpt", "B_cpt"),
        # l[c,p] -> B[c,p,t] -> V[c,t] <- T[c]
        ("l_cp", "B_cpt"),
        ("B_cpt", "V_ct"),
        ("T_c", "V_ct"),
        # V[c,t] -> q[c,p,t] <- B[c,p,t]
        ("V_ct", "q_cpt"),
        ("B_cpt", "q_cpt"),
        ("s_cpt", "q_cpt"),
        # K[c,p] -> B[c,p,t], K[c,p] -> A[c,p]
        ("K_cp", "B_cpt"),
        ("K_cp", "A_cp"),
    )
)


@dataclass
class DefaultFixtureConfig:
    """Fixture templates plus the tables used to size its nodes."""

    dims: List[DimDecl] = field(default_factory=list)
    nodes: List[NodeTemplate] = field(default_factory=list)
    edges: List[EdgeTemplate] = field(default_factory=list)
    cardinalities: Dict[str, int] = field(default_factory=dict)
    node_size_cells_by_type: Dict[str, int] = field(default_factory=dict)

    def graph(self) -> nx.DiGraph:
        return template_digraph(self.nodes, self.edges)


def build_default_fixture_config(
    cardinalities: Optional[Mapping[str, int]] = None,
    node_size_cells_by_type: Optional[Mapping[str, int]] = None,
) -> DefaultFixtureConfig:
    """
    Build an independent copy of the default fixture.

    Args:
        cardinalities: Overrides merged over the default dimension sizes.
        node_size_cells_by_type: Overrides merged over the default node sizes.
    """
    return DefaultFixtureConfig(
        dims=[replace(dim) for dim in DEFAULT_FIXTURE_DIMS],
        nodes=[replace(node, dims=list(node.dims)) for node in DEFAULT_FIXTURE_NODES],
        edges=[replace(edge) for edge in DEFAULT_FIXTURE_EDGES],
        cardinalities={**DEFAULT_FIXTURE_CARDINALITIES, **(cardinalities or {})},
        node_size_cells_by_type={
            **DEFAULT_NODE_SIZE_CELLS_BY_TYPE,
            **(node_size_cells_by_type or {}),
        },
    )


def create_default_fixture_layout(
    config: Optional[DefaultFixtureConfig] = None,
) -> List[int]:
    """
    Initial layout for the fixture, one value per template node.

    Each value is the node's size times the product of its dimension
    cardinalities, plus ``index % 3`` to break ties.

    Raises:
        ValueError: If the fixture's edges reference undeclared templates.
    """
    config = config or build_default_fixture_config()
    config.graph()  # rejects edges naming undeclared templates

    layout = []
    for index, node in enumerate(config.nodes):
        base = config.node_size_cells_by_type.get(node.type, 1)
        cardinality = math.prod(config.cardinalities.get(d, 1) for d in node.dims)
        layout.append(base * cardinality + index % 3)
    return layout
