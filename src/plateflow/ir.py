"""
Template-graph intermediate representation for plate diagrams.

Uses networkx for:
- Template graph representation
- Validation that every edge names a declared template

Plates are identified by the set of dimensions a template is repeated over;
dimension order never matters for plate identity.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import networkx as nx


@dataclass
class DimDecl:
    """A plate dimension."""

    id: str
    label: Optional[str] = None
    description: Optional[str] = None


@dataclass
class NodeTemplate:
    """
    A node declared once and repeated over its dimensions.

    Attributes:
        id: Template identifier.
        type: Node kind (source, latent, observed, ...).
        dims: Dimensions in declaration order; see normalize_dims.
        symbol: Optional display symbol.
        distribution: Optional free-form distribution metadata.
    """

    id: str
    type: str
    dims: List[str] = field(default_factory=list)
    symbol: Optional[str] = None
    distribution: Optional[Dict[str, Any]] = None


@dataclass
class EdgeTemplate:
    source_template_id: str
    target_template_id: str
    directed: bool = True


@dataclass
class PlateHierarchy:
    """
    A unique plate.

    Attributes:
        key: Canonical key, sorted unique dims joined by "|".
        dims: Sorted unique dims.
        path: Plate nesting from outermost to innermost.
    """

    key: str
    dims: List[str]
    path: List[str]


def normalize_dims(dims: Sequence[str]) -> List[str]:
    """Sorted, de-duplicated dims: ["b", "a", "b"] -> ["a", "b"]."""
    return sorted(set(dims))


def plate_key_for_dims(dims: Sequence[str]) -> str:
    return "|".join(normalize_dims(dims))


def infer_plate_hierarchies(templates: Sequence[NodeTemplate]) -> List[PlateHierarchy]:
    """
    Infer the unique plates used by a set of templates.

    Uniqueness is set-based; the result is sorted by plate key.
    """
    by_key: Dict[str, List[str]] = {}
    for template in templates:
        dims = normalize_dims(template.dims)
        by_key.setdefault("|".join(dims), dims)

    return [
        PlateHierarchy(key=key, dims=list(dims), path=list(dims))
        for key, dims in sorted(by_key.items())
    ]


def template_digraph(
    nodes: Sequence[NodeTemplate], edges: Sequence[EdgeTemplate]
) -> nx.DiGraph:
    """
    Build the template graph.

    Node attributes carry the template type, normalized dims and plate key.

    Raises:
        ValueError: If an edge references an undeclared template.
    """
    graph = nx.DiGraph()
    for node in nodes:
        graph.add_node(
            node.id,
            type=node.type,
            dims=normalize_dims(node.dims),
            plate=plate_key_for_dims(node.dims),
        )

    for edge in edges:
        for endpoint in (edge.source_template_id, edge.target_template_id):
            if endpoint not in graph:
                raise ValueError(f"Edge references unknown template: {endpoint!r}")
        graph.add_edge(edge.source_template_id, edge.target_template_id)

    return graph
