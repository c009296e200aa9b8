"""
Data models for edge routing.

This module contains the geometric records shared by the grid router, the
precise-router adapter and the router facade. Routes are produced fresh by
every routing call and are not mutated afterwards.

Classes:
    GridPoint: A point on the routing grid.
    GridRect: An axis-aligned rectangular obstacle.
    RoutedEdge: The simplified polyline of one routed edge.
    RouteCost: Geometric cost of a set of routed polylines.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(frozen=True)
class GridPoint:
    """A point in routing coordinates."""

    x: int
    y: int

    def to_dict(self) -> Dict[str, int]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True)
class GridRect:
    """
    Axis-aligned rectangle used as a routing obstacle.

    Attributes:
        x: Left edge.
        y: Top edge.
        width: Extent along x.
        height: Extent along y.
    """

    x: float
    y: float
    width: float
    height: float


@dataclass
class RoutedEdge:
    """A routed edge, simplified to its corner points."""

    id: str
    points: List[GridPoint] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "points": [p.to_dict() for p in self.points]}


@dataclass
class RouteCost:
    """
    Geometric cost of a batch of routes.

    Attributes:
        length: Total Manhattan length of all segments.
        bends: Direction changes summed over every route.
        crossings: Perpendicular segment intersections between different edges.
        total: length + bends and crossings at their penalties.
    """

    length: float = 0
    bends: int = 0
    crossings: int = 0
    total: float = 0

    def copy(self) -> "RouteCost":
        return RouteCost(self.length, self.bends, self.crossings, self.total)

    def to_dict(self) -> Dict[str, float]:
        return {
            "length": self.length,
            "bends": self.bends,
            "crossings": self.crossings,
            "total": self.total,
        }
