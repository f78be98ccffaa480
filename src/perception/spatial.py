# src/perception/spatial.py
"""
Spatial helpers for perception: coarse grid buckets, distance bands and
single-link clustering.

The grid is keyed by quantized *relative* position, so cell (0, 0) always
contains the area just around the agent.
"""

from __future__ import annotations

import math
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Sequence, Tuple

import networkx as nx

from contracts.types import PerceivedObject, Vec2


Cell = Tuple[int, int]

# Fractions of the vision radius separating close / medium / far.
CLOSE_FRACTION = 0.3
MEDIUM_FRACTION = 0.7


class SpatialGrid:
    """Bucket PerceivedObjects by quantized relative position."""

    def __init__(self, cell_size: float) -> None:
        if cell_size <= 0:
            raise ValueError(f"cell_size must be positive, got {cell_size}")
        self.cell_size = float(cell_size)
        self._cells: Dict[Cell, List[PerceivedObject]] = defaultdict(list)

    def cell_of(self, rel: Vec2) -> Cell:
        return (math.floor(rel.x / self.cell_size), math.floor(rel.y / self.cell_size))

    def rebuild(self, objects: Iterable[PerceivedObject]) -> None:
        self._cells.clear()
        for obj in objects:
            self._cells[self.cell_of(obj.relative_position)].append(obj)

    def query(self, rel_center: Vec2, radius: float) -> List[PerceivedObject]:
        """Objects whose relative position is within `radius` of `rel_center`."""
        lo = self.cell_of(Vec2(rel_center.x - radius, rel_center.y - radius))
        hi = self.cell_of(Vec2(rel_center.x + radius, rel_center.y + radius))
        found: List[PerceivedObject] = []
        for cx in range(lo[0], hi[0] + 1):
            for cy in range(lo[1], hi[1] + 1):
                for obj in self._cells.get((cx, cy), ()):
                    if obj.relative_position.distance_to(rel_center) <= radius:
                        found.append(obj)
        return found

    def summary(self) -> Dict[str, Any]:
        cells = {f"{cx},{cy}": len(objs) for (cx, cy), objs in sorted(self._cells.items())}
        densest = max(cells.items(), key=lambda kv: kv[1])[0] if cells else None
        return {
            "cell_size": self.cell_size,
            "occupied_cells": len(cells),
            "cells": cells,
            "densest_cell": densest,
        }


def distance_band(distance: float, vision_radius: float) -> str:
    if distance < vision_radius * CLOSE_FRACTION:
        return "close"
    if distance < vision_radius * MEDIUM_FRACTION:
        return "medium"
    return "far"


def cluster_objects(
    objects: Sequence[PerceivedObject], cluster_radius: float
) -> List[Dict[str, Any]]:
    """
    Single-link clustering: two objects share a cluster when a chain of
    objects, each within `cluster_radius` of the next, connects them.

    Only groups of two or more are reported. Clusters are ordered by size,
    largest first; members are sorted by id.
    """
    graph = nx.Graph()
    graph.add_nodes_from(range(len(objects)))
    for i in range(len(objects)):
        for j in range(i + 1, len(objects)):
            if objects[i].position.distance_to(objects[j].position) <= cluster_radius:
                graph.add_edge(i, j)

    clusters: List[Dict[str, Any]] = []
    for component in nx.connected_components(graph):
        if len(component) < 2:
            continue
        members = [objects[i] for i in component]
        cx = sum(o.position.x for o in members) / len(members)
        cy = sum(o.position.y for o in members) / len(members)
        types: Dict[str, int] = defaultdict(int)
        for o in members:
            types[o.type] += 1
        clusters.append(
            {
                "size": len(members),
                "center": Vec2(cx, cy).to_dict(),
                "members": sorted(o.id for o in members),
                "types": dict(types),
            }
        )

    clusters.sort(key=lambda c: (-c["size"], c["members"]))
    return clusters
