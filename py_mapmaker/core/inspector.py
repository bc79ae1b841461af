"""
Neighbor graph and connected components of assembled areas.

Two areas are neighbors when their rings share at least one boundary
segment, i.e. an unordered pair of consecutive point ids. The segment index
is built completely before any adjacency is read from it, so the result does
not depend on the order of the areas.
"""

from collections import defaultdict
from typing import Dict, Set, Tuple

import numpy as np
import structlog
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import connected_components

from .model import Access, Area

logger = structlog.get_logger()

SegmentKey = Tuple[int, int]
Neighbors = Dict[int, Set[int]]
Components = Dict[int, Set[int]]


def segment_key(a: int, b: int) -> SegmentKey:
    return (a, b) if a < b else (b, a)


def component_index(components: Components) -> Dict[int, int]:
    """Reverse map of a component partition: area id -> component id."""
    return {area_id: comp_id for comp_id, members in components.items() for area_id in members}


class NeighborInspector:
    """Derives the neighbor graph and the component map of a set of areas."""

    ACCESS = {"areas": Access.READ}

    def __init__(self, areas: Dict[int, Area]):
        self.areas = areas

    def build_index(self) -> Dict[SegmentKey, Set[int]]:
        """Map every boundary segment to the ids of the areas containing it."""
        index: Dict[SegmentKey, Set[int]] = defaultdict(set)
        for area_id, area in self.areas.items():
            for ring in area.rings():
                for a, b in zip(ring, ring[1:]):
                    if a != b:
                        index[segment_key(a, b)].add(area_id)
        return index

    def get_neighbors(self, index: Dict[SegmentKey, Set[int]]) -> Neighbors:
        neighbors: Neighbors = {area_id: set() for area_id in self.areas}
        for owners in index.values():
            if len(owners) < 2:
                continue
            for area_id in owners:
                neighbors[area_id].update(owners - {area_id})
        return neighbors

    def get_components(self, neighbors: Neighbors) -> Components:
        """
        Connected components of the neighbor graph.

        Components are numbered from 0 in ascending order of their smallest
        area id.
        """
        area_ids = sorted(neighbors)
        if not area_ids:
            return {}
        position = {area_id: i for i, area_id in enumerate(area_ids)}

        rows, cols = [], []
        for area_id, adjacent in neighbors.items():
            for other in adjacent:
                rows.append(position[area_id])
                cols.append(position[other])
        n = len(area_ids)
        graph = coo_matrix((np.ones(len(rows), dtype=np.int8), (rows, cols)), shape=(n, n))
        n_components, labels = connected_components(graph, directed=False)

        # Relabel so numbering follows the smallest area id of each component
        order: Dict[int, int] = {}
        components: Components = {}
        for i, label in enumerate(labels):
            comp_id = order.setdefault(int(label), len(order))
            components.setdefault(comp_id, set()).add(area_ids[i])

        logger.debug("Components computed", components=n_components, areas=n)
        return components

    def get_relations(self) -> Tuple[Neighbors, Components]:
        """
        Compute the neighbor graph and the component map together.

        Returns:
            Tuple of (area id -> neighbor area ids, component id -> area ids)
        """
        index = self.build_index()
        neighbors = self.get_neighbors(index)
        components = self.get_components(neighbors)

        edges = sum(len(adjacent) for adjacent in neighbors.values()) // 2
        logger.info("Calculated area relations", areas=len(self.areas),
                    edges=edges, components=len(components))
        return neighbors, components


def inspect(areas: Dict[int, Area]) -> Tuple[Neighbors, Components]:
    return NeighborInspector(areas).get_relations()
