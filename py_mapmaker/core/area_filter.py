"""Relative-size filtering of areas inside their connected component."""

from dataclasses import dataclass, field
from typing import Dict, Optional, Set

import structlog

from .geometry import area_size
from .model import Access, Area, Point

logger = structlog.get_logger()


@dataclass
class FilterStats:
    """Area count before and after filtering."""

    areas_before: int
    areas_after: int
    removed: Set[int]
    # kept areas that lost at least one neighbor
    exposed: Set[int] = field(default_factory=set)


class AreaFilter:
    """
    Removes areas that are a negligible fraction of their component.

    The remaining areas of a component may stop being connected. Neighbors
    and components have to be recomputed after filtering.
    """

    ACCESS = {"points": Access.READ, "areas": Access.WRITE}

    def __init__(self, areas: Dict[int, Area], components: Dict[int, Set[int]],
                 points: Dict[int, Point], neighbors: Optional[Dict[int, Set[int]]] = None):
        self.areas = areas
        self.components = components
        self.points = points
        self.neighbors = neighbors or {}

    def area_sizes(self) -> Dict[int, float]:
        return {area_id: area_size(area, self.points) for area_id, area in self.areas.items()}

    def select(self, tolerance: float) -> Set[int]:
        """Ids of the areas whose size ratio in their component is below the tolerance."""
        sizes = self.area_sizes()
        removed = set()
        for comp_id, members in self.components.items():
            members = [area_id for area_id in members if area_id in sizes]
            total = sum(sizes[area_id] for area_id in members)
            if total <= 0:
                logger.warning("Component without size skipped", component=comp_id, areas=len(members))
                continue
            removed.update(area_id for area_id in members if sizes[area_id] / total < tolerance)
        return removed

    def filter_areas(self, tolerance: float) -> FilterStats:
        """
        Remove small areas from the area table in place.

        Args:
            tolerance: Minimum size ratio of an area in its component.
                0 disables filtering.
        """
        if tolerance < 0:
            raise ValueError(f"Tolerance must be >= 0, got {tolerance}")

        areas_before = len(self.areas)
        removed = self.select(tolerance) if tolerance > 0 else set()
        for area_id in removed:
            del self.areas[area_id]

        exposed = {
            other
            for area_id in removed
            for other in self.neighbors.get(area_id, ())
            if other not in removed
        }

        logger.info("Filtered areas", areas_before=areas_before,
                    areas_after=len(self.areas), tolerance=tolerance, exposed=len(exposed))
        return FilterStats(areas_before, len(self.areas), removed, exposed)


def filter_areas(areas: Dict[int, Area], adjacency: Dict[int, Set[int]],
                 components: Dict[int, Set[int]], points: Dict[int, Point],
                 tolerance: float) -> Dict[int, Area]:
    """Return the areas that pass the size filter, leaving the input untouched."""
    kept = dict(areas)
    AreaFilter(kept, components, points, adjacency).filter_areas(tolerance)
    return kept
