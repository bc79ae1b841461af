"""Applies projection steps to the global point table."""

from typing import Callable, Dict, Tuple

import numpy as np
import structlog

from .geometry import Rectangle
from .model import Access, Point
from .projection import Interval, IntervalProjection, UnitProjection

logger = structlog.get_logger()

Step = Callable[[np.ndarray, np.ndarray], Tuple[np.ndarray, np.ndarray]]


def resolve_dimensions(width: int, height: int, bounds: Rectangle) -> Tuple[int, int]:
    """
    Fill in a zero width or height from the aspect ratio of the bounds.

    Degenerate bounds give a square map of the known dimension.
    """
    if width and height:
        return width, height
    if bounds.width <= 0 or bounds.height <= 0:
        size = width or height
        return size, size
    if width == 0:
        width = max(1, round(bounds.width / bounds.height * height))
    else:
        height = max(1, round(bounds.height / bounds.width * width))
    return width, height


class Projector:
    """Transforms the coordinates of every point, one complete step at a time."""

    ACCESS = {"points": Access.WRITE}

    def __init__(self, points: Dict[int, Point]):
        self.points = points

    def coordinates(self) -> np.ndarray:
        return np.array([(p.x, p.y) for p in self.points.values()], dtype=float).reshape(-1, 2)

    def bounds(self) -> Rectangle:
        """Bounds of the current point coordinates."""
        return Rectangle.from_coordinates(self.coordinates())

    def apply_projection(self, step: Step) -> None:
        """Apply one step to all points before returning."""
        if not self.points:
            return
        coords = self.coordinates()
        xs, ys = step(coords[:, 0], coords[:, 1])
        for point, x, y in zip(self.points.values(), xs, ys):
            point.x = float(x)
            point.y = float(y)
        logger.debug("Projection applied", step=type(step).__name__, points=len(self.points))

    def scale(self, width: int, height: int) -> Tuple[int, int]:
        """
        Scale the map into a width x height pixel box.

        Bounds are taken from the current coordinates right before scaling,
        and a zero dimension is derived from them.

        Returns:
            The resolved (width, height)
        """
        bounds = self.bounds()
        width, height = resolve_dimensions(width, height, bounds)
        self.apply_projection(UnitProjection(
            Interval(bounds.min_x, bounds.max_x),
            Interval(bounds.min_y, bounds.max_y),
        ))
        self.apply_projection(IntervalProjection(
            Interval(0.0, 1.0), Interval(0.0, 1.0),
            Interval(0.0, float(width)), Interval(0.0, float(height)),
        ))
        logger.info("Scaled map", width=width, height=height)
        return width, height
