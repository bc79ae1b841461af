"""Planar geometry helpers over point-id rings."""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

import numpy as np

from .model import Area, Point


@dataclass
class Rectangle:
    """Axis-aligned bounding box."""

    min_x: float = 0.0
    min_y: float = 0.0
    max_x: float = 0.0
    max_y: float = 0.0

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @classmethod
    def from_coordinates(cls, coords: np.ndarray) -> "Rectangle":
        """Bounds of an (n, 2) coordinate array. An empty array gives a zero rectangle."""
        if len(coords) == 0:
            return cls()
        mins = coords.min(axis=0)
        maxs = coords.max(axis=0)
        return cls(float(mins[0]), float(mins[1]), float(maxs[0]), float(maxs[1]))


def ring_coordinates(ring: Iterable[int], points: Dict[int, Point]) -> np.ndarray:
    """Resolve a ring of point ids to an (n, 2) array of coordinates."""
    return np.array([(points[pid].x, points[pid].y) for pid in ring], dtype=float).reshape(-1, 2)


def signed_area(coords: np.ndarray) -> float:
    """
    Signed area of a ring using the shoelace formula.

    Positive for counter-clockwise rings. The ring may be given closed
    (last == first) or open.
    """
    if len(coords) < 3:
        return 0.0
    x = coords[:, 0]
    y = coords[:, 1]
    x_next = np.roll(x, -1)
    y_next = np.roll(y, -1)
    return float(0.5 * np.sum(x * y_next - x_next * y))


def area_size(area: Area, points: Dict[int, Point]) -> float:
    """Planar size of an area: outer rings minus holes."""
    size = 0.0
    for polygon in area.polygons:
        size += abs(signed_area(ring_coordinates(polygon.outer, points)))
        for inner in polygon.inners:
            size -= abs(signed_area(ring_coordinates(inner, points)))
    return size


def point_in_ring(x: float, y: float, coords: np.ndarray) -> bool:
    """Even-odd ray casting test. Points exactly on the boundary are unreliable."""
    if len(coords) < 3:
        return False
    x1 = coords[:, 0]
    y1 = coords[:, 1]
    x2 = np.roll(x1, -1)
    y2 = np.roll(y1, -1)

    crosses = (y1 > y) != (y2 > y)
    with np.errstate(divide="ignore", invalid="ignore"):
        x_at_y = x1 + (y - y1) * (x2 - x1) / (y2 - y1)
    hits = crosses & (x < x_at_y)
    return bool(np.count_nonzero(hits) % 2)


def segment_distances(coords: np.ndarray, start: np.ndarray, end: np.ndarray) -> np.ndarray:
    """
    Distance of each coordinate to the segment start-end.

    A degenerate segment (start == end) measures the distance to start.
    """
    direction = end - start
    length_sq = float(np.dot(direction, direction))
    offsets = coords - start
    if length_sq == 0.0:
        return np.hypot(offsets[:, 0], offsets[:, 1])

    t = np.clip(offsets @ direction / length_sq, 0.0, 1.0)
    nearest = start + np.outer(t, direction)
    delta = coords - nearest
    return np.hypot(delta[:, 0], delta[:, 1])


def polygon_centroid(vertices: np.ndarray) -> np.ndarray:
    """Compute the centroid of a polygon.

    Args:
        vertices: Array of [x, y] vertex coordinates

    Returns:
        [x, y] centroid coordinates
    """
    if len(vertices) < 3:
        return np.mean(vertices, axis=0)

    x = vertices[:, 0]
    y = vertices[:, 1]
    x_next = np.roll(x, -1)
    y_next = np.roll(y, -1)
    cross = x * y_next - x_next * y
    area = np.sum(cross)

    if abs(area) < 1e-12:
        return np.mean(vertices, axis=0)

    cx = np.sum((x + x_next) * cross) / (3.0 * area)
    cy = np.sum((y + y_next) * cross) / (3.0 * area)
    return np.array([cx, cy])


def representative_point(coords: np.ndarray) -> Tuple[float, float]:
    """
    A point strictly inside a ring.

    Uses the centroid when it falls inside, otherwise the midpoint of the
    widest interior span on the horizontal line through the centroid.
    """
    cx, cy = polygon_centroid(coords)
    if point_in_ring(cx, cy, coords):
        return float(cx), float(cy)

    x1 = coords[:, 0]
    y1 = coords[:, 1]
    x2 = np.roll(x1, -1)
    y2 = np.roll(y1, -1)
    crosses = (y1 > cy) != (y2 > cy)
    with np.errstate(divide="ignore", invalid="ignore"):
        xs = np.sort((x1 + (cy - y1) * (x2 - x1) / (y2 - y1))[crosses])

    best = None
    for left, right in zip(xs[0::2], xs[1::2]):
        if best is None or right - left > best[1] - best[0]:
            best = (left, right)
    if best is None:
        return float(cx), float(cy)
    return float((best[0] + best[1]) / 2), float(cy)


def area_centerpoint(area: Area, points: Dict[int, Point]) -> Tuple[float, float]:
    """Label position of an area: a point inside its largest outer ring."""
    rings: List[np.ndarray] = [ring_coordinates(ring, points) for ring in area.outer_rings]
    largest = max(rings, key=lambda coords: abs(signed_area(coords)))
    return representative_point(largest)
