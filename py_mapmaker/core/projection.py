"""
Coordinate projection steps.

Every step is a stateless callable taking x and y coordinate arrays and
returning the transformed arrays. Steps do not commute; the order in which
they are applied is the caller's choice.
"""

import math
from dataclasses import dataclass
from typing import NamedTuple, Tuple

import numpy as np

# Web Mercator cuts the map at the latitude where the projection becomes square
MAX_MERCATOR_LATITUDE = math.atan(math.sinh(math.pi))


class Interval(NamedTuple):
    lower: float
    upper: float

    @property
    def length(self) -> float:
        return self.upper - self.lower


def _remap(values: np.ndarray, source: Interval, target: Interval) -> np.ndarray:
    if source.length == 0:
        return np.full_like(values, target.lower, dtype=float)
    return target.lower + (values - source.lower) / source.length * target.length


@dataclass(frozen=True)
class RadianProjection:
    """Degrees to radians."""

    def __call__(self, x: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        return np.radians(x), np.radians(y)


@dataclass(frozen=True)
class MercatorProjection:
    """
    Spherical (web) Mercator projection on the unit sphere.

    Expects longitude/latitude in radians. The origin maps to (0, 0) and
    latitudes beyond +-85.0511 degrees are clamped.
    """

    def __call__(self, x: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        lat = np.clip(y, -MAX_MERCATOR_LATITUDE, MAX_MERCATOR_LATITUDE)
        return np.asarray(x, dtype=float), np.log(np.tan(math.pi / 4 + lat / 2))


@dataclass(frozen=True)
class UnitProjection:
    """Rescale the given bounds to [0, 1] x [0, 1]. A zero-length interval maps to 0."""

    x_interval: Interval
    y_interval: Interval

    def __call__(self, x: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        unit = Interval(0.0, 1.0)
        return (_remap(x, Interval(*self.x_interval), unit),
                _remap(y, Interval(*self.y_interval), unit))


@dataclass(frozen=True)
class IntervalProjection:
    """Map one interval per axis linearly onto another."""

    x_from: Interval
    y_from: Interval
    x_to: Interval
    y_to: Interval

    def __call__(self, x: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        return (_remap(x, Interval(*self.x_from), Interval(*self.x_to)),
                _remap(y, Interval(*self.y_from), Interval(*self.y_to)))
