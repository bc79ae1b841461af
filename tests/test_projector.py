"""Tests for projection steps and the projector."""

import math

import numpy as np
import pytest

from py_mapmaker.core.geometry import Rectangle
from py_mapmaker.core.model import DataContainer
from py_mapmaker.core.projection import (
    Interval,
    IntervalProjection,
    MercatorProjection,
    RadianProjection,
    UnitProjection,
)
from py_mapmaker.core.projector import Projector, resolve_dimensions


def project_point(step, x, y):
    xs, ys = step(np.array([x], dtype=float), np.array([y], dtype=float))
    return float(xs[0]), float(ys[0])


class TestProjectionSteps:
    """Test the individual steps."""

    def test_radians(self):
        assert project_point(RadianProjection(), 180, -90) == pytest.approx((math.pi, -math.pi / 2))

    def test_origin_maps_to_origin(self):
        x, y = project_point(RadianProjection(), 0, 0)
        x, y = project_point(MercatorProjection(), x, y)

        assert (x, y) == pytest.approx((0.0, 0.0))

    def test_mercator_latitude(self):
        _, y = project_point(MercatorProjection(), 0, math.radians(45))

        assert y == pytest.approx(math.asinh(1.0))

    def test_mercator_clamps_poles(self):
        _, y = project_point(MercatorProjection(), 0, math.pi / 2)

        assert np.isfinite(y)
        assert y == pytest.approx(math.pi)

    def test_unit_projection(self):
        step = UnitProjection(Interval(-2, 2), Interval(10, 20))

        assert project_point(step, -2, 10) == pytest.approx((0, 0))
        assert project_point(step, 2, 20) == pytest.approx((1, 1))
        assert project_point(step, 0, 12.5) == pytest.approx((0.5, 0.25))

    def test_unit_projection_degenerate_interval(self):
        step = UnitProjection(Interval(3, 3), Interval(0, 1))

        assert project_point(step, 3, 0.5) == pytest.approx((0, 0.5))

    def test_interval_projection(self):
        step = IntervalProjection(Interval(0, 1), Interval(0, 1),
                                  Interval(0, 800), Interval(100, 0))

        assert project_point(step, 0.5, 0.25) == pytest.approx((400, 75))

    def test_steps_do_not_commute(self):
        unit = UnitProjection(Interval(10, 100), Interval(10, 100))
        radians = RadianProjection()

        first = project_point(unit, *project_point(radians, 90, 90))
        second = project_point(radians, *project_point(unit, 90, 90))

        assert first != pytest.approx(second)


class TestResolveDimensions:
    """Test automatic width/height."""

    def test_fixed_dimensions(self):
        assert resolve_dimensions(800, 600, Rectangle(0, 0, 1, 1)) == (800, 600)

    def test_auto_width(self):
        assert resolve_dimensions(0, 100, Rectangle(0, 0, 2, 1)) == (200, 100)

    def test_auto_height(self):
        assert resolve_dimensions(1000, 0, Rectangle(0, 0, 4, 1)) == (1000, 250)

    def test_degenerate_bounds(self):
        assert resolve_dimensions(500, 0, Rectangle(0, 0, 3, 0)) == (500, 500)


class TestProjector:
    """Test projection of the point table."""

    @pytest.fixture
    def points(self):
        data = DataContainer()
        data.add_point(1, 0, 0)
        data.add_point(2, 2, 0)
        data.add_point(3, 2, 1)
        return data.points

    def test_apply_updates_every_point(self, points):
        Projector(points).apply_projection(RadianProjection())

        assert points[2].x == pytest.approx(math.radians(2))
        assert points[3].y == pytest.approx(math.radians(1))

    def test_bounds_follow_current_coordinates(self, points):
        projector = Projector(points)
        assert projector.bounds() == Rectangle(0, 0, 2, 1)

        projector.apply_projection(RadianProjection())

        assert projector.bounds().max_x == pytest.approx(math.radians(2))

    def test_scale_with_auto_height(self, points):
        projector = Projector(points)

        width, height = projector.scale(1000, 0)

        assert (width, height) == (1000, 500)
        assert (points[1].x, points[1].y) == pytest.approx((0, 0))
        assert (points[3].x, points[3].y) == pytest.approx((1000, 500))

    def test_scale_after_projection_uses_fresh_bounds(self, points):
        projector = Projector(points)
        projector.apply_projection(RadianProjection())
        projector.apply_projection(MercatorProjection())

        width, height = projector.scale(0, 300)

        assert height == 300
        assert width == round(projector_width_ratio() * 300)
        coords = projector.coordinates()
        assert coords[:, 0].max() == pytest.approx(width)
        assert coords[:, 1].max() == pytest.approx(height)

    def test_empty_table(self):
        projector = Projector({})
        projector.apply_projection(RadianProjection())

        assert projector.scale(100, 0) == (100, 100)


def projector_width_ratio():
    """Aspect ratio of the fixture points after radian and Mercator projection."""
    width = math.radians(2)
    height = math.log(math.tan(math.pi / 4 + math.radians(1) / 2))
    return width / height
