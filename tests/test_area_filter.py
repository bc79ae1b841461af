"""Tests for relative-size area filtering."""

import pytest

from py_mapmaker.core.area_filter import AreaFilter, filter_areas
from py_mapmaker.core.assembler import assemble
from py_mapmaker.core.inspector import NeighborInspector

from conftest import TERRITORY_LEVEL


@pytest.fixture
def uneven_areas(uneven_grid):
    data = uneven_grid
    areas = assemble(data.relations, data.points, data.lines, [TERRITORY_LEVEL])
    _, components = NeighborInspector(areas).get_relations()
    return data, areas, components


class TestAreaFilter:
    """Test area filtering."""

    def test_sizes(self, uneven_areas):
        data, areas, components = uneven_areas
        sizes = AreaFilter(areas, components, data.points).area_sizes()

        assert sizes == pytest.approx({0: 1.0, 1: 9.0, 2: 9.0, 3: 81.0})

    def test_small_area_removed(self, uneven_areas):
        data, areas, components = uneven_areas

        stats = AreaFilter(areas, components, data.points).filter_areas(0.05)

        assert stats.removed == {0}
        assert stats.areas_before == 4
        assert stats.areas_after == 3
        assert sorted(areas) == [1, 2, 3]

    def test_recomputed_adjacency_after_filtering(self, uneven_areas):
        data, areas, components = uneven_areas
        AreaFilter(areas, components, data.points).filter_areas(0.05)

        neighbors, components = NeighborInspector(areas).get_relations()

        edge_count = sum(len(adjacent) for adjacent in neighbors.values()) // 2
        assert edge_count == 2
        assert neighbors[1] == {3}
        assert neighbors[2] == {3}

    def test_exposed_neighbors_reported(self, uneven_areas):
        data, areas, components = uneven_areas
        neighbors, _ = NeighborInspector(areas).get_relations()

        stats = AreaFilter(areas, components, data.points, neighbors).filter_areas(0.05)

        assert stats.exposed == {1, 2}

    def test_zero_tolerance_removes_nothing(self, uneven_areas):
        data, areas, components = uneven_areas

        stats = AreaFilter(areas, components, data.points).filter_areas(0)

        assert stats.removed == set()
        assert len(areas) == 4

    def test_ratio_equal_to_tolerance_is_kept(self, uneven_areas):
        data, areas, components = uneven_areas

        stats = AreaFilter(areas, components, data.points).filter_areas(0.01)

        assert stats.removed == set()

    def test_negative_tolerance_rejected(self, uneven_areas):
        data, areas, components = uneven_areas
        with pytest.raises(ValueError):
            AreaFilter(areas, components, data.points).filter_areas(-0.1)

    def test_ratio_is_per_component(self, uneven_areas):
        data, areas, _ = uneven_areas
        # Treat every area as its own component: each is 100% of its total
        components = {area_id: {area_id} for area_id in areas}

        kept = filter_areas(areas, {}, components, data.points, 0.5)

        assert sorted(kept) == [0, 1, 2, 3]

    def test_functional_filter_leaves_input_untouched(self, uneven_areas):
        data, areas, components = uneven_areas
        neighbors, _ = NeighborInspector(areas).get_relations()

        kept = filter_areas(areas, neighbors, components, data.points, 0.05)

        assert sorted(kept) == [1, 2, 3]
        assert sorted(areas) == [0, 1, 2, 3]

    def test_holes_are_subtracted(self, uneven_areas):
        data, areas, components = uneven_areas
        big = areas[3]
        # Reuse cell 0 as a fake hole of cell 3 (same size, only the size matters here)
        big.polygons[0].inners.append(list(reversed(areas[0].polygons[0].outer)))

        sizes = AreaFilter(areas, components, data.points).area_sizes()

        assert sizes[3] == pytest.approx(80.0)
