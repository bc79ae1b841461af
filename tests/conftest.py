"""Shared fixtures: small synthetic boundary datasets."""

import pytest

from py_mapmaker.core.model import DataContainer

TERRITORY_LEVEL = 8
PARENT_LEVEL = 4
PARENT_RELATION = 1


def build_grid(xs, ys, level=TERRITORY_LEVEL, parent=None, skip_cells=()):
    """
    Build a grid of rectangular territories.

    Every grid edge is its own line, so neighbouring territories share their
    common edge line. Cell (i, j) spans xs[i]..xs[i+1] and ys[j]..ys[j+1] and
    becomes relation 100 + j * (len(xs) - 1) + i.

    Args:
        xs, ys: Grid coordinates (degrees)
        level: Level of the cell relations
        parent: None, "ring" for a parent relation with its own perimeter
            lines, or "subareas" for one that only lists its cells
        skip_cells: (i, j) cells left out of the parent's subareas
    """
    data = DataContainer()
    nx, ny = len(xs), len(ys)

    def pid(i, j):
        return j * nx + i + 1

    for j, y in enumerate(ys):
        for i, x in enumerate(xs):
            data.add_point(pid(i, j), x, y)

    horizontal, vertical = {}, {}
    line_id = 1000
    for j in range(ny):
        for i in range(nx - 1):
            data.add_line(line_id, [pid(i, j), pid(i + 1, j)])
            horizontal[(i, j)] = line_id
            line_id += 1
    for i in range(nx):
        for j in range(ny - 1):
            data.add_line(line_id, [pid(i, j), pid(i, j + 1)])
            vertical[(i, j)] = line_id
            line_id += 1

    cells = []
    for j in range(ny - 1):
        for i in range(nx - 1):
            relation_id = 100 + j * (nx - 1) + i
            data.add_relation(
                relation_id, level,
                outer=[horizontal[(i, j)], vertical[(i + 1, j)],
                       horizontal[(i, j + 1)], vertical[(i, j)]],
                name=f"cell {i},{j}",
            )
            if (i, j) not in skip_cells:
                cells.append(relation_id)

    if parent == "ring":
        perimeter = [horizontal[(i, 0)] for i in range(nx - 1)]
        perimeter += [horizontal[(i, ny - 1)] for i in range(nx - 1)]
        perimeter += [vertical[(0, j)] for j in range(ny - 1)]
        perimeter += [vertical[(nx - 1, j)] for j in range(ny - 1)]
        data.add_relation(PARENT_RELATION, PARENT_LEVEL, outer=perimeter, subareas=cells)
    elif parent == "subareas":
        data.add_relation(PARENT_RELATION, PARENT_LEVEL, subareas=cells)
    return data


@pytest.fixture
def grid_factory():
    return build_grid


@pytest.fixture
def square_grid():
    """Four unit squares in a 2x2 grid."""
    return build_grid([0, 1, 2], [0, 1, 2])


@pytest.fixture
def uneven_grid():
    """2x2 grid whose corner cell (area 0) is 1% of the total size."""
    return build_grid([0, 1, 10], [0, 1, 10])
