"""
In-memory map topology model.

This module holds the tables the pipeline stages work on:
- Points (id -> mutable coordinate), the only place coordinates live
- Lines (id -> ordered point ids)
- Relations (administrative boundaries made of line members)
- Areas (closed polygons assembled from relations)

Everything references everything else by id. Rings, holes and shared
boundaries are plain lists of point ids resolved against the point table.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, NamedTuple, Optional, Set

import structlog

logger = structlog.get_logger()

# Administrative levels used by OSM boundary relations
MIN_LEVEL = 1
MAX_LEVEL = 12


class Role(str, Enum):
    """Role of a line inside a boundary relation."""

    OUTER = "outer"
    INNER = "inner"


class Access(str, Enum):
    """Access a pipeline stage needs on a shared table."""

    READ = "read"
    WRITE = "write"


class TableAccessError(RuntimeError):
    """Raised when a stage borrows a table that is already held incompatibly."""


@dataclass
class Point:
    """A map point. Coordinates start as lon/lat degrees and are reprojected in place."""

    id: int
    x: float
    y: float


@dataclass
class Line:
    """An ordered polyline of point ids."""

    id: int
    nodes: List[int]

    @property
    def is_closed(self) -> bool:
        return len(self.nodes) > 1 and self.nodes[0] == self.nodes[-1]

    @property
    def first(self) -> int:
        return self.nodes[0]

    @property
    def last(self) -> int:
        return self.nodes[-1]


class Member(NamedTuple):
    """A line member of a relation."""

    line_id: int
    role: Role


@dataclass
class Relation:
    """An administrative boundary relation."""

    id: int
    level: int
    members: List[Member] = field(default_factory=list)
    name: Optional[str] = None
    subareas: List[int] = field(default_factory=list)  # child relation ids

    def member_lines(self, role: Role) -> List[int]:
        """Line ids of the members with the given role, in member order."""
        return [member.line_id for member in self.members if member.role == role]


@dataclass
class Polygon:
    """One outer ring with the holes that lie inside it."""

    outer: List[int]
    inners: List[List[int]] = field(default_factory=list)

    def rings(self) -> Iterator[List[int]]:
        yield self.outer
        yield from self.inners


@dataclass
class Area:
    """A closed, possibly multi-part polygon built from one relation."""

    id: int
    relation_id: int
    level: int
    polygons: List[Polygon]
    members: Set[int] = field(default_factory=set)  # territory ids of a bonus area

    def rings(self) -> Iterator[List[int]]:
        """Iterate every ring of the area, outer rings before their holes."""
        for polygon in self.polygons:
            yield from polygon.rings()

    @property
    def outer_rings(self) -> List[List[int]]:
        return [polygon.outer for polygon in self.polygons]

    @property
    def inner_rings(self) -> List[List[int]]:
        return [inner for polygon in self.polygons for inner in polygon.inners]


@dataclass
class DataContainer:
    """
    The dataset shared by all pipeline stages.

    Filled by an external decoder, then handed from stage to stage. Stages
    declare the access they need on each table through ``borrow`` so that a
    table is never written by two stages, or read while being written.
    """

    points: Dict[int, Point] = field(default_factory=dict)
    lines: Dict[int, Line] = field(default_factory=dict)
    relations: Dict[int, Relation] = field(default_factory=dict)
    incomplete_relations: Set[int] = field(default_factory=set)
    areas: Dict[int, Area] = field(default_factory=dict)

    _readers: Dict[str, int] = field(default_factory=dict, repr=False)
    _writers: Set[str] = field(default_factory=set, repr=False)

    TABLES = ("points", "lines", "relations", "areas")

    def add_point(self, point_id: int, x: float, y: float) -> Point:
        point = Point(point_id, float(x), float(y))
        self.points[point_id] = point
        return point

    def add_line(self, line_id: int, nodes: List[int]) -> Line:
        if len(nodes) < 2:
            raise ValueError(f"Line {line_id} needs at least 2 points, got {len(nodes)}")
        line = Line(line_id, list(nodes))
        self.lines[line_id] = line
        return line

    def add_relation(
        self,
        relation_id: int,
        level: int,
        outer: Optional[List[int]] = None,
        inner: Optional[List[int]] = None,
        name: Optional[str] = None,
        subareas: Optional[List[int]] = None,
    ) -> Relation:
        """Add a relation from lists of outer and inner line ids."""
        members = [Member(line_id, Role.OUTER) for line_id in outer or []]
        members += [Member(line_id, Role.INNER) for line_id in inner or []]
        relation = Relation(
            relation_id, level, members, name=name, subareas=list(subareas or [])
        )
        self.relations[relation_id] = relation
        return relation

    def summary(self) -> Dict[str, int]:
        return {
            "points": len(self.points),
            "lines": len(self.lines),
            "relations": len(self.relations),
            "incomplete_relations": len(self.incomplete_relations),
            "areas": len(self.areas),
        }

    @contextmanager
    def borrow(self, stage: str, **tables: Access):
        """
        Hold tables for the duration of a stage.

        Example:
            with data.borrow("simplify", points=Access.WRITE, lines=Access.WRITE):
                ...

        Raises:
            TableAccessError: If a requested table is written by another
                holder, or a write is requested on a table that is held.
        """
        for table, access in tables.items():
            if table not in self.TABLES:
                raise ValueError(f"Unknown table: {table}")
            if table in self._writers:
                raise TableAccessError(f"{stage}: table '{table}' is being written")
            if access == Access.WRITE and self._readers.get(table, 0):
                raise TableAccessError(f"{stage}: table '{table}' is being read")

        for table, access in tables.items():
            if access == Access.WRITE:
                self._writers.add(table)
            else:
                self._readers[table] = self._readers.get(table, 0) + 1
        logger.debug("Tables borrowed", stage=stage, tables={k: v.value for k, v in tables.items()})

        try:
            yield self
        finally:
            for table, access in tables.items():
                if access == Access.WRITE:
                    self._writers.discard(table)
                else:
                    self._readers[table] -= 1
