"""
Area assembly from boundary relations.

This module implements:
- Ring closure: chaining fragmented boundary lines into closed rings through
  a hashed endpoint index
- Direct assembly of territory areas from relations of one level
- Composite assembly of bonus areas, either from a relation's own rings or
  as the union of the territory areas it aggregates

Both assemblers share the ring-closure and polygon-building functions below;
the caller picks the strategy.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set, Tuple

import structlog

from .geometry import (
    point_in_ring,
    representative_point,
    ring_coordinates,
    signed_area,
)
from .model import Access, Area, Line, Point, Polygon, Relation, Role

logger = structlog.get_logger()

Ring = List[int]


def close_rings(line_ids: Iterable[int], lines: Dict[int, Line]) -> Tuple[List[Ring], List[Ring]]:
    """
    Chain lines into rings by matching endpoint ids.

    Each line is used once. A chain grows at its tail (and once stuck, at its
    head) until its first and last point ids coincide.

    Args:
        line_ids: Ids of the lines to chain, all present in ``lines``
        lines: Line table

    Returns:
        Tuple of (closed rings, open chains), both as point id lists
    """
    segments = [lines[line_id].nodes for line_id in dict.fromkeys(line_ids)]

    endpoints: Dict[int, List[int]] = defaultdict(list)
    for index, nodes in enumerate(segments):
        endpoints[nodes[0]].append(index)
        if nodes[-1] != nodes[0]:
            endpoints[nodes[-1]].append(index)

    used = [False] * len(segments)

    def take(point_id: int) -> Optional[int]:
        candidates = endpoints.get(point_id)
        while candidates:
            index = candidates.pop()
            if not used[index]:
                return index
        return None

    rings: List[Ring] = []
    open_chains: List[Ring] = []
    for start, nodes in enumerate(segments):
        if used[start]:
            continue
        used[start] = True
        chain = list(nodes)
        reversed_once = False

        while chain[0] != chain[-1]:
            index = take(chain[-1])
            if index is None:
                if reversed_once:
                    break
                chain.reverse()
                reversed_once = True
                continue
            used[index] = True
            segment = segments[index]
            if segment[0] != chain[-1]:
                segment = segment[::-1]
            chain.extend(segment[1:])

        if chain[0] == chain[-1] and len(chain) >= 4:
            rings.append(chain)
        else:
            open_chains.append(chain)

    return rings, open_chains


def orient_ring(ring: Ring, points: Dict[int, Point], counter_clockwise: bool) -> Ring:
    """Return the ring in the requested orientation."""
    area = signed_area(ring_coordinates(ring, points))
    if (area > 0) != counter_clockwise and area != 0:
        return ring[::-1]
    return ring


def attach_holes(outers: List[Ring], inners: List[Ring], points: Dict[int, Point]) -> List[Polygon]:
    """
    Build polygons by placing every inner ring into the smallest outer ring containing it.

    Inner rings outside every outer ring are dropped.
    """
    polygons = [Polygon(outer) for outer in outers]
    outer_coords = [ring_coordinates(outer, points) for outer in outers]
    outer_sizes = [abs(signed_area(coords)) for coords in outer_coords]
    outer_ids = [set(outer) for outer in outers]

    for inner in inners:
        inner_coords = ring_coordinates(inner, points)
        best = None
        for index, coords in enumerate(outer_coords):
            # Test with a vertex off the outer boundary where one exists
            probe = next((i for i, pid in enumerate(inner) if pid not in outer_ids[index]), None)
            if probe is None:
                x, y = representative_point(inner_coords)
            else:
                x, y = inner_coords[probe]
            if point_in_ring(x, y, coords) and (best is None or outer_sizes[index] < outer_sizes[best]):
                best = index
        if best is None:
            logger.warning("Inner ring outside of all outer rings dropped", points=len(inner))
            continue
        polygons[best].inners.append(inner)
    return polygons


def build_polygons(relation: Relation, points: Dict[int, Point],
                   lines: Dict[int, Line]) -> Optional[List[Polygon]]:
    """
    Assemble the polygons of one relation.

    Returns:
        Oriented polygons, or None when the relation cannot form a closed
        outer boundary
    """
    missing = [m.line_id for m in relation.members if m.line_id not in lines]
    if missing:
        logger.debug("Relation references missing lines", relation=relation.id, missing=missing)
        return None

    outers, open_outers = close_rings(relation.member_lines(Role.OUTER), lines)
    if open_outers or not outers:
        logger.debug("Outer boundary not closed", relation=relation.id,
                     rings=len(outers), open_chains=len(open_outers))
        return None

    inners, open_inners = close_rings(relation.member_lines(Role.INNER), lines)
    if open_inners:
        logger.warning("Open inner chains dropped", relation=relation.id, chains=len(open_inners))

    outers = [orient_ring(ring, points, counter_clockwise=True) for ring in outers]
    inners = [orient_ring(ring, points, counter_clockwise=False) for ring in inners]
    return attach_holes(outers, inners, points)


def merge_polygons(area_polygons: Dict[int, List[Polygon]],
                   points: Dict[int, Point]) -> Optional[List[Polygon]]:
    """
    Union of several areas by cancelling their shared boundary segments.

    Every ring segment is keyed by its unordered point id pair. Segments found
    once survive; segments shared by two areas are interior and cancel. As
    outer rings run counter-clockwise and holes clockwise, the surviving
    directed segments chain into counter-clockwise outer rings and clockwise
    holes of the union.

    Returns:
        Polygons of the union, or None if the boundary does not close
    """
    directed: Dict[Tuple[int, int], List[Tuple[int, int]]] = defaultdict(list)
    owners: Dict[Tuple[int, int], Set[int]] = defaultdict(set)
    for area_id, polygons in area_polygons.items():
        for polygon in polygons:
            for ring in polygon.rings():
                for a, b in zip(ring, ring[1:]):
                    if a == b:
                        continue
                    key = (a, b) if a < b else (b, a)
                    directed[key].append((a, b))
                    owners[key].add(area_id)

    outgoing: Dict[int, List[int]] = defaultdict(list)
    overshared = 0
    for key, segments in directed.items():
        if len(owners[key]) > 2:
            overshared += 1
        if len(segments) == 1:
            a, b = segments[0]
            outgoing[a].append(b)
    if overshared:
        logger.warning("Segments shared by more than two areas", segments=overshared)

    rings: List[Ring] = []
    for start in list(outgoing):
        while outgoing.get(start):
            ring = [start]
            current = outgoing[start].pop()
            while current != start:
                ring.append(current)
                targets = outgoing.get(current)
                if not targets:
                    logger.debug("Union boundary does not close", at=current)
                    return None
                current = targets.pop()
            ring.append(start)
            if len(ring) >= 4:
                rings.append(ring)

    outers, inners = [], []
    for ring in rings:
        if signed_area(ring_coordinates(ring, points)) > 0:
            outers.append(ring)
        else:
            inners.append(ring)
    if not outers:
        return None
    return attach_holes(outers, inners, points)


class DirectAreaAssembler:
    """Assembles territory areas directly from the rings of their relations."""

    ACCESS = {"points": Access.READ, "lines": Access.READ,
              "relations": Access.READ, "areas": Access.WRITE}

    def __init__(self, points: Dict[int, Point], lines: Dict[int, Line],
                 relations: Dict[int, Relation], incomplete_relations: Optional[Set[int]] = None):
        """
        Initialize the assembler.

        Args:
            points: Point table
            lines: Line table
            relations: Relation table
            incomplete_relations: Ids of relations that cannot be assembled.
                Relations found incomplete during assembly are added to it.
        """
        self.points = points
        self.lines = lines
        self.relations = relations
        self.incomplete_relations = incomplete_relations if incomplete_relations is not None else set()

    def assemble_areas(self, levels: Iterable[int], first_id: int = 0) -> Dict[int, Area]:
        """
        Assemble one area per complete relation of the given levels.

        Area ids are assigned from ``first_id`` in ascending relation id order.
        """
        levels = set(levels)
        areas: Dict[int, Area] = {}
        next_id = first_id

        for relation_id in sorted(self.relations):
            relation = self.relations[relation_id]
            if relation.level not in levels or relation_id in self.incomplete_relations:
                continue
            polygons = build_polygons(relation, self.points, self.lines)
            if polygons is None:
                self.incomplete_relations.add(relation_id)
                continue
            areas[next_id] = Area(next_id, relation_id, relation.level, polygons)
            next_id += 1

        logger.info("Assembled areas", levels=sorted(levels), areas=len(areas),
                    incomplete=len(self.incomplete_relations))
        return areas


class CompositeAreaAssembler:
    """
    Assembles bonus areas that group territory areas of a finer level.

    A bonus area takes the rings of its own relation when they close, and
    otherwise the union of its member territories. Members are the
    territories built from relations listed (transitively) as subareas, plus,
    when the relation has its own rings, the territories lying inside them.
    """

    ACCESS = {"points": Access.READ, "lines": Access.READ,
              "relations": Access.READ, "areas": Access.WRITE}

    def __init__(self, points: Dict[int, Point], lines: Dict[int, Line],
                 relations: Dict[int, Relation], incomplete_relations: Optional[Set[int]] = None):
        self.points = points
        self.lines = lines
        self.relations = relations
        self.incomplete_relations = incomplete_relations if incomplete_relations is not None else set()

    def _descendants(self, relation: Relation) -> Set[int]:
        """Relation ids reachable through subarea links."""
        found: Set[int] = set()
        stack = list(relation.subareas)
        while stack:
            relation_id = stack.pop()
            if relation_id in found or relation_id == relation.id:
                continue
            found.add(relation_id)
            child = self.relations.get(relation_id)
            if child is not None:
                stack.extend(child.subareas)
        return found

    def _contained(self, polygons: List[Polygon], territories: Dict[int, Area]) -> Set[int]:
        """Territories whose representative point lies inside the polygons."""
        shapes = [
            (ring_coordinates(p.outer, self.points), [ring_coordinates(i, self.points) for i in p.inners])
            for p in polygons
        ]
        inside = set()
        for area_id, area in territories.items():
            largest = max(
                (ring_coordinates(ring, self.points) for ring in area.outer_rings),
                key=lambda coords: abs(signed_area(coords)),
            )
            x, y = representative_point(largest)
            for outer, holes in shapes:
                if point_in_ring(x, y, outer) and not any(point_in_ring(x, y, h) for h in holes):
                    inside.add(area_id)
                    break
        return inside

    def assemble_bonus_area(self, relation: Relation, territories: Dict[int, Area],
                            area_id: int) -> Optional[Area]:
        """Build the bonus area of one relation, or None if it is incomplete."""
        by_relation = {area.relation_id: aid for aid, area in territories.items()}
        members = {by_relation[rid] for rid in self._descendants(relation) if rid in by_relation}

        polygons = None
        if relation.id not in self.incomplete_relations:
            polygons = build_polygons(relation, self.points, self.lines)
        if polygons is not None:
            members |= self._contained(polygons, territories)
        elif members:
            polygons = merge_polygons(
                {aid: territories[aid].polygons for aid in sorted(members)}, self.points
            )

        if polygons is None:
            return None
        return Area(area_id, relation.id, relation.level, polygons, members=members)

    def assemble_areas(self, areas: Dict[int, Area], levels: Iterable[int]) -> Dict[int, Area]:
        """
        Assemble bonus areas for the given levels and append them to ``areas``.

        Args:
            areas: Existing territory areas, extended in place
            levels: Administrative levels of the bonus relations

        Returns:
            The newly added bonus areas
        """
        territories = dict(areas)
        next_id = max(areas) + 1 if areas else 0
        added: Dict[int, Area] = {}

        for level in sorted(set(levels)):
            for relation_id in sorted(self.relations):
                relation = self.relations[relation_id]
                if relation.level != level:
                    continue
                area = self.assemble_bonus_area(relation, territories, next_id)
                if area is None:
                    self.incomplete_relations.add(relation_id)
                    continue
                self.incomplete_relations.discard(relation_id)
                added[next_id] = area
                next_id += 1

        areas.update(added)
        logger.info("Assembled bonus areas", levels=sorted(set(levels)), areas=len(added))
        return added


def assemble(relations: Dict[int, Relation], points: Dict[int, Point], lines: Dict[int, Line],
             levels: Iterable[int], incomplete_relations: Optional[Set[int]] = None) -> Dict[int, Area]:
    """Direct strategy: territory areas of the given levels."""
    return DirectAreaAssembler(points, lines, relations, incomplete_relations).assemble_areas(levels)


def assemble_bonus(areas: Dict[int, Area], relations: Dict[int, Relation], points: Dict[int, Point],
                   lines: Dict[int, Line], bonus_levels: Iterable[int],
                   incomplete_relations: Optional[Set[int]] = None) -> Dict[int, Area]:
    """Composite strategy: bonus areas appended to ``areas``."""
    assembler = CompositeAreaAssembler(points, lines, relations, incomplete_relations)
    return assembler.assemble_areas(areas, bonus_levels)
