"""
Line simplification (compression) for boundary lines.

This module implements:
- Douglas-Peucker reduction of each line under a distance tolerance
- Protection of points shared between lines, so common boundaries of
  neighbouring relations stay identical
- Protection of rings made of two open lines, so they never collapse to
  a back-and-forth segment
- A two-phase commit: every line decides which points it keeps, then the
  point table drops only points no line references any more
"""

from collections import Counter, defaultdict
from dataclasses import dataclass
from typing import Dict, List, Set, Tuple

import numpy as np
import structlog

from .geometry import segment_distances
from .model import Access, Line, Point

logger = structlog.get_logger()


@dataclass
class SimplificationStats:
    """Point table size before and after compression."""

    points_before: int
    points_after: int
    lines_changed: int = 0

    @property
    def points_removed(self) -> int:
        return self.points_before - self.points_after


def douglas_peucker(coords: np.ndarray, start: int, end: int, tolerance: float) -> List[int]:
    """
    Indices to keep between start and end (inclusive) of a coordinate run.

    The interior vertex farthest from the chord is kept when its distance
    exceeds the tolerance, and both halves are processed the same way.
    Uses an explicit stack since boundary lines can hold many thousand points.
    """
    keep = {start, end}
    stack = [(start, end)]
    while stack:
        first, last = stack.pop()
        if last - first < 2:
            continue
        distances = segment_distances(coords[first + 1:last], coords[first], coords[last])
        offset = int(np.argmax(distances))
        if distances[offset] > tolerance:
            index = first + 1 + offset
            keep.add(index)
            stack.append((first, index))
            stack.append((index, last))
    return sorted(keep)


class Simplifier:
    """Compresses the lines of a dataset without breaking shared points."""

    ACCESS = {"points": Access.WRITE, "lines": Access.WRITE}

    def __init__(self, points: Dict[int, Point], lines: Dict[int, Line]):
        """
        Initialize the simplifier.

        Args:
            points: Global point table, points may be removed from it
            lines: Global line table, line nodes are replaced in place
        """
        self.points = points
        self.lines = lines

    def shared_points(self) -> Set[int]:
        """Ids of points referenced by more than one line."""
        references = Counter()
        for line in self.lines.values():
            references.update(set(line.nodes))
        return {pid for pid, count in references.items() if count > 1}

    def paired_lines(self) -> List[List[int]]:
        """Groups of open lines running between the same two endpoints."""
        by_ends: Dict[Tuple[int, int], List[int]] = defaultdict(list)
        for line_id, line in self.lines.items():
            if line.is_closed:
                continue
            ends = (line.first, line.last) if line.first < line.last else (line.last, line.first)
            by_ends[ends].append(line_id)
        return [sorted(line_ids) for line_ids in by_ends.values() if len(line_ids) > 1]

    def _split_indices(self, line: Line, coords: np.ndarray, shared: Set[int]) -> List[int]:
        """Indices that must survive: endpoints, shared points and, for rings, a triangle."""
        last = len(line.nodes) - 1
        fixed = {0, last}
        fixed.update(i for i, pid in enumerate(line.nodes) if pid in shared)

        if line.is_closed and last >= 3:
            # A closed line keeps the point farthest from its start and the
            # point farthest from that chord, so it never collapses.
            far = int(np.argmax(segment_distances(coords, coords[0], coords[0])))
            if far not in (0, last):
                fixed.add(far)
                apex = int(np.argmax(segment_distances(coords, coords[0], coords[far])))
                if apex not in (0, last, far):
                    fixed.add(apex)
        return sorted(fixed)

    def simplify_line(self, line: Line, tolerance: float, shared: Set[int]) -> List[int]:
        """Decide the retained point ids of one line. Does not touch any table."""
        if len(line.nodes) <= 2:
            return list(line.nodes)

        coords = np.array([(self.points[pid].x, self.points[pid].y) for pid in line.nodes])
        fixed = self._split_indices(line, coords, shared)

        keep: Set[int] = set(fixed)
        for start, end in zip(fixed, fixed[1:]):
            keep.update(douglas_peucker(coords, start, end, tolerance))
        return [line.nodes[i] for i in sorted(keep)]

    def decide(self, tolerance: float) -> Dict[int, List[int]]:
        """Phase one: retained point ids per line id."""
        shared = self.shared_points()
        decisions = {}
        for line_id, line in self.lines.items():
            missing = [pid for pid in line.nodes if pid not in self.points]
            if missing:
                logger.warning("Line references missing points, left as is",
                               line=line_id, missing=len(missing))
                continue
            decisions[line_id] = self.simplify_line(line, tolerance, shared)
        self.keep_pairs_open(decisions)
        return decisions

    def keep_pairs_open(self, decisions: Dict[int, List[int]]) -> None:
        """
        Stop two lines between the same endpoints from both collapsing.

        Two such lines reduced to their endpoints would form the ring
        [a, b, a], which encloses nothing. Within each group only one line
        may end up as a bare segment; every other collapsed line gets its
        interior point farthest from the chord back.
        """
        for line_ids in self.paired_lines():
            collapsed = [line_id for line_id in line_ids
                         if line_id in decisions and len(decisions[line_id]) == 2]
            # Lines that never had interior points are the ones left collapsed
            collapsed.sort(key=lambda line_id: (len(self.lines[line_id].nodes) > 2, line_id))
            for line_id in collapsed[1:]:
                nodes = self.lines[line_id].nodes
                if len(nodes) <= 2:
                    continue
                coords = np.array([(self.points[pid].x, self.points[pid].y) for pid in nodes])
                far = 1 + int(np.argmax(segment_distances(coords[1:-1], coords[0], coords[-1])))
                decisions[line_id] = [nodes[0], nodes[far], nodes[-1]]
                logger.debug("Interior point kept to preserve ring", line=line_id, point=nodes[far])

    def commit(self, decisions: Dict[int, List[int]]) -> Tuple[int, Set[int]]:
        """
        Phase two: apply the decisions to the shared tables.

        Returns:
            Tuple of (number of changed lines, ids of removed points)
        """
        dropped: Set[int] = set()
        changed = 0
        for line_id, nodes in decisions.items():
            line = self.lines[line_id]
            if len(nodes) != len(line.nodes):
                dropped.update(set(line.nodes) - set(nodes))
                line.nodes = nodes
                changed += 1

        referenced = {pid for line in self.lines.values() for pid in line.nodes}
        removed = dropped - referenced
        for pid in removed:
            self.points.pop(pid, None)
        return changed, removed

    def compress_lines(self, tolerance: float) -> SimplificationStats:
        """
        Simplify every line under the given distance tolerance.

        Args:
            tolerance: Maximum distance of a removed point to the simplified
                line, in the units of the current coordinates. 0 disables
                compression.

        Returns:
            Point table statistics before and after compression
        """
        if tolerance < 0:
            raise ValueError(f"Tolerance must be >= 0, got {tolerance}")

        points_before = len(self.points)
        if tolerance == 0:
            return SimplificationStats(points_before, points_before)

        logger.info("Compressing lines", lines=len(self.lines), tolerance=tolerance)
        decisions = self.decide(tolerance)
        changed, removed = self.commit(decisions)

        stats = SimplificationStats(points_before, len(self.points), changed)
        logger.info("Lines compressed",
                    points_before=stats.points_before,
                    points_after=stats.points_after,
                    lines_changed=changed)
        return stats


def simplify(lines: Dict[int, Line], points: Dict[int, Point],
             tolerance: float) -> Tuple[Dict[int, Line], Dict[int, Point]]:
    """Simplify lines in place and return the (lines, points) tables."""
    Simplifier(points, lines).compress_lines(tolerance)
    return lines, points
