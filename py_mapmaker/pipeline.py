"""
Map generation pipeline.

Runs the stages in their fixed order over one dataset:
compress lines -> assemble territories -> neighbors/components -> filter
-> assemble bonus areas -> project and scale.

Each stage borrows the tables it needs from the DataContainer for exactly
its own duration. Progress is reported to an optional observer.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Set, Tuple

import structlog

from .config import MapOptions
from .core.area_filter import AreaFilter
from .core.assembler import CompositeAreaAssembler, DirectAreaAssembler
from .core.geometry import area_centerpoint
from .core.inspector import NeighborInspector
from .core.model import Access, Area, DataContainer, Point
from .core.projection import MercatorProjection, RadianProjection
from .core.projector import Projector
from .core.simplifier import Simplifier
from .log_config import configure_logging

logger = structlog.get_logger()


class PipelineObserver(Protocol):
    """Receives pipeline milestones."""

    def stage_started(self, stage: str, **info: Any) -> None:
        ...

    def stage_finished(self, stage: str, **info: Any) -> None:
        ...


class NullObserver:
    def stage_started(self, stage: str, **info: Any) -> None:
        pass

    def stage_finished(self, stage: str, **info: Any) -> None:
        pass


class LoggingObserver:
    """Forwards milestones to structlog."""

    def __init__(self, log=None):
        self.log = log or structlog.get_logger("py_mapmaker.progress")

    def stage_started(self, stage: str, **info: Any) -> None:
        self.log.info("Stage started", stage=stage, **info)

    def stage_finished(self, stage: str, **info: Any) -> None:
        self.log.info("Stage finished", stage=stage, **info)


@dataclass
class MapResult:
    """Everything a renderer needs. Point coordinates are in pixels."""

    areas: Dict[int, Area]
    neighbors: Dict[int, Set[int]]
    components: Dict[int, Set[int]]
    points: Dict[int, Point]
    width: int
    height: int
    territory_level: int
    incomplete_relations: Set[int] = field(default_factory=set)
    centerpoints: Dict[int, Tuple[float, float]] = field(default_factory=dict)

    @property
    def territories(self) -> Dict[int, Area]:
        return {area_id: area for area_id, area in self.areas.items() if area.level == self.territory_level}

    @property
    def bonus_areas(self) -> Dict[int, Area]:
        return {area_id: area for area_id, area in self.areas.items() if area.level != self.territory_level}


class MapPipeline:
    """Turns a decoded dataset into projected territory areas."""

    def __init__(self, options: MapOptions, observer: Optional[PipelineObserver] = None):
        self.options = options
        self.observer = observer or NullObserver()
        configure_logging("DEBUG" if options.verbose else None)

    def run(self, data: DataContainer) -> MapResult:
        options = self.options
        logger.info("Starting map pipeline", **data.summary())
        if data.incomplete_relations:
            logger.warning("Relations with missing members",
                           relations=sorted(data.incomplete_relations))

        if options.compression_tolerance > 0:
            self.compress(data)

        self.assemble_territories(data)
        neighbors, components = self.inspect(data)

        if options.filter_tolerance > 0:
            self.filter(data, neighbors, components)
            # Filtering can split components
            neighbors, components = self.inspect(data)

        if options.bonus_levels:
            self.assemble_bonus_areas(data)

        width, height = self.project(data)

        with data.borrow("centerpoints", points=Access.READ, areas=Access.READ):
            centerpoints = {area_id: area_centerpoint(area, data.points)
                            for area_id, area in data.areas.items()}

        logger.info("Map pipeline finished", width=width, height=height, areas=len(data.areas))
        return MapResult(
            areas=data.areas,
            neighbors=neighbors,
            components=components,
            points=data.points,
            width=width,
            height=height,
            territory_level=options.territory_level,
            incomplete_relations=set(data.incomplete_relations),
            centerpoints=centerpoints,
        )

    def compress(self, data: DataContainer) -> None:
        self.observer.stage_started("compress", tolerance=self.options.compression_tolerance)
        with data.borrow("compress", **Simplifier.ACCESS):
            stats = Simplifier(data.points, data.lines).compress_lines(
                self.options.compression_tolerance
            )
        self.observer.stage_finished("compress", points_before=stats.points_before,
                                     points_after=stats.points_after)

    def assemble_territories(self, data: DataContainer) -> None:
        level = self.options.territory_level
        self.observer.stage_started("assemble_territories", level=level)
        with data.borrow("assemble_territories", **DirectAreaAssembler.ACCESS):
            assembler = DirectAreaAssembler(
                data.points, data.lines, data.relations, data.incomplete_relations
            )
            data.areas = assembler.assemble_areas([level])
        self.observer.stage_finished("assemble_territories", territories=len(data.areas))

    def inspect(self, data: DataContainer) -> Tuple[Dict[int, Set[int]], Dict[int, Set[int]]]:
        self.observer.stage_started("inspect", areas=len(data.areas))
        with data.borrow("inspect", **NeighborInspector.ACCESS):
            neighbors, components = NeighborInspector(data.areas).get_relations()
        self.observer.stage_finished("inspect", components=len(components))
        return neighbors, components

    def filter(self, data: DataContainer, neighbors: Dict[int, Set[int]],
               components: Dict[int, Set[int]]) -> None:
        self.observer.stage_started("filter", tolerance=self.options.filter_tolerance)
        with data.borrow("filter", **AreaFilter.ACCESS):
            stats = AreaFilter(data.areas, components, data.points, neighbors).filter_areas(
                self.options.filter_tolerance
            )
        self.observer.stage_finished("filter", territories_before=stats.areas_before,
                                     territories_after=stats.areas_after)

    def assemble_bonus_areas(self, data: DataContainer) -> None:
        levels = self.options.bonus_levels
        self.observer.stage_started("assemble_bonus_areas", levels=levels)
        with data.borrow("assemble_bonus_areas", **CompositeAreaAssembler.ACCESS):
            assembler = CompositeAreaAssembler(
                data.points, data.lines, data.relations, data.incomplete_relations
            )
            added = assembler.assemble_areas(data.areas, levels)
        self.observer.stage_finished("assemble_bonus_areas", bonus_areas=len(added))

    def project(self, data: DataContainer) -> Tuple[int, int]:
        self.observer.stage_started("project", points=len(data.points))
        with data.borrow("project", **Projector.ACCESS):
            projector = Projector(data.points)
            projector.apply_projection(RadianProjection())
            projector.apply_projection(MercatorProjection())
            width, height = projector.scale(self.options.width, self.options.height)
        self.observer.stage_finished("project", width=width, height=height)
        return width, height
