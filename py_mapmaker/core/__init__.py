"""
Core map assembly functionality.
"""

from .model import (Access, Area, DataContainer, Line, Member, Point, Polygon,
                    Relation, Role, TableAccessError)
from .simplifier import Simplifier, SimplificationStats, simplify
from .assembler import (CompositeAreaAssembler, DirectAreaAssembler, assemble, assemble_bonus,
                        close_rings)
from .inspector import NeighborInspector, component_index, inspect
from .area_filter import AreaFilter, FilterStats, filter_areas
from .projection import (Interval, IntervalProjection, MercatorProjection,
                         RadianProjection, UnitProjection)
from .projector import Projector, resolve_dimensions

__all__ = ['Access', 'Area', 'DataContainer', 'Line', 'Member', 'Point', 'Polygon',
           'Relation', 'Role', 'TableAccessError',
           'Simplifier', 'SimplificationStats', 'simplify',
           'CompositeAreaAssembler', 'DirectAreaAssembler', 'assemble', 'assemble_bonus',
           'close_rings', 'NeighborInspector', 'component_index', 'inspect',
           'AreaFilter', 'FilterStats', 'filter_areas',
           'Interval', 'IntervalProjection', 'MercatorProjection', 'RadianProjection',
           'UnitProjection', 'Projector', 'resolve_dimensions']
