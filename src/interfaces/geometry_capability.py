"""Geometry Capability Interface

This module defines the abstract contract for the external geometry service the
analysis orchestrator consumes. Implementations may be local (shapely) or remote;
every operation is a coroutine and may fail with a capability-specific error.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from modules.map_workbench.models import Geometry


class LengthUnit(str, Enum):
    """Linear units accepted by buffer and length operations."""
    METERS = "meters"
    KILOMETERS = "kilometers"
    FEET = "feet"
    MILES = "miles"


class AreaUnit(str, Enum):
    """Areal units accepted by the area operation."""
    SQUARE_METERS = "square-meters"
    HECTARES = "hectares"
    SQUARE_KILOMETERS = "square-kilometers"


class GeometryCapability(ABC):
    """Abstract base class for geometry computation services.

    The engine never mutates geometries it passes in; implementations must
    return new geometries rather than editing their arguments.
    """

    @abstractmethod
    async def buffer(self, geometry: "Geometry", distance: float,
                     unit: LengthUnit) -> "Geometry":
        """Buffer a geometry by a distance expressed in ``unit``."""
        pass

    @abstractmethod
    async def intersect(self, a: "Geometry", b: "Geometry") -> Optional["Geometry"]:
        """Return the intersection of two geometries, or None when they do not overlap."""
        pass

    @abstractmethod
    async def union(self, geometries: List["Geometry"]) -> "Geometry":
        """Dissolve a list of geometries into one."""
        pass

    @abstractmethod
    async def difference(self, a: "Geometry", b: "Geometry") -> Optional["Geometry"]:
        """Return ``a`` minus ``b``, or None when nothing remains."""
        pass

    @abstractmethod
    async def length(self, geometry: "Geometry", unit: LengthUnit) -> float:
        """Measure the length of a line geometry."""
        pass

    @abstractmethod
    async def area(self, geometry: "Geometry", unit: AreaUnit) -> float:
        """Measure the area of a polygon geometry."""
        pass
