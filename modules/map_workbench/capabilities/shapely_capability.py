"""Shapely Geometry Capability

Local GeometryCapability backed by shapely. Coordinates are treated as planar
metres, which holds for projected references such as Web Mercator (3857) at the
scales the workbench is used for.
"""

from typing import List, Optional
import logging

from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

from src.interfaces import AreaUnit, GeometryCapability, LengthUnit
from ..analysis.units import to_meters
from ..exceptions import CapabilityError
from ..models import Geometry

logger = logging.getLogger(__name__)

SQUARE_METERS_PER_UNIT = {
    AreaUnit.SQUARE_METERS: 1.0,
    AreaUnit.HECTARES: 10_000.0,
    AreaUnit.SQUARE_KILOMETERS: 1_000_000.0,
}


class ShapelyGeometryCapability(GeometryCapability):
    """Planar geometry operations computed in-process with shapely."""

    def __init__(self, quad_segments: int = 16):
        self.quad_segments = quad_segments

    async def buffer(self, geometry: Geometry, distance: float, unit: LengthUnit) -> Geometry:
        meters = to_meters(distance, unit)
        buffered = geometry.to_shapely().buffer(meters, quad_segs=self.quad_segments)
        result = Geometry.from_shapely(buffered, geometry.spatial_reference_id)
        if result is None:
            raise CapabilityError(f"Buffer of {meters} m produced an empty geometry", operation="buffer")
        return result

    async def intersect(self, a: Geometry, b: Geometry) -> Optional[Geometry]:
        shape = a.to_shapely().intersection(b.to_shapely())
        return self._convert("intersect", shape, a.spatial_reference_id)

    async def union(self, geometries: List[Geometry]) -> Geometry:
        if not geometries:
            raise CapabilityError("Union requires at least one geometry", operation="union")
        merged = unary_union([g.to_shapely() for g in geometries])
        result = Geometry.from_shapely(merged, geometries[0].spatial_reference_id)
        if result is None:
            raise CapabilityError("Union produced an empty geometry", operation="union")
        return result

    async def difference(self, a: Geometry, b: Geometry) -> Optional[Geometry]:
        shape = a.to_shapely().difference(b.to_shapely())
        return self._convert("difference", shape, a.spatial_reference_id)

    async def length(self, geometry: Geometry, unit: LengthUnit) -> float:
        return geometry.to_shapely().length / to_meters(1.0, unit)

    async def area(self, geometry: Geometry, unit: AreaUnit) -> float:
        return geometry.to_shapely().area / SQUARE_METERS_PER_UNIT[AreaUnit(unit)]

    @staticmethod
    def _convert(operation: str, shape: BaseGeometry, spatial_reference_id: int) -> Optional[Geometry]:
        """None for an empty result; a non-empty result must convert."""
        if shape.is_empty:
            return None
        result = Geometry.from_shapely(shape, spatial_reference_id)
        if result is None:
            raise CapabilityError(
                f"{operation} produced an unsupported {shape.geom_type} result", operation=operation
            )
        return result
