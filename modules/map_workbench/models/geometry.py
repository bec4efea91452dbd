"""Geometry Data Models

This module defines the geometry tagged union shared by every engine component,
together with the Extent model used for zoom targets. Coordinates follow the
points/paths/rings layout of the map client: a Point is ``[x, y]``, a Multipoint
is a list of points, a Line is a list of paths and a Polygon is a list of rings,
each ring closed. Multipoints only arise as analysis output, for example where
two lines cross more than once.
"""

from enum import Enum
from typing import Any, Iterable, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from shapely.geometry import (
    LineString, MultiLineString, MultiPoint, Point as ShapelyPoint, Polygon as ShapelyPolygon
)
from shapely.geometry.base import BaseGeometry

DEFAULT_SPATIAL_REFERENCE = 3857

Coordinate = Tuple[float, float]


class GeometryKind(str, Enum):
    """Geometry types handled by the engine."""
    POINT = "Point"
    MULTIPOINT = "Multipoint"
    LINE = "Line"
    POLYGON = "Polygon"


class Extent(BaseModel):
    """Axis-aligned bounding rectangle in a spatial reference."""
    model_config = ConfigDict(frozen=True)

    xmin: float
    ymin: float
    xmax: float
    ymax: float
    spatial_reference_id: int = Field(DEFAULT_SPATIAL_REFERENCE, description="EPSG code")

    @model_validator(mode='after')
    def validate_bounds(self) -> "Extent":
        if self.xmin > self.xmax or self.ymin > self.ymax:
            raise ValueError('Extent minimums must not exceed maximums')
        return self

    @property
    def center(self) -> Coordinate:
        return ((self.xmin + self.xmax) / 2.0, (self.ymin + self.ymax) / 2.0)

    @property
    def width(self) -> float:
        return self.xmax - self.xmin

    @property
    def height(self) -> float:
        return self.ymax - self.ymin

    def union(self, other: "Extent") -> "Extent":
        """Return the extent covering both extents."""
        return Extent(
            xmin=min(self.xmin, other.xmin),
            ymin=min(self.ymin, other.ymin),
            xmax=max(self.xmax, other.xmax),
            ymax=max(self.ymax, other.ymax),
            spatial_reference_id=self.spatial_reference_id
        )

    @classmethod
    def combine(cls, extents: Iterable["Extent"]) -> Optional["Extent"]:
        """Combine extents into one; None when nothing was supplied."""
        combined = None
        for extent in extents:
            combined = extent if combined is None else combined.union(extent)
        return combined


class Geometry(BaseModel):
    """Immutable geometry value.

    Geometries are shared read-only between datasets, results and the render
    surface, so the model is frozen and operations always return new instances.
    """
    model_config = ConfigDict(frozen=True)

    kind: GeometryKind = Field(..., description="Geometry type tag")
    coordinates: Any = Field(
        ..., description="[x, y] for points, points for multipoints, paths for lines, rings for polygons"
    )
    spatial_reference_id: int = Field(DEFAULT_SPATIAL_REFERENCE, description="EPSG code")

    @field_validator('coordinates')
    @classmethod
    def validate_coordinates(cls, v: Any, info: ValidationInfo) -> Any:
        """Normalise coordinates to float tuples and check their nesting."""
        kind = info.data.get('kind')
        if kind is None:
            return v
        if kind == GeometryKind.POINT:
            return _to_coordinate(v)
        if kind == GeometryKind.MULTIPOINT:
            normalized = tuple(_to_coordinate(c) for c in v)
            if not normalized:
                raise ValueError('Multipoints need at least 1 coordinate')
            return normalized
        if kind == GeometryKind.LINE:
            normalized = tuple(tuple(_to_coordinate(c) for c in path) for path in v)
            if any(len(path) < 2 for path in normalized):
                raise ValueError('Line paths need at least 2 coordinates')
            return normalized
        normalized = tuple(tuple(_to_coordinate(c) for c in ring) for ring in v)
        if any(len(ring) < 4 or ring[0] != ring[-1] for ring in normalized):
            raise ValueError('Polygon rings need at least 4 coordinates and must be closed')
        return normalized

    @classmethod
    def point(cls, x: float, y: float, spatial_reference_id: int = DEFAULT_SPATIAL_REFERENCE) -> "Geometry":
        return cls(kind=GeometryKind.POINT, coordinates=(x, y), spatial_reference_id=spatial_reference_id)

    @classmethod
    def line(cls, path: List[Coordinate], spatial_reference_id: int = DEFAULT_SPATIAL_REFERENCE) -> "Geometry":
        return cls(kind=GeometryKind.LINE, coordinates=[path], spatial_reference_id=spatial_reference_id)

    @classmethod
    def polygon(cls, ring: List[Coordinate], spatial_reference_id: int = DEFAULT_SPATIAL_REFERENCE) -> "Geometry":
        """Build a single-ring polygon, closing the ring if needed."""
        ring = [tuple(c) for c in ring]
        if ring and ring[0] != ring[-1]:
            ring.append(ring[0])
        return cls(kind=GeometryKind.POLYGON, coordinates=[ring], spatial_reference_id=spatial_reference_id)

    @property
    def is_empty(self) -> bool:
        if self.kind == GeometryKind.POINT:
            return False
        return len(self.coordinates) == 0

    def iter_coordinates(self) -> Iterator[Coordinate]:
        """Yield every vertex of the geometry."""
        if self.kind == GeometryKind.POINT:
            yield self.coordinates
            return
        if self.kind == GeometryKind.MULTIPOINT:
            yield from self.coordinates
            return
        for part in self.coordinates:
            yield from part

    def extent(self) -> Optional[Extent]:
        """Bounding extent of the geometry; None for empty geometries."""
        coords = list(self.iter_coordinates())
        if not coords:
            return None
        xs = [c[0] for c in coords]
        ys = [c[1] for c in coords]
        return Extent(xmin=min(xs), ymin=min(ys), xmax=max(xs), ymax=max(ys),
                      spatial_reference_id=self.spatial_reference_id)

    def representative_point(self) -> "Geometry":
        """Reduce the geometry to one point.

        Points are returned as-is, polygons by their centroid and lines by the
        centre of their extent. Degenerate polygons fall back to the extent centre.
        """
        if self.kind == GeometryKind.POINT:
            return self
        if self.kind == GeometryKind.POLYGON:
            shape = self.to_shapely()
            if not shape.is_empty and shape.area > 0:
                centroid = shape.centroid
                return Geometry.point(centroid.x, centroid.y, self.spatial_reference_id)
        extent = self.extent()
        if extent is None:
            raise ValueError("Cannot derive a representative point from an empty geometry")
        x, y = extent.center
        return Geometry.point(x, y, self.spatial_reference_id)

    def to_shapely(self) -> BaseGeometry:
        """Convert to a shapely geometry.

        Polygon rings are combined by symmetric difference, so rings nested in
        another ring become holes regardless of their winding order.
        """
        if self.kind == GeometryKind.POINT:
            return ShapelyPoint(self.coordinates)
        if self.kind == GeometryKind.MULTIPOINT:
            return MultiPoint(list(self.coordinates))
        if self.kind == GeometryKind.LINE:
            if len(self.coordinates) == 1:
                return LineString(self.coordinates[0])
            return MultiLineString([list(path) for path in self.coordinates])

        shape: BaseGeometry = ShapelyPolygon()
        for ring in self.coordinates:
            shape = shape.symmetric_difference(ShapelyPolygon(ring))
        return shape

    @classmethod
    def from_shapely(cls, shape: BaseGeometry,
                     spatial_reference_id: int = DEFAULT_SPATIAL_REFERENCE) -> Optional["Geometry"]:
        """Convert a shapely geometry back; None for empty or unsupported results."""
        if shape is None or shape.is_empty:
            return None

        geom_type = shape.geom_type
        if geom_type == "Point":
            return cls.point(shape.x, shape.y, spatial_reference_id)
        if geom_type == "MultiPoint":
            return cls._from_points(list(shape.geoms), spatial_reference_id)
        if geom_type in ("LineString", "LinearRing"):
            return cls(kind=GeometryKind.LINE, coordinates=[list(shape.coords)],
                       spatial_reference_id=spatial_reference_id)
        if geom_type == "MultiLineString":
            return cls(kind=GeometryKind.LINE, coordinates=[list(part.coords) for part in shape.geoms],
                       spatial_reference_id=spatial_reference_id)
        if geom_type == "Polygon":
            return cls(kind=GeometryKind.POLYGON, coordinates=_polygon_rings(shape),
                       spatial_reference_id=spatial_reference_id)
        if geom_type == "MultiPolygon":
            rings = [ring for part in shape.geoms for ring in _polygon_rings(part)]
            return cls(kind=GeometryKind.POLYGON, coordinates=rings,
                       spatial_reference_id=spatial_reference_id)
        if geom_type == "GeometryCollection":
            # Keep the highest-dimension parts, which is what overlay results care about
            polygons = [g for g in shape.geoms if g.geom_type in ("Polygon", "MultiPolygon")]
            if polygons:
                rings = []
                for part in polygons:
                    members = part.geoms if part.geom_type == "MultiPolygon" else [part]
                    for member in members:
                        rings.extend(_polygon_rings(member))
                return cls(kind=GeometryKind.POLYGON, coordinates=rings,
                           spatial_reference_id=spatial_reference_id)
            lines = [g for g in shape.geoms if g.geom_type in ("LineString", "MultiLineString")]
            if lines:
                paths = []
                for part in lines:
                    members = part.geoms if part.geom_type == "MultiLineString" else [part]
                    paths.extend(list(member.coords) for member in members)
                return cls(kind=GeometryKind.LINE, coordinates=paths,
                           spatial_reference_id=spatial_reference_id)
            points = []
            for part in shape.geoms:
                if part.geom_type == "Point":
                    points.append(part)
                elif part.geom_type == "MultiPoint":
                    points.extend(part.geoms)
            if points:
                return cls._from_points(points, spatial_reference_id)
        return None

    @classmethod
    def _from_points(cls, points: List[ShapelyPoint], spatial_reference_id: int) -> "Geometry":
        if len(points) == 1:
            return cls.point(points[0].x, points[0].y, spatial_reference_id)
        return cls(kind=GeometryKind.MULTIPOINT, coordinates=[(p.x, p.y) for p in points],
                   spatial_reference_id=spatial_reference_id)


def _to_coordinate(value: Any) -> Coordinate:
    try:
        x, y = value[0], value[1]
        return (float(x), float(y))
    except (TypeError, IndexError, ValueError) as e:
        raise ValueError(f"Invalid coordinate: {value!r}") from e


def _polygon_rings(polygon: ShapelyPolygon) -> List[List[Coordinate]]:
    return [list(polygon.exterior.coords)] + [list(interior.coords) for interior in polygon.interiors]
