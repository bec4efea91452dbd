"""Spatial Analysis Models

Request and result models for buffer, intersect, distance and area analysis.
Parameters are validated with Pydantic before any capability call is made.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.interfaces import HighlightStyle, LengthUnit
from ..exceptions import AnalysisError
from ..models import Extent, Feature, Geometry

AnalysisSource = Union[Feature, Geometry]


class AnalysisKind(str, Enum):
    """Supported spatial analysis operations."""
    BUFFER = "Buffer"
    INTERSECT = "Intersect"
    DISTANCE = "Distance"
    AREA = "Area"


class BufferParameters(BaseModel):
    """Parameters for buffer analysis."""
    distance: float = Field(..., gt=0, description="Buffer distance in ``unit``")
    unit: LengthUnit = Field(LengthUnit.METERS, description="Unit of ``distance``")
    union: bool = Field(False, description="Dissolve all buffers into one geometry")


class IntersectParameters(BaseModel):
    """Parameters for intersect analysis."""
    keep_non_intersecting: bool = Field(False, description="Also emit the parts outside every intersection")


class AnalysisRequest(BaseModel):
    """One spatial analysis to run.

    ``source_features`` are the inputs for every kind; intersect additionally
    reads set B from ``secondary_features``. ``style`` replaces the engine's
    default analysis symbology for this request's output.
    """
    model_config = ConfigDict(frozen=True)

    kind: AnalysisKind
    source_features: List[AnalysisSource] = Field(default_factory=list)
    secondary_features: List[AnalysisSource] = Field(default_factory=list)
    parameters: Dict[str, Any] = Field(default_factory=dict)
    style: Optional[HighlightStyle] = None

    def source_geometries(self) -> List[Geometry]:
        return _geometries(self.source_features)

    def secondary_geometries(self) -> List[Geometry]:
        return _geometries(self.secondary_features)

    def buffer_parameters(self) -> BufferParameters:
        return _parse_parameters(BufferParameters, self.parameters, self.kind)

    def intersect_parameters(self) -> IntersectParameters:
        return _parse_parameters(IntersectParameters, self.parameters, self.kind)


class AnalysisGeometry(BaseModel):
    """An output geometry with its provenance attributes."""
    model_config = ConfigDict(frozen=True)

    geometry: Geometry
    attributes: Dict[str, Any] = Field(default_factory=dict)


class AnalysisResult(BaseModel):
    """Outcome of one analysis request.

    ``skipped_count`` counts batch items that failed and were left out; their
    messages are in ``errors``.
    """
    kind: AnalysisKind
    geometries: List[AnalysisGeometry] = Field(default_factory=list)
    processed_count: int = Field(0, ge=0, description="Capability items attempted")
    skipped_count: int = Field(0, ge=0, description="Batch items skipped after a failure")
    errors: List[str] = Field(default_factory=list)
    magnitude: Optional[float] = Field(None, description="Distance in m or area in m²")
    display_value: Optional[str] = Field(None, description="Unit-scaled magnitude")
    style: Optional[HighlightStyle] = None
    completed_at: datetime = Field(default_factory=datetime.now)

    @property
    def geometry_count(self) -> int:
        return len(self.geometries)

    def extent(self) -> Optional[Extent]:
        return Extent.combine(
            e for e in (item.geometry.extent() for item in self.geometries) if e is not None
        )

    def get_summary(self) -> str:
        """Generate human-readable analysis summary."""
        summary = f"{self.kind.value}: {self.geometry_count} geometries"
        if self.display_value:
            summary += f", {self.display_value}"
        if self.skipped_count:
            summary += f" ({self.skipped_count} skipped)"
        return summary


def _geometries(sources: List[AnalysisSource]) -> List[Geometry]:
    geometries = []
    for source in sources:
        geometry = source if isinstance(source, Geometry) else source.geometry
        if geometry is not None:
            geometries.append(geometry)
    return geometries


def _parse_parameters(model, parameters: Dict[str, Any], kind: AnalysisKind):
    try:
        return model(**parameters)
    except ValidationError as e:
        messages = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise AnalysisError(
            f"Invalid {kind.value} parameters: {'; '.join(messages)}",
            {"kind": kind.value}
        ) from e
