"""Draw Session Models

States, tool kinds and the records produced by interactive drawing.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from src.interfaces import HighlightStyle
from ..models import Feature, Geometry


class DrawState(str, Enum):
    """Lifecycle states of a draw session."""
    IDLE = "Idle"
    DRAWING = "Drawing"
    COMPLETE = "Complete"
    CANCELLED = "Cancelled"


class ToolKind(str, Enum):
    """Drawing tools.

    Rectangle and Circle are defined by two control points: opposite corners,
    and centre plus a point on the circumference.
    """
    POINT = "Point"
    LINE = "Line"
    POLYGON = "Polygon"
    RECTANGLE = "Rectangle"
    CIRCLE = "Circle"


MIN_VERTICES: Dict[ToolKind, int] = {
    ToolKind.POINT: 1,
    ToolKind.LINE: 2,
    ToolKind.POLYGON: 3,
    ToolKind.RECTANGLE: 2,
    ToolKind.CIRCLE: 2,
}

# Tools that finish on their own once this many vertices have been placed
AUTO_FINISH_VERTICES: Dict[ToolKind, int] = {
    ToolKind.POINT: 1,
    ToolKind.RECTANGLE: 2,
    ToolKind.CIRCLE: 2,
}


class DrawTarget(str, Enum):
    """Analysis input slot a drawing is captured for."""
    NONE = "none"
    BUFFER = "buffer"
    INTERSECT_A = "intersect_a"
    INTERSECT_B = "intersect_b"


class DrawSessionSnapshot(BaseModel):
    """Read-only view of a draw session, passed to state change subscribers."""
    model_config = ConfigDict(frozen=True)

    state: DrawState
    tool_kind: Optional[ToolKind] = None
    vertex_count: int = Field(0, ge=0)
    result_geometry: Optional[Geometry] = None


class DrawnFeature(BaseModel):
    """A completed drawing kept for use as an analysis input."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Drawing identifier")
    geometry: Geometry
    tool_kind: ToolKind
    target: DrawTarget = DrawTarget.NONE
    style: Optional[HighlightStyle] = Field(None, description="Symbology chosen when the tool was armed")
    created_at: datetime = Field(default_factory=datetime.now)

    def to_feature(self) -> Feature:
        """Wrap the drawing as a feature so analysis can treat it like dataset data."""
        return Feature(
            id=self.id,
            geometry=self.geometry,
            attributes={"source": "Drawn", "tool": self.tool_kind.value, "target": self.target.value}
        )


class DrawnFeatureSlots(BaseModel):
    """Drawings collected per analysis input."""
    buffer: Tuple[DrawnFeature, ...] = Field(default_factory=tuple)
    intersect_a: Optional[DrawnFeature] = None
    intersect_b: Optional[DrawnFeature] = None
