"""Render Surface Interface

This module defines the abstract contract for the map display the engine drives,
along with the highlight style and handle models exchanged with it.
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple, Union, TYPE_CHECKING
from pydantic import BaseModel, Field, field_validator

if TYPE_CHECKING:
    from modules.map_workbench.models import Extent, Geometry


class HighlightStyle(BaseModel):
    """Symbology applied to highlighted geometries.

    Colours are RGB triples; opacity applies to the fill, the outline is drawn
    fully opaque.
    """
    color: Tuple[int, int, int] = Field((255, 215, 0), description="Fill colour (RGB)")
    outline_color: Tuple[int, int, int] = Field((255, 140, 0), description="Outline colour (RGB)")
    opacity: float = Field(0.3, ge=0.0, le=1.0, description="Fill opacity")
    outline_width: float = Field(2.0, ge=0.0, description="Outline width in points")
    marker_size: float = Field(12.0, gt=0.0, description="Marker size for point geometries")

    @field_validator('color', 'outline_color')
    @classmethod
    def validate_rgb(cls, v: Tuple[int, int, int]) -> Tuple[int, int, int]:
        """Ensure every colour channel is within 0-255."""
        if any(channel < 0 or channel > 255 for channel in v):
            raise ValueError('Colour channels must be between 0 and 255')
        return v

    @classmethod
    def from_hex(cls, hex_color: str, opacity: float = 0.7) -> "HighlightStyle":
        """Build a style from a ``#RRGGBB`` colour and an opacity.

        Polygon fills are drawn at half the requested opacity, as the drawing
        tools do.
        """
        value = hex_color.lstrip('#')
        if len(value) != 6:
            raise ValueError(f"Invalid hex colour: {hex_color}")
        rgb = tuple(int(value[i:i + 2], 16) for i in (0, 2, 4))
        return cls(color=rgb, outline_color=rgb, opacity=round(opacity * 0.5, 3))


class HighlightHandle(BaseModel):
    """Opaque reference to a highlight added to the render surface."""
    handle_id: str = Field(..., description="Identifier issued by the render surface")
    group: Optional[str] = Field(None, description="Result group the highlight belongs to")


PointerCallback = Callable[[float, float], None]


class RenderSurface(ABC):
    """Abstract base class for map rendering surfaces."""

    @abstractmethod
    async def add_highlight(self, geometry: "Geometry", style: HighlightStyle) -> HighlightHandle:
        """Draw a highlight for a geometry and return its handle."""
        pass

    @abstractmethod
    async def remove_highlight(self, handle: HighlightHandle) -> None:
        """Remove a previously added highlight."""
        pass

    @abstractmethod
    async def zoom_to(self, target: Union["Extent", List["Geometry"]]) -> None:
        """Move the view to an extent or to the combined extent of geometries."""
        pass

    @abstractmethod
    def on_pointer_event(self, callback: PointerCallback) -> None:
        """Register a callback receiving map coordinates of pointer clicks."""
        pass
