"""Map Workbench Framework Interfaces

This package contains the abstract contracts for the external collaborators the
engine drives: the Geometry Capability and the Render Surface.
"""

from .geometry_capability import GeometryCapability, AreaUnit, LengthUnit
from .render_surface import RenderSurface, HighlightStyle, HighlightHandle

__all__ = [
    'GeometryCapability', 'AreaUnit', 'LengthUnit',
    'RenderSurface', 'HighlightStyle', 'HighlightHandle'
]
