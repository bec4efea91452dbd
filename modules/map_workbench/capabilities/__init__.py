"""Capability Implementations

Concrete GeometryCapability and RenderSurface implementations: a shapely-backed
planar geometry service and an in-memory render surface.
"""

from .shapely_capability import ShapelyGeometryCapability
from .memory_render_surface import InMemoryRenderSurface

__all__ = ['ShapelyGeometryCapability', 'InMemoryRenderSurface']
