"""
Map Workbench Framework Core Package

This package contains the core infrastructure for the Map Workbench engine,
providing shared configuration, logging, exceptions and the abstract contracts
for the external geometry and rendering collaborators.
"""

from .interfaces import GeometryCapability, RenderSurface, HighlightHandle

__version__ = "1.0.0"
__all__ = ['GeometryCapability', 'RenderSurface', 'HighlightHandle']
