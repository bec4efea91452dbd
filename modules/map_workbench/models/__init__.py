"""Map Workbench Data Models

This package contains the Pydantic data models shared by the engine components:
geometries, extents, datasets, fields and features.
"""

from .geometry import Geometry, GeometryKind, Extent, DEFAULT_SPATIAL_REFERENCE
from .dataset import Dataset, Feature, FieldDefinition, FieldType

__all__ = [
    'Geometry', 'GeometryKind', 'Extent', 'DEFAULT_SPATIAL_REFERENCE',
    'Dataset', 'Feature', 'FieldDefinition', 'FieldType'
]
