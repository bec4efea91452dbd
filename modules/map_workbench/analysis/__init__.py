"""Spatial Analysis Package

Buffer, intersect, distance and area analysis over drawn or queried features.
The orchestrator validates each request and delegates geometry work to a
GeometryCapability implementation.
"""

from .analysis_models import (
    AnalysisKind, AnalysisRequest, AnalysisResult, AnalysisGeometry,
    BufferParameters, IntersectParameters
)
from .spatial_analysis_orchestrator import SpatialAnalysisOrchestrator
from .units import format_area, format_distance, to_meters

__all__ = [
    'AnalysisKind', 'AnalysisRequest', 'AnalysisResult', 'AnalysisGeometry',
    'BufferParameters', 'IntersectParameters',
    'SpatialAnalysisOrchestrator',
    'format_area', 'format_distance', 'to_meters'
]
