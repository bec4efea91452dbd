"""Map Workbench Module

Interactive spatial query and analysis engine: datasets are registered, filtered
with multi-criterion AND/OR queries, combined with user-drawn geometries in
buffer, intersect, distance and area analysis, and surfaced as grouped results
highlighted on a render surface.

Usage:
    from modules.map_workbench import MapWorkbenchEngine
    from modules.map_workbench.capabilities import ShapelyGeometryCapability, InMemoryRenderSurface

    engine = MapWorkbenchEngine(ShapelyGeometryCapability(), InMemoryRenderSurface())
    engine.register_dataset(dataset)
    grouped = await engine.run_query("*", [{"field": "NAME", "operator": "contains", "value": "park"}])
"""

from .engine import MapWorkbenchEngine, ALL_DATASETS
from .events import EngineEvent, EventBus

__version__ = "1.0.0"
__all__ = ['MapWorkbenchEngine', 'ALL_DATASETS', 'EngineEvent', 'EventBus']
