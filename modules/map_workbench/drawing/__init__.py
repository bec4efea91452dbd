"""Interactive Drawing for the Map Workbench

Provides the draw session state machine that turns pointer input into
geometries, and the manager that owns the single active session and the
drawings captured as analysis inputs.

Usage:
    from modules.map_workbench.drawing import DrawManager, ToolKind, DrawTarget

    manager = DrawManager()
    manager.arm(ToolKind.POLYGON, target=DrawTarget.INTERSECT_A)
    for vertex in [(0, 0), (10, 0), (10, 10)]:
        manager.add_vertex(vertex)
    drawing = manager.finish()
"""

from .draw_models import (
    DrawState, ToolKind, DrawTarget, DrawSessionSnapshot, DrawnFeature, DrawnFeatureSlots,
    MIN_VERTICES
)
from .draw_session import DrawSession
from .draw_manager import DrawManager

__all__ = [
    'DrawState', 'ToolKind', 'DrawTarget', 'DrawSessionSnapshot', 'DrawnFeature',
    'DrawnFeatureSlots', 'MIN_VERTICES',
    'DrawSession', 'DrawManager'
]
