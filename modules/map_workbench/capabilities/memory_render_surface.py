"""In-Memory Render Surface

RenderSurface implementation that records highlights and view changes instead
of drawing them. Used by the command line runner and by tests, and as the
reference for what a real map adapter has to provide.
"""

from itertools import count
from typing import Dict, List, Optional, Tuple, Union
import logging

from src.interfaces import HighlightHandle, HighlightStyle, RenderSurface
from src.interfaces.render_surface import PointerCallback
from ..exceptions import CapabilityError
from ..models import Extent, Geometry

logger = logging.getLogger(__name__)


class InMemoryRenderSurface(RenderSurface):
    """Render surface that keeps its state in dictionaries."""

    def __init__(self):
        self.highlights: Dict[str, Tuple[Geometry, HighlightStyle]] = {}
        self.zoom_history: List[Extent] = []
        self._callbacks: List[PointerCallback] = []
        self._ids = count(1)

    @property
    def current_extent(self) -> Optional[Extent]:
        return self.zoom_history[-1] if self.zoom_history else None

    async def add_highlight(self, geometry: Geometry, style: HighlightStyle) -> HighlightHandle:
        handle = HighlightHandle(handle_id=f"highlight-{next(self._ids)}")
        self.highlights[handle.handle_id] = (geometry, style)
        return handle

    async def remove_highlight(self, handle: HighlightHandle) -> None:
        if self.highlights.pop(handle.handle_id, None) is None:
            logger.debug(f"Highlight {handle.handle_id} already removed")

    async def zoom_to(self, target: Union[Extent, List[Geometry]]) -> None:
        if isinstance(target, Extent):
            extent = target
        else:
            extent = Extent.combine(e for e in (g.extent() for g in target) if e is not None)
        if extent is None:
            raise CapabilityError("Nothing to zoom to", operation="zoom_to")
        self.zoom_history.append(extent)

    def on_pointer_event(self, callback: PointerCallback) -> None:
        self._callbacks.append(callback)

    def click(self, x: float, y: float) -> None:
        """Simulate a pointer click at map coordinates."""
        for callback in list(self._callbacks):
            callback(x, y)
