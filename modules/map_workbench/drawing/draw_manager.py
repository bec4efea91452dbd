"""Draw Manager

Owns the single active draw session and the drawings captured for analysis.
Arming a tool while another drawing is in progress cancels that drawing first.
"""

from itertools import count
from typing import Callable, List, Optional
import logging

from src.config import EngineConfig
from src.interfaces import HighlightStyle
from ..models import Geometry
from .draw_models import (
    DrawnFeature, DrawnFeatureSlots, DrawSessionSnapshot, DrawState, DrawTarget, ToolKind
)
from .draw_session import DrawSession, VertexInput

logger = logging.getLogger(__name__)


class DrawManager:
    """Single-writer coordinator for interactive drawing.

    Features:
    - Implicit cancel of an in-progress drawing when a new tool is armed
    - Drawings stored per analysis input slot (buffer, intersect A/B)
    - Optional continuous mode that rearms the tool after each completion
    """

    def __init__(self, config: Optional[EngineConfig] = None,
                 on_state_change: Optional[Callable[[DrawSessionSnapshot], None]] = None):
        self.config = config or EngineConfig()
        self._on_state_change = on_state_change
        self.session = DrawSession(
            circle_segments=self.config.drawing.circle_segments,
            on_state_change=self._handle_state_change
        )
        self._target = DrawTarget.NONE
        self._style: Optional[HighlightStyle] = None
        self._drawings: List[DrawnFeature] = []
        self._slots = DrawnFeatureSlots()
        self._ids = count(1)
        logger.info("DrawManager initialized")

    @property
    def state(self) -> DrawState:
        return self.session.state

    @property
    def slots(self) -> DrawnFeatureSlots:
        return self._slots

    @property
    def drawings(self) -> List[DrawnFeature]:
        return list(self._drawings)

    def arm(self, tool_kind: ToolKind, target: DrawTarget = DrawTarget.NONE,
            style: Optional[HighlightStyle] = None) -> DrawSessionSnapshot:
        """Arm a drawing tool, cancelling any drawing in progress.

        An unknown tool kind or target raises ValueError before the current
        drawing is touched.
        """
        tool_kind = ToolKind(tool_kind)
        target = DrawTarget(target)

        if self.session.state == DrawState.DRAWING:
            logger.info(
                f"Arming {tool_kind.value} cancels in-progress "
                f"{self.session.tool_kind.value} drawing ({len(self.session.vertices)} vertices)"
            )
            self.session.cancel()
        if self.session.state != DrawState.IDLE:
            self.session.reset()

        self._target = target
        self._style = style
        self.session.arm(tool_kind)
        return self.session.snapshot()

    def add_vertex(self, point: VertexInput) -> Optional[DrawnFeature]:
        """Feed one vertex; returns the stored drawing when the tool completed itself."""
        tool_kind = self.session.tool_kind
        geometry = self.session.add_vertex(point)
        if geometry is None:
            return None
        return self._store(geometry, tool_kind)

    def finish(self) -> DrawnFeature:
        """Finish the current drawing and store it."""
        tool_kind = self.session.tool_kind
        geometry = self.session.finish()
        return self._store(geometry, tool_kind)

    def cancel(self) -> None:
        """Cancel the drawing in progress; a no-op when nothing is being drawn."""
        if self.session.state == DrawState.DRAWING:
            self.session.cancel()
        else:
            logger.debug(f"Cancel ignored, draw session is {self.session.state.value}")

    def reset(self) -> None:
        self.session.reset()
        self._target = DrawTarget.NONE
        self._style = None

    def handle_pointer(self, x: float, y: float) -> Optional[DrawnFeature]:
        """Render surface pointer callback; clicks outside a drawing are ignored."""
        if self.session.state != DrawState.DRAWING:
            logger.debug(f"Pointer event at ({x}, {y}) ignored, no tool armed")
            return None
        return self.add_vertex((x, y))

    def clear_drawings(self) -> None:
        """Drop every stored drawing and return the session to Idle."""
        cleared = len(self._drawings)
        self._drawings = []
        self._slots = DrawnFeatureSlots()
        self.reset()
        logger.info(f"Cleared {cleared} drawings")

    def _store(self, geometry: Geometry, tool_kind: ToolKind) -> DrawnFeature:
        drawn = DrawnFeature(
            id=f"drawn-{next(self._ids)}",
            geometry=geometry,
            tool_kind=tool_kind,
            target=self._target,
            style=self._style
        )
        self._drawings.append(drawn)

        if self._target == DrawTarget.BUFFER:
            self._slots = self._slots.model_copy(update={"buffer": (*self._slots.buffer, drawn)})
        elif self._target == DrawTarget.INTERSECT_A:
            self._slots = self._slots.model_copy(update={"intersect_a": drawn})
        elif self._target == DrawTarget.INTERSECT_B:
            self._slots = self._slots.model_copy(update={"intersect_b": drawn})

        logger.info(f"Stored {tool_kind.value} drawing {drawn.id} for target {self._target.value}")

        if self.config.drawing.continuous:
            target, style = self._target, self._style
            self.session.reset()
            self._target, self._style = target, style
            self.session.arm(tool_kind)

        return drawn

    def _handle_state_change(self, snapshot: DrawSessionSnapshot) -> None:
        if self._on_state_change is not None:
            self._on_state_change(snapshot)
