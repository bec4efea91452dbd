"""Draw Session State Machine

Captures user pointer input into one completed geometry per request, for one
tool at a time.

    Idle --arm--> Drawing --finish--> Complete
                  Drawing --cancel--> Cancelled
    any --reset--> Idle

``arm`` is strict: it only succeeds from Idle. Callers that want the implicit
cancel-and-rearm behaviour go through DrawManager.
"""

import math
from typing import Callable, List, Optional, Sequence, Tuple, Union
import logging

from ..exceptions import InsufficientVerticesError, InvalidTransitionError, InvalidVertexError
from ..models import DEFAULT_SPATIAL_REFERENCE, Geometry, GeometryKind
from .draw_models import AUTO_FINISH_VERTICES, MIN_VERTICES, DrawSessionSnapshot, DrawState, ToolKind

logger = logging.getLogger(__name__)

VertexInput = Union[Geometry, Sequence[float]]
StateListener = Callable[[DrawSessionSnapshot], None]


class DrawSession:
    """Single-geometry capture state machine."""

    def __init__(self, circle_segments: int = 64,
                 spatial_reference_id: int = DEFAULT_SPATIAL_REFERENCE,
                 on_state_change: Optional[StateListener] = None):
        self.circle_segments = circle_segments
        self.spatial_reference_id = spatial_reference_id
        self._on_state_change = on_state_change
        self._state = DrawState.IDLE
        self._tool_kind: Optional[ToolKind] = None
        self._vertices: List[Geometry] = []
        self._result_geometry: Optional[Geometry] = None

    @property
    def state(self) -> DrawState:
        return self._state

    @property
    def tool_kind(self) -> Optional[ToolKind]:
        return self._tool_kind

    @property
    def vertices(self) -> Tuple[Geometry, ...]:
        return tuple(self._vertices)

    @property
    def result_geometry(self) -> Optional[Geometry]:
        return self._result_geometry

    def snapshot(self) -> DrawSessionSnapshot:
        return DrawSessionSnapshot(
            state=self._state,
            tool_kind=self._tool_kind,
            vertex_count=len(self._vertices),
            result_geometry=self._result_geometry
        )

    def arm(self, tool_kind: ToolKind) -> None:
        """Start capturing for a tool.

        Raises:
            InvalidTransitionError: If the session is not Idle
        """
        if self._state != DrawState.IDLE:
            raise InvalidTransitionError("arm", self._state.value)

        self._tool_kind = ToolKind(tool_kind)
        self._vertices = []
        self._result_geometry = None
        self._transition(DrawState.DRAWING)

    def add_vertex(self, point: VertexInput) -> Optional[Geometry]:
        """Append a vertex; returns the finished geometry when the tool completes itself.

        Point tools finish on their first vertex, Rectangle and Circle on their
        second.

        Raises:
            InvalidTransitionError: If the session is not Drawing
            InvalidVertexError: If the vertex is not a point or an (x, y) pair
        """
        if self._state != DrawState.DRAWING:
            raise InvalidTransitionError("add a vertex", self._state.value)

        self._vertices.append(self._to_point(point))
        logger.debug(f"{self._tool_kind.value} vertex {len(self._vertices)} added")

        auto_finish = AUTO_FINISH_VERTICES.get(self._tool_kind)
        if auto_finish is not None and len(self._vertices) >= auto_finish:
            return self.finish()
        return None

    def finish(self) -> Geometry:
        """Complete the drawing and build its geometry.

        Raises:
            InvalidTransitionError: If the session is not Drawing
            InsufficientVerticesError: If the tool's vertex minimum is not met;
                the session stays in Drawing so more vertices can be added
        """
        if self._state != DrawState.DRAWING:
            raise InvalidTransitionError("finish", self._state.value)

        required = MIN_VERTICES[self._tool_kind]
        if len(self._vertices) < required:
            raise InsufficientVerticesError(self._tool_kind.value, required, len(self._vertices))

        self._result_geometry = self._build_geometry()
        self._transition(DrawState.COMPLETE)
        return self._result_geometry

    def cancel(self) -> None:
        """Discard the vertices captured so far.

        Raises:
            InvalidTransitionError: If the session is not Drawing
        """
        if self._state != DrawState.DRAWING:
            raise InvalidTransitionError("cancel", self._state.value)

        discarded = len(self._vertices)
        self._vertices = []
        self._result_geometry = None
        logger.debug(f"Draw session cancelled, {discarded} vertices discarded")
        self._transition(DrawState.CANCELLED)

    def reset(self) -> None:
        """Return to Idle from any state, clearing all fields."""
        self._tool_kind = None
        self._vertices = []
        self._result_geometry = None
        if self._state != DrawState.IDLE:
            self._transition(DrawState.IDLE)

    def _transition(self, new_state: DrawState) -> None:
        previous = self._state
        self._state = new_state
        logger.debug(f"Draw session {previous.value} -> {new_state.value}")
        if self._on_state_change is not None:
            self._on_state_change(self.snapshot())

    def _to_point(self, point: VertexInput) -> Geometry:
        if isinstance(point, Geometry):
            if point.kind != GeometryKind.POINT:
                raise InvalidVertexError(point.kind.value, "vertices must be points")
            return point
        try:
            return Geometry.point(point[0], point[1], self.spatial_reference_id)
        except (TypeError, IndexError, ValueError) as e:
            raise InvalidVertexError(point, "expected an (x, y) pair of numbers") from e

    def _build_geometry(self) -> Geometry:
        coords = [v.coordinates for v in self._vertices]
        srid = self._vertices[0].spatial_reference_id

        if self._tool_kind == ToolKind.POINT:
            return self._vertices[0]
        if self._tool_kind == ToolKind.LINE:
            return Geometry.line(coords, srid)
        if self._tool_kind == ToolKind.POLYGON:
            return Geometry.polygon(coords, srid)
        if self._tool_kind == ToolKind.RECTANGLE:
            (x1, y1), (x2, y2) = coords[0], coords[1]
            return Geometry.polygon([(x1, y1), (x2, y1), (x2, y2), (x1, y2)], srid)

        (cx, cy), (px, py) = coords[0], coords[1]
        radius = math.hypot(px - cx, py - cy)
        ring = [
            (cx + radius * math.cos(2 * math.pi * i / self.circle_segments),
             cy + radius * math.sin(2 * math.pi * i / self.circle_segments))
            for i in range(self.circle_segments)
        ]
        return Geometry.polygon(ring, srid)
