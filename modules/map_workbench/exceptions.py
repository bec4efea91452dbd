"""Map Workbench Engine Exceptions

Extends the framework exception hierarchy with the engine's error taxonomy:
query validation, draw session misuse, analysis preconditions and capability
failures.
"""

from typing import Any, Dict, List, Optional
from src.exceptions import WorkbenchProcessingError, WorkbenchValidationError


class QueryValidationError(WorkbenchValidationError):
    """Malformed query: empty group, unknown field, or operator/type mismatch."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None,
                 validation_errors: Optional[List[str]] = None):
        super().__init__(message, context)
        self.validation_errors = validation_errors or []


class DatasetNotFoundError(WorkbenchValidationError):
    """Requested dataset id is not registered."""

    def __init__(self, dataset_id: str):
        super().__init__(f"Dataset not found: {dataset_id}", {"dataset_id": dataset_id})
        self.dataset_id = dataset_id


class DrawSessionError(WorkbenchProcessingError):
    """Base exception for draw session operations."""
    pass


class InvalidTransitionError(DrawSessionError):
    """Operation not allowed in the draw session's current state."""

    def __init__(self, operation: str, state: str):
        super().__init__(
            f"Cannot {operation} while draw session is {state}",
            {"operation": operation, "state": state}
        )
        self.operation = operation
        self.state = state


class InvalidVertexError(DrawSessionError):
    """Vertex is not a point geometry or an (x, y) pair."""

    def __init__(self, vertex: Any, reason: str):
        super().__init__(f"Invalid vertex {vertex!r}: {reason}", {"vertex": repr(vertex)})


class InsufficientVerticesError(DrawSessionError):
    """Too few vertices to build the tool's geometry."""

    def __init__(self, tool_kind: str, required: int, supplied: int):
        super().__init__(
            f"{tool_kind} requires at least {required} vertices, got {supplied}",
            {"tool_kind": tool_kind, "required": required, "supplied": supplied}
        )
        self.required = required
        self.supplied = supplied


class AnalysisError(WorkbenchProcessingError):
    """Base exception for spatial analysis failures."""
    pass


class InsufficientFeaturesError(AnalysisError):
    """Analysis request does not carry the number of sources it needs."""
    pass


class NoPolygonDataError(AnalysisError):
    """Area analysis received no polygon sources."""
    pass


class CapabilityError(AnalysisError):
    """A geometry capability or render surface call failed."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        merged = dict(context or {})
        if operation:
            merged.setdefault("operation", operation)
        super().__init__(message, merged)
        self.operation = operation
