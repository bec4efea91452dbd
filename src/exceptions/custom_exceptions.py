"""
Framework exception hierarchy for the Map Workbench engine.

Every error raised by the engine derives from WorkbenchBaseException, so a
host application can catch one type at its boundary. Errors carry a plain
message for display plus a ``context`` dict of the identifiers involved
(dataset id, field name, draw state, capability operation) for logging.

The engine's own taxonomy in ``modules.map_workbench.exceptions`` subclasses
the validation and processing errors below.
"""

from typing import Optional, Dict, Any


class WorkbenchBaseException(Exception):
    """Root of every Map Workbench error.

    Args:
        message: Human-readable description shown to the user
        context: Identifiers of the dataset, field, state or operation involved
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        # Log lines read "<message> (Context: dataset_id=parks, field=NAME)"
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{self.message} (Context: {details})"


class WorkbenchConfigurationError(WorkbenchBaseException):
    """workbench_config.json is missing, unreadable or fails validation."""
    pass


class WorkbenchValidationError(WorkbenchBaseException):
    """
    Caller input was rejected before any work started.

    Raised for queries that name unknown fields or pair an operator with the
    wrong field type, and for dataset lookups by an unregistered id. Nothing
    on the render surface changes when this is raised.
    """
    pass


class WorkbenchProcessingError(WorkbenchBaseException):
    """
    An interactive operation could not be carried out.

    Covers draw session misuse, unmet analysis preconditions and failures of
    the geometry capability or render surface.
    """
    pass
