"""
Custom exceptions for the Map Workbench engine.

This module provides domain-specific exception classes for error handling
and debugging throughout the system.
"""

from .custom_exceptions import (
    WorkbenchBaseException,
    WorkbenchConfigurationError,
    WorkbenchValidationError,
    WorkbenchProcessingError,
)

__all__ = [
    "WorkbenchBaseException",
    "WorkbenchConfigurationError",
    "WorkbenchValidationError",
    "WorkbenchProcessingError",
]
