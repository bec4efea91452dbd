"""
Utility modules for the Map Workbench engine.

This module provides logging setup and related helpers used throughout the system.
"""

from .logging_setup import setup_logging, get_logger, log_performance

__all__ = ["setup_logging", "get_logger", "log_performance"]
