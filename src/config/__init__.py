"""
Configuration management module for the Map Workbench engine.

This module provides configuration loading and validation capabilities for
multi-environment deployments (development and production).
"""

from .config_loader import ConfigLoader, EngineConfig

__all__ = ["ConfigLoader", "EngineConfig"]
