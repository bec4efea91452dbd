"""
Configuration loader for the Map Workbench engine.

This module provides the ConfigLoader class that handles loading and validating
JSON configuration files for multi-environment deployments, and the EngineConfig
model the engine consumes.
"""

import json
import os
from pathlib import Path
from typing import Dict, Any, Optional
from functools import lru_cache

from pydantic import BaseModel, Field, ValidationError

from ..exceptions import WorkbenchConfigurationError, WorkbenchValidationError
from ..interfaces import HighlightStyle
from ..utils import get_logger


ENVIRONMENT_VARIABLE = "WORKBENCH_ENVIRONMENT"
CONFIG_FILE_NAME = "workbench_config.json"
REQUIRED_SECTIONS = ["logging", "query", "drawing", "analysis", "highlight"]


class QuerySettings(BaseModel):
    """Settings for query building and result browsing."""
    max_unique_values: int = Field(100, ge=1, description="Cap on field value suggestions")
    page_size: int = Field(10, ge=1, description="Default result page size")


class DrawingSettings(BaseModel):
    """Settings for interactive drawing."""
    circle_segments: int = Field(64, ge=8, description="Vertices used to approximate circles")
    continuous: bool = Field(False, description="Rearm the same tool after each completed drawing")


class AnalysisSettings(BaseModel):
    """Settings for spatial analysis against the geometry capability."""
    capability_retry_attempts: int = Field(1, ge=1, le=10, description="Attempts per capability call")
    retry_wait_seconds: float = Field(0.0, ge=0.0, description="Wait between capability retries")


class EngineConfig(BaseModel):
    """Validated engine configuration for one environment."""
    environment: str = Field("development", description="Environment the config was loaded for")
    query: QuerySettings = Field(default_factory=QuerySettings)
    drawing: DrawingSettings = Field(default_factory=DrawingSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    highlight: HighlightStyle = Field(default_factory=HighlightStyle, description="Search highlight style")
    analysis_style: HighlightStyle = Field(
        default_factory=lambda: HighlightStyle(color=(255, 0, 0), outline_color=(255, 0, 0), opacity=0.2),
        description="Default style for analysis output"
    )


class ConfigLoader:
    """
    Configuration loader and validator for the workbench engine.

    This class handles loading environment-specific configuration from JSON files,
    validating required sections, and providing type-safe access to configuration values.
    """

    def __init__(self, config_dir: Optional[str] = None):
        """
        Initialize the configuration loader.

        Args:
            config_dir: Directory containing configuration files (defaults to 'config/')
        """
        self.logger = get_logger(__name__)
        self.config_dir = Path(config_dir) if config_dir else Path("config")

    @staticmethod
    def get_environment() -> str:
        """Return the active environment name from WORKBENCH_ENVIRONMENT."""
        return os.getenv(ENVIRONMENT_VARIABLE, "development")

    @lru_cache(maxsize=2)
    def load_environment_config(self, environment: str) -> Dict[str, Any]:
        """
        Load configuration for a specific environment.

        Args:
            environment: Environment name (development/production)

        Returns:
            Dictionary containing environment-specific configuration merged over shared config

        Raises:
            WorkbenchConfigurationError: If configuration cannot be loaded or validated
        """
        try:
            config_path = self.config_dir / CONFIG_FILE_NAME

            if not config_path.exists():
                raise WorkbenchConfigurationError(
                    f"Environment configuration file not found: {config_path}"
                )

            with open(config_path, 'r', encoding='utf-8') as f:
                config_data = json.load(f)

            self._validate_environment_config(config_data, environment)

            env_config = config_data["environments"][environment].copy()

            # Shared sections sit underneath the environment; environment keys win
            for section, shared_value in config_data.get("shared", {}).items():
                if section not in env_config:
                    env_config[section] = shared_value
                elif isinstance(shared_value, dict) and isinstance(env_config[section], dict):
                    merged = shared_value.copy()
                    merged.update(env_config[section])
                    env_config[section] = merged

            self._validate_required_sections(env_config, environment)

            self.logger.info(f"Loaded configuration for environment: {environment}")
            return env_config

        except json.JSONDecodeError as e:
            raise WorkbenchConfigurationError(
                f"Invalid JSON in environment configuration: {str(e)}"
            )
        except WorkbenchConfigurationError:
            raise
        except Exception as e:
            raise WorkbenchConfigurationError(
                f"Failed to load environment configuration: {str(e)}"
            )

    def get_engine_config(self, environment: Optional[str] = None) -> EngineConfig:
        """
        Build a validated EngineConfig for an environment.

        Args:
            environment: Environment name; defaults to WORKBENCH_ENVIRONMENT

        Returns:
            EngineConfig with file values applied over defaults

        Raises:
            WorkbenchConfigurationError: If the file is missing, malformed or out of range
        """
        environment = environment or self.get_environment()
        env_config = self.load_environment_config(environment)

        try:
            return EngineConfig(
                environment=environment,
                query=env_config["query"],
                drawing=env_config["drawing"],
                analysis=env_config["analysis"],
                highlight=env_config["highlight"],
                **({"analysis_style": env_config["analysis_style"]} if "analysis_style" in env_config else {})
            )
        except ValidationError as e:
            raise WorkbenchConfigurationError(
                f"Invalid engine configuration for {environment}",
                {"errors": e.error_count()}
            ) from e

    def get_logging_config(self, environment: Optional[str] = None) -> Dict[str, Any]:
        """Return the logging section for an environment."""
        environment = environment or self.get_environment()
        return self.load_environment_config(environment)["logging"]

    def _validate_environment_config(self, config_data: Dict[str, Any], environment: str) -> None:
        """
        Validate top-level configuration structure.

        Raises:
            WorkbenchValidationError: If configuration is invalid
        """
        if "environments" not in config_data:
            raise WorkbenchValidationError("Missing 'environments' key in configuration")

        if environment not in config_data["environments"]:
            available_envs = list(config_data["environments"].keys())
            raise WorkbenchValidationError(
                f"Environment '{environment}' not found. Available: {available_envs}"
            )

    def _validate_required_sections(self, env_config: Dict[str, Any], environment: str) -> None:
        """
        Validate that every required section is present after merging shared config.

        Raises:
            WorkbenchValidationError: If a section is missing
        """
        missing = [section for section in REQUIRED_SECTIONS if section not in env_config]
        if missing:
            raise WorkbenchValidationError(
                f"Missing required sections in {environment} configuration (including shared): {missing}"
            )

    def clear_cache(self) -> None:
        """Clear the configuration cache."""
        self.load_environment_config.cache_clear()
        self.logger.info("Configuration cache cleared")
