"""
Configuration loader and validator for the forecast pipeline.

This module provides functionality to load, validate, and manage pipeline
configurations from various sources (YAML, JSON, environment variables).
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import ValidationError

from ..contracts.variants import BUILTIN_VARIANTS
from .integration_config import (
    EnvironmentType,
    ForecastPipelineConfiguration,
)


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""
    pass


class ConfigurationLoader:
    """Loads and validates pipeline configurations from various sources."""

    # Environment variable -> dotted configuration path
    ENV_MAPPINGS = {
        "FORECAST_BUCKET": "bucket",
        "FORECAST_ROLE": "role_arn",
        "AWS_REGION": "region_name",
        "FORECAST_OUTPUT_DIR": "output_dir",
        "FORECAST_ENVIRONMENT": "environment",
        "FORECAST_METRIC": "metric",
        "FORECAST_MAX_WAIT_SECONDS": "polling.max_wait_seconds",
    }

    def __init__(self, config_search_paths: Optional[List[Path]] = None):
        """Initialize configuration loader.

        Args:
            config_search_paths: Directories to search for configuration files.
                                Defaults to [current_dir, current_dir/configs, ~/.slot-forecast]
        """
        if config_search_paths is None:
            config_search_paths = [
                Path.cwd(),
                Path.cwd() / "configs",
                Path.home() / ".slot-forecast",
            ]

        self.search_paths = [Path(p) for p in config_search_paths]

    def load_pipeline_config(
        self,
        config_source: Union[str, Path, Dict[str, Any]],
        environment: Optional[EnvironmentType] = None,
    ) -> ForecastPipelineConfiguration:
        """Load pipeline configuration from various sources.

        Args:
            config_source: Configuration file path, dict, or config name to search for
            environment: Environment type for environment-specific overrides

        Returns:
            Validated pipeline configuration

        Raises:
            ConfigurationError: If configuration cannot be loaded or validated
        """
        try:
            if isinstance(config_source, dict):
                config_data = config_source
            elif isinstance(config_source, (str, Path)):
                config_data = self._load_config_file(config_source)
            else:
                raise ConfigurationError(f"Unsupported config source type: {type(config_source)}")

            if not isinstance(config_data, dict):
                raise ConfigurationError("Configuration root must be a mapping")

            if environment:
                config_data = self._apply_environment_overrides(config_data, environment)

            config_data = self._apply_env_var_overrides(config_data)

            return ForecastPipelineConfiguration(**config_data)

        except (ValidationError, ValueError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to load pipeline configuration: {e}")

    def find_config_file(self, config_name: str) -> Optional[Path]:
        """Find configuration file in search paths.

        Args:
            config_name: Name of configuration file (with or without extension)

        Returns:
            Path to configuration file if found, None otherwise
        """
        extensions = ['.yaml', '.yml', '.json']

        for search_path in self.search_paths:
            if not search_path.exists():
                continue

            config_path = search_path / config_name
            if config_path.is_file():
                return config_path

            for ext in extensions:
                config_path = search_path / f"{config_name}{ext}"
                if config_path.is_file():
                    return config_path

        return None

    def list_available_configs(self) -> List[str]:
        """List all available configuration files in search paths."""
        configs = set()
        extensions = {'.yaml', '.yml', '.json'}

        for search_path in self.search_paths:
            if not search_path.exists():
                continue

            for file_path in search_path.glob("*"):
                if file_path.suffix in extensions:
                    configs.add(file_path.stem)

        return sorted(configs)

    def validate_config(self, config: ForecastPipelineConfiguration) -> List[str]:
        """Validate configuration and return list of warnings/issues.

        Args:
            config: Pipeline configuration to validate

        Returns:
            List of validation warnings (empty if no issues)
        """
        warnings = []

        if not config.variants:
            warnings.append("No variants configured; nothing to run")

        for name, variant in config.variants.items():
            if not Path(variant.input_path).exists():
                warnings.append(f"Variant {name} input file not found: {variant.input_path}")

        polling = config.polling
        if polling.max_wait_seconds is None and polling.max_polls is None:
            warnings.append("Polling has no wait budget; a stuck job will block forever")
        elif polling.max_wait_seconds is not None:
            longest = max(polling.heavy_interval_seconds, polling.light_interval_seconds)
            if longest > polling.max_wait_seconds:
                warnings.append(
                    f"Poll interval {longest}s exceeds max wait {polling.max_wait_seconds}s"
                )

        if not config.role_arn.startswith("arn:"):
            warnings.append(f"role_arn does not look like an ARN: {config.role_arn}")

        return warnings

    def create_default_config(
        self,
        bucket: str = "my-forecast-bucket",
        role_arn: str = "arn:aws:iam::123456789012:role/ForecastS3Access",
    ) -> ForecastPipelineConfiguration:
        """Create a default pipeline configuration with both variants.

        Args:
            bucket: Bucket for staging input and exports
            role_arn: Role the forecasting service assumes

        Returns:
            Default pipeline configuration
        """
        base_config = {
            "pipeline_id": "slot_forecast_default",
            "pipeline_name": "Slot Availability Forecast",
            "environment": "development",
            "bucket": bucket,
            "role_arn": role_arn,
            "variants": {
                "daily": {
                    "base": "daily",
                    "input_path": "data/dm_delivery_slot_availability.csv",
                },
                "hourly": {
                    "base": "hourly",
                    "input_path": "data/dm_delivery_slot_availability_hours.csv",
                },
            },
        }

        return ForecastPipelineConfiguration(**base_config)

    def _load_config_file(self, file_path: Union[str, Path]) -> Dict[str, Any]:
        """Load configuration from file."""
        file_path = Path(file_path)

        # If it's just a name, search for it
        if not file_path.exists():
            found_path = self.find_config_file(str(file_path))
            if found_path:
                file_path = found_path
            else:
                raise ConfigurationError(f"Configuration file not found: {file_path}")

        with open(file_path, 'r') as f:
            if file_path.suffix in ['.yaml', '.yml']:
                return yaml.safe_load(f)
            elif file_path.suffix == '.json':
                return json.load(f)
            else:
                raise ConfigurationError(f"Unsupported file format: {file_path.suffix}")

    def _apply_environment_overrides(
        self,
        config_data: Dict[str, Any],
        environment: EnvironmentType
    ) -> Dict[str, Any]:
        """Apply environment-specific configuration overrides."""
        config_copy = dict(config_data)
        config_copy["environment"] = environment.value

        overrides = config_copy.pop("environment_overrides", None) or {}
        env_overrides = overrides.get(environment.value, {})
        for key, value in env_overrides.items():
            if isinstance(value, dict) and isinstance(config_copy.get(key), dict):
                merged = dict(config_copy[key])
                merged.update(value)
                config_copy[key] = merged
            else:
                config_copy[key] = value

        return config_copy

    def _apply_env_var_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides."""
        config_copy = dict(config_data)
        config_copy.pop("environment_overrides", None)

        for env_var, config_path in self.ENV_MAPPINGS.items():
            if env_var in os.environ:
                value: Any = os.environ[env_var]

                if config_path.endswith("_seconds"):
                    value = float(value)
                elif config_path.endswith("_dir"):
                    value = Path(value)

                self._set_nested_config(config_copy, config_path, value)

        return config_copy

    def _set_nested_config(self, config: Dict[str, Any], path: str, value: Any):
        """Set nested configuration value using dot notation."""
        keys = path.split('.')
        current = config

        for key in keys[:-1]:
            if key not in current or current[key] is None:
                current[key] = {}
            else:
                current[key] = dict(current[key])
            current = current[key]

        current[keys[-1]] = value


class ConfigurationManager:
    """High-level configuration management interface."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_dir: Primary configuration directory
        """
        search_paths = [config_dir] if config_dir else None
        self.loader = ConfigurationLoader(search_paths)
        self.active_config: Optional[ForecastPipelineConfiguration] = None

    def load_config(
        self,
        config_name: str = "pipeline",
        environment: Optional[str] = None
    ) -> ForecastPipelineConfiguration:
        """Load and activate pipeline configuration.

        Args:
            config_name: Name of configuration to load
            environment: Environment type (development, production, etc.)

        Returns:
            Loaded pipeline configuration
        """
        env_type = EnvironmentType(environment) if environment else None
        self.active_config = self.loader.load_pipeline_config(config_name, env_type)
        return self.active_config

    def list_configs(self) -> List[str]:
        """List available configurations."""
        return self.loader.list_available_configs()

    def validate_active_config(self) -> List[str]:
        """Validate currently active configuration."""
        if not self.active_config:
            raise ConfigurationError("No active configuration loaded")

        return self.loader.validate_config(self.active_config)

    def create_sample_configs(self, output_dir: Path) -> List[Path]:
        """Create sample configuration files.

        Args:
            output_dir: Directory to write sample configurations

        Returns:
            Paths of the written files
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        default_config = self.loader.create_default_config()
        pipeline_path = output_dir / "pipeline.yaml"
        with open(pipeline_path, 'w') as f:
            yaml.safe_dump(
                default_config.model_dump(mode="json", exclude={"created_at"}),
                f,
                default_flow_style=False,
                indent=2,
                sort_keys=False,
            )

        # Built-in variant layouts, for reference
        variants_path = output_dir / "variants_sample.yaml"
        with open(variants_path, 'w') as f:
            yaml.safe_dump(
                {
                    name: spec.model_dump(mode="json")
                    for name, spec in BUILTIN_VARIANTS.items()
                },
                f,
                default_flow_style=False,
                indent=2,
                sort_keys=False,
            )

        return [pipeline_path, variants_path]
