"""
Configuration management for the forecast pipeline.

This module provides configuration loading, validation, and management
capabilities for the daily and hourly pipeline variants.
"""

from .integration_config import (
    ForecastPipelineConfiguration,
    VariantConfiguration,
    PollingSettings,
    EnvironmentType,
    DEFAULT_EXPORT_HEADER,
)

from .config_loader import (
    ConfigurationLoader,
    ConfigurationManager,
    ConfigurationError,
)

__all__ = [
    # Configuration models
    "ForecastPipelineConfiguration",
    "VariantConfiguration",
    "PollingSettings",
    "EnvironmentType",
    "DEFAULT_EXPORT_HEADER",

    # Configuration management
    "ConfigurationLoader",
    "ConfigurationManager",
    "ConfigurationError",
]
