"""
Configuration models for the slot availability forecast pipeline.

This module provides a declarative description of where the pipeline reads
its input, where it stages data in object storage, how the forecasting
service is driven and how patiently remote jobs are polled.
"""

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..contracts.pipeline_interface import JobKind, PollingPolicy
from ..contracts.variants import BUILTIN_VARIANTS, SLOT_METRICS, VariantSpec


DEFAULT_EXPORT_HEADER = "metric_name,date,p10,p50,p90"


class EnvironmentType(str, Enum):
    """Deployment environments."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class PollingSettings(BaseModel):
    """Polling intervals and budgets for remote jobs."""

    heavy_interval_seconds: float = Field(10.0, ge=0.0, description="Interval for dataset import jobs")
    light_interval_seconds: float = Field(5.0, ge=0.0, description="Interval for training, forecast and export jobs")
    max_wait_seconds: Optional[float] = Field(6 * 3600.0, gt=0.0, description="Per-job wait budget")
    max_polls: Optional[int] = Field(None, ge=1, description="Per-job describe call budget")

    def policy_for(self, kind: JobKind) -> PollingPolicy:
        """Build the polling policy for a job kind."""
        interval = (
            self.heavy_interval_seconds
            if kind == JobKind.DATASET_IMPORT
            else self.light_interval_seconds
        )
        return PollingPolicy(
            interval_seconds=interval,
            max_wait_seconds=self.max_wait_seconds,
            max_polls=self.max_polls,
        )


class VariantConfiguration(BaseModel):
    """Configuration of one pipeline variant (daily or hourly)."""

    base: str = Field(..., description="Built-in variant this one derives from")
    input_path: Path = Field(..., description="Raw availability export")

    # Optional overrides of the built-in layout
    delimiter: Optional[str] = Field(None, min_length=1, max_length=1)
    data_frequency: Optional[str] = Field(None)
    forecast_frequency: Optional[str] = Field(None)
    timestamp_format: Optional[str] = Field(None)
    storage_folder: Optional[str] = Field(None)

    @field_validator('base')
    @classmethod
    def validate_base(cls, v):
        if v not in BUILTIN_VARIANTS:
            raise ValueError(f"Unknown variant base {v}; expected one of {sorted(BUILTIN_VARIANTS)}")
        return v

    def to_spec(self, name: Optional[str] = None) -> VariantSpec:
        """Resolve the built-in variant with any overrides applied."""
        base = BUILTIN_VARIANTS[self.base]
        overrides: Dict[str, Any] = {
            key: value
            for key, value in {
                "delimiter": self.delimiter,
                "data_frequency": self.data_frequency,
                "forecast_frequency": self.forecast_frequency,
                "timestamp_format": self.timestamp_format,
                "storage_folder": self.storage_folder,
            }.items()
            if value is not None
        }
        if name:
            overrides["name"] = name
        return base.model_copy(update=overrides)


class ForecastPipelineConfiguration(BaseModel):
    """Complete pipeline configuration."""

    pipeline_id: str = Field("slot_forecast", description="Unique pipeline identifier")
    pipeline_name: str = Field("Slot Availability Forecast", description="Human-readable pipeline name")
    pipeline_version: str = Field("1.0.0", description="Pipeline configuration version")

    # Environment
    environment: EnvironmentType = Field(EnvironmentType.DEVELOPMENT)

    # Object storage
    bucket: str = Field(..., min_length=3, description="Bucket for input partitions and exports")
    input_prefix: str = Field("forecast/input", description="Key prefix for reshaped input")
    export_prefix: str = Field("forecast/exports", description="Key prefix for forecast exports")
    region_name: Optional[str] = Field(None, description="Cloud region for both clients")

    # Forecasting service
    role_arn: str = Field(..., description="Role the service assumes to read and write the bucket")
    domain: str = Field("METRICS")
    dataset_type: str = Field("TARGET_TIME_SERIES")
    import_format: str = Field("CSV")
    import_mode: str = Field("FULL")
    forecast_horizon: int = Field(14, ge=1)
    holiday_country_codes: List[str] = Field(default_factory=lambda: ["IT"])

    # Partition to forecast
    metric: str = Field(SLOT_METRICS[0], description="Metric partition fed to the service")

    # Variants
    variants: Dict[str, VariantConfiguration] = Field(default_factory=dict)

    # Output
    output_dir: Path = Field(Path("out"), description="Where export artifacts are written")
    export_header: str = Field(DEFAULT_EXPORT_HEADER)

    # Polling
    polling: PollingSettings = Field(default_factory=PollingSettings)

    # Metadata
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    description: Optional[str] = Field(None)
    tags: List[str] = Field(default_factory=list)

    @field_validator('metric')
    @classmethod
    def validate_metric(cls, v):
        if v not in SLOT_METRICS:
            raise ValueError(f"Unknown metric {v}")
        return v

    @field_validator('input_prefix', 'export_prefix')
    @classmethod
    def strip_prefix_slashes(cls, v):
        return v.strip("/")

    @model_validator(mode='after')
    def validate_storage_folders(self):
        """Two variants must not share an input folder."""
        seen: Dict[str, str] = {}
        for name, variant in self.variants.items():
            folder = variant.to_spec(name).storage_folder
            if folder in seen:
                raise ValueError(
                    f"Variants {seen[folder]} and {name} both write to input folder {folder}"
                )
            seen[folder] = name
        return self

    def get_variant(self, name: str) -> VariantConfiguration:
        """Get variant configuration by name."""
        if name not in self.variants:
            raise KeyError(f"Variant {name} is not configured; available: {sorted(self.variants)}")
        return self.variants[name]

    def variant_spec(self, name: str) -> VariantSpec:
        return self.get_variant(name).to_spec(name)

    @property
    def extra_dataset_config(self) -> List[Dict[str, Any]]:
        """Additional datasets attached to predictor training."""
        if not self.holiday_country_codes:
            return []
        return [
            {
                "Name": "holiday",
                "Configuration": {"CountryCode": list(self.holiday_country_codes)},
            }
        ]

    def export_destination_key(self, run_id: str) -> str:
        return f"{self.export_prefix}/{run_id}"

    def export_listing_prefix(self, run_id: str) -> str:
        """Prefix under which the export job writes its partition files."""
        return f"{self.export_prefix}/{run_id}/forecast_export_{run_id}"

    def artifact_path(self, run_id: str) -> Path:
        return Path(self.output_dir) / f"export_{run_id}.csv"
