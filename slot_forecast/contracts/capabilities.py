"""
Capability interfaces consumed by the orchestrator.

The orchestrator never talks to a cloud SDK directly. It is handed objects
satisfying these protocols; the boto3 bindings live in ``slot_forecast.aws``
and tests substitute in-memory doubles.
"""

from typing import Any, Dict, List, Protocol, Union, runtime_checkable

from .pipeline_interface import JobStatus


StatusLike = Union[JobStatus, str]


@runtime_checkable
class ForecastService(Protocol):
    """Managed forecasting service: submit jobs and describe their status."""

    def submit_dataset_create(
        self, name: str, domain: str, frequency: str, schema: Dict[str, Any]
    ) -> str: ...

    def submit_dataset_group_create(
        self, name: str, domain: str, dataset_ids: List[str]
    ) -> str: ...

    def submit_dataset_import(
        self,
        dataset_id: str,
        name: str,
        source_path: str,
        format: str,
        timestamp_format: str,
        import_mode: str,
    ) -> str: ...

    def describe_dataset_import(self, job_id: str) -> StatusLike: ...

    def submit_auto_predictor_training(
        self,
        name: str,
        dataset_group_id: str,
        forecast_frequency: str,
        forecast_horizon: int,
        extra_dataset_config: List[Dict[str, Any]],
    ) -> str: ...

    def describe_predictor_training(self, predictor_id: str) -> StatusLike: ...

    def submit_forecast_generation(self, name: str, predictor_id: str) -> str: ...

    def describe_forecast_generation(self, forecast_id: str) -> StatusLike: ...

    def submit_forecast_export(
        self, name: str, forecast_id: str, destination_path: str
    ) -> str: ...

    def describe_forecast_export(self, export_job_id: str) -> StatusLike: ...


@runtime_checkable
class ObjectStore(Protocol):
    """Key/value object storage."""

    def put(self, key: str, data: bytes) -> None: ...

    def list(self, prefix: str) -> List[str]: ...

    def get(self, key: str) -> bytes: ...

    def uri_for(self, key: str) -> str: ...


# Target time series schema: timestamp, item (area) and integer value
METRIC_SCHEMA: Dict[str, Any] = {
    "Attributes": [
        {"AttributeName": "timestamp", "AttributeType": "timestamp"},
        {"AttributeName": "metric_name", "AttributeType": "string"},
        {"AttributeName": "metric_value", "AttributeType": "integer"},
    ]
}
