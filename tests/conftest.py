"""
Shared fixtures: in-memory doubles of the forecasting service and the object
store, and small availability exports for both variants.
"""

import threading
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from slot_forecast.config import ForecastPipelineConfiguration
from slot_forecast.contracts import JobKind, SLOT_METRICS, StorageError


DEFAULT_SCRIPT = ["CREATE_PENDING", "CREATE_IN_PROGRESS", "ACTIVE"]

EXPORT_HEADER = "metric_name,date,p10,p50,p90"

EXPORT_PARTS = [
    EXPORT_HEADER + "\nSV1,2024-02-01T00:00:00Z,3.0,5.0,7.0\nSV1,2024-02-02T00:00:00Z,2.0,4.0,6.0\n",
    EXPORT_HEADER + "\nSV2,2024-02-01T00:00:00Z,1.0,2.0,3.0\n",
]

_DESCRIBE_KIND = {
    "describe_dataset_import": JobKind.DATASET_IMPORT,
    "describe_predictor_training": JobKind.PREDICTOR_TRAINING,
    "describe_forecast_generation": JobKind.FORECAST_GENERATION,
    "describe_forecast_export": JobKind.FORECAST_EXPORT,
}


class InMemoryObjectStore:
    """Object store double. Listing order is deliberately not key order."""

    def __init__(self, bucket: str = "test-bucket"):
        self.bucket = bucket
        self.objects: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def uri_for(self, key: str) -> str:
        return f"s3://{self.bucket}/{key}"

    def key_for(self, uri: str) -> str:
        return uri[len(f"s3://{self.bucket}/"):]

    def put(self, key: str, data: bytes) -> None:
        with self._lock:
            self.objects[key] = bytes(data)

    def list(self, prefix: str) -> List[str]:
        with self._lock:
            return [key for key in reversed(list(self.objects)) if key.startswith(prefix)]

    def get(self, key: str) -> bytes:
        with self._lock:
            if key not in self.objects:
                raise StorageError("get", key, "no such key")
            return self.objects[key]


class FakeForecastService:
    """Scripted forecasting service double.

    Each submitted job replays the status script of its kind, one status per
    describe call; the last status repeats. The export job writes
    ``export_parts`` into the store under its destination.
    """

    def __init__(
        self,
        store: Optional[InMemoryObjectStore] = None,
        scripts: Optional[Dict[JobKind, List[str]]] = None,
        no_identifier: tuple = (),
        export_parts: Optional[List[str]] = None,
    ):
        self.store = store
        self.scripts = scripts or {}
        self.no_identifier = set(no_identifier)
        self.export_parts = EXPORT_PARTS if export_parts is None else export_parts
        self.calls: List[tuple] = []
        self._remaining: Dict[str, List[str]] = {}
        self._lock = threading.Lock()

    def operations(self) -> List[str]:
        return [call[0] for call in self.calls]

    def calls_to(self, operation: str) -> List[tuple]:
        return [call[1:] for call in self.calls if call[0] == operation]

    def _submit(self, operation: str, kind: Optional[JobKind], resource: str, name: str, *args):
        with self._lock:
            self.calls.append((operation, name) + args)
            if operation in self.no_identifier:
                return None
            arn = f"arn:aws:forecast:eu-west-1:000000000000:{resource}/{name}"
            if kind is not None:
                self._remaining[arn] = list(self.scripts.get(kind, DEFAULT_SCRIPT))
            return arn

    def _describe(self, operation: str, identifier: str) -> str:
        with self._lock:
            self.calls.append((operation, identifier))
            remaining = self._remaining[identifier]
            if len(remaining) > 1:
                return remaining.pop(0)
            return remaining[0]

    def submit_dataset_create(self, name, domain, frequency, schema):
        return self._submit("submit_dataset_create", None, "dataset", name, domain, frequency)

    def submit_dataset_group_create(self, name, domain, dataset_ids):
        return self._submit("submit_dataset_group_create", None, "dataset-group", name, domain, tuple(dataset_ids))

    def submit_dataset_import(self, dataset_id, name, source_path, format, timestamp_format, import_mode):
        return self._submit(
            "submit_dataset_import", JobKind.DATASET_IMPORT, "dataset-import-job", name,
            dataset_id, source_path, timestamp_format,
        )

    def describe_dataset_import(self, job_id):
        return self._describe("describe_dataset_import", job_id)

    def submit_auto_predictor_training(self, name, dataset_group_id, forecast_frequency, forecast_horizon, extra_dataset_config):
        return self._submit(
            "submit_auto_predictor_training", JobKind.PREDICTOR_TRAINING, "predictor", name,
            dataset_group_id, forecast_frequency, forecast_horizon,
        )

    def describe_predictor_training(self, predictor_id):
        return self._describe("describe_predictor_training", predictor_id)

    def submit_forecast_generation(self, name, predictor_id):
        return self._submit(
            "submit_forecast_generation", JobKind.FORECAST_GENERATION, "forecast", name, predictor_id,
        )

    def describe_forecast_generation(self, forecast_id):
        return self._describe("describe_forecast_generation", forecast_id)

    def submit_forecast_export(self, name, forecast_id, destination_path):
        arn = self._submit(
            "submit_forecast_export", JobKind.FORECAST_EXPORT, "forecast-export-job", name,
            forecast_id, destination_path,
        )
        if arn and self.store is not None:
            destination = self.store.key_for(destination_path)
            for index, body in enumerate(self.export_parts):
                key = f"{destination}/{name}_2024-01-31T00-00-00Z_part{index}.csv"
                self.store.put(key, body.encode("utf-8"))
        return arn

    def describe_forecast_export(self, export_job_id):
        return self._describe("describe_forecast_export", export_job_id)


def metric_values(*values) -> List[str]:
    """Pad metric values to the full metric count."""
    padded = [str(v) for v in values]
    padded.extend(["1"] * (len(SLOT_METRICS) - len(padded)))
    return padded


def daily_row(area: str, day: str, *values) -> str:
    return ",".join(["IT", area, day] + metric_values(*values))


def hourly_row(area: str, day: str, hour, *values) -> str:
    return "|".join(["IT", area, day, str(hour)] + metric_values(*values))


@pytest.fixture
def daily_input(tmp_path) -> Path:
    path = tmp_path / "daily.csv"
    path.write_text(
        "\n".join([
            daily_row("SV1", "2024-01-01", 5),
            daily_row("SV1", "2024-01-02", 0),
            daily_row("SV2", "2024-01-01", 12),
        ]) + "\n"
    )
    return path


@pytest.fixture
def hourly_input(tmp_path) -> Path:
    path = tmp_path / "hourly.csv"
    path.write_text(
        "\n".join([
            hourly_row("SV1", "2024-01-01", 7, 3),
            hourly_row("SV1", "2024-01-01", 18, 0),
        ]) + "\n"
    )
    return path


@pytest.fixture
def pipeline_config(tmp_path, daily_input, hourly_input) -> ForecastPipelineConfiguration:
    return ForecastPipelineConfiguration(
        bucket="test-bucket",
        role_arn="arn:aws:iam::123456789012:role/ForecastS3Access",
        variants={
            "daily": {"base": "daily", "input_path": str(daily_input)},
            "hourly": {"base": "hourly", "input_path": str(hourly_input)},
        },
        output_dir=tmp_path / "out",
        polling={
            "heavy_interval_seconds": 0,
            "light_interval_seconds": 0,
            "max_wait_seconds": 60,
            "max_polls": 20,
        },
    )


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def service(store) -> FakeForecastService:
    return FakeForecastService(store=store)
