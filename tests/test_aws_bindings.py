"""
Tests for the boto3 bindings, with mocked clients.
"""

import io
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from slot_forecast.aws import BotoForecastService, S3ObjectStore
from slot_forecast.contracts import DescribeFailed, JobKind, JobStatus, StorageError, SubmissionFailed


ROLE = "arn:aws:iam::123456789012:role/ForecastS3Access"


def client_error(operation="CreateForecast", code="ResourceAlreadyExistsException"):
    return ClientError({"Error": {"Code": code, "Message": "boom"}}, operation)


class TestBotoForecastService:
    """Test request shapes and status mapping."""

    @pytest.fixture
    def client(self):
        return MagicMock()

    @pytest.fixture
    def service(self, client):
        return BotoForecastService(ROLE, client=client)

    def test_dataset_create(self, service, client):
        client.create_dataset.return_value = {"DatasetArn": "arn:d"}

        arn = service.submit_dataset_create("data_set_r1", "METRICS", "H", {"Attributes": []})

        assert arn == "arn:d"
        kwargs = client.create_dataset.call_args.kwargs
        assert kwargs["DatasetName"] == "data_set_r1"
        assert kwargs["DataFrequency"] == "H"
        assert kwargs["DatasetType"] == "TARGET_TIME_SERIES"

    def test_dataset_import_uses_role(self, service, client):
        client.create_dataset_import_job.return_value = {"DatasetImportJobArn": "arn:i"}

        service.submit_dataset_import("arn:d", "import_job_r1", "s3://b/k.csv", "CSV", "yyyy-MM-dd", "FULL")

        kwargs = client.create_dataset_import_job.call_args.kwargs
        assert kwargs["DataSource"] == {"S3Config": {"Path": "s3://b/k.csv", "RoleArn": ROLE}}
        assert kwargs["TimestampFormat"] == "yyyy-MM-dd"
        assert kwargs["ImportMode"] == "FULL"

    def test_auto_predictor_additional_datasets(self, service, client):
        client.create_auto_predictor.return_value = {"PredictorArn": "arn:p"}
        holidays = [{"Name": "holiday", "Configuration": {"CountryCode": ["IT"]}}]

        service.submit_auto_predictor_training("predictor_r1", "arn:g", "D", 14, holidays)

        kwargs = client.create_auto_predictor.call_args.kwargs
        assert kwargs["DataConfig"] == {"DatasetGroupArn": "arn:g", "AdditionalDatasets": holidays}
        assert kwargs["ForecastHorizon"] == 14

    def test_auto_predictor_without_additional_datasets(self, service, client):
        client.create_auto_predictor.return_value = {"PredictorArn": "arn:p"}

        service.submit_auto_predictor_training("predictor_r1", "arn:g", "D", 14, [])

        assert client.create_auto_predictor.call_args.kwargs["DataConfig"] == {"DatasetGroupArn": "arn:g"}

    def test_export_destination(self, service, client):
        client.create_forecast_export_job.return_value = {"ForecastExportJobArn": "arn:e"}

        assert service.submit_forecast_export("forecast_export_r1", "arn:f", "s3://b/exports/r1") == "arn:e"

        kwargs = client.create_forecast_export_job.call_args.kwargs
        assert kwargs["Destination"]["S3Config"]["Path"] == "s3://b/exports/r1"

    def test_missing_arn_returns_none(self, service, client):
        client.create_forecast.return_value = {}
        assert service.submit_forecast_generation("forecast_r1", "arn:p") is None

    def test_client_error_becomes_submission_failed(self, service, client):
        client.create_forecast.side_effect = client_error()

        with pytest.raises(SubmissionFailed) as exc_info:
            service.submit_forecast_generation("forecast_r1", "arn:p")

        assert exc_info.value.job_kind == JobKind.FORECAST_GENERATION
        assert "ResourceAlreadyExistsException" in str(exc_info.value)

    @pytest.mark.parametrize("operation, describe", [
        ("describe_dataset_import_job", "describe_dataset_import"),
        ("describe_auto_predictor", "describe_predictor_training"),
        ("describe_forecast", "describe_forecast_generation"),
        ("describe_forecast_export_job", "describe_forecast_export"),
    ])
    def test_describe_maps_status(self, service, client, operation, describe):
        getattr(client, operation).return_value = {"Status": "CREATE_IN_PROGRESS"}
        assert getattr(service, describe)("arn:x") == JobStatus.IN_PROGRESS

        getattr(client, operation).return_value = {"Status": "CREATE_FAILED", "Message": "bad data"}
        assert getattr(service, describe)("arn:x") == JobStatus.FAILED

    def test_describe_client_error_keeps_job_identity(self, service, client):
        client.describe_auto_predictor.side_effect = client_error("DescribeAutoPredictor", "ThrottlingException")

        with pytest.raises(DescribeFailed) as exc_info:
            service.describe_predictor_training("arn:p")

        assert exc_info.value.job_kind == JobKind.PREDICTOR_TRAINING
        assert exc_info.value.job_identifier == "arn:p"
        assert "ThrottlingException" in str(exc_info.value)


class TestS3ObjectStore:
    """Test the S3 object store binding."""

    @pytest.fixture
    def client(self):
        return MagicMock()

    @pytest.fixture
    def store(self, client):
        return S3ObjectStore("bucket", client=client)

    def test_uri_for(self, store):
        assert store.uri_for("a/b.csv") == "s3://bucket/a/b.csv"

    def test_put(self, store, client):
        store.put("a/b.csv", b"data")
        client.put_object.assert_called_once_with(Bucket="bucket", Key="a/b.csv", Body=b"data")

    def test_list_paginates(self, store, client):
        paginator = MagicMock()
        paginator.paginate.return_value = [
            {"Contents": [{"Key": "p/1.csv"}, {"Key": "p/2.csv"}]},
            {"Contents": [{"Key": "p/3.csv"}]},
            {},
        ]
        client.get_paginator.return_value = paginator

        assert store.list("p/") == ["p/1.csv", "p/2.csv", "p/3.csv"]
        paginator.paginate.assert_called_once_with(Bucket="bucket", Prefix="p/")

    def test_get(self, store, client):
        client.get_object.return_value = {"Body": io.BytesIO(b"H\nA\n")}
        assert store.get("p/1.csv") == b"H\nA\n"

    def test_errors_become_storage_errors(self, store, client):
        client.get_object.side_effect = client_error("GetObject", "NoSuchKey")

        with pytest.raises(StorageError) as exc_info:
            store.get("missing.csv")

        assert exc_info.value.operation == "get"
        assert "s3://bucket/missing.csv" in str(exc_info.value)

    def test_put_error(self, store, client):
        client.put_object.side_effect = client_error("PutObject", "AccessDenied")
        with pytest.raises(StorageError):
            store.put("k", b"")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
