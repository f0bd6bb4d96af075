"""
Amazon Forecast binding of the forecasting service capability.

Each submit call returns the ARN of the created resource; each describe call
returns the resource's ``Status`` mapped onto ``JobStatus``.
"""

import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..contracts.errors import DescribeFailed, SubmissionFailed
from ..contracts.pipeline_interface import JobKind, JobStatus

logger = logging.getLogger(__name__)


class BotoForecastService:
    """Forecasting service capability backed by the boto3 ``forecast`` client."""

    def __init__(
        self,
        role_arn: str,
        client: Optional[Any] = None,
        region_name: Optional[str] = None,
        dataset_type: str = "TARGET_TIME_SERIES",
    ):
        """Initialize the binding.

        Args:
            role_arn: Role the service assumes for S3 access
            client: Pre-built boto3 forecast client; one is created when omitted
            region_name: Region for the created client
            dataset_type: Dataset type of created datasets
        """
        self.role_arn = role_arn
        self.dataset_type = dataset_type
        self.client = client or boto3.client("forecast", region_name=region_name)

    def _s3_config(self, path: str) -> Dict[str, str]:
        return {"Path": path, "RoleArn": self.role_arn}

    def _create(self, kind: JobKind, name: str, operation: str, arn_key: str, **params: Any) -> Optional[str]:
        try:
            response = getattr(self.client, operation)(**params)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"{operation} failed for {name}: {e}")
            raise SubmissionFailed(kind, name, str(e))
        return response.get(arn_key)

    def _status(self, kind: JobKind, identifier: str, operation: str, **params: Any) -> JobStatus:
        try:
            response = getattr(self.client, operation)(**params)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"{operation} failed for {identifier}: {e}")
            raise DescribeFailed(kind, identifier, str(e))
        raw = response.get("Status", "")
        status = JobStatus.from_service(raw)
        if status == JobStatus.FAILED and response.get("Message"):
            logger.error(f"{operation}: {raw}: {response['Message']}")
        return status

    # Dataset import

    def submit_dataset_create(self, name: str, domain: str, frequency: str, schema: Dict[str, Any]) -> Optional[str]:
        return self._create(
            JobKind.DATASET_IMPORT,
            name,
            "create_dataset",
            "DatasetArn",
            DatasetName=name,
            Domain=domain,
            DatasetType=self.dataset_type,
            DataFrequency=frequency,
            Schema=schema,
        )

    def submit_dataset_group_create(self, name: str, domain: str, dataset_ids: List[str]) -> Optional[str]:
        return self._create(
            JobKind.DATASET_IMPORT,
            name,
            "create_dataset_group",
            "DatasetGroupArn",
            DatasetGroupName=name,
            Domain=domain,
            DatasetArns=list(dataset_ids),
        )

    def submit_dataset_import(
        self,
        dataset_id: str,
        name: str,
        source_path: str,
        format: str,
        timestamp_format: str,
        import_mode: str,
    ) -> Optional[str]:
        return self._create(
            JobKind.DATASET_IMPORT,
            name,
            "create_dataset_import_job",
            "DatasetImportJobArn",
            DatasetImportJobName=name,
            DatasetArn=dataset_id,
            DataSource={"S3Config": self._s3_config(source_path)},
            TimestampFormat=timestamp_format,
            Format=format,
            ImportMode=import_mode,
        )

    def describe_dataset_import(self, job_id: str) -> JobStatus:
        return self._status(
            JobKind.DATASET_IMPORT, job_id, "describe_dataset_import_job", DatasetImportJobArn=job_id
        )

    # Predictor training

    def submit_auto_predictor_training(
        self,
        name: str,
        dataset_group_id: str,
        forecast_frequency: str,
        forecast_horizon: int,
        extra_dataset_config: List[Dict[str, Any]],
    ) -> Optional[str]:
        data_config: Dict[str, Any] = {"DatasetGroupArn": dataset_group_id}
        if extra_dataset_config:
            data_config["AdditionalDatasets"] = extra_dataset_config
        return self._create(
            JobKind.PREDICTOR_TRAINING,
            name,
            "create_auto_predictor",
            "PredictorArn",
            PredictorName=name,
            DataConfig=data_config,
            ForecastFrequency=forecast_frequency,
            ForecastHorizon=forecast_horizon,
        )

    def describe_predictor_training(self, predictor_id: str) -> JobStatus:
        return self._status(
            JobKind.PREDICTOR_TRAINING, predictor_id, "describe_auto_predictor", PredictorArn=predictor_id
        )

    # Forecast generation

    def submit_forecast_generation(self, name: str, predictor_id: str) -> Optional[str]:
        return self._create(
            JobKind.FORECAST_GENERATION,
            name,
            "create_forecast",
            "ForecastArn",
            ForecastName=name,
            PredictorArn=predictor_id,
        )

    def describe_forecast_generation(self, forecast_id: str) -> JobStatus:
        return self._status(JobKind.FORECAST_GENERATION, forecast_id, "describe_forecast", ForecastArn=forecast_id)

    # Forecast export

    def submit_forecast_export(self, name: str, forecast_id: str, destination_path: str) -> Optional[str]:
        return self._create(
            JobKind.FORECAST_EXPORT,
            name,
            "create_forecast_export_job",
            "ForecastExportJobArn",
            ForecastExportJobName=name,
            ForecastArn=forecast_id,
            Destination={"S3Config": self._s3_config(destination_path)},
        )

    def describe_forecast_export(self, export_job_id: str) -> JobStatus:
        return self._status(
            JobKind.FORECAST_EXPORT, export_job_id, "describe_forecast_export_job", ForecastExportJobArn=export_job_id
        )
