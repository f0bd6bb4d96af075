"""boto3 bindings of the forecasting service and object store capabilities."""

from .forecast_service import BotoForecastService
from .object_store import S3ObjectStore

__all__ = [
    "BotoForecastService",
    "S3ObjectStore",
]
