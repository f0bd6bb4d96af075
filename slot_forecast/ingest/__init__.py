"""Input reshaping and staging for the forecasting service."""

from .reshape import (
    reshape_availability,
    upload_partitions,
    partition_key,
)

__all__ = [
    "reshape_availability",
    "upload_partitions",
    "partition_key",
]
