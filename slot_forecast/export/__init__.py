"""Forecast export materialization."""

from .materialize import (
    concatenate_partitions,
    materialize_export,
    read_artifact_rows,
    strip_header,
)

__all__ = [
    "concatenate_partitions",
    "materialize_export",
    "read_artifact_rows",
    "strip_header",
]
