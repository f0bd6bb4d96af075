"""
Error taxonomy for the forecast pipeline.

Every error aborts the run it occurs in. None of them is retried
automatically.
"""

from typing import Optional

from .pipeline_interface import (
    ContextError,
    ErrorContract,
    JobKind,
    JobStatus,
    RemoteJobHandle,
)


class ForecastPipelineError(Exception):
    """Base class for errors that abort a pipeline run."""

    job_kind: Optional[JobKind] = None
    job_identifier: Optional[str] = None
    last_status: Optional[JobStatus] = None

    def to_contract(self) -> ErrorContract:
        return ErrorContract(
            error_type=type(self).__name__,
            error_message=str(self),
            job_kind=self.job_kind,
            job_identifier=self.job_identifier,
            last_status=self.last_status,
        )


class SubmissionFailed(ForecastPipelineError):
    """The service accepted a submit call but returned no usable identifier."""

    def __init__(self, kind: JobKind, name: str, reason: str = "no identifier returned"):
        self.job_kind = kind
        self.name = name
        self.reason = reason
        super().__init__(f"Failed to submit {kind.value} job {name}: {reason}")


class JobFailed(ForecastPipelineError):
    """A terminal failure status was observed while polling."""

    def __init__(self, handle: RemoteJobHandle, status: JobStatus):
        self.handle = handle
        self.job_kind = handle.kind
        self.job_identifier = handle.identifier
        self.last_status = status
        super().__init__(
            f"{handle.kind.value} job {handle.identifier} failed with status {status.value}"
        )


class DescribeFailed(ForecastPipelineError):
    """The service could not report the status of a submitted job."""

    def __init__(self, kind: JobKind, identifier: str, reason: str):
        self.job_kind = kind
        self.job_identifier = identifier
        self.reason = reason
        super().__init__(f"Failed to describe {kind.value} job {identifier}: {reason}")


class JobTimedOut(ForecastPipelineError):
    """Polling exceeded its configured budget."""

    def __init__(
        self,
        handle: RemoteJobHandle,
        waited_seconds: float,
        polls: int,
        last_status: Optional[JobStatus] = None,
    ):
        self.handle = handle
        self.job_kind = handle.kind
        self.job_identifier = handle.identifier
        self.waited_seconds = waited_seconds
        self.polls = polls
        self.last_status = last_status
        super().__init__(
            f"{handle.kind.value} job {handle.identifier} did not finish after "
            f"{waited_seconds:.1f}s ({polls} polls)"
        )


class StorageError(ForecastPipelineError):
    """An object store or local artifact operation failed."""

    def __init__(self, operation: str, key: str, reason: str):
        self.operation = operation
        self.key = key
        self.reason = reason
        super().__init__(f"Storage {operation} failed for {key}: {reason}")


class PipelineCancelled(ForecastPipelineError):
    """Cooperative cancellation was requested between poll iterations."""

    def __init__(self, handle: Optional[RemoteJobHandle] = None):
        self.handle = handle
        if handle is not None:
            self.job_kind = handle.kind
            self.job_identifier = handle.identifier
            message = f"Pipeline cancelled while waiting for {handle.kind.value} job {handle.identifier}"
        else:
            message = "Pipeline cancelled"
        super().__init__(message)


class ReshapeError(ForecastPipelineError):
    """Raw availability input does not have the expected layout."""


__all__ = [
    "ForecastPipelineError",
    "SubmissionFailed",
    "JobFailed",
    "DescribeFailed",
    "JobTimedOut",
    "StorageError",
    "PipelineCancelled",
    "ReshapeError",
    "ContextError",
]
