"""
Pipeline interface contracts for the slot availability forecast pipeline.

These contracts describe the remote jobs the pipeline submits, the status
values it observes while polling them, and the identifiers it threads from
one stage to the next.
"""

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class JobKind(str, Enum):
    """Kinds of remote jobs submitted by the pipeline."""
    DATASET_IMPORT = "dataset_import"
    PREDICTOR_TRAINING = "predictor_training"
    FORECAST_GENERATION = "forecast_generation"
    FORECAST_EXPORT = "forecast_export"


class JobStatus(str, Enum):
    """Job status as seen by the orchestrator."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    ACTIVE = "active"
    FAILED = "failed"

    @classmethod
    def from_service(cls, raw: Any) -> "JobStatus":
        """Map a raw service status string onto a JobStatus.

        Unknown and empty values are treated as still waiting.
        """
        if isinstance(raw, JobStatus):
            return raw
        value = (raw or "").strip().upper()
        return _SERVICE_STATUS_MAP.get(value, cls.PENDING)

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.ACTIVE, JobStatus.FAILED)


_SERVICE_STATUS_MAP = {
    "CREATE_PENDING": JobStatus.PENDING,
    "CREATE_IN_PROGRESS": JobStatus.IN_PROGRESS,
    "CREATE_STOPPING": JobStatus.IN_PROGRESS,
    "UPDATE_IN_PROGRESS": JobStatus.IN_PROGRESS,
    "ACTIVE": JobStatus.ACTIVE,
    "CREATE_FAILED": JobStatus.FAILED,
    "CREATE_STOPPED": JobStatus.FAILED,
    "DELETE_FAILED": JobStatus.FAILED,
    # Lowercase enum values, so test doubles may report JobStatus.value
    "PENDING": JobStatus.PENDING,
    "IN_PROGRESS": JobStatus.IN_PROGRESS,
    "FAILED": JobStatus.FAILED,
}


class PipelineState(str, Enum):
    """Linear pipeline state machine, one terminal success and one abort."""
    START = "start"
    DATASET_IMPORT_SUBMITTED = "dataset_import_submitted"
    DATASET_IMPORT_ACTIVE = "dataset_import_active"
    PREDICTOR_SUBMITTED = "predictor_submitted"
    PREDICTOR_ACTIVE = "predictor_active"
    FORECAST_SUBMITTED = "forecast_submitted"
    FORECAST_ACTIVE = "forecast_active"
    EXPORT_SUBMITTED = "export_submitted"
    EXPORT_ACTIVE = "export_active"
    EXPORT_MATERIALIZED = "export_materialized"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.EXPORT_MATERIALIZED, PipelineState.ABORTED)


SUBMITTED_STATE = {
    JobKind.DATASET_IMPORT: PipelineState.DATASET_IMPORT_SUBMITTED,
    JobKind.PREDICTOR_TRAINING: PipelineState.PREDICTOR_SUBMITTED,
    JobKind.FORECAST_GENERATION: PipelineState.FORECAST_SUBMITTED,
    JobKind.FORECAST_EXPORT: PipelineState.EXPORT_SUBMITTED,
}

ACTIVE_STATE = {
    JobKind.DATASET_IMPORT: PipelineState.DATASET_IMPORT_ACTIVE,
    JobKind.PREDICTOR_TRAINING: PipelineState.PREDICTOR_ACTIVE,
    JobKind.FORECAST_GENERATION: PipelineState.FORECAST_ACTIVE,
    JobKind.FORECAST_EXPORT: PipelineState.EXPORT_ACTIVE,
}


class RemoteJobHandle(BaseModel):
    """A submitted asynchronous job. Equality is by identifier."""

    model_config = ConfigDict(frozen=True)

    kind: JobKind = Field(..., description="Kind of remote job")
    identifier: str = Field(..., min_length=1, description="Opaque identifier returned by the service")
    name: Optional[str] = Field(None, description="Run-scoped job name")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RemoteJobHandle):
            return NotImplemented
        return self.identifier == other.identifier

    def __hash__(self) -> int:
        return hash(self.identifier)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.identifier}"


# The descriptor and the handle are one value type
JobDescriptor = RemoteJobHandle


class ContextError(Exception):
    """Raised on a second write to, or a premature read of, a context field."""


class PipelineContext(BaseModel):
    """Identifiers accumulated over one pipeline run.

    Every field is written exactly once, by the stage that produces it.
    """

    run_id: str
    dataset_arn: Optional[str] = None
    dataset_group_arn: Optional[str] = None
    import_job_arn: Optional[str] = None
    predictor_arn: Optional[str] = None
    forecast_arn: Optional[str] = None
    export_job_arn: Optional[str] = None

    def record(self, field: str, value: str) -> None:
        """Write a field once."""
        if field == "run_id" or field not in type(self).model_fields:
            raise ContextError(f"Unknown context field: {field}")
        if not value:
            raise ContextError(f"Refusing to record empty value for {field}")
        if getattr(self, field) is not None:
            raise ContextError(
                f"Context field {field} already recorded as {getattr(self, field)}"
            )
        setattr(self, field, value)

    def require(self, field: str) -> str:
        """Read a field that an earlier stage must have written."""
        value = getattr(self, field, None)
        if value is None:
            raise ContextError(f"Context field {field} has not been recorded yet")
        return value

    @property
    def forecast_identifiers(self) -> Dict[str, Optional[str]]:
        return {
            "dataset_arn": self.dataset_arn,
            "dataset_group_arn": self.dataset_group_arn,
            "predictor_arn": self.predictor_arn,
            "forecast_arn": self.forecast_arn,
        }


class ExportArtifact(BaseModel):
    """The concatenated forecast export, written once to local storage."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    path: Path
    header: str
    source_keys: List[str] = Field(default_factory=list)
    row_count: int = Field(0, ge=0)


class PollingPolicy(BaseModel):
    """How often and for how long a job is polled."""

    model_config = ConfigDict(frozen=True)

    interval_seconds: float = Field(5.0, ge=0.0)
    max_wait_seconds: Optional[float] = Field(None, gt=0.0)
    max_polls: Optional[int] = Field(None, ge=1)


class ErrorContract(BaseModel):
    """User-visible failure record for an aborted run."""

    error_type: str = Field(..., description="Error class name")
    error_message: str = Field(..., description="Human-readable error message")
    job_kind: Optional[JobKind] = Field(None, description="Kind of the job that failed")
    job_identifier: Optional[str] = Field(None, description="Identifier of the job that failed")
    last_status: Optional[JobStatus] = Field(None, description="Last observed status")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
