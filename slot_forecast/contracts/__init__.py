"""
Data contracts shared by the orchestrator, the stage runner and the
service bindings.
"""

from .pipeline_interface import (
    JobKind,
    JobStatus,
    PipelineState,
    RemoteJobHandle,
    JobDescriptor,
    PipelineContext,
    ContextError,
    ExportArtifact,
    ErrorContract,
    PollingPolicy,
)

from .capabilities import (
    ForecastService,
    ObjectStore,
    METRIC_SCHEMA,
)

from .errors import (
    ForecastPipelineError,
    SubmissionFailed,
    JobFailed,
    DescribeFailed,
    JobTimedOut,
    StorageError,
    PipelineCancelled,
    ReshapeError,
)

from .variants import (
    SLOT_METRICS,
    VariantSpec,
    DAILY,
    HOURLY,
    BUILTIN_VARIANTS,
)

__all__ = [
    # Pipeline contracts
    "JobKind",
    "JobStatus",
    "PipelineState",
    "RemoteJobHandle",
    "JobDescriptor",
    "PipelineContext",
    "ContextError",
    "ExportArtifact",
    "ErrorContract",
    "PollingPolicy",

    # Capabilities
    "ForecastService",
    "ObjectStore",
    "METRIC_SCHEMA",

    # Errors
    "ForecastPipelineError",
    "SubmissionFailed",
    "JobFailed",
    "DescribeFailed",
    "JobTimedOut",
    "StorageError",
    "PipelineCancelled",
    "ReshapeError",

    # Variants
    "SLOT_METRICS",
    "VariantSpec",
    "DAILY",
    "HOURLY",
    "BUILTIN_VARIANTS",
]
