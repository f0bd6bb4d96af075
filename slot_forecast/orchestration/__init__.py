"""
Job lifecycle orchestration for the forecast pipeline.

This module provides bounded polling of remote jobs, the uniform stage
wrapper, and the orchestrator that chains the stages of one run.
"""

from .polling import (
    PollingWaiter,
    PollReporter,
    call_capability,
)

from .stage_runner import (
    StageRunner,
    DatasetImportResult,
)

from .pipeline_orchestrator import (
    PipelineOrchestrator,
    PipelineRunner,
    PipelineExecution,
    StageExecution,
    ExecutionStatus,
    STAGE_ORDER,
    MATERIALIZE_STAGE,
)

__all__ = [
    "PollingWaiter",
    "PollReporter",
    "call_capability",
    "StageRunner",
    "DatasetImportResult",
    "PipelineOrchestrator",
    "PipelineRunner",
    "PipelineExecution",
    "StageExecution",
    "ExecutionStatus",
    "STAGE_ORDER",
    "MATERIALIZE_STAGE",
]
