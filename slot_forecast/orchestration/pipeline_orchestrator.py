"""
Pipeline orchestration engine for the slot availability forecast.

This module sequences the remote stages of one run (dataset import,
predictor training, forecast generation, forecast export), threads the
identifiers each stage produces into the next, and materializes the
exported forecast as a local artifact.
"""

import asyncio
import logging
import signal
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, Field, PrivateAttr

from ..config.integration_config import ForecastPipelineConfiguration
from ..contracts.capabilities import ForecastService, ObjectStore
from ..contracts.errors import ForecastPipelineError, PipelineCancelled
from ..contracts.pipeline_interface import (
    ACTIVE_STATE,
    SUBMITTED_STATE,
    ErrorContract,
    ExportArtifact,
    JobKind,
    PipelineContext,
    PipelineState,
    RemoteJobHandle,
)
from ..contracts.variants import VariantSpec
from ..export.materialize import materialize_export
from ..ingest.reshape import reshape_availability, upload_partitions
from ..utils.run_identity import new_run_id
from .polling import PollReporter, PollingWaiter, call_capability
from .stage_runner import StageRunner


MATERIALIZE_STAGE = "export_materialization"

STAGE_ORDER = [
    JobKind.DATASET_IMPORT.value,
    JobKind.PREDICTOR_TRAINING.value,
    JobKind.FORECAST_GENERATION.value,
    JobKind.FORECAST_EXPORT.value,
    MATERIALIZE_STAGE,
]


class ExecutionStatus(str, Enum):
    """Execution status for pipeline and stages."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"


class StageExecution(BaseModel):
    """Runtime execution state for a pipeline stage."""

    stage_id: str
    status: ExecutionStatus = ExecutionStatus.PENDING
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    job_identifier: Optional[str] = None
    error_message: Optional[str] = None
    output_data: Dict[str, Any] = {}

    def start_execution(self):
        """Mark stage as started."""
        self.status = ExecutionStatus.RUNNING
        self.start_time = datetime.now(timezone.utc)

    def complete_execution(self, output_data: Optional[Dict[str, Any]] = None):
        """Mark stage as completed."""
        self._finish(ExecutionStatus.COMPLETED)
        if output_data:
            self.output_data.update(output_data)

    def fail_execution(self, error_message: str, status: ExecutionStatus = ExecutionStatus.FAILED):
        """Mark stage as failed (or cancelled)."""
        self._finish(status)
        self.error_message = error_message

    def _finish(self, status: ExecutionStatus):
        self.status = status
        self.end_time = datetime.now(timezone.utc)
        if self.start_time:
            self.duration_seconds = (self.end_time - self.start_time).total_seconds()


class PipelineExecution(BaseModel):
    """Runtime execution state for one pipeline run."""

    pipeline_id: str
    execution_id: str
    variant: str
    source_uri: str
    status: ExecutionStatus = ExecutionStatus.PENDING
    state: PipelineState = PipelineState.START
    history: List[PipelineState] = Field(default_factory=lambda: [PipelineState.START])
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    stage_executions: Dict[str, StageExecution] = {}
    context: PipelineContext
    artifact: Optional[ExportArtifact] = None
    error: Optional[ErrorContract] = None

    _exception: Optional[ForecastPipelineError] = PrivateAttr(default=None)

    def transition(self, state: PipelineState):
        """Advance the state machine. Terminal states are final."""
        if self.state.is_terminal:
            raise RuntimeError(f"Run {self.execution_id} is already {self.state.value}")
        self.state = state
        self.history.append(state)

    def get_stage_execution(self, stage_id: str) -> Optional[StageExecution]:
        """Get execution state for a stage."""
        return self.stage_executions.get(stage_id)

    def get_failed_stages(self) -> List[str]:
        """Get list of failed stage IDs."""
        return [
            stage_id for stage_id, execution in self.stage_executions.items()
            if execution.status in (ExecutionStatus.FAILED, ExecutionStatus.CANCELLED)
        ]

    def get_completed_stages(self) -> List[str]:
        """Get list of completed stage IDs."""
        return [
            stage_id for stage_id, execution in self.stage_executions.items()
            if execution.status == ExecutionStatus.COMPLETED
        ]

    @property
    def succeeded(self) -> bool:
        return self.state == PipelineState.EXPORT_MATERIALIZED

    def raise_for_status(self):
        """Re-raise the error that aborted this run, if any."""
        if self._exception is not None:
            raise self._exception

    def summary(self) -> Dict[str, Any]:
        return {
            "run_id": self.execution_id,
            "variant": self.variant,
            "status": self.status.value,
            "state": self.state.value,
            "identifiers": self.context.forecast_identifiers,
            "completed_stages": self.get_completed_stages(),
            "failed_stages": self.get_failed_stages(),
            "artifact": str(self.artifact.path) if self.artifact else None,
            "error": self.error.error_message if self.error else None,
        }


class PipelineOrchestrator:
    """Runs the full stage chain for one input partition."""

    def __init__(
        self,
        config: ForecastPipelineConfiguration,
        service: ForecastService,
        store: ObjectStore,
        waiter: Optional[PollingWaiter] = None,
        run_id: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize pipeline orchestrator.

        Args:
            config: Pipeline configuration
            service: Forecasting service capability
            store: Object store capability
            waiter: Polling waiter; a default one is built when omitted
            run_id: Run token; a fresh one is generated when omitted
            logger: Logger instance
        """
        self.config = config
        self.service = service
        self.store = store
        self.logger = logger or logging.getLogger(__name__)
        self.waiter = waiter or PollingWaiter(logger=self.logger)
        self.run_id = run_id or new_run_id()
        self.execution_state: Optional[PipelineExecution] = None

    async def execute(
        self,
        variant: VariantSpec,
        source_uri: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> PipelineExecution:
        """Execute the pipeline for one uploaded partition.

        Args:
            variant: Variant whose frequency and timestamp format stage 1 uses
            source_uri: Storage URI of the reshaped partition
            cancel_event: Cooperative cancellation flag

        Returns:
            Pipeline execution state; ``state`` is either
            ``export_materialized`` or ``aborted``
        """
        if self.execution_state is not None:
            raise RuntimeError(f"Run {self.run_id} has already been executed")

        self.logger.info(f"Starting {variant.name} pipeline run {self.run_id} on {source_uri}")

        execution = PipelineExecution(
            pipeline_id=self.config.pipeline_id,
            execution_id=self.run_id,
            variant=variant.name,
            source_uri=source_uri,
            status=ExecutionStatus.RUNNING,
            start_time=datetime.now(timezone.utc),
            context=PipelineContext(run_id=self.run_id),
            stage_executions={stage_id: StageExecution(stage_id=stage_id) for stage_id in STAGE_ORDER},
        )
        self.execution_state = execution

        runner = StageRunner(
            self.service,
            self.waiter,
            self.run_id,
            self.config,
            cancel_event=cancel_event,
            logger=self.logger,
        )

        try:
            await self._run_stages(execution, runner, variant, source_uri, cancel_event)
            execution.status = ExecutionStatus.COMPLETED
            self.logger.info(f"Pipeline run {self.run_id} completed: {execution.artifact.path}")
        except ForecastPipelineError as e:
            self._abort(execution, e)
        finally:
            execution.end_time = datetime.now(timezone.utc)

        return execution

    async def _run_stages(
        self,
        execution: PipelineExecution,
        runner: StageRunner,
        variant: VariantSpec,
        source_uri: str,
        cancel_event: Optional[asyncio.Event],
    ):
        ctx = execution.context

        async def submit_import() -> RemoteJobHandle:
            result = await runner.run_dataset_import(source_uri, variant, wait=False, on_created=ctx.record)
            return result.job

        self._check_cancelled(cancel_event)
        await self._run_job_stage(execution, runner, JobKind.DATASET_IMPORT, submit_import, "import_job_arn")

        self._check_cancelled(cancel_event)
        await self._run_job_stage(
            execution,
            runner,
            JobKind.PREDICTOR_TRAINING,
            lambda: runner.run_predictor_training(ctx.require("dataset_group_arn"), variant, wait=False),
            "predictor_arn",
        )

        self._check_cancelled(cancel_event)
        await self._run_job_stage(
            execution,
            runner,
            JobKind.FORECAST_GENERATION,
            lambda: runner.run_forecast_generation(ctx.require("predictor_arn"), wait=False),
            "forecast_arn",
        )

        self._check_cancelled(cancel_event)
        destination_uri = self.store.uri_for(self.config.export_destination_key(self.run_id))
        await self._run_job_stage(
            execution,
            runner,
            JobKind.FORECAST_EXPORT,
            lambda: runner.run_forecast_export(ctx.require("forecast_arn"), destination_uri, wait=False),
            "export_job_arn",
        )

        self._check_cancelled(cancel_event)
        stage = execution.get_stage_execution(MATERIALIZE_STAGE)
        stage.start_execution()
        ctx.require("export_job_arn")
        artifact = await call_capability(
            materialize_export,
            self.store,
            self.config.export_listing_prefix(self.run_id),
            self.config.artifact_path(self.run_id),
            self.run_id,
            self.config.export_header,
        )
        execution.artifact = artifact
        execution.transition(PipelineState.EXPORT_MATERIALIZED)
        stage.complete_execution({"path": str(artifact.path), "rows": artifact.row_count})

    async def _run_job_stage(
        self,
        execution: PipelineExecution,
        runner: StageRunner,
        kind: JobKind,
        submit: Callable[[], Awaitable[RemoteJobHandle]],
        context_field: str,
    ) -> RemoteJobHandle:
        """Submit one remote job, record its identifier and wait for it."""
        stage = execution.get_stage_execution(kind.value)
        stage.start_execution()

        handle = await submit()
        execution.context.record(context_field, handle.identifier)
        stage.job_identifier = handle.identifier
        execution.transition(SUBMITTED_STATE[kind])

        await runner.wait_for(handle)
        execution.transition(ACTIVE_STATE[kind])
        stage.complete_execution({context_field: handle.identifier})
        return handle

    def _abort(self, execution: PipelineExecution, error: ForecastPipelineError):
        cancelled = isinstance(error, PipelineCancelled)
        stage_status = ExecutionStatus.CANCELLED if cancelled else ExecutionStatus.FAILED

        for stage in execution.stage_executions.values():
            if stage.status == ExecutionStatus.RUNNING:
                stage.fail_execution(str(error), stage_status)
            elif stage.status == ExecutionStatus.PENDING:
                stage.status = ExecutionStatus.SKIPPED

        execution.status = stage_status
        execution.transition(PipelineState.ABORTED)
        execution.error = error.to_contract()
        execution._exception = error

        self.logger.error(f"Pipeline run {execution.execution_id} aborted: {error}")
        leftovers = {k: v for k, v in execution.context.forecast_identifiers.items() if v}
        if leftovers:
            self.logger.warning(f"Remote resources left in place: {leftovers}")

    @staticmethod
    def _check_cancelled(cancel_event: Optional[asyncio.Event]):
        if cancel_event is not None and cancel_event.is_set():
            raise PipelineCancelled()


class PipelineRunner:
    """High-level interface: reshape, upload and run one or more variants."""

    def __init__(
        self,
        config: ForecastPipelineConfiguration,
        service: Optional[ForecastService] = None,
        store: Optional[ObjectStore] = None,
        reporter: Optional[PollReporter] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize pipeline runner.

        Args:
            config: Pipeline configuration
            service: Forecasting service; the boto3 binding is used when omitted
            store: Object store; the S3 binding is used when omitted
            reporter: Optional progress reporter for polling
            logger: Logger instance
        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

        if service is None:
            from ..aws.forecast_service import BotoForecastService
            service = BotoForecastService(
                config.role_arn,
                region_name=config.region_name,
                dataset_type=config.dataset_type,
            )
        if store is None:
            from ..aws.object_store import S3ObjectStore
            store = S3ObjectStore(config.bucket, region_name=config.region_name)

        self.service = service
        self.store = store
        self.reporter = reporter
        self.cancel_event: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @classmethod
    def from_config_path(cls, config_path: Union[str, Path], **kwargs) -> "PipelineRunner":
        from ..config.config_loader import ConfigurationLoader
        config = ConfigurationLoader().load_pipeline_config(config_path)
        return cls(config, **kwargs)

    def prepare_input(self, variant_name: str, run_id: Optional[str] = None) -> Dict[str, str]:
        """Reshape a variant's raw input and upload every metric partition.

        Returns:
            Mapping of metric name to storage URI
        """
        variant_config = self.config.get_variant(variant_name)
        spec = variant_config.to_spec(variant_name)
        partitions = reshape_availability(variant_config.input_path, spec)
        return upload_partitions(self.store, partitions, self.config.input_prefix, spec, run_id)

    async def run_variant_async(self, variant_name: str, run_id: Optional[str] = None) -> PipelineExecution:
        """Prepare input and run the pipeline for one variant."""
        run_id = run_id or new_run_id()
        spec = self.config.variant_spec(variant_name)

        try:
            uris = await call_capability(self.prepare_input, variant_name, run_id)
        except ForecastPipelineError as e:
            return self._aborted_before_start(variant_name, run_id, e)
        source_uri = uris[self.config.metric]

        orchestrator = PipelineOrchestrator(
            self.config,
            self.service,
            self.store,
            waiter=PollingWaiter(reporter=self.reporter, logger=self.logger),
            run_id=run_id,
            logger=self.logger,
        )
        return await orchestrator.execute(spec, source_uri, cancel_event=self._ensure_cancel_event())

    async def run_all_async(self, variant_names: List[str], concurrent: bool = False) -> List[PipelineExecution]:
        """Run several variants, each with its own run id and context."""
        for name in variant_names:
            self.config.get_variant(name)
        self._ensure_cancel_event()
        if concurrent:
            return list(await asyncio.gather(*(self.run_variant_async(name) for name in variant_names)))

        executions = []
        for name in variant_names:
            executions.append(await self.run_variant_async(name))
        return executions

    def run_variant(self, variant_name: str, run_id: Optional[str] = None) -> PipelineExecution:
        """Run one variant synchronously."""
        return asyncio.run(self.run_variant_async(variant_name, run_id))

    def run_all(self, variant_names: List[str], concurrent: bool = False) -> List[PipelineExecution]:
        """Run several variants synchronously."""
        return asyncio.run(self.run_all_async(variant_names, concurrent))

    def materialize(self, run_id: str) -> ExportArtifact:
        """Re-assemble the export of an earlier run whose export job succeeded."""
        return materialize_export(
            self.store,
            self.config.export_listing_prefix(run_id),
            self.config.artifact_path(run_id),
            run_id,
            self.config.export_header,
        )

    def _aborted_before_start(
        self,
        variant_name: str,
        run_id: str,
        error: ForecastPipelineError,
    ) -> PipelineExecution:
        """Execution record for a run whose input could not be prepared."""
        now = datetime.now(timezone.utc)
        execution = PipelineExecution(
            pipeline_id=self.config.pipeline_id,
            execution_id=run_id,
            variant=variant_name,
            source_uri=str(self.config.get_variant(variant_name).input_path),
            status=ExecutionStatus.FAILED,
            start_time=now,
            end_time=now,
            context=PipelineContext(run_id=run_id),
            stage_executions={
                stage_id: StageExecution(stage_id=stage_id, status=ExecutionStatus.SKIPPED)
                for stage_id in STAGE_ORDER
            },
        )
        execution.transition(PipelineState.ABORTED)
        execution.error = error.to_contract()
        execution._exception = error

        self.logger.error(f"Pipeline run {run_id} aborted while preparing {variant_name} input: {error}")
        return execution

    def install_signal_handlers(self):
        """Cancel running pipelines on SIGINT/SIGTERM, between poll iterations."""
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def cancel(self):
        """Request cancellation of all runs started by this runner."""
        if self.cancel_event is None:
            return
        if self._loop is not None and self._loop.is_running():
            self._loop.call_soon_threadsafe(self.cancel_event.set)
        else:
            self.cancel_event.set()

    def _signal_handler(self, signum: int, frame):
        """Handle shutdown signals."""
        self.logger.info(f"Received signal {signum}, cancelling after the current poll...")
        self.cancel()

    def _ensure_cancel_event(self) -> asyncio.Event:
        loop = asyncio.get_running_loop()
        if self.cancel_event is None or self._loop is not loop:
            self.cancel_event = asyncio.Event()
            self._loop = loop
        return self.cancel_event
