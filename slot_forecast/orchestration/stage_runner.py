"""
Stage runner: submit one remote job under a run-scoped name and, on request,
wait for it to finish.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel

from ..config.integration_config import ForecastPipelineConfiguration
from ..contracts.capabilities import METRIC_SCHEMA, ForecastService
from ..contracts.errors import SubmissionFailed
from ..contracts.pipeline_interface import JobKind, RemoteJobHandle
from ..contracts.variants import VariantSpec
from ..utils.run_identity import resource_name
from .polling import PollingWaiter, call_capability


# Name prefix of every remote resource a run creates
NAME_PREFIXES = {
    "dataset": "data_set",
    "dataset_group": "data_set_group",
    JobKind.DATASET_IMPORT: "import_job",
    JobKind.PREDICTOR_TRAINING: "predictor",
    JobKind.FORECAST_GENERATION: "forecast",
    JobKind.FORECAST_EXPORT: "forecast_export",
}


class DatasetImportResult(BaseModel):
    """Everything the dataset import stage produces."""

    dataset_arn: str
    dataset_group_arn: str
    job: RemoteJobHandle


class StageRunner:
    """Uniform submit, name, wait wrapper for pipeline stages."""

    def __init__(
        self,
        service: ForecastService,
        waiter: PollingWaiter,
        run_id: str,
        config: ForecastPipelineConfiguration,
        cancel_event: Optional[asyncio.Event] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the stage runner.

        Args:
            service: Forecasting service capability
            waiter: Polling waiter used for synchronous completion
            run_id: Run token every resource name is derived from
            config: Pipeline configuration (domain, horizon, polling)
            cancel_event: Cooperative cancellation flag passed to the waiter
            logger: Logger instance
        """
        self.service = service
        self.waiter = waiter
        self.run_id = run_id
        self.config = config
        self.cancel_event = cancel_event
        self.logger = logger or logging.getLogger(__name__)

    def stage_name(self, kind: Any) -> str:
        """Run-scoped name of the resource created for ``kind``."""
        return resource_name(NAME_PREFIXES[kind], self.run_id)

    async def run_dataset_import(
        self,
        source_uri: str,
        variant: VariantSpec,
        wait: bool = True,
        on_created: Optional[Callable[[str, str], None]] = None,
    ) -> DatasetImportResult:
        """Create the dataset and dataset group, then import ``source_uri``.

        The dataset and group creations are synchronous on the service side;
        only the import job is polled. ``on_created`` receives
        ``("dataset_arn", arn)`` and ``("dataset_group_arn", arn)`` as soon as
        each resource exists, so a later failure still leaves it on record.
        """
        kind = JobKind.DATASET_IMPORT

        dataset_name = self.stage_name("dataset")
        dataset_arn = self._require_identifier(
            kind,
            dataset_name,
            await call_capability(
                self.service.submit_dataset_create,
                dataset_name,
                self.config.domain,
                variant.data_frequency,
                METRIC_SCHEMA,
            ),
        )
        self.logger.info(f"Created dataset {dataset_arn}")
        if on_created is not None:
            on_created("dataset_arn", dataset_arn)

        group_name = self.stage_name("dataset_group")
        dataset_group_arn = self._require_identifier(
            kind,
            group_name,
            await call_capability(
                self.service.submit_dataset_group_create,
                group_name,
                self.config.domain,
                [dataset_arn],
            ),
        )
        self.logger.info(f"Created dataset group {dataset_group_arn}")
        if on_created is not None:
            on_created("dataset_group_arn", dataset_group_arn)

        job_name = self.stage_name(kind)
        handle = await self._submit(
            kind,
            job_name,
            self.service.submit_dataset_import,
            dataset_arn,
            job_name,
            source_uri,
            self.config.import_format,
            variant.timestamp_format,
            self.config.import_mode,
        )
        if wait:
            await self.wait_for(handle)

        return DatasetImportResult(
            dataset_arn=dataset_arn,
            dataset_group_arn=dataset_group_arn,
            job=handle,
        )

    async def run_predictor_training(
        self,
        dataset_group_arn: str,
        variant: VariantSpec,
        wait: bool = True,
    ) -> RemoteJobHandle:
        kind = JobKind.PREDICTOR_TRAINING
        name = self.stage_name(kind)
        handle = await self._submit(
            kind,
            name,
            self.service.submit_auto_predictor_training,
            name,
            dataset_group_arn,
            variant.forecast_frequency,
            self.config.forecast_horizon,
            self.config.extra_dataset_config,
        )
        if wait:
            await self.wait_for(handle)
        return handle

    async def run_forecast_generation(self, predictor_arn: str, wait: bool = True) -> RemoteJobHandle:
        kind = JobKind.FORECAST_GENERATION
        name = self.stage_name(kind)
        handle = await self._submit(
            kind,
            name,
            self.service.submit_forecast_generation,
            name,
            predictor_arn,
        )
        if wait:
            await self.wait_for(handle)
        return handle

    async def run_forecast_export(
        self,
        forecast_arn: str,
        destination_uri: str,
        wait: bool = True,
    ) -> RemoteJobHandle:
        kind = JobKind.FORECAST_EXPORT
        name = self.stage_name(kind)
        handle = await self._submit(
            kind,
            name,
            self.service.submit_forecast_export,
            name,
            forecast_arn,
            destination_uri,
        )
        if wait:
            await self.wait_for(handle)
        return handle

    async def wait_for(self, handle: RemoteJobHandle) -> None:
        """Block until ``handle`` is active; raises on failure or timeout."""
        await self.waiter.wait(
            self._describer(handle.kind),
            handle,
            self.config.polling.policy_for(handle.kind),
            cancel_event=self.cancel_event,
        )

    def _describer(self, kind: JobKind) -> Callable[[str], Any]:
        describers: Dict[JobKind, Callable[[str], Any]] = {
            JobKind.DATASET_IMPORT: self.service.describe_dataset_import,
            JobKind.PREDICTOR_TRAINING: self.service.describe_predictor_training,
            JobKind.FORECAST_GENERATION: self.service.describe_forecast_generation,
            JobKind.FORECAST_EXPORT: self.service.describe_forecast_export,
        }
        return describers[kind]

    async def _submit(
        self,
        kind: JobKind,
        name: str,
        submit: Callable[..., Any],
        *args: Any,
    ) -> RemoteJobHandle:
        self.logger.info(f"Submitting {kind.value} job {name}")
        identifier = self._require_identifier(kind, name, await call_capability(submit, *args))
        handle = RemoteJobHandle(kind=kind, identifier=identifier, name=name)
        self.logger.info(f"Submitted {kind.value} job {name}: {identifier}")
        return handle

    @staticmethod
    def _require_identifier(kind: JobKind, name: str, identifier: Any) -> str:
        if not identifier or not isinstance(identifier, str):
            raise SubmissionFailed(kind, name)
        return identifier
