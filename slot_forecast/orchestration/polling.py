"""
Bounded polling of remote job status.

The waiter blocks the calling flow until a job reaches a terminal status,
suspending between describe calls. Polling always terminates: success,
failure, timeout or cancellation.
"""

import asyncio
import functools
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Protocol

from ..contracts.pipeline_interface import JobStatus, PollingPolicy, RemoteJobHandle
from ..contracts.errors import JobFailed, JobTimedOut, PipelineCancelled


class PollReporter(Protocol):
    """Receives human-readable progress from the waiter."""

    def on_poll(self, handle: RemoteJobHandle, status: JobStatus, elapsed: float, polls: int) -> None: ...

    def on_finish(self, handle: RemoteJobHandle, status: JobStatus, elapsed: float) -> None: ...


async def call_capability(func: Callable[..., Any], *args: Any) -> Any:
    """Invoke a capability, sync or async.

    Synchronous callables (boto3 clients) run in the default executor so a
    slow response never blocks other runs on the same loop.
    """
    if inspect.iscoroutinefunction(func):
        return await func(*args)
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args))


class PollingWaiter:
    """Polls a describe capability until a job is terminal."""

    def __init__(
        self,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        reporter: Optional[PollReporter] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the waiter.

        Args:
            sleep: Coroutine used to suspend between describe calls
            clock: Monotonic clock used for the wait budget
            reporter: Optional progress reporter
            logger: Logger instance
        """
        self._sleep = sleep
        self._clock = clock
        self.reporter = reporter
        self.logger = logger or logging.getLogger(__name__)

    async def wait(
        self,
        describe: Callable[[str], Any],
        handle: RemoteJobHandle,
        policy: PollingPolicy,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> JobStatus:
        """Block until the job behind ``handle`` is terminal.

        Args:
            describe: Capability mapping a job identifier to its current status
            handle: Job to wait for
            policy: Interval and budget
            cancel_event: Checked before every describe call

        Returns:
            JobStatus.ACTIVE once the job has succeeded

        Raises:
            JobFailed: The job reported a failure status
            JobTimedOut: The wait budget was exhausted
            PipelineCancelled: ``cancel_event`` was set
        """
        started = self._clock()
        polls = 0
        status = JobStatus.PENDING

        self.logger.info(
            f"Waiting for {handle.kind.value} job {handle.identifier} "
            f"(interval={policy.interval_seconds}s, max_wait={policy.max_wait_seconds})"
        )

        while True:
            if cancel_event is not None and cancel_event.is_set():
                self.logger.warning(f"Cancelled while waiting for {handle.identifier}")
                raise PipelineCancelled(handle)

            raw = await call_capability(describe, handle.identifier)
            polls += 1
            status = JobStatus.from_service(raw)
            elapsed = self._clock() - started
            self._report_poll(handle, status, elapsed, polls)

            if status == JobStatus.ACTIVE:
                self.logger.info(
                    f"{handle.kind.value} job {handle.identifier} active after {elapsed:.1f}s ({polls} polls)"
                )
                self._report_finish(handle, status, elapsed)
                return status

            if status == JobStatus.FAILED:
                self.logger.error(f"{handle.kind.value} job {handle.identifier} failed")
                self._report_finish(handle, status, elapsed)
                raise JobFailed(handle, status)

            if self._budget_exhausted(policy, elapsed, polls):
                self.logger.error(
                    f"Gave up on {handle.kind.value} job {handle.identifier} after {elapsed:.1f}s"
                )
                self._report_finish(handle, status, elapsed)
                raise JobTimedOut(handle, elapsed, polls, last_status=status)

            await self._sleep(policy.interval_seconds)

            # Budget may have run out during the sleep
            if policy.max_wait_seconds is not None and self._clock() - started >= policy.max_wait_seconds:
                elapsed = self._clock() - started
                self._report_finish(handle, status, elapsed)
                raise JobTimedOut(handle, elapsed, polls, last_status=status)

    @staticmethod
    def _budget_exhausted(policy: PollingPolicy, elapsed: float, polls: int) -> bool:
        if policy.max_polls is not None and polls >= policy.max_polls:
            return True
        if policy.max_wait_seconds is not None and elapsed >= policy.max_wait_seconds:
            return True
        return False

    def _report_poll(self, handle: RemoteJobHandle, status: JobStatus, elapsed: float, polls: int) -> None:
        if self.reporter is None:
            return
        try:
            self.reporter.on_poll(handle, status, elapsed, polls)
        except Exception as e:
            self.logger.debug(f"Progress reporter failed: {e}")

    def _report_finish(self, handle: RemoteJobHandle, status: JobStatus, elapsed: float) -> None:
        if self.reporter is None:
            return
        try:
            self.reporter.on_finish(handle, status, elapsed)
        except Exception as e:
            self.logger.debug(f"Progress reporter failed: {e}")
