"""
Tests for bounded polling of remote jobs.
"""

import asyncio

import pytest

from slot_forecast.contracts import (
    JobFailed,
    JobKind,
    JobStatus,
    JobTimedOut,
    PipelineCancelled,
    PollingPolicy,
    RemoteJobHandle,
)
from slot_forecast.orchestration import PollingWaiter, call_capability


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class ScriptedDescribe:
    def __init__(self, statuses):
        self.statuses = list(statuses)
        self.calls = 0

    def __call__(self, identifier):
        self.calls += 1
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def waiter(clock):
    return PollingWaiter(sleep=clock.sleep, clock=clock)


@pytest.fixture
def handle():
    return RemoteJobHandle(kind=JobKind.PREDICTOR_TRAINING, identifier="arn:predictor/p1", name="predictor_r1")


class TestPollingWaiter:
    """Test the polling loop's terminal outcomes."""

    @pytest.mark.asyncio
    async def test_returns_once_active(self, waiter, clock, handle):
        describe = ScriptedDescribe(["CREATE_PENDING", "CREATE_IN_PROGRESS", "ACTIVE"])

        status = await waiter.wait(describe, handle, PollingPolicy(interval_seconds=5))

        assert status == JobStatus.ACTIVE
        assert describe.calls == 3
        assert clock.sleeps == [5, 5]

    @pytest.mark.asyncio
    async def test_failure_stops_polling(self, waiter, handle):
        describe = ScriptedDescribe(["CREATE_IN_PROGRESS", "CREATE_FAILED", "ACTIVE"])

        with pytest.raises(JobFailed) as exc_info:
            await waiter.wait(describe, handle, PollingPolicy(interval_seconds=1))

        assert describe.calls == 2
        assert exc_info.value.handle == handle
        assert exc_info.value.last_status == JobStatus.FAILED

    @pytest.mark.asyncio
    async def test_times_out_after_max_wait(self, waiter, clock, handle):
        describe = ScriptedDescribe(["CREATE_IN_PROGRESS"])
        policy = PollingPolicy(interval_seconds=10, max_wait_seconds=25)

        with pytest.raises(JobTimedOut) as exc_info:
            await waiter.wait(describe, handle, policy)

        error = exc_info.value
        assert describe.calls == 3
        assert error.polls == 3
        assert error.waited_seconds == 30
        assert error.last_status == JobStatus.IN_PROGRESS
        assert error.job_identifier == handle.identifier

    @pytest.mark.asyncio
    async def test_times_out_after_max_polls(self, waiter, clock, handle):
        describe = ScriptedDescribe(["CREATE_PENDING"])
        policy = PollingPolicy(interval_seconds=1, max_polls=2)

        with pytest.raises(JobTimedOut):
            await waiter.wait(describe, handle, policy)

        assert describe.calls == 2
        assert clock.sleeps == [1]

    @pytest.mark.asyncio
    async def test_unknown_status_keeps_waiting(self, waiter, handle):
        describe = ScriptedDescribe(["SOMETHING_NEW", "", "ACTIVE"])

        status = await waiter.wait(describe, handle, PollingPolicy(interval_seconds=0))

        assert status == JobStatus.ACTIVE
        assert describe.calls == 3

    @pytest.mark.asyncio
    async def test_accepts_coroutine_describe(self, waiter, handle):
        calls = []

        async def describe(identifier):
            calls.append(identifier)
            return JobStatus.ACTIVE

        status = await waiter.wait(describe, handle, PollingPolicy(interval_seconds=0))

        assert status == JobStatus.ACTIVE
        assert calls == [handle.identifier]


class TestPollingCancellation:
    """Test cooperative cancellation between poll iterations."""

    @pytest.mark.asyncio
    async def test_cancelled_before_first_poll(self, waiter, handle):
        describe = ScriptedDescribe(["ACTIVE"])
        cancel_event = asyncio.Event()
        cancel_event.set()

        with pytest.raises(PipelineCancelled):
            await waiter.wait(describe, handle, PollingPolicy(), cancel_event=cancel_event)

        assert describe.calls == 0

    @pytest.mark.asyncio
    async def test_cancelled_during_sleep(self, handle):
        cancel_event = asyncio.Event()

        async def sleep(seconds):
            cancel_event.set()

        waiter = PollingWaiter(sleep=sleep)
        describe = ScriptedDescribe(["CREATE_IN_PROGRESS", "ACTIVE"])

        with pytest.raises(PipelineCancelled) as exc_info:
            await waiter.wait(describe, handle, PollingPolicy(interval_seconds=1), cancel_event=cancel_event)

        assert describe.calls == 1
        assert exc_info.value.job_identifier == handle.identifier


class TestPollReporter:
    """Test progress reporting."""

    @pytest.mark.asyncio
    async def test_reporter_sees_every_poll(self, clock, handle):
        seen = []
        finished = []

        class Recorder:
            def on_poll(self, handle, status, elapsed, polls):
                seen.append((status, polls))

            def on_finish(self, handle, status, elapsed):
                finished.append(status)

        waiter = PollingWaiter(sleep=clock.sleep, clock=clock, reporter=Recorder())
        await waiter.wait(ScriptedDescribe(["CREATE_PENDING", "ACTIVE"]), handle, PollingPolicy(interval_seconds=2))

        assert seen == [(JobStatus.PENDING, 1), (JobStatus.ACTIVE, 2)]
        assert finished == [JobStatus.ACTIVE]

    @pytest.mark.asyncio
    async def test_reporter_errors_do_not_break_polling(self, clock, handle):
        class Broken:
            def on_poll(self, *args):
                raise RuntimeError("terminal went away")

            def on_finish(self, *args):
                raise RuntimeError("terminal went away")

        waiter = PollingWaiter(sleep=clock.sleep, clock=clock, reporter=Broken())
        status = await waiter.wait(ScriptedDescribe(["ACTIVE"]), handle, PollingPolicy())

        assert status == JobStatus.ACTIVE


@pytest.mark.asyncio
async def test_call_capability_runs_sync_callables():
    assert await call_capability(lambda a, b: a + b, 2, 3) == 5


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
