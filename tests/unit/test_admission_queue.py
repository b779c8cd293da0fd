"""
Unit tests for the admission queue.

Covers strict FIFO ordering, non-overlapping execution, fault isolation,
channel finalization and the run() helper.
"""

import asyncio
import gc
import time

import pytest

from ggetracker.core.exceptions import AdmissionJobError, NotFoundError
from ggetracker.core.queue.admission import AdmissionQueue, JobState, ResultChannel


def _recording_handler(log, label, delay=0.0, error=None):
    async def handler(ctx):
        log.append(("start", label, time.perf_counter()))
        if delay:
            await asyncio.sleep(delay)
        log.append(("end", label, time.perf_counter()))
        if error is not None:
            raise error
        ctx.send(label)

    return handler


class TestOrdering:
    async def test_fifo_with_different_durations(self, make_context):
        queue = AdmissionQueue("test")
        log = []
        contexts = [make_context(label) for label in ("a", "b", "c")]

        queue.enqueue(contexts[0], _recording_handler(log, "a", delay=0.03))
        queue.enqueue(contexts[1], _recording_handler(log, "b", delay=0.0))
        queue.enqueue(contexts[2], _recording_handler(log, "c", delay=0.01))
        await queue.join()

        assert [entry[:2] for entry in log] == [
            ("start", "a"), ("end", "a"),
            ("start", "b"), ("end", "b"),
            ("start", "c"), ("end", "c"),
        ]
        assert [ctx.results for ctx in contexts] == [["a"], ["b"], ["c"]]

    async def test_enqueue_returns_immediately(self, make_context):
        queue = AdmissionQueue("test")
        started = asyncio.Event()

        async def handler(ctx):
            started.set()
            ctx.send(True)

        job = queue.enqueue(make_context(), handler)
        assert job.state is JobState.QUEUED
        assert not started.is_set()

        await queue.join()
        assert job.state is JobState.COMPLETED

    async def test_enqueue_after_drain_restarts_loop(self, make_context):
        queue = AdmissionQueue("test")
        log = []

        queue.enqueue(make_context(), _recording_handler(log, "first"))
        await queue.join()
        assert queue.idle

        queue.enqueue(make_context(), _recording_handler(log, "second"))
        await queue.join()
        assert [entry[1] for entry in log if entry[0] == "end"] == ["first", "second"]


class TestFaultIsolation:
    async def test_failing_job_does_not_stop_the_queue(self, make_context):
        queue = AdmissionQueue("test")
        log = []
        contexts = [make_context(label) for label in ("1", "2", "3")]

        queue.enqueue(contexts[0], _recording_handler(log, "1", delay=0.001))
        queue.enqueue(contexts[1], _recording_handler(log, "2", delay=0.05, error=RuntimeError("boom")))
        queue.enqueue(contexts[2], _recording_handler(log, "3"))
        await queue.join()

        starts = [entry for entry in log if entry[0] == "start"]
        ends = [entry for entry in log if entry[0] == "end"]
        start_times = [entry[2] for entry in starts]
        assert start_times == sorted(start_times)
        assert len(set(start_times)) == 3
        for previous_end, next_start in zip(ends, starts[1:]):
            assert previous_end[2] <= next_start[2]

        assert contexts[2].results == ["3"]
        assert queue.running is False

    async def test_unfinalized_context_gets_generic_error(self, make_context, caplog):
        queue = AdmissionQueue("render")
        ctx = make_context()

        async def handler(_ctx):
            raise ValueError("secret internals")

        job = queue.enqueue(ctx, handler)
        await queue.join()

        assert job.state is JobState.FAILED
        assert len(ctx.errors) == 1
        error = ctx.errors[0]
        assert isinstance(error, AdmissionJobError)
        assert "secret internals" not in error.message
        assert error.details["queue"] == "render"

        record = next(r for r in caplog.records if r.getMessage() == "Admission job failed")
        assert record.timestamp
        assert record.queue == "render"

    async def test_finalized_context_is_left_alone(self, make_context):
        queue = AdmissionQueue("test")
        ctx = make_context()

        async def handler(c):
            c.send("partial")
            raise RuntimeError("after send")

        queue.enqueue(ctx, handler)
        await queue.join()

        assert ctx.results == ["partial"]
        assert ctx.errors == []

    async def test_plain_dict_contexts_keep_draining(self):
        queue = AdmissionQueue("test")
        ran = []

        async def ok(ctx):
            ran.append(ctx["label"])

        async def broken(ctx):
            ran.append(ctx["label"])
            raise RuntimeError("boom")

        first = queue.enqueue({"label": "first"}, broken)
        second = queue.enqueue({"label": "second"}, ok)
        third = queue.enqueue({"label": "third"}, ok)
        await queue.join()

        assert ran == ["first", "second", "third"]
        assert first.state is JobState.FAILED
        assert second.state is third.state is JobState.COMPLETED
        assert queue.pending == 0
        assert queue.idle

    async def test_context_that_cannot_be_failed_is_logged(self, make_context, caplog):
        queue = AdmissionQueue("test")
        after = make_context()

        class ExplodingContext:
            finalized = False

            def fail(self, error):
                raise RuntimeError("channel closed")

        async def boom(_ctx):
            raise ValueError("handler")

        queue.enqueue(ExplodingContext(), boom)
        queue.enqueue(after, _recording_handler([], "after"))
        await queue.join()

        assert after.results == ["after"]
        assert any(
            r.getMessage() == "Admission job context could not be finalized" for r in caplog.records
        )

    async def test_status_totals(self, make_context):
        queue = AdmissionQueue("castle")

        async def ok(c):
            c.send(1)

        async def bad(c):
            raise RuntimeError("x")

        queue.enqueue(make_context(), ok)
        queue.enqueue(make_context(), bad)
        await queue.join()

        assert queue.get_status() == {
            "name": "castle",
            "running": False,
            "pending": 0,
            "enqueued": 2,
            "completed": 1,
            "failed": 1,
        }


class TestRun:
    async def test_run_returns_value(self):
        queue = AdmissionQueue("test")

        async def work():
            return {"png": "abc"}

        assert await queue.run(work) == {"png": "abc"}

    async def test_run_hides_unexpected_errors(self):
        queue = AdmissionQueue("test")

        async def work():
            raise KeyError("internal")

        with pytest.raises(AdmissionJobError):
            await queue.run(work)

    async def test_run_passes_through_declared_errors(self):
        queue = AdmissionQueue("test")

        async def work():
            raise NotFoundError("castle", 1, "No castles found for this player")

        with pytest.raises(NotFoundError, match="No castles found"):
            await queue.run(work, passthrough=(NotFoundError,))

    async def test_concurrent_runs_never_overlap(self):
        queue = AdmissionQueue("test")
        active = 0
        peak = 0

        async def work(value):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.005)
            active -= 1
            return value

        results = await asyncio.gather(*(queue.run(lambda v=v: work(v)) for v in range(5)))
        assert results == [0, 1, 2, 3, 4]
        assert peak == 1

    async def test_abandoned_caller_still_runs_job(self):
        queue = AdmissionQueue("test")
        done = asyncio.Event()

        async def slow():
            await asyncio.sleep(0.02)
            done.set()
            return 1

        caller = asyncio.ensure_future(queue.run(slow))
        await asyncio.sleep(0)
        caller.cancel()
        await queue.join()

        assert done.is_set()


class TestResultChannel:
    async def test_first_finalization_wins(self):
        channel = ResultChannel()
        channel.send(1)
        channel.fail(RuntimeError("late"))
        channel.send(2)

        assert channel.finalized
        assert await channel.wait() == 1

    async def test_unawaited_failure_is_not_reported_by_the_loop(self):
        loop = asyncio.get_running_loop()
        reports = []
        loop.set_exception_handler(lambda _loop, context: reports.append(context))
        try:
            channel = ResultChannel()
            channel.fail(RuntimeError("nobody is waiting"))
            await asyncio.sleep(0)
            del channel
            gc.collect()
        finally:
            loop.set_exception_handler(None)

        assert not any("never retrieved" in report.get("message", "") for report in reports)

    async def test_abandoned_failing_job_is_not_reported_by_the_loop(self):
        loop = asyncio.get_running_loop()
        reports = []
        loop.set_exception_handler(lambda _loop, context: reports.append(context))
        queue = AdmissionQueue("render")

        async def slow_failure():
            await asyncio.sleep(0.01)
            raise NotFoundError("asset", "tower")

        try:
            caller = asyncio.ensure_future(queue.run(slow_failure, passthrough=(NotFoundError,)))
            await asyncio.sleep(0)
            caller.cancel()
            await queue.join()
            with pytest.raises(asyncio.CancelledError):
                await caller
            del caller
            gc.collect()
        finally:
            loop.set_exception_handler(None)

        assert not any("never retrieved" in report.get("message", "") for report in reports)
