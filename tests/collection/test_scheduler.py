"""
Unit tests for the collection scheduler.

A fake clock replaces asyncio.sleep so offsets and intervals of hours can
be stepped through instantly and deterministically.
"""

import asyncio
import hashlib
from typing import List, Tuple

import pytest
from unittest.mock import AsyncMock

from kube9_operator.collection.scheduler import CollectionScheduler, compute_offset


async def settle(rounds: int = 10) -> None:
    """Let ready tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeClock:
    """Virtual time source; sleep() only returns when advance() passes its deadline."""

    def __init__(self):
        self.now = 0.0
        self.requested: List[float] = []
        self._waiters: List[Tuple[float, asyncio.Future]] = []

    async def sleep(self, seconds: float) -> None:
        self.requested.append(seconds)
        future = asyncio.get_running_loop().create_future()
        self._waiters.append((self.now + seconds, future))
        await future

    async def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            await settle()
            due = [w for w in self._waiters if w[0] <= target]
            if not due:
                break
            waiter = min(due, key=lambda w: w[0])
            self._waiters.remove(waiter)
            self.now = waiter[0]
            if not waiter[1].done():
                waiter[1].set_result(None)
        self.now = target
        await settle()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return CollectionScheduler(sleep_func=clock.sleep)


class TestComputeOffset:
    """Test deterministic jitter."""

    def test_matches_hash_prefix(self):
        """Test the offset is the first 8 hex digits of SHA-256 modulo the range."""
        digest = hashlib.sha256(b"cluster-metadata").hexdigest()

        assert compute_offset("cluster-metadata", 3600) == int(digest[:8], 16) % 3600

    def test_stable_and_in_range(self):
        """Test the offset is identical across calls and within range."""
        for task_type in ("cluster-metadata", "resource-inventory", "x"):
            first = compute_offset(task_type, 1800)
            assert first == compute_offset(task_type, 1800)
            assert 0 <= first < 1800

    @pytest.mark.parametrize("offset_range", [0, -5])
    def test_non_positive_range(self, offset_range):
        """Test a non-positive range means no offset."""
        assert compute_offset("cluster-metadata", offset_range) == 0


class TestRegister:
    """Test task registration."""

    def test_register_stores_task(self, scheduler):
        """Test registration records interval and offset."""
        task = scheduler.register("cluster-metadata", 86400, 3600, 3600, AsyncMock())

        assert task.interval_seconds == 86400
        assert task.offset_seconds == compute_offset("cluster-metadata", 3600)
        assert scheduler.get_task("cluster-metadata") is task
        assert list(scheduler.tasks) == ["cluster-metadata"]

    def test_interval_clamped_to_minimum(self, scheduler, caplog):
        """Test an interval below the minimum is raised to it with a warning."""
        task = scheduler.register("resource-inventory", 60, 1800, 1800, AsyncMock())

        assert task.interval_seconds == 1800
        assert "below minimum" in caplog.text

    def test_non_positive_interval_rejected(self, scheduler):
        """Test a zero effective interval is refused."""
        with pytest.raises(ValueError):
            scheduler.register("cluster-metadata", 0, 0, 10, AsyncMock())

    def test_register_replaces_same_type(self, scheduler, caplog):
        """Test re-registering a type replaces it."""
        first = AsyncMock()
        second = AsyncMock()
        scheduler.register("cluster-metadata", 100, 10, 10, first)
        scheduler.register("cluster-metadata", 200, 10, 10, second)

        assert len(scheduler.tasks) == 1
        assert scheduler.get_task("cluster-metadata").callback is second
        assert "already registered" in caplog.text


class TestTiming:
    """Test when callbacks fire."""

    @pytest.mark.asyncio
    async def test_first_run_at_offset_then_interval(self, scheduler, clock):
        """Test the first run waits for the offset, later runs for the interval."""
        callback = AsyncMock()
        task = scheduler.register("cluster-metadata", 100, 10, 50, callback)
        offset = task.offset_seconds

        scheduler.start()
        if offset:
            await clock.advance(offset - 0.5)
            assert callback.await_count == 0
            await clock.advance(0.5)
        else:
            await clock.advance(0)
        assert callback.await_count == 1

        await clock.advance(99)
        assert callback.await_count == 1

        await clock.advance(1)
        assert callback.await_count == 2

        await clock.advance(300)
        assert callback.await_count == 5

        assert clock.requested[:3] == [offset, 100, 100]
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_tasks_run_independently(self, scheduler, clock):
        """Test each type keeps its own cadence."""
        fast = AsyncMock()
        slow = AsyncMock()
        scheduler.register("fast", 10, 1, 0, fast)
        scheduler.register("slow", 25, 1, 0, slow)

        scheduler.start()
        await clock.advance(50)

        assert fast.await_count == 6
        assert slow.await_count == 3
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_callback_errors_do_not_stop_timer(self, scheduler, clock, caplog):
        """Test a failing callback is logged and the task keeps firing."""
        callback = AsyncMock(side_effect=RuntimeError("collector exploded"))
        scheduler.register("cluster-metadata", 10, 1, 0, callback)

        scheduler.start()
        await clock.advance(30)

        assert callback.await_count == 4
        assert "collector exploded" in caplog.text
        assert scheduler.is_running
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_overlapping_ticks(self, scheduler, clock):
        """Test a slow callback does not delay the next tick."""
        release = asyncio.Event()
        started = []

        async def slow_callback():
            started.append(clock.now)
            await release.wait()

        scheduler.register("cluster-metadata", 10, 1, 0, slow_callback)
        scheduler.start()
        await clock.advance(10)

        assert started == [0.0, 10.0]
        assert scheduler.in_flight == 2

        release.set()
        await scheduler.wait_idle()
        assert scheduler.in_flight == 0
        await scheduler.stop()


class TestLifecycle:
    """Test start and stop."""

    @pytest.mark.asyncio
    async def test_start_without_tasks(self, scheduler, caplog):
        """Test starting an empty scheduler is a logged no-op."""
        scheduler.start()

        assert not scheduler.is_running
        assert "No collection tasks registered" in caplog.text

    @pytest.mark.asyncio
    async def test_start_twice(self, scheduler, clock, caplog):
        """Test a second start() does not create duplicate timers."""
        callback = AsyncMock()
        scheduler.register("cluster-metadata", 10, 1, 0, callback)

        scheduler.start()
        scheduler.start()
        await clock.advance(0)

        assert callback.await_count == 1
        assert "already started" in caplog.text
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop_prevents_future_runs(self, scheduler, clock):
        """Test no callback fires after stop()."""
        callback = AsyncMock()
        scheduler.register("cluster-metadata", 10, 1, 0, callback)

        scheduler.start()
        await clock.advance(10)
        await scheduler.stop()
        await clock.advance(100)

        assert callback.await_count == 2
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_stop_before_first_tick(self, scheduler, clock):
        """Test stopping during the initial offset wait prevents any run."""
        callback = AsyncMock()
        scheduler.register("cluster-metadata", 86400, 3600, 3600, callback)
        offset = compute_offset("cluster-metadata", 3600)

        scheduler.start()
        await clock.advance(offset / 2)
        await scheduler.stop()
        await clock.advance(86400 * 2)

        callback.assert_not_awaited()
        assert clock.requested == [offset]

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, scheduler):
        """Test stop() on a stopped scheduler is harmless."""
        await scheduler.stop()
        await scheduler.stop()

        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_in_flight_callback_survives_stop(self, scheduler, clock):
        """Test stop() leaves running callbacks to finish."""
        release = asyncio.Event()
        finished = []

        async def callback():
            await release.wait()
            finished.append(True)

        scheduler.register("cluster-metadata", 10, 1, 0, callback)
        scheduler.start()
        await clock.advance(0)
        await scheduler.stop()

        release.set()
        await scheduler.wait_idle()

        assert finished == [True]

    @pytest.mark.asyncio
    async def test_register_while_running(self, scheduler, clock):
        """Test a task registered after start() gets its own timer."""
        first = AsyncMock()
        second = AsyncMock()
        scheduler.register("first", 10, 1, 0, first)
        scheduler.start()

        scheduler.register("second", 10, 1, 0, second)
        await clock.advance(10)

        assert first.await_count == 2
        assert second.await_count == 2
        await scheduler.stop()
