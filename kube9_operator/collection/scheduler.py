"""
Collection scheduler with deterministic jitter.

Each registered task first fires after a per-type offset derived from a
SHA-256 hash of its type, then repeats at its interval. Offsets are stable
across restarts, so a fleet of operators spreads its collections without any
coordination.
"""

import asyncio
import hashlib
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Mapping, Optional, Set

logger = logging.getLogger(__name__)

CollectionCallback = Callable[[], Awaitable[None]]


@dataclass
class ScheduledTask:
    """Registration record for one collection type."""

    type: str
    interval_seconds: float
    min_interval_seconds: float
    offset_range_seconds: int
    offset_seconds: int
    callback: CollectionCallback


def compute_offset(task_type: str, offset_range_seconds: int) -> int:
    """
    Deterministic start offset for a task type, in ``[0, offset_range_seconds)``.

    Uses the first 8 hex digits of SHA-256(type) so the value is identical in
    every process. A non-positive range means no offset.
    """
    if offset_range_seconds <= 0:
        return 0
    digest = hashlib.sha256(task_type.encode("utf-8")).hexdigest()
    return int(digest[:8], 16) % int(offset_range_seconds)


class CollectionScheduler:
    """
    Runs registered collection callbacks on jittered, repeating timers.

    Every tick dispatches its callback as a separate asyncio task, so a slow
    callback never delays the timer and ticks of the same type may overlap.
    Callback errors are logged and swallowed; they never stop the timer.
    """

    def __init__(self, sleep_func: Callable[[float], Awaitable[None]] = asyncio.sleep):
        """
        Initialize scheduler.

        Args:
            sleep_func: Coroutine used for offset and interval waits
        """
        self._sleep = sleep_func
        self._tasks: Dict[str, ScheduledTask] = {}
        self._timers: Dict[str, asyncio.Task] = {}
        self._in_flight: Set[asyncio.Task] = set()
        self._running = False

    def register(
        self,
        task_type: str,
        interval_seconds: float,
        min_interval_seconds: float,
        offset_range_seconds: int,
        callback: CollectionCallback,
    ) -> ScheduledTask:
        """
        Register a collection task, replacing any task with the same type.

        An interval below the minimum is clamped up to the minimum.

        Args:
            task_type: Unique collection type identifier
            interval_seconds: Requested interval between runs
            min_interval_seconds: Smallest interval allowed for this type
            offset_range_seconds: Range of the deterministic start offset
            callback: Zero-argument coroutine function run on every tick

        Returns:
            The stored task registration
        """
        effective_interval = interval_seconds
        if interval_seconds < min_interval_seconds:
            logger.warning(
                f"Collection interval {interval_seconds}s for type '{task_type}' is below "
                f"minimum {min_interval_seconds}s, using minimum"
            )
            effective_interval = min_interval_seconds

        if effective_interval <= 0:
            raise ValueError(
                f"Collection interval for '{task_type}' must be positive, got {effective_interval}"
            )

        if task_type in self._tasks:
            logger.warning(f"Collection task '{task_type}' already registered, replacing it")

        task = ScheduledTask(
            type=task_type,
            interval_seconds=effective_interval,
            min_interval_seconds=min_interval_seconds,
            offset_range_seconds=offset_range_seconds,
            offset_seconds=compute_offset(task_type, offset_range_seconds),
            callback=callback,
        )
        self._tasks[task_type] = task

        if self._running:
            previous = self._timers.pop(task_type, None)
            if previous is not None:
                previous.cancel()
            self._timers[task_type] = asyncio.create_task(
                self._run_timer(task), name=f"collection-timer-{task_type}"
            )

        logger.info(
            f"Registered collection task '{task_type}' "
            f"(interval={effective_interval}s, offset={task.offset_seconds}s)"
        )
        return task

    def start(self) -> None:
        """Start a timer for every registered task. Must run inside an event loop."""
        if self._running:
            logger.warning("Collection scheduler already started")
            return

        if not self._tasks:
            logger.warning("No collection tasks registered, scheduler not started")
            return

        self._running = True
        for task in self._tasks.values():
            self._timers[task.type] = asyncio.create_task(
                self._run_timer(task), name=f"collection-timer-{task.type}"
            )

        logger.info(f"Started collection scheduler with {len(self._tasks)} tasks")

    async def stop(self) -> None:
        """
        Cancel all pending timers.

        Callback invocations already in flight are left to finish.
        """
        if not self._running:
            return

        timers = list(self._timers.values())
        self._timers.clear()
        self._running = False

        for timer in timers:
            timer.cancel()
        for timer in timers:
            try:
                await timer
            except asyncio.CancelledError:
                pass

        logger.info("Stopped collection scheduler")

    async def _run_timer(self, task: ScheduledTask) -> None:
        """Wait for the task's offset, fire, then fire again every interval."""
        logger.debug(
            f"Scheduling '{task.type}': first run in {task.offset_seconds}s, "
            f"then every {task.interval_seconds}s"
        )
        await self._sleep(task.offset_seconds)
        while True:
            self._dispatch(task)
            await self._sleep(task.interval_seconds)

    def _dispatch(self, task: ScheduledTask) -> None:
        run = asyncio.create_task(self._execute(task), name=f"collection-{task.type}")
        self._in_flight.add(run)
        run.add_done_callback(self._in_flight.discard)

    async def _execute(self, task: ScheduledTask) -> None:
        logger.debug(f"Executing collection task '{task.type}'")
        try:
            await task.callback()
        except Exception as e:
            logger.error(f"Collection task '{task.type}' failed: {e}", exc_info=True)

    async def wait_idle(self) -> None:
        """Wait for every in-flight callback invocation to finish."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    def get_task(self, task_type: str) -> Optional[ScheduledTask]:
        return self._tasks.get(task_type)

    @property
    def tasks(self) -> Mapping[str, ScheduledTask]:
        return dict(self._tasks)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    @property
    def is_running(self) -> bool:
        return self._running
