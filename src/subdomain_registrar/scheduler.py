"""
Interval scheduler for the registrar's background cycles.

The batch engine and the confirmation tracker each run at their own fixed
period. Both take the queue lock, so they never overlap with each other or
with an admission's locked phase.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .audit_logger import AuditLogger


COMPONENT = "Scheduler"


@dataclass
class ScheduledTask:
    """A callback run every ``interval_seconds``."""

    name: str
    interval_seconds: float
    callback: Callable[[], Awaitable[object]]
    next_run: float = 0.0
    last_error: Optional[str] = None
    runs: int = 0
    enabled: bool = True


class IntervalScheduler:
    """Runs named async callbacks at fixed periods."""

    def __init__(
        self,
        logger: Optional[AuditLogger] = None,
        tick_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            logger: Receives task failures
            tick_seconds: How often the loop looks for due tasks
            clock: Monotonic time source
        """
        self._logger = logger
        self._tick_seconds = tick_seconds
        self._clock = clock
        self._tasks: dict[str, ScheduledTask] = {}
        self._running = False

    def schedule(
        self,
        name: str,
        interval_seconds: float,
        callback: Callable[[], Awaitable[object]],
        run_immediately: bool = False,
    ) -> ScheduledTask:
        """
        Schedule a periodic task.

        Raises:
            ValueError: If the name is taken or the interval is not positive
        """
        if name in self._tasks:
            raise ValueError(f"Task '{name}' already exists")
        if interval_seconds <= 0:
            raise ValueError(f"Interval for '{name}' must be positive")

        first_run = self._clock() + (0.0 if run_immediately else interval_seconds)
        task = ScheduledTask(
            name=name,
            interval_seconds=interval_seconds,
            callback=callback,
            next_run=first_run,
        )
        self._tasks[name] = task
        return task

    def unschedule(self, name: str) -> bool:
        return self._tasks.pop(name, None) is not None

    def get_task(self, name: str) -> Optional[ScheduledTask]:
        return self._tasks.get(name)

    def list_tasks(self) -> list[ScheduledTask]:
        return list(self._tasks.values())

    def enable_task(self, name: str) -> bool:
        if name in self._tasks:
            self._tasks[name].enabled = True
            return True
        return False

    def disable_task(self, name: str) -> bool:
        if name in self._tasks:
            self._tasks[name].enabled = False
            return True
        return False

    async def run_due_tasks(self) -> list[str]:
        """Run every enabled task whose time has come; returns their names."""
        now = self._clock()
        ran = []
        for task in list(self._tasks.values()):
            if not task.enabled or task.next_run > now:
                continue
            task.next_run = now + task.interval_seconds
            task.runs += 1
            ran.append(task.name)
            try:
                await task.callback()
                task.last_error = None
            except Exception as e:
                # a failed cycle is retried at the next period
                task.last_error = str(e)
                if self._logger:
                    self._logger.log_error(COMPONENT, f"Task '{task.name}' failed", e, {
                        "msg_type": "task_failed",
                        "task": task.name,
                    })
        return ran

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """
        Run the scheduler loop until ``stop()`` is called or ``stop_event`` is set.
        """
        self._running = True

        while self._running:
            await self.run_due_tasks()

            if stop_event is not None and stop_event.is_set():
                break

            if stop_event is not None:
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self._tick_seconds)
                except asyncio.TimeoutError:
                    pass
            else:
                await asyncio.sleep(self._tick_seconds)

        self._running = False

    def stop(self) -> None:
        self._running = False

    def is_running(self) -> bool:
        return self._running
