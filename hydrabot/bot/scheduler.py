"""
Periodic task scheduling.

Every task runs in its own asyncio task: an endless loop of sleep, then run
one cycle. A task with run_on_startup runs its first cycle before sleeping.
A cycle that raises is logged and the loop carries on. Each loop is strictly
sequential, so a task's cycles never overlap, and tasks don't wait on each
other.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from hydrabot.modules.base import Task, TaskContext


@dataclass
class TaskRunState:
    """Number of cycles a task has started."""

    n: int = 0


ContextFactory = Callable[[Task, int], TaskContext]


class TaskScheduler:
    """
    Runs loaded tasks forever on their own intervals.

    Args:
        tasks: Loaded tasks
        make_context: Builds the context passed to a task for cycle n
        logger: Logger for cycle failures
        sleep: Sleep function, replaceable in tests
    """

    def __init__(
        self,
        tasks: list[Task],
        make_context: ContextFactory,
        logger: logging.Logger,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.tasks = tasks
        self.make_context = make_context
        self.logger = logger
        self.sleep = sleep
        self.states: dict[str, TaskRunState] = {}
        self._running: list[asyncio.Task] = []

    def start(self) -> list[asyncio.Task]:
        """
        Start every task that hasn't been started yet.

        Safe to call again (e.g. after a reconnect): queued tasks are skipped.

        Returns:
            The asyncio tasks started by this call
        """
        started = []
        for task in self.tasks:
            if task.queued:
                continue
            task.queued = True
            self.states.setdefault(task.name, TaskRunState())
            runner = asyncio.create_task(self._run_forever(task), name=f"task-{task.name}")
            started.append(runner)
        self._running.extend(started)
        if started:
            self.logger.info(f"Scheduled {len(started)} task(s): {', '.join(t.get_name() for t in started)}")
        return started

    async def _run_forever(self, task: Task) -> None:
        interval = task.manifest.interval.total_seconds()
        if task.manifest.run_on_startup:
            await self._run_cycle(task)
        while True:
            await self.sleep(interval)
            await self._run_cycle(task)

    async def _run_cycle(self, task: Task) -> None:
        state = self.states[task.name]
        n = state.n
        state.n += 1
        try:
            await task.run(self.make_context(task, n))
        except Exception as e:
            self.logger.error(f"Task {task.name} failed in cycle {n}: {e}", exc_info=e)

    async def stop(self) -> None:
        """Cancel all running task loops and wait for them to finish."""
        running, self._running = self._running, []
        for runner in running:
            runner.cancel()
        await asyncio.gather(*running, return_exceptions=True)
        for task in self.tasks:
            task.queued = False
