"""Render schedulers.

The compositor never renders inline; it hands a task to a scheduler. Tasks
re-read current state when they run, so delaying or batching them is always
safe.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Protocol

RenderTask = Callable[[], None]


class RenderScheduler(Protocol):
    def schedule(self, task: RenderTask) -> None: ...


class ImmediateRenderScheduler:
    """Runs every task synchronously on :meth:`schedule`."""

    def schedule(self, task: RenderTask) -> None:
        task()


class ManualRenderScheduler:
    """Queues tasks until :meth:`flush` is called.

    Useful in tests, and for hosts that render once per tick of their own
    loop.
    """

    def __init__(self) -> None:
        self._pending: list[RenderTask] = []

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def schedule(self, task: RenderTask) -> None:
        self._pending.append(task)

    def flush(self) -> int:
        """Run the queued tasks in order; returns how many ran.

        Tasks scheduled while flushing wait for the next flush.
        """
        tasks, self._pending = self._pending, []
        for task in tasks:
            task()
        return len(tasks)


class AsyncioRenderScheduler:
    """Runs tasks on the next event-loop iteration via ``call_soon``.

    Outside a running loop the task runs synchronously instead.
    """

    def schedule(self, task: RenderTask) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            task()
            return
        loop.call_soon(task)
