# openai_complete/core/task_registry.py
# SPDX-License-Identifier: Apache-2.0

"""
In-memory task registry.

Maps task id -> CompletionTask for the lifetime of the process. Finished
tasks are kept for a grace period so late status queries still see the
outcome, then removed by a timer scheduled on the running event loop.

Notes
-----
- Assumes a single asyncio event loop; no explicit locking.
- Expiry is cooperative: a timer may fire slightly after the grace period,
  never before it.
- Each task id has at most one pending expiry timer; rescheduling replaces
  the previous one.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Iterator, Optional

from openai_complete.core.tasks import CompletionTask

logger = logging.getLogger(__name__)


class TaskRegistryError(KeyError):
    """Raised for registry misuse (duplicate id, update of an unknown id)."""


class TaskRegistry:
    def __init__(self) -> None:
        self._tasks: Dict[str, CompletionTask] = {}
        self._expiry_timers: Dict[str, asyncio.TimerHandle] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._tasks))

    def create(self, task_id: str, task: CompletionTask) -> CompletionTask:
        if task_id in self._tasks:
            raise TaskRegistryError(f"task {task_id!r} already registered")
        self._tasks[task_id] = task
        return task

    def get(self, task_id: str) -> Optional[CompletionTask]:
        return self._tasks.get(task_id)

    def update(
        self,
        task_id: str,
        mutator: Callable[[CompletionTask], None],
    ) -> CompletionTask:
        """Apply `mutator` to the registered task and return it."""
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskRegistryError(f"task {task_id!r} is not registered")
        mutator(task)
        return task

    def expire(self, task_id: str) -> bool:
        """Remove a task. Returns False if it was already gone."""
        timer = self._expiry_timers.pop(task_id, None)
        if timer is not None:
            timer.cancel()
        removed = self._tasks.pop(task_id, None) is not None
        if removed:
            logger.debug("Expired task %s (%d remaining)", task_id, len(self._tasks))
        return removed

    def schedule_expiry(self, task_id: str, delay: float) -> None:
        """Remove `task_id` after `delay` seconds. Must be called from the event loop."""
        loop = asyncio.get_running_loop()
        previous = self._expiry_timers.pop(task_id, None)
        if previous is not None:
            previous.cancel()
        self._expiry_timers[task_id] = loop.call_later(
            max(0.0, delay), self._on_expiry, task_id
        )

    def _on_expiry(self, task_id: str) -> None:
        self._expiry_timers.pop(task_id, None)
        self.expire(task_id)

    def close(self) -> None:
        """Cancel pending expiry timers and drop every task."""
        for timer in self._expiry_timers.values():
            timer.cancel()
        self._expiry_timers.clear()
        self._tasks.clear()
