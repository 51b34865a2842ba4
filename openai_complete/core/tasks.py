# openai_complete/core/tasks.py
# SPDX-License-Identifier: Apache-2.0

"""
Completion task model.

A `CompletionTask` tracks one invocation of the `complete` tool from
creation to a terminal state:

    PENDING -> PROCESSING -> COMPLETE
                          -> ERROR

No transition leaves COMPLETE or ERROR. `transition()` enforces this and
returns False instead of overwriting a terminal task, which is how late
settlements (the loser of the timeout race, an upstream response that
arrives after a cancel) are discarded.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from openai_complete.llm.completion_base import CompletionResult


class CompletionStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (CompletionStatus.COMPLETE, CompletionStatus.ERROR)


_ALLOWED_TRANSITIONS = {
    CompletionStatus.PENDING: {CompletionStatus.PROCESSING, CompletionStatus.ERROR},
    CompletionStatus.PROCESSING: {CompletionStatus.COMPLETE, CompletionStatus.ERROR},
    CompletionStatus.COMPLETE: set(),
    CompletionStatus.ERROR: set(),
}


class CancellationHandle:
    """
    Cancellation handle owned by a single task.

    The outbound call runs as an asyncio task bound to this handle;
    `cancel()` marks the handle aborted and cancels the bound task. Calling
    `cancel()` before a task is bound still marks the handle aborted, and
    the task is cancelled as soon as it is bound.
    """

    def __init__(self) -> None:
        self._aborted = False
        self._reason: Optional[str] = None
        self._bound: Optional[asyncio.Future] = None

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def bind(self, future: asyncio.Future) -> None:
        self._bound = future
        if self._aborted and not future.done():
            future.cancel()

    def cancel(self, reason: str = "cancelled") -> bool:
        """Abort the bound call. Returns False if the handle was already aborted."""
        if self._aborted:
            return False
        self._aborted = True
        self._reason = reason
        if self._bound is not None and not self._bound.done():
            self._bound.cancel()
        return True


@dataclass
class CompletionTask:
    """One tracked invocation of the completion tool."""

    task_id: str
    created_at: float
    timeout_at: float
    status: CompletionStatus = CompletionStatus.PENDING
    result: Optional[CompletionResult] = None
    error: Optional[str] = None
    progress: int = 0
    finished_at: Optional[float] = None
    cancel_handle: CancellationHandle = field(default_factory=CancellationHandle, repr=False)
    status_history: List[CompletionStatus] = field(default_factory=list)
    # monotonic clock; created_at and timeout_at are wall-clock for reporting
    deadline: Optional[float] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.status_history:
            self.status_history.append(self.status)
        if self.deadline is None:
            self.deadline = time.monotonic() + (self.timeout_at - self.created_at)

    def remaining(self) -> float:
        """Seconds left before the deadline, never negative."""
        return max(0.0, self.deadline - time.monotonic())

    @classmethod
    def new(cls, task_id: str, timeout: float, now: Optional[float] = None) -> "CompletionTask":
        created = time.time() if now is None else now
        return cls(task_id=task_id, created_at=created, timeout_at=created + timeout)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def transition(
        self,
        status: CompletionStatus,
        *,
        result: Optional[CompletionResult] = None,
        error: Optional[str] = None,
    ) -> bool:
        """
        Move to `status` if the state machine allows it.

        Returns False (and leaves the task untouched) otherwise.
        """
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            return False

        self.status = status
        self.status_history.append(status)

        if status is CompletionStatus.COMPLETE:
            self.result = result
            self.progress = 100
        elif status is CompletionStatus.ERROR:
            self.error = error or "Unknown error"

        if status.is_terminal:
            self.finished_at = time.time()
        return True

    def snapshot(self) -> Dict[str, Any]:
        """JSON-safe view of the task, without the cancellation handle."""
        return {
            "task_id": self.task_id,
            "status": self.status.value,
            "result": self.result.to_dict() if self.result is not None else None,
            "error": self.error,
            "created_at": self.created_at,
            "timeout_at": self.timeout_at,
            "finished_at": self.finished_at,
            "progress": self.progress,
        }
