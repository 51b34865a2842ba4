# openai_complete/mcp/completion_service.py
# SPDX-License-Identifier: Apache-2.0

"""
Completion orchestration for the MCP `complete` tool.

`CompletionService` drives one task end to end:

1. Register a PENDING task (fresh id, deadline = now + request_timeout).
2. Move to PROCESSING and start the outbound call as an asyncio task bound
   to the task's cancellation handle.
3. Race the call against the deadline with `asyncio.wait`:
   - call settles with a response  -> COMPLETE, progress 100
   - deadline passes first         -> ERROR "Completion timed out", the
                                      outbound call is cancelled, TIMEOUT raised
   - call fails                    -> ERROR with the failure message, then
                                      TIMEOUT/CANCELLED re-raised as is,
                                      CANCELLED if the handle was aborted,
                                      UPSTREAM otherwise
4. Schedule removal from the registry after the grace period, whatever
   the outcome.

Late settlements
----------------
A task that is already terminal is never overwritten: `CompletionTask.transition`
refuses to leave COMPLETE or ERROR. A response that arrives after the task was
cancelled is discarded and the caller gets CANCELLED.

Concurrency
-----------
Assumes a single asyncio event loop. Every mutation of a task happens on
that loop, so no locking is needed.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Any, Callable, Mapping, Optional

from openai_complete.core.config import GenerationDefaults, ServerConfig
from openai_complete.core.error_context import attach_context
from openai_complete.core.task_registry import TaskRegistry
from openai_complete.core.tasks import CompletionStatus, CompletionTask
from openai_complete.llm.completion_base import (
    CompletionBackend,
    CompletionError,
    CompletionErrorKind,
    CompletionParams,
    CompletionResult,
    TokenUsage,
)
from openai_complete.llm.openai_adapter import UPSTREAM_ERROR_PREFIX, UPSTREAM_MESSAGE_KEY

logger = logging.getLogger(__name__)

TIMED_OUT_MESSAGE = "Completion timed out"
CANCELLED_BY_USER_MESSAGE = "Task cancelled by user"
REQUEST_CANCELLED_MESSAGE = "Request cancelled"


def build_completion_result(response: Any, model: str) -> CompletionResult:
    """
    Normalize an upstream completion response.

    Attribute access is used throughout so both `openai` response models and
    simple test doubles work.
    """
    choices = getattr(response, "choices", None)
    if not choices:
        raise CompletionError.upstream(
            f"{UPSTREAM_ERROR_PREFIX}: response contained no choices",
            code="UNAVAILABLE",
            details={UPSTREAM_MESSAGE_KEY: "response contained no choices"},
        )

    choice = choices[0]
    text = getattr(choice, "text", None) or ""
    finish_reason = getattr(choice, "finish_reason", None) or None

    usage: Optional[TokenUsage] = None
    raw_usage = getattr(response, "usage", None)
    if raw_usage is not None:
        usage = TokenUsage(
            prompt_tokens=int(getattr(raw_usage, "prompt_tokens", 0) or 0),
            completion_tokens=int(getattr(raw_usage, "completion_tokens", 0) or 0),
            total_tokens=int(getattr(raw_usage, "total_tokens", 0) or 0),
        )

    return CompletionResult(
        text=text,
        model=model,
        finish_reason=finish_reason,
        usage=usage,
    )


class CompletionService:
    """
    Task-tracking completion orchestrator.

    Args:
        backend:
            Outbound completion API (see CompletionBackend).
        model:
            Model id sent with every request; not caller-selectable.
        registry:
            Task registry to record tasks in. A private one is created when
            omitted.
        defaults:
            Values substituted for omitted generation parameters.
        request_timeout:
            Seconds before an outbound call loses the race.
        grace_period:
            Seconds a finished task stays in the registry. Defaults to
            `request_timeout`.
        id_factory:
            Task id generator; uuid4 strings by default.
    """

    def __init__(
        self,
        backend: CompletionBackend,
        *,
        model: str,
        registry: Optional[TaskRegistry] = None,
        defaults: Optional[GenerationDefaults] = None,
        request_timeout: float = 60.0,
        grace_period: Optional[float] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        if request_timeout <= 0:
            raise ValueError("request_timeout must be positive")

        self._backend = backend
        self._model = model
        self._registry = registry if registry is not None else TaskRegistry()
        self._defaults = defaults or GenerationDefaults()
        self._timeout = float(request_timeout)
        self._grace_period = self._timeout if grace_period is None else float(grace_period)
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))

    @classmethod
    def from_config(
        cls,
        config: ServerConfig,
        backend: CompletionBackend,
        *,
        registry: Optional[TaskRegistry] = None,
    ) -> "CompletionService":
        return cls(
            backend,
            model=config.model,
            registry=registry,
            defaults=config.defaults,
            request_timeout=config.request_timeout,
            grace_period=config.grace_period,
        )

    @property
    def registry(self) -> TaskRegistry:
        return self._registry

    @property
    def model(self) -> str:
        return self._model

    @property
    def request_timeout(self) -> float:
        return self._timeout

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def complete(
        self,
        request: Mapping[str, Any],
        *,
        task_id: Optional[str] = None,
    ) -> CompletionResult:
        """
        Run one completion task.

        `request` must already have passed `is_valid_completion_args`.

        Raises:
            CompletionError: kind TIMEOUT, CANCELLED or UPSTREAM.
            asyncio.CancelledError: if the awaiting coroutine itself is cancelled.
        """
        params = CompletionParams.from_request(
            request, model=self._model, defaults=self._defaults
        )
        task_id = task_id or self._id_factory()
        task = self._registry.create(task_id, CompletionTask.new(task_id, self._timeout))
        start_time = time.monotonic()

        try:
            task.transition(CompletionStatus.PROCESSING)
            logger.debug(
                "Starting completion request for task %s (model=%s, max_tokens=%s)",
                task_id,
                params.model,
                params.max_tokens,
            )

            response = await self._race(task, params)
            result = build_completion_result(response, self._model)

            if not task.transition(CompletionStatus.COMPLETE, result=result):
                # Cancelled while the response was being delivered.
                raise CompletionError.cancelled(task_id=task_id)

            logger.debug(
                "Task %s completed successfully in %.3fs",
                task_id,
                time.monotonic() - start_time,
            )
            return result

        except asyncio.CancelledError:
            task.cancel_handle.cancel(REQUEST_CANCELLED_MESSAGE)
            task.transition(CompletionStatus.ERROR, error=REQUEST_CANCELLED_MESSAGE)
            logger.info("Task %s abandoned: request cancelled by caller", task_id)
            raise

        except Exception as exc:  # noqa: BLE001
            err = self._handle_failure(task, exc)
            attach_context(
                err,
                framework="mcp",
                operation="complete",
                task_id=task_id,
                model=self._model,
                processing_time=time.monotonic() - start_time,
            )
            if err is exc:
                raise
            raise err from exc

        finally:
            self._registry.schedule_expiry(task_id, self._grace_period)

    def get_task(self, task_id: str) -> Optional[CompletionTask]:
        return self._registry.get(task_id)

    def cancel_task(self, task_id: str) -> bool:
        """
        Cancel a pending or processing task.

        Returns True if the task was cancelled by this call; False if it is
        unknown, expired or already terminal.
        """
        task = self._registry.get(task_id)
        if task is None or task.is_terminal:
            return False

        task.cancel_handle.cancel(CANCELLED_BY_USER_MESSAGE)
        task.transition(CompletionStatus.ERROR, error=CANCELLED_BY_USER_MESSAGE)
        logger.info("Task %s cancelled", task_id)
        return True

    def shutdown(self) -> None:
        """Cancel every in-flight task and clear the registry."""
        cancelled = 0
        for task_id in self._registry:
            task = self._registry.get(task_id)
            if task is not None and not task.is_terminal:
                task.cancel_handle.cancel("shutdown")
                task.transition(CompletionStatus.ERROR, error="Server shutting down")
                cancelled += 1
        self._registry.close()
        if cancelled:
            logger.warning("Shutdown cancelled %d in-flight task(s)", cancelled)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _race(self, task: CompletionTask, params: CompletionParams) -> Any:
        """Return the upstream response, or raise whichever failure wins."""
        call = asyncio.ensure_future(self._backend.create_completion(params))
        task.cancel_handle.bind(call)

        try:
            done, _ = await asyncio.wait({call}, timeout=task.remaining())
        except asyncio.CancelledError:
            call.cancel()
            raise

        if not done:
            task.transition(CompletionStatus.ERROR, error=TIMED_OUT_MESSAGE)
            task.cancel_handle.cancel("timeout")
            logger.warning(
                "Task %s timed out after %.1fs", task.task_id, self._timeout
            )
            raise CompletionError.timeout(task_id=task.task_id)

        if call.cancelled():
            raise CompletionError.cancelled(task_id=task.task_id)
        return call.result()

    def _handle_failure(self, task: CompletionTask, exc: Exception) -> CompletionError:
        message = str(exc) or type(exc).__name__
        if isinstance(exc, CompletionError):
            # task.error keeps the provider text, without the protocol prefix
            message = exc.details.get(UPSTREAM_MESSAGE_KEY, message)
        task.transition(CompletionStatus.ERROR, error=message)

        if isinstance(exc, CompletionError) and exc.kind in (
            CompletionErrorKind.TIMEOUT,
            CompletionErrorKind.CANCELLED,
        ):
            return exc

        if task.cancel_handle.aborted:
            return CompletionError.cancelled(task_id=task.task_id)

        logger.warning("Task %s failed: %s", task.task_id, message)
        if isinstance(exc, CompletionError):
            exc.task_id = task.task_id
            return exc
        return CompletionError.upstream(
            f"{UPSTREAM_ERROR_PREFIX}: {message}",
            task_id=task.task_id,
            details={"error_type": type(exc).__name__, UPSTREAM_MESSAGE_KEY: message},
        )
