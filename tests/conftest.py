# SPDX-License-Identifier: Apache-2.0
"""
Shared fixtures for the OpenAI Complete MCP test suite.

The outbound completion API is replaced by `FakeCompletionBackend`, whose
latency and failure mode are set per test. Timing-sensitive tests use
sub-second timeouts so the whole suite stays fast.
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any, Iterator, List, Optional

import pytest

from openai_complete.core.config import ServerConfig
from openai_complete.core.task_registry import TaskRegistry
from openai_complete.llm.completion_base import CompletionParams
from openai_complete.mcp.completion_service import CompletionService
from openai_complete.mcp.server import CompleteToolAdapter

TEST_MODEL = "test-davinci"
SHORT_TIMEOUT_S = 0.05
SLOW_CALL_S = 5.0


def make_response(
    text: Optional[str] = "generated text",
    *,
    finish_reason: Optional[str] = "stop",
    usage: Optional[tuple] = (5, 7, 12),
) -> SimpleNamespace:
    """Build an object shaped like an `openai` Completion response."""
    choice = SimpleNamespace(text=text, finish_reason=finish_reason, index=0)
    response = SimpleNamespace(choices=[choice], usage=None)
    if usage is not None:
        response.usage = SimpleNamespace(
            prompt_tokens=usage[0],
            completion_tokens=usage[1],
            total_tokens=usage[2],
        )
    return response


class FakeCompletionBackend:
    """
    In-memory CompletionBackend.

    Records every CompletionParams it receives, sleeps for `delay` seconds,
    then raises `error` if set, else returns `response`.
    """

    def __init__(
        self,
        *,
        response: Any = None,
        delay: float = 0.0,
        error: Optional[BaseException] = None,
    ) -> None:
        self.response = response if response is not None else make_response()
        self.delay = delay
        self.error = error
        self.calls: List[CompletionParams] = []
        self.cancelled = False
        self.started = asyncio.Event()

    async def create_completion(self, params: CompletionParams) -> Any:
        self.calls.append(params)
        self.started.set()
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def backend() -> FakeCompletionBackend:
    return FakeCompletionBackend()


@pytest.fixture
def registry() -> Iterator[TaskRegistry]:
    reg = TaskRegistry()
    yield reg
    reg.close()


@pytest.fixture
def config() -> ServerConfig:
    return ServerConfig(api_key="sk-test", model=TEST_MODEL, request_timeout=1.0)


def make_service(
    backend: Any,
    registry: Optional[TaskRegistry] = None,
    *,
    request_timeout: float = 1.0,
    grace_period: Optional[float] = None,
    task_id: Optional[str] = None,
) -> CompletionService:
    return CompletionService(
        backend,
        model=TEST_MODEL,
        registry=registry,
        request_timeout=request_timeout,
        grace_period=grace_period,
        id_factory=(lambda: task_id) if task_id else None,
    )


@pytest.fixture
def service(backend: FakeCompletionBackend, registry: TaskRegistry) -> CompletionService:
    return make_service(backend, registry)


@pytest.fixture
def tool_adapter(service: CompletionService) -> CompleteToolAdapter:
    return CompleteToolAdapter(service)
