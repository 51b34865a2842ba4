# openai_complete/llm/completion_base.py
# SPDX-License-Identifier: Apache-2.0

"""
Completion data model and error union.

Request side
------------
- `CompletionRequest`: caller-supplied tool arguments (prompt plus optional
  sampling parameters), as received over MCP.
- `CompletionParams`: the fully resolved outbound request, with process-wide
  defaults substituted for anything the caller omitted.

Response side
-------------
- `CompletionResult`: normalized success payload.
- `TokenUsage`: optional upstream token counters.

Errors
------
Every runtime failure of a completion task is a `CompletionError` tagged
with a `CompletionErrorKind`. Callers branch on `err.kind` rather than on
exception subclasses, so the set of outcomes is closed and explicit:

    TIMEOUT    the outbound call did not settle before the deadline
    CANCELLED  the task's cancellation handle was triggered
    UPSTREAM   the completion API rejected the call
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Mapping, NotRequired, Optional, Protocol, TypedDict

from openai_complete.core.config import GenerationDefaults

OPTIONAL_NUMERIC_PARAMS = (
    "max_tokens",
    "temperature",
    "top_p",
    "frequency_penalty",
    "presence_penalty",
)


class CompletionRequest(TypedDict):
    """Arguments of the `complete` tool."""

    prompt: str
    max_tokens: NotRequired[int]
    temperature: NotRequired[float]
    top_p: NotRequired[float]
    frequency_penalty: NotRequired[float]
    presence_penalty: NotRequired[float]


@dataclass(frozen=True)
class CompletionParams:
    """Resolved parameters for one outbound completion call."""

    model: str
    prompt: str
    max_tokens: int
    temperature: float
    top_p: float
    frequency_penalty: float
    presence_penalty: float

    @classmethod
    def from_request(
        cls,
        request: Mapping[str, Any],
        *,
        model: str,
        defaults: GenerationDefaults,
    ) -> "CompletionParams":
        """Fill every parameter absent from `request` with its default."""
        resolved = defaults.as_dict()
        for name in OPTIONAL_NUMERIC_PARAMS:
            if name in request:
                resolved[name] = request[name]
        return cls(model=model, prompt=request["prompt"], **resolved)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass(frozen=True)
class CompletionResult:
    """Normalized completion payload returned to the tool adapter."""

    text: str
    model: str
    finish_reason: Optional[str] = None
    usage: Optional[TokenUsage] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "model": self.model,
            "finish_reason": self.finish_reason,
            "usage": asdict(self.usage) if self.usage is not None else None,
        }


class CompletionBackend(Protocol):
    """
    Outbound completion API.

    Implementations perform a single attempt and must be cancellable: the
    orchestrator runs `create_completion` as an asyncio task and cancels it
    to abort the in-flight request.
    """

    async def create_completion(self, params: CompletionParams) -> Any:
        """
        Return an object exposing `choices[0].text`, `choices[0].finish_reason`
        and optionally `usage.{prompt_tokens,completion_tokens,total_tokens}`.
        """
        ...


# =============================================================================
# Error union
# =============================================================================


class CompletionErrorKind(Enum):
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    UPSTREAM = "upstream"


_DEFAULT_CODES = {
    CompletionErrorKind.TIMEOUT: "COMPLETION_TIMEOUT",
    CompletionErrorKind.CANCELLED: "COMPLETION_CANCELLED",
    CompletionErrorKind.UPSTREAM: "UPSTREAM_ERROR",
}


class CompletionError(Exception):
    """
    Failure of a completion task.

    Attributes:
        kind:
            Discriminant; one of CompletionErrorKind.
        message:
            Human-readable description, safe for logs and clients.
        code:
            Upper-snake-case machine code. Defaults per kind; upstream
            failures carry a finer classification (AUTH_ERROR, RATE_LIMITED, ...).
        task_id:
            Task the failure belongs to, when known.
        details:
            Additional JSON-safe context (never secrets).
    """

    def __init__(
        self,
        kind: CompletionErrorKind,
        message: str,
        *,
        code: Optional[str] = None,
        task_id: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.code = code or _DEFAULT_CODES[kind]
        self.task_id = task_id
        self.details = dict(details or {})

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"CompletionError(kind={self.kind.value}, code={self.code}, message={self.message!r})"

    @classmethod
    def timeout(
        cls,
        message: str = "OpenAI API request timed out",
        **kwargs: Any,
    ) -> "CompletionError":
        return cls(CompletionErrorKind.TIMEOUT, message, **kwargs)

    @classmethod
    def cancelled(
        cls,
        message: str = "OpenAI API request was cancelled",
        **kwargs: Any,
    ) -> "CompletionError":
        return cls(CompletionErrorKind.CANCELLED, message, **kwargs)

    @classmethod
    def upstream(cls, message: str, **kwargs: Any) -> "CompletionError":
        return cls(CompletionErrorKind.UPSTREAM, message, **kwargs)
