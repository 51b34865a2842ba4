# openai_complete/llm/openai_adapter.py
# SPDX-License-Identifier: Apache-2.0
"""
OpenAI completion backend.

Thin wrapper around the official `openai` Python client (v1+ async API via
`AsyncOpenAI`) targeting the legacy text Completions endpoint
(`client.completions.create`).

Goals
-----
- One attempt per call: the client's built-in retries are disabled.
- Cancellation by asyncio task cancellation; the HTTP request is aborted
  when the awaiting task is cancelled.
- Provider errors are normalized into `CompletionError(kind=UPSTREAM)`
  with a machine code, so the tool adapter never needs vendor-specific
  conditionals.

Usage
-----
    from openai_complete.llm.openai_adapter import OpenAICompletionBackend

    backend = OpenAICompletionBackend(api_key="sk-...")
    response = await backend.create_completion(params)
    print(response.choices[0].text)
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import openai
from openai import AsyncOpenAI

from openai_complete.llm.completion_base import CompletionError, CompletionParams

logger = logging.getLogger(__name__)

UPSTREAM_ERROR_PREFIX = "OpenAI API error"
UPSTREAM_MESSAGE_KEY = "upstream_message"


def _status_code(err: Exception) -> int:
    return int(getattr(err, "status_code", 0) or 0)


def classify_openai_error(err: BaseException) -> str:
    """Map an OpenAI client exception to an upper-snake machine code."""
    # Timeout subclasses APIConnectionError; check it first.
    if isinstance(err, openai.APITimeoutError):
        return "UPSTREAM_TIMEOUT"
    if isinstance(err, openai.APIConnectionError):
        return "TRANSIENT_NETWORK"
    if isinstance(err, openai.RateLimitError):
        return "RATE_LIMITED"
    if isinstance(err, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return "AUTH_ERROR"
    if isinstance(err, openai.BadRequestError):
        return "BAD_REQUEST"
    if isinstance(err, openai.NotFoundError):
        # Usually "model not found".
        return "NOT_FOUND"

    if isinstance(err, openai.APIStatusError):
        status = _status_code(err)
        if status == 400:
            return "BAD_REQUEST"
        if status in (401, 403):
            return "AUTH_ERROR"
        if status == 404:
            return "NOT_FOUND"
        if status == 429:
            return "RATE_LIMITED"
        return "UNAVAILABLE"

    return "UNAVAILABLE"


def translate_openai_error(err: BaseException) -> CompletionError:
    """
    Wrap any upstream exception as an UPSTREAM CompletionError.

    The message keeps the original text so the MCP client sees the
    provider's explanation (bad key, unknown model, rate limit, ...).
    """
    original = str(err) or type(err).__name__
    details = {"error_type": type(err).__name__, UPSTREAM_MESSAGE_KEY: original}
    status = _status_code(err) if isinstance(err, Exception) else 0
    if status:
        details["status_code"] = status
    return CompletionError.upstream(
        f"{UPSTREAM_ERROR_PREFIX}: {original}",
        code=classify_openai_error(err),
        details=details,
    )


class OpenAICompletionBackend:
    """
    CompletionBackend backed by the OpenAI text Completions API.

    Parameters
    ----------
    client:
        Pre-configured `AsyncOpenAI` client. When given, `api_key` and
        `base_url` are ignored.
    api_key:
        API key used to build a client when none is supplied.
    base_url:
        Optional custom base URL (for proxies, gateways, compatible servers).
    """

    def __init__(
        self,
        *,
        client: Optional[AsyncOpenAI] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> None:
        if client is None:
            client = AsyncOpenAI(
                api_key=api_key,
                base_url=base_url,
                max_retries=0,
            )
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        return self._client

    async def create_completion(self, params: CompletionParams) -> Any:
        """Issue one completion request. Raises CompletionError on failure."""
        try:
            return await self._client.completions.create(
                model=params.model,
                prompt=params.prompt,
                max_tokens=params.max_tokens,
                temperature=params.temperature,
                top_p=params.top_p,
                frequency_penalty=params.frequency_penalty,
                presence_penalty=params.presence_penalty,
            )
        except openai.OpenAIError as exc:
            logger.debug("OpenAI completion request failed: %r", exc)
            raise translate_openai_error(exc) from exc

    async def close(self) -> None:
        await self._client.close()
