# openai_complete/core/error_context.py
# SPDX-License-Identifier: Apache-2.0

"""
Error context helpers.

Failures raised while a completion task runs are enriched with a small
mapping of debugging metadata (operation, task id, model, elapsed time)
before they propagate to the tool adapter. The metadata is stored as an
exception attribute so the original exception type and message survive
unchanged.

Typical usage
-------------

    try:
        response = await backend.create_completion(params)
    except Exception as exc:
        attach_context(exc, framework="mcp", operation="complete", task_id=task_id)
        raise

Later, in the tool adapter:

    context = get_context(exc)
    logger.warning("Completion failed (task_id=%s)", context.get("task_id"))
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping, Optional

logger = logging.getLogger(__name__)

CONTEXT_ATTR = "__openai_complete_context__"


def attach_context(
    exc: BaseException,
    framework: str,
    **context: Any,
) -> None:
    """
    Attach debugging context to an exception.

    Two attributes are set on the exception: the canonical
    `__openai_complete_context__` and a layer-specific `__<framework>_context__`
    alias. Repeated calls merge into the existing mapping; the `framework`
    key is kept from the first call.

    Attachment is best-effort and never raises.
    """
    try:
        merged_context: MutableMapping[str, Any] = {}

        existing = getattr(exc, CONTEXT_ATTR, None)
        if isinstance(existing, Mapping):
            merged_context.update(existing)

        merged_context.setdefault("framework", framework)
        merged_context.update(context)

        setattr(exc, CONTEXT_ATTR, merged_context)
        setattr(exc, f"__{framework}_context__", merged_context)

    except Exception as attachment_error:  # noqa: BLE001
        # Built-in exceptions with __slots__ can refuse attribute assignment.
        logger.debug(
            "Failed to attach error context to %s: %s",
            type(exc).__name__,
            attachment_error,
            extra={"framework": framework},
        )


def get_context(
    exc: BaseException,
    *,
    framework: Optional[str] = None,
) -> Mapping[str, Any]:
    """
    Retrieve attached context from an exception.

    When `framework` is given, the layer-specific attribute is preferred.
    Returns an empty mapping when nothing was attached.
    """
    if framework:
        ctx = getattr(exc, f"__{framework}_context__", None)
        if isinstance(ctx, Mapping):
            return ctx

    ctx = getattr(exc, CONTEXT_ATTR, None)
    if isinstance(ctx, Mapping):
        return ctx

    return {}
