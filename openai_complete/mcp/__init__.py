# openai_complete/mcp/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""MCP-facing completion service and tool adapter."""

from openai_complete.mcp.completion_service import (
    CANCELLED_BY_USER_MESSAGE,
    TIMED_OUT_MESSAGE,
    CompletionService,
)
from openai_complete.mcp.server import (
    CANCELLED_TEXT,
    COMPLETE_TOOL_NAME,
    TIMEOUT_TEXT,
    CompleteToolAdapter,
    build_server,
    run_stdio,
)

__all__ = [
    "CANCELLED_BY_USER_MESSAGE",
    "TIMED_OUT_MESSAGE",
    "CompletionService",
    "CANCELLED_TEXT",
    "COMPLETE_TOOL_NAME",
    "TIMEOUT_TEXT",
    "CompleteToolAdapter",
    "build_server",
    "run_stdio",
]
