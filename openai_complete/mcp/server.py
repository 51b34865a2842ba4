# openai_complete/mcp/server.py
# SPDX-License-Identifier: Apache-2.0

"""
MCP tool adapter for OpenAI text completions.

`CompleteToolAdapter` is the protocol-facing boundary. It advertises exactly
one tool, `complete`, validates its arguments, delegates to
`CompletionService`, and renders the outcome:

- success          -> one text content item with the generated text
- TIMEOUT          -> readable guidance text (not a protocol error)
- CANCELLED        -> readable "cancelled" text (not a protocol error)
- UPSTREAM         -> McpError, INVALID_REQUEST, carrying the upstream message
- bad arguments    -> McpError, INVALID_PARAMS, no task created
- unknown tool     -> McpError, METHOD_NOT_FOUND, no task created

`build_server()` wires the adapter into a low-level `mcp` Server. The
tools/call handler is registered directly rather than through the
`call_tool()` decorator so that `McpError` reaches the client as a JSON-RPC
error instead of being folded into an `isError` tool result.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server
from mcp.shared.exceptions import McpError

from openai_complete.core.config import SERVER_NAME, SERVER_VERSION, GenerationDefaults
from openai_complete.core.error_context import get_context
from openai_complete.core.tasks import CompletionTask
from openai_complete.llm.completion_base import CompletionError, CompletionErrorKind
from openai_complete.llm.validation import is_valid_completion_args
from openai_complete.mcp.completion_service import CompletionService

logger = logging.getLogger(__name__)

COMPLETE_TOOL_NAME = "complete"

TIMEOUT_TEXT = (
    "The completion request timed out. "
    "Please try again with a shorter prompt or fewer tokens."
)
CANCELLED_TEXT = "The request was cancelled."


def complete_input_schema(defaults: Optional[GenerationDefaults] = None) -> Dict[str, Any]:
    """JSON schema for the `complete` tool arguments."""
    d = defaults or GenerationDefaults()
    return {
        "type": "object",
        "properties": {
            "prompt": {
                "type": "string",
                "description": "The text prompt to complete",
            },
            "max_tokens": {
                "type": "integer",
                "description": "Maximum tokens to generate",
                "default": d.max_tokens,
            },
            "temperature": {
                "type": "number",
                "description": "Controls randomness (0-1)",
                "default": d.temperature,
            },
            "top_p": {
                "type": "number",
                "description": "Controls diversity via nucleus sampling",
                "default": d.top_p,
            },
            "frequency_penalty": {
                "type": "number",
                "description": "Decreases repetition of token sequences",
                "default": d.frequency_penalty,
            },
            "presence_penalty": {
                "type": "number",
                "description": "Increases likelihood of talking about new topics",
                "default": d.presence_penalty,
            },
        },
        "required": ["prompt"],
    }


def _mcp_error(code: int, message: str) -> McpError:
    return McpError(types.ErrorData(code=code, message=message))


def _text(text: str) -> List[types.TextContent]:
    return [types.TextContent(type="text", text=text)]


class CompleteToolAdapter:
    """Protocol boundary between MCP tool calls and CompletionService."""

    def __init__(
        self,
        service: CompletionService,
        *,
        defaults: Optional[GenerationDefaults] = None,
    ) -> None:
        self._service = service
        self._tool = types.Tool(
            name=COMPLETE_TOOL_NAME,
            description="Generate text completions using OpenAI models",
            inputSchema=complete_input_schema(defaults),
        )

    @property
    def service(self) -> CompletionService:
        return self._service

    def list_tools(self) -> List[types.Tool]:
        return [self._tool]

    async def call_tool(
        self,
        name: str,
        arguments: Optional[Mapping[str, Any]],
    ) -> List[types.TextContent]:
        if name != COMPLETE_TOOL_NAME:
            raise _mcp_error(types.METHOD_NOT_FOUND, f"Unknown tool: {name}")
        return await self.handle_complete(arguments if arguments is not None else {})

    async def handle_complete(self, arguments: Any) -> List[types.TextContent]:
        if not is_valid_completion_args(arguments):
            raise _mcp_error(types.INVALID_PARAMS, "Invalid completion arguments")

        try:
            result = await self._service.complete(arguments)
        except CompletionError as err:
            return self._render_failure(err)

        return _text(result.text)

    def _render_failure(self, err: CompletionError) -> List[types.TextContent]:
        if err.kind is CompletionErrorKind.TIMEOUT:
            return _text(TIMEOUT_TEXT)
        if err.kind is CompletionErrorKind.CANCELLED:
            return _text(CANCELLED_TEXT)
        if err.kind is CompletionErrorKind.UPSTREAM:
            ctx = get_context(err)
            logger.error(
                "Completion failed (task_id=%s, code=%s): %s",
                ctx.get("task_id", err.task_id),
                err.code,
                err.message,
            )
            raise _mcp_error(types.INVALID_REQUEST, err.message) from err
        raise AssertionError(f"unhandled completion error kind: {err.kind!r}")

    def get_task(self, task_id: str) -> Optional[CompletionTask]:
        return self._service.get_task(task_id)

    def cancel_task(self, task_id: str) -> bool:
        """Cancel an in-flight task; False if absent or already finished."""
        return self._service.cancel_task(task_id)


# =============================================================================
# Server wiring
# =============================================================================


def build_server(adapter: CompleteToolAdapter) -> Server:
    server: Server = Server(SERVER_NAME, version=SERVER_VERSION)

    @server.list_tools()
    async def handle_list_tools() -> List[types.Tool]:
        return adapter.list_tools()

    async def handle_call_tool(req: types.CallToolRequest) -> types.ServerResult:
        content = await adapter.call_tool(req.params.name, req.params.arguments)
        return types.ServerResult(types.CallToolResult(content=content, isError=False))

    server.request_handlers[types.CallToolRequest] = handle_call_tool
    return server


async def run_stdio(adapter: CompleteToolAdapter) -> None:
    """Serve the adapter over stdin/stdout until the client disconnects."""
    server = build_server(adapter)
    try:
        async with stdio_server() as (read_stream, write_stream):
            logger.info("OpenAI Complete MCP server running on stdio")
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options(),
            )
    finally:
        adapter.service.shutdown()
