# SPDX-License-Identifier: Apache-2.0
"""
MCP tool adapter and server wiring.

Asserts:
  • exactly one tool, `complete`, with the documented schema
  • unknown tool -> METHOD_NOT_FOUND, no task created
  • invalid arguments -> INVALID_PARAMS, no task created
  • success -> single text content item
  • timeout / cancellation -> friendly text, never a protocol error
  • upstream failure -> INVALID_REQUEST protocol error with the upstream message
  • low-level server handlers surface McpError as JSON-RPC errors
"""

import asyncio
from importlib.metadata import version

import mcp.types as types
import pytest
from mcp.shared.exceptions import McpError

from openai_complete.core.tasks import CompletionStatus
from openai_complete.mcp.server import (
    CANCELLED_TEXT,
    COMPLETE_TOOL_NAME,
    TIMEOUT_TEXT,
    CompleteToolAdapter,
    build_server,
)
from tests.conftest import (
    SHORT_TIMEOUT_S,
    SLOW_CALL_S,
    FakeCompletionBackend,
    make_response,
    make_service,
)

pytestmark = pytest.mark.asyncio


def _adapter(backend, registry, **kwargs) -> CompleteToolAdapter:
    return CompleteToolAdapter(make_service(backend, registry, **kwargs))


# ---------------------------------------------------------------------------
# Tool listing
# ---------------------------------------------------------------------------

async def test_lists_single_complete_tool(tool_adapter):
    tools = tool_adapter.list_tools()
    assert [t.name for t in tools] == [COMPLETE_TOOL_NAME]

    schema = tools[0].inputSchema
    assert schema["required"] == ["prompt"]
    props = schema["properties"]
    assert props["prompt"]["type"] == "string"
    assert props["max_tokens"] == {
        "type": "integer",
        "description": "Maximum tokens to generate",
        "default": 150,
    }
    assert props["temperature"]["default"] == 0.7
    assert props["top_p"]["default"] == 1.0
    assert props["frequency_penalty"]["default"] == 0.0
    assert props["presence_penalty"]["default"] == 0.0


# ---------------------------------------------------------------------------
# Protocol errors
# ---------------------------------------------------------------------------

async def test_unknown_tool_is_method_not_found(tool_adapter, registry, backend):
    with pytest.raises(McpError) as exc_info:
        await tool_adapter.call_tool("foo", {"prompt": "hi"})

    assert exc_info.value.error.code == types.METHOD_NOT_FOUND
    assert "foo" in exc_info.value.error.message
    assert len(registry) == 0
    assert backend.calls == []


@pytest.mark.parametrize(
    "arguments",
    [
        None,
        {},
        {"prompt": 1},
        {"prompt": "hi", "temperature": "warm"},
        {"prompt": "hi", "max_tokens": None},
    ],
)
async def test_invalid_arguments_are_invalid_params(tool_adapter, registry, backend, arguments):
    with pytest.raises(McpError) as exc_info:
        await tool_adapter.call_tool(COMPLETE_TOOL_NAME, arguments)

    assert exc_info.value.error.code == types.INVALID_PARAMS
    assert len(registry) == 0
    assert backend.calls == []


async def test_upstream_failure_is_invalid_request(registry):
    backend = FakeCompletionBackend(error=RuntimeError("Incorrect API key provided"))
    adapter = _adapter(backend, registry)

    with pytest.raises(McpError) as exc_info:
        await adapter.call_tool(COMPLETE_TOOL_NAME, {"prompt": "hi"})

    error = exc_info.value.error
    assert error.code == types.INVALID_REQUEST
    assert error.message == "OpenAI API error: Incorrect API key provided"


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

async def test_success_returns_single_text_item(registry):
    backend = FakeCompletionBackend(response=make_response(" there was a fox."))
    adapter = _adapter(backend, registry)

    content = await adapter.call_tool(COMPLETE_TOOL_NAME, {"prompt": "Once upon a time"})

    assert len(content) == 1
    assert content[0].type == "text"
    assert content[0].text == " there was a fox."


async def test_timeout_returns_friendly_text(registry):
    backend = FakeCompletionBackend(delay=SLOW_CALL_S)
    adapter = _adapter(backend, registry, request_timeout=SHORT_TIMEOUT_S, task_id="t-slow")

    content = await adapter.call_tool(COMPLETE_TOOL_NAME, {"prompt": "hi"})

    assert [c.text for c in content] == [TIMEOUT_TEXT]
    assert adapter.get_task("t-slow").error == "Completion timed out"


async def test_cancellation_returns_friendly_text(registry):
    backend = FakeCompletionBackend(delay=SLOW_CALL_S)
    adapter = _adapter(backend, registry, task_id="t-cancel")

    running = asyncio.ensure_future(adapter.call_tool(COMPLETE_TOOL_NAME, {"prompt": "hi"}))
    await asyncio.wait_for(backend.started.wait(), timeout=1.0)

    assert adapter.cancel_task("t-cancel") is True
    content = await running

    assert [c.text for c in content] == [CANCELLED_TEXT]
    assert adapter.get_task("t-cancel").status is CompletionStatus.ERROR
    assert adapter.cancel_task("t-cancel") is False


# ---------------------------------------------------------------------------
# Low-level server wiring
# ---------------------------------------------------------------------------

async def test_server_call_tool_handler(tool_adapter):
    server = build_server(tool_adapter)
    handler = server.request_handlers[types.CallToolRequest]

    result = await handler(
        types.CallToolRequest(
            method="tools/call",
            params=types.CallToolRequestParams(name="complete", arguments={"prompt": "hi"}),
        )
    )

    call_result = result.root
    assert isinstance(call_result, types.CallToolResult)
    assert call_result.isError is False
    assert call_result.content[0].text == "generated text"


async def test_server_call_tool_handler_raises_protocol_error(tool_adapter):
    server = build_server(tool_adapter)
    handler = server.request_handlers[types.CallToolRequest]

    with pytest.raises(McpError) as exc_info:
        await handler(
            types.CallToolRequest(
                method="tools/call",
                params=types.CallToolRequestParams(name="foo", arguments={}),
            )
        )
    assert exc_info.value.error.code == types.METHOD_NOT_FOUND


async def test_server_list_tools_handler(tool_adapter):
    server = build_server(tool_adapter)
    handler = server.request_handlers[types.ListToolsRequest]

    result = await handler(types.ListToolsRequest(method="tools/list"))

    assert [t.name for t in result.root.tools] == [COMPLETE_TOOL_NAME]


async def test_installed_mcp_is_1x_line():
    """Server wiring relies on McpError(ErrorData) and Server.request_handlers."""
    major = int(version("mcp").split(".")[0])
    assert major == 1

    err = McpError(types.ErrorData(code=types.INVALID_PARAMS, message="bad"))
    assert err.error.code == types.INVALID_PARAMS
