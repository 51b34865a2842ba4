# openai_complete/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""MCP server exposing OpenAI text completions as a single `complete` tool."""

from openai_complete.core.config import SERVER_VERSION as __version__

__all__ = ["__version__"]
