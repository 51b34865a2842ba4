# SPDX-License-Identifier: Apache-2.0
"""
OpenAI Complete MCP Tests

Unit tests for the task registry, completion orchestration, argument
validation, the OpenAI backend and the MCP tool adapter.
"""
