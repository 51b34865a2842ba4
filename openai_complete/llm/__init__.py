# openai_complete/llm/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""
Completion API - Public types

Request/response types, the error union and argument validation are
re-exported here for clean imports.
"""

from openai_complete.llm.completion_base import (
    # Request / response
    CompletionRequest,
    CompletionParams,
    CompletionResult,
    TokenUsage,
    CompletionBackend,

    # Errors
    CompletionError,
    CompletionErrorKind,
)
from openai_complete.llm.validation import is_valid_completion_args

__all__ = [
    "CompletionRequest",
    "CompletionParams",
    "CompletionResult",
    "TokenUsage",
    "CompletionBackend",
    "CompletionError",
    "CompletionErrorKind",
    "is_valid_completion_args",
]
