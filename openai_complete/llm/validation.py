# openai_complete/llm/validation.py
# SPDX-License-Identifier: Apache-2.0

"""
Shape validation for `complete` tool arguments.

Only types are checked: `prompt` must be a string and each optional
sampling parameter, if present, must be a number. Ranges are left to the
upstream API. Unknown extra keys are tolerated.
"""

from __future__ import annotations

from numbers import Real
from typing import Any, Mapping, TypeGuard

from openai_complete.llm.completion_base import OPTIONAL_NUMERIC_PARAMS, CompletionRequest


def _is_number(value: Any) -> bool:
    # bool is an int subclass but not a usable sampling value
    return isinstance(value, Real) and not isinstance(value, bool)


def is_valid_completion_args(args: Any) -> TypeGuard[CompletionRequest]:
    """Return True iff `args` has the shape of a CompletionRequest. Never raises."""
    if not isinstance(args, Mapping):
        return False

    if not isinstance(args.get("prompt"), str):
        return False

    for name in OPTIONAL_NUMERIC_PARAMS:
        if name in args and not _is_number(args[name]):
            return False

    return True
