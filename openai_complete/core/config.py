# openai_complete/core/config.py
# SPDX-License-Identifier: Apache-2.0

"""
Server configuration.

`ServerConfig` validates every value in its constructor and raises
`ConfigError` on the first violation. `ServerConfig.from_env()` reads the
process environment (or any mapping) using the variable names below.

Environment
-----------
OPENAI_API_KEY           required
OPENAI_API_BASE          optional base URL override (proxies, gateways)
OPENAI_MODEL             completion model id, default ``text-davinci-003``
OPENAI_COMPLETE_TIMEOUT  request timeout in seconds, default 60
OPENAI_COMPLETE_DEBUG    enable debug logging ("1", "true", "yes", "on")
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

SERVER_NAME = "openai-complete"
SERVER_VERSION = "0.1.0"

DEFAULT_MODEL = "text-davinci-003"
DEFAULT_MAX_TOKENS = 150
DEFAULT_TEMPERATURE = 0.7
DEFAULT_TOP_P = 1.0
DEFAULT_FREQUENCY_PENALTY = 0.0
DEFAULT_PRESENCE_PENALTY = 0.0

DEFAULT_REQUEST_TIMEOUT_S = 60.0

ENV_API_KEY = "OPENAI_API_KEY"
ENV_API_BASE = "OPENAI_API_BASE"
ENV_MODEL = "OPENAI_MODEL"
ENV_TIMEOUT = "OPENAI_COMPLETE_TIMEOUT"
ENV_DEBUG = "OPENAI_COMPLETE_DEBUG"

_TRUTHY = {"1", "true", "yes", "on"}


class ConfigError(ValueError):
    """Raised for missing or invalid server configuration values."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


@dataclass(frozen=True)
class GenerationDefaults:
    """Process-wide values used for any generation parameter the caller omits."""

    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    top_p: float = DEFAULT_TOP_P
    frequency_penalty: float = DEFAULT_FREQUENCY_PENALTY
    presence_penalty: float = DEFAULT_PRESENCE_PENALTY

    def as_dict(self) -> Dict[str, Any]:
        return {
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "frequency_penalty": self.frequency_penalty,
            "presence_penalty": self.presence_penalty,
        }


@dataclass(frozen=True)
class ServerConfig:
    """Validated server configuration with defaults and constraints."""

    api_key: str
    api_base_url: Optional[str] = None
    model: str = DEFAULT_MODEL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT_S
    debug: bool = False
    defaults: GenerationDefaults = field(default_factory=GenerationDefaults)

    def __post_init__(self) -> None:
        if not isinstance(self.api_key, str) or not self.api_key.strip():
            raise ConfigError(f"{ENV_API_KEY} environment variable is required")

        if not isinstance(self.model, str) or not self.model.strip():
            raise ConfigError("model must be a non-empty string")

        if isinstance(self.request_timeout, bool) or not isinstance(
            self.request_timeout, (int, float)
        ):
            raise ConfigError("request_timeout must be a number")
        if self.request_timeout <= 0:
            raise ConfigError("request_timeout must be positive")

    @property
    def grace_period(self) -> float:
        """Seconds a finished task stays queryable; equal to the request timeout."""
        return float(self.request_timeout)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        **overrides: Any,
    ) -> "ServerConfig":
        """
        Build a config from environment variables.

        Keyword overrides whose value is not None take precedence over the
        environment (used by CLI flags).
        """
        env = os.environ if environ is None else environ

        values: Dict[str, Any] = {
            "api_key": env.get(ENV_API_KEY, ""),
            "api_base_url": env.get(ENV_API_BASE) or None,
            "model": env.get(ENV_MODEL) or DEFAULT_MODEL,
            "debug": env.get(ENV_DEBUG, "").strip().lower() in _TRUTHY,
        }

        raw_timeout = env.get(ENV_TIMEOUT)
        if raw_timeout:
            try:
                values["request_timeout"] = float(raw_timeout)
            except ValueError:
                raise ConfigError(
                    f"{ENV_TIMEOUT} must be a number of seconds, got {raw_timeout!r}"
                ) from None

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
