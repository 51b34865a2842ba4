# openai_complete/cli.py
# SPDX-License-Identifier: Apache-2.0
"""
OpenAI Complete MCP server entrypoint.

Reads configuration from the environment (and a `.env` file in the working
directory, if present), then serves the `complete` tool over stdio.
stdout carries protocol frames, so all logging and banners go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from openai_complete.core.config import (
    ENV_API_BASE,
    ENV_API_KEY,
    ENV_DEBUG,
    ENV_MODEL,
    ENV_TIMEOUT,
    SERVER_NAME,
    SERVER_VERSION,
    ConfigError,
    ServerConfig,
)
from openai_complete.core.task_registry import TaskRegistry
from openai_complete.llm.openai_adapter import OpenAICompletionBackend
from openai_complete.mcp.completion_service import CompletionService
from openai_complete.mcp.server import CompleteToolAdapter, run_stdio

logger = logging.getLogger("openai_complete")

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"

EXIT_OK = 0
EXIT_STARTUP_FAILURE = 1
EXIT_INTERRUPTED = 130


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="openai-complete-mcp",
        description="MCP server exposing OpenAI text completions as a `complete` tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Configuration (environment variables):
  {ENV_API_KEY}=sk-...          Required API key
  {ENV_API_BASE}=https://...    Optional API base URL override
  {ENV_MODEL}=text-davinci-003  Completion model
  {ENV_TIMEOUT}=60     Request timeout in seconds
  {ENV_DEBUG}=1          Debug logging

Flags take precedence over the environment.
        """.strip(),
    )
    parser.add_argument("--model", help="Completion model id")
    parser.add_argument("--api-base", dest="api_base_url", help="API base URL override")
    parser.add_argument(
        "--timeout",
        dest="request_timeout",
        type=float,
        help="Request timeout in seconds (also the task retention period)",
    )
    parser.add_argument(
        "--debug",
        action="store_const",
        const=True,
        default=None,
        help="Enable debug logging",
    )
    parser.add_argument(
        "--version", action="version", version=f"{SERVER_NAME} {SERVER_VERSION}"
    )
    return parser


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        force=True,
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_adapter(config: ServerConfig) -> CompleteToolAdapter:
    backend = OpenAICompletionBackend(
        api_key=config.api_key,
        base_url=config.api_base_url,
    )
    service = CompletionService.from_config(config, backend, registry=TaskRegistry())
    return CompleteToolAdapter(service, defaults=config.defaults)


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    load_dotenv()

    try:
        config = ServerConfig.from_env(
            model=args.model,
            api_base_url=args.api_base_url,
            request_timeout=args.request_timeout,
            debug=args.debug,
        )
    except ConfigError as exc:
        configure_logging(debug=False)
        logger.error("Config: %s", exc.message)
        return EXIT_STARTUP_FAILURE

    configure_logging(config.debug)

    print("Starting MCP OpenAI Complete Server...", file=sys.stderr)
    print("Use Ctrl+C to stop the server", file=sys.stderr)
    logger.debug(
        "Config: model=%s, api_base=%s, timeout=%ss",
        config.model,
        config.api_base_url or "<default>",
        config.request_timeout,
    )

    try:
        asyncio.run(run_stdio(build_adapter(config)))
    except KeyboardInterrupt:
        logger.info("Shutdown: interrupted, stopping server")
        return EXIT_INTERRUPTED
    except Exception as exc:  # noqa: BLE001
        logger.error("Startup: failed to start server: %s", exc, exc_info=config.debug)
        return EXIT_STARTUP_FAILURE

    logger.info("Shutdown: server stopped")
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
