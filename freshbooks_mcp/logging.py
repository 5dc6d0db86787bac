"""
Structured logging configuration for the FreshBooks MCP server.

Uses structlog with orjson serialization for JSON lines in production, and
colored console output for development.  Everything goes to stderr: stdout
carries the JSON-RPC stream.

A redaction processor runs before rendering so tokens and credentials never
reach a log line and account ids are masked.
"""

import sys
from collections.abc import MutableMapping
from typing import Any

import orjson
import structlog

# Substrings of keys whose values are dropped outright.
SENSITIVE_KEY_PARTS = ("token", "secret", "password", "credential", "authorization", "api_key")
ACCOUNT_ID_KEYS = frozenset({"account_id", "accountId"})


def _orjson_renderer(logger: object, name: str, event_dict: dict[str, object]) -> str:
    """Render log events as JSON using orjson."""
    return orjson.dumps(event_dict, option=orjson.OPT_NON_STR_KEYS, default=str).decode("utf-8")


def _redact(value: Any) -> Any:
    from freshbooks_mcp.errors.formatter import mask_account_id

    if isinstance(value, MutableMapping):
        cleaned: dict[Any, Any] = {}
        for key, item in value.items():
            lowered = str(key).lower()
            if any(part in lowered for part in SENSITIVE_KEY_PARTS):
                continue
            if key in ACCOUNT_ID_KEYS and isinstance(item, str):
                cleaned[key] = mask_account_id(item)
            else:
                cleaned[key] = _redact(item)
        return cleaned
    if isinstance(value, list):
        return [_redact(item) for item in value]
    return value


def redact_sensitive(logger: object, name: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Drop credential-like keys and mask account ids, recursively."""
    return _redact(event_dict)


def setup_logging(*, json_output: bool = False, level: str = "INFO") -> None:
    """Configure structlog for the application.

    Args:
        json_output: If True, emit JSON lines (for production).
                     If False, emit colored console output (for development).
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR).
    """
    import logging

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        redact_sensitive,
    ]

    renderer: Any
    if json_output:
        renderer = _orjson_renderer
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        handler.setFormatter(formatter)


def get_logger(name: str) -> Any:
    """Get a named structlog logger."""
    return structlog.get_logger(name)
