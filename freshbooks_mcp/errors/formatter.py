"""
Response formatter: renders an :class:`MCPError` for its consumers.

- wire:   JSON-RPC 2.0 error response (the only form sent over the protocol)
- agent:  markdown shown to the LLM / user, always with a suggestion and an
          explicit recoverable statement
- log:    flat record with no credentials and a masked account id
- debug:  full dump outside production, truncated in production

None of these functions mutate the error.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from freshbooks_mcp.config import is_production
from freshbooks_mcp.errors.codes import ErrorCode, default_title
from freshbooks_mcp.errors.types import MCPError

JSONRPC_VERSION = "2.0"

# Fallback delays when the server sent no Retry-After.
DEFAULT_RETRY_DELAYS_MS: dict[ErrorCode, int] = {
    ErrorCode.RATE_LIMITED: 60_000,
    ErrorCode.SERVICE_UNAVAILABLE: 30_000,
    ErrorCode.INTERNAL_ERROR: 5_000,
}
FALLBACK_RETRY_DELAY_MS = 1_000


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Wire
# ---------------------------------------------------------------------------


def format_error_response(error: MCPError, request_id: str | int | None = None) -> dict[str, Any]:
    """Build a JSON-RPC 2.0 error response.

    ``request_id`` is the JSON-RPC id of the failing request; ``None`` (for
    notifications or unparseable requests) serializes as ``null``.
    """
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "error": error.to_dict(),
    }


# ---------------------------------------------------------------------------
# Agent-facing markdown
# ---------------------------------------------------------------------------


def format_error_for_agent(error: MCPError) -> str:
    """Render a markdown block the agent can act on.

    Example::

        **Error:** Resource not found: TimeEntry with id 99999 was not found

        **Suggestion:** Double-check the ID or identifier. ...

        *This error cannot be recovered by retrying.*
    """
    data = error.data
    parts = [f"**Error:** {error.message}", f"**Suggestion:** {data.suggestion}"]

    if data.freshbooks_error and data.freshbooks_error.field:
        parts.append(f"**Field:** {data.freshbooks_error.field}")

    if data.validation_errors:
        details = "\n".join(f"- {issue.path}: {issue.message}" for issue in data.validation_errors)
        parts.append(f"**Validation Errors:**\n{details}")

    if data.retry_after is not None:
        parts.append(f"**Retry After:** {data.retry_after} seconds")

    if data.auth_url:
        parts.append(f"**Authorization URL:** {data.auth_url}")

    if data.recoverable:
        parts.append("*This error may be resolved by retrying the operation.*")
    else:
        parts.append("*This error cannot be recovered by retrying.*")

    if data.context and data.context.tool:
        parts.append(f"\n*Tool:* `{data.context.tool}`")
    if data.context and data.context.request_id:
        parts.append(f"*Request ID:* `{data.context.request_id}`")

    return "\n\n".join(parts)


def format_tool_error_result(error: MCPError) -> dict[str, Any]:
    """Wrap the agent rendering as an MCP ``tools/call`` error result."""
    return {
        "content": [{"type": "text", "text": format_error_for_agent(error)}],
        "isError": True,
    }


# ---------------------------------------------------------------------------
# Logging / debugging
# ---------------------------------------------------------------------------


def mask_account_id(account_id: str) -> str:
    """Show only the first and last three characters of an account id."""
    if len(account_id) <= 6:
        return "***"
    return f"{account_id[:3]}...{account_id[-3:]}"


def format_error_for_logging(error: MCPError) -> dict[str, Any]:
    """Flat, credential-free record for structured logs."""
    context = error.data.context
    original = error.data.freshbooks_error
    account_id = context.account_id if context else None
    return {
        "level": "error",
        "code": int(error.code),
        "message": error.message,
        "tool": context.tool if context else None,
        "requestId": context.request_id if context else None,
        "accountId": mask_account_id(account_id) if account_id else None,
        "recoverable": error.data.recoverable,
        "freshbooksCode": original.code if original else None,
        "freshbooksErrno": original.errno if original else None,
        "field": original.field if original else None,
        "timestamp": _now_iso(),
    }


def format_error_for_debug(error: MCPError, production: bool | None = None) -> dict[str, Any]:
    """Detailed dump for debugging.

    In production only code, message, recoverable and suggestion are
    returned; stack traces and upstream payloads are withheld.
    """
    if production is None:
        production = is_production()

    if production:
        return {
            "mcpError": {"code": int(error.code), "message": error.message},
            "data": {
                "recoverable": error.data.recoverable,
                "suggestion": error.data.suggestion,
            },
            "timestamp": _now_iso(),
        }

    return {
        "mcpError": {
            "code": int(error.code),
            "name": error.code.name,
            "title": default_title(error.code),
            "message": error.message,
        },
        "data": error.to_dict()["data"],
        "timestamp": _now_iso(),
    }


def get_error_summary(error: MCPError) -> str:
    """One-line summary: ``message (field: f) [tool]``."""
    parts = [error.message]
    if error.data.freshbooks_error and error.data.freshbooks_error.field:
        parts.append(f"(field: {error.data.freshbooks_error.field})")
    if error.data.context and error.data.context.tool:
        parts.append(f"[{error.data.context.tool}]")
    return " ".join(parts)


# ---------------------------------------------------------------------------
# Retry guidance
# ---------------------------------------------------------------------------


def is_retryable(error: MCPError) -> bool:
    return error.data.recoverable


def get_retry_delay_ms(error: MCPError) -> int | None:
    """Suggested wait before retrying, or ``None`` if retrying is pointless."""
    if not error.data.recoverable:
        return None
    if error.data.retry_after is not None:
        return int(error.data.retry_after * 1000)
    return DEFAULT_RETRY_DELAYS_MS.get(error.code, FALLBACK_RETRY_DELAY_MS)
