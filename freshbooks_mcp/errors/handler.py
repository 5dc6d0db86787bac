"""
Error handler: classify any raised value and wrap tool invocations.

``normalize_error`` first converts untyped mappings into one of the sealed
raw-failure variants, then dispatches on type.  ``wrap_handler`` is applied
to every tool entry point so nothing un-normalized reaches the transport.
"""

from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar

import httpx
import structlog
from opentelemetry.trace import StatusCode
from pydantic import ValidationError
from ulid import ULID

from freshbooks_mcp.config import get_config
from freshbooks_mcp.errors.codes import ErrorCode, default_suggestion, is_taxonomy_code
from freshbooks_mcp.errors.formatter import format_error_for_logging
from freshbooks_mcp.errors.mapper import (
    is_network_error,
    map_http_error,
    map_network_error,
    map_oauth_error,
    map_unknown_error,
    map_upstream_error,
    map_validation_error,
)
from freshbooks_mcp.errors.types import (
    ErrorContext,
    ErrorData,
    HttpStatusError,
    MCPError,
    OAuthError,
    UpstreamApiError,
)
from freshbooks_mcp.logging import get_logger
from freshbooks_mcp.tracing import get_tracer

log = get_logger("freshbooks_mcp.errors.handler")

T = TypeVar("T")
ContextLike = ErrorContext | Mapping[str, Any] | None
Handler = Callable[[Any, Any], Awaitable[T]]


def generate_request_id() -> str:
    """Opaque per-invocation id: ``req_`` plus a ULID (timestamp + randomness)."""
    return f"req_{ULID()}"


# ---------------------------------------------------------------------------
# Boundary coercion
# ---------------------------------------------------------------------------


def _is_wire_error(value: Mapping[str, Any]) -> bool:
    data = value.get("data")
    return (
        "ok" not in value
        and is_taxonomy_code(value.get("code"))
        and isinstance(value.get("message"), str)
        and isinstance(data, Mapping)
        and isinstance(data.get("recoverable"), bool)
    )


def coerce_raw_failure(raw: object) -> object:
    """Turn an untyped mapping into the raw-failure variant it describes.

    A wire error never carries ``ok``, so an upstream body and an already
    normalized error can never both match.  Anything else is returned
    unchanged.
    """
    if not isinstance(raw, Mapping):
        return raw
    if raw.get("ok") is False and isinstance(raw.get("error"), Mapping):
        return UpstreamApiError.from_response(raw)
    if _is_wire_error(raw):
        return MCPError.from_dict(raw)
    status = raw.get("statusCode")
    if isinstance(status, int) and not isinstance(status, bool):
        return HttpStatusError(status, str(raw.get("statusText") or "Unknown"))
    if isinstance(raw.get("error"), str):
        return OAuthError.from_response(raw)
    return raw


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def _dispatch(raw: object, context: ErrorContext | None) -> MCPError:
    raw = coerce_raw_failure(raw)

    if isinstance(raw, MCPError):
        return raw.with_context(context)
    if isinstance(raw, UpstreamApiError):
        return map_upstream_error(raw, context)
    if isinstance(raw, ValidationError):
        return map_validation_error(raw, context)
    if isinstance(raw, OAuthError):
        return map_oauth_error(raw, context)
    if isinstance(raw, HttpStatusError):
        return map_http_error(raw.status_code, raw.status_text, context)
    if isinstance(raw, httpx.HTTPStatusError):
        return map_http_error(raw.response.status_code, raw.response.reason_phrase or "Unknown", context)
    if isinstance(raw, BaseException) and is_network_error(raw):
        return map_network_error(raw, context)
    return map_unknown_error(raw, context)


def normalize_error(raw: object, context: ContextLike = None) -> MCPError:
    """Convert any raised or returned failure into an :class:`MCPError`.

    Already-normalized errors pass through; *context* is attached only if
    they carry none yet.  This function never raises.
    """
    try:
        ctx = ErrorContext.coerce(context)
    except (TypeError, ValueError):
        log.warning("error_context_rejected", context_type=type(context).__name__)
        ctx = None

    try:
        return _dispatch(raw, ctx)
    except Exception as exc:
        log.warning("error_normalization_failed", raw_type=type(raw).__name__, error=str(exc))
        return MCPError(
            ErrorCode.INTERNAL_ERROR,
            f"Unexpected error: {type(raw).__name__}",
            ErrorData(
                context=ctx,
                recoverable=True,
                suggestion=default_suggestion(ErrorCode.INTERNAL_ERROR),
            ),
        )


handle_error = normalize_error


# ---------------------------------------------------------------------------
# Tool wrapping
# ---------------------------------------------------------------------------


def _account_id_of(invocation_context: Any) -> str | None:
    if invocation_context is None:
        return None
    if isinstance(invocation_context, Mapping):
        value = invocation_context.get("accountId", invocation_context.get("account_id"))
    else:
        value = getattr(invocation_context, "account_id", None)
    return None if value is None else str(value)


def wrap_handler(name: str, handler: Handler[T] | None = None) -> Any:
    """Wrap an async ``handler(payload, context)`` with error normalization.

    Each call gets a fresh request id, bound into the structlog context and
    recorded on a ``tool.<name>`` span.  Any exception is normalized with
    ``{tool, requestId, accountId?}`` context, logged once, and re-raised as
    an :class:`MCPError` chained to the original.  Nothing is retried or
    swallowed.

    Usable directly or as a decorator::

        @wrap_handler("timeentry_single")
        async def timeentry_single(payload, context): ...
    """
    if handler is None:
        return functools.partial(wrap_handler, name)

    @functools.wraps(handler)
    async def wrapped(payload: Any, context: Any = None) -> T:
        request_id = generate_request_id()
        tracer = get_tracer()

        with (
            structlog.contextvars.bound_contextvars(tool=name, request_id=request_id),
            tracer.start_as_current_span(f"tool.{name}") as span,
        ):
            span.set_attribute("tool.name", name)
            span.set_attribute("tool.request_id", request_id)
            try:
                result = await handler(payload, context)
                span.set_status(StatusCode.OK)
                return result
            except Exception as exc:
                error_context: dict[str, Any] = {"tool": name, "requestId": request_id}
                account_id = _account_id_of(context)
                if account_id is not None:
                    error_context["accountId"] = account_id

                error = normalize_error(exc, error_context)
                span.set_attribute("error.code", int(error.code))
                span.set_status(StatusCode.ERROR, error.message)
                log.error("tool_failed", error=format_error_for_logging(error))

                if error is exc:
                    raise
                raise error from exc

    return wrapped


# ---------------------------------------------------------------------------
# Direct constructors for business-rule failures
# ---------------------------------------------------------------------------


def create_validation_error(message: str, context: ContextLike = None) -> MCPError:
    """A rule violation detected by tool logic, e.g. "billable entry requires a project"."""
    return MCPError(
        ErrorCode.INVALID_PARAMS,
        message,
        ErrorData(
            context=ErrorContext.coerce(context),
            recoverable=True,
            suggestion=default_suggestion(ErrorCode.INVALID_PARAMS),
        ),
    )


def create_auth_error(message: str, context: ContextLike = None, auth_url: str | None = None) -> MCPError:
    """Missing or rejected credentials.

    *auth_url* defaults to the configured ``auth.auth_url_hint``.
    """
    if auth_url is None:
        auth_url = get_config().auth.auth_url_hint
    return MCPError(
        ErrorCode.NOT_AUTHENTICATED,
        message,
        ErrorData(
            context=ErrorContext.coerce(context),
            recoverable=True,
            suggestion=default_suggestion(ErrorCode.NOT_AUTHENTICATED),
            auth_url=auth_url,
        ),
    )


def create_not_found_error(resource_type: str, resource_id: str | int, context: ContextLike = None) -> MCPError:
    return MCPError(
        ErrorCode.RESOURCE_NOT_FOUND,
        f"{resource_type} with id {resource_id} was not found",
        ErrorData(
            context=ErrorContext.coerce(context),
            recoverable=False,
            suggestion=f"Verify the {resource_type} ID is correct. The resource may have been deleted.",
        ),
    )
