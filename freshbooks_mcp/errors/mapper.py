"""
Error mapper: pure translation from raw failures to :class:`MCPError`.

One function per failure source.  Nothing here logs, retries, or performs
I/O; the handler decides which function applies.
"""

from __future__ import annotations

import socket
import traceback
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError

from freshbooks_mcp.errors.codes import (
    ErrorCode,
    UpstreamErrorCode,
    default_recoverable,
    default_suggestion,
)
from freshbooks_mcp.errors.types import (
    ErrorContext,
    ErrorData,
    MCPError,
    OAuthError,
    UpstreamApiError,
    UpstreamErrorDetail,
    ValidationIssue,
)

ContextLike = ErrorContext | Mapping[str, Any] | None


def _build(
    code: ErrorCode,
    message: str,
    context: ContextLike,
    *,
    recoverable: bool | None = None,
    suggestion: str | None = None,
    **data: Any,
) -> MCPError:
    payload = ErrorData(
        context=ErrorContext.coerce(context),
        recoverable=default_recoverable(code) if recoverable is None else recoverable,
        suggestion=suggestion or default_suggestion(code),
        **data,
    )
    return MCPError(code, message, payload)


# ---------------------------------------------------------------------------
# Upstream API errors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UpstreamMapping:
    """How one upstream code string is normalized."""

    code: ErrorCode
    message: Callable[[UpstreamErrorDetail], str]
    suggestion: Callable[[UpstreamErrorDetail], str]

    @property
    def recoverable(self) -> bool:
        return default_recoverable(self.code)


def _not_found_message(e: UpstreamErrorDetail) -> str:
    if e.field:
        return f"Resource not found: The {e.field} you specified doesn't exist"
    return f"Resource not found: {e.message}"


def _not_found_suggestion(e: UpstreamErrorDetail) -> str:
    if e.field:
        return (
            f"Verify the {e.field} is correct. The resource may have been deleted "
            "or moved to a different account."
        )
    return "Double-check the ID or identifier. The resource may have been deleted."


def _validation_message(e: UpstreamErrorDetail) -> str:
    if e.field:
        return f'Invalid value for "{e.field}": {e.message}'
    return f"Validation error: {e.message}"


def _validation_suggestion(e: UpstreamErrorDetail) -> str:
    if e.field:
        return f'Check the value provided for "{e.field}" and ensure it meets the requirements'
    return "Review the input values and ensure they match the expected format"


UPSTREAM_MAPPINGS: dict[str, UpstreamMapping] = {
    UpstreamErrorCode.UNAUTHORIZED.value: UpstreamMapping(
        ErrorCode.NOT_AUTHENTICATED,
        lambda e: "Authentication required or session expired",
        lambda e: "Please authenticate using auth_get_url to obtain access credentials",
    ),
    UpstreamErrorCode.UNAUTHENTICATED.value: UpstreamMapping(
        ErrorCode.NOT_AUTHENTICATED,
        lambda e: "No valid authentication found",
        lambda e: "Call auth_get_url to start the authentication process",
    ),
    UpstreamErrorCode.TOKEN_EXPIRED.value: UpstreamMapping(
        ErrorCode.TOKEN_EXPIRED,
        lambda e: "Access token has expired",
        lambda e: default_suggestion(ErrorCode.TOKEN_EXPIRED),
    ),
    UpstreamErrorCode.INVALID_GRANT.value: UpstreamMapping(
        ErrorCode.TOKEN_EXPIRED,
        lambda e: "Refresh token is invalid or expired",
        lambda e: "Re-authenticate using auth_get_url to obtain new credentials",
    ),
    UpstreamErrorCode.FORBIDDEN.value: UpstreamMapping(
        ErrorCode.PERMISSION_DENIED,
        lambda e: f"Permission denied: {e.message}",
        lambda e: (
            "You don't have permission to access this resource. "
            "Contact your FreshBooks administrator to request access."
        ),
    ),
    UpstreamErrorCode.INSUFFICIENT_PERMISSIONS.value: UpstreamMapping(
        ErrorCode.PERMISSION_DENIED,
        lambda e: f"Insufficient permissions: {e.message}",
        lambda e: "Your FreshBooks account lacks the required permissions for this operation",
    ),
    UpstreamErrorCode.NOT_FOUND.value: UpstreamMapping(
        ErrorCode.RESOURCE_NOT_FOUND,
        _not_found_message,
        _not_found_suggestion,
    ),
    UpstreamErrorCode.VALIDATION_ERROR.value: UpstreamMapping(
        ErrorCode.VALIDATION_ERROR,
        _validation_message,
        _validation_suggestion,
    ),
    UpstreamErrorCode.BAD_REQUEST.value: UpstreamMapping(
        ErrorCode.VALIDATION_ERROR,
        lambda e: f"Invalid request: {e.message}",
        lambda e: "Check the request parameters and ensure all required fields are provided correctly",
    ),
    UpstreamErrorCode.RATE_LIMIT_EXCEEDED.value: UpstreamMapping(
        ErrorCode.RATE_LIMITED,
        lambda e: "Rate limit exceeded",
        lambda e: "You've made too many requests in a short period. Wait before making more requests.",
    ),
    UpstreamErrorCode.CONFLICT.value: UpstreamMapping(
        ErrorCode.CONFLICT,
        lambda e: f"Conflict: {e.message}",
        lambda e: (
            "A resource with these details already exists. "
            "Try updating the existing resource instead of creating a new one."
        ),
    ),
    UpstreamErrorCode.INTERNAL_ERROR.value: UpstreamMapping(
        ErrorCode.INTERNAL_ERROR,
        lambda e: "FreshBooks server error",
        lambda e: (
            "An error occurred on FreshBooks' side. Please try again in a few moments. "
            "If the issue persists, contact FreshBooks support."
        ),
    ),
    UpstreamErrorCode.SERVICE_UNAVAILABLE.value: UpstreamMapping(
        ErrorCode.SERVICE_UNAVAILABLE,
        lambda e: "FreshBooks service is temporarily unavailable",
        lambda e: (
            "FreshBooks may be undergoing maintenance. "
            "Please try again later or check status.freshbooks.com"
        ),
    ),
}

DEFAULT_UPSTREAM_MAPPING = UpstreamMapping(
    ErrorCode.INTERNAL_ERROR,
    lambda e: e.message or "An unexpected error occurred",
    lambda e: "Please try again. If the issue persists, check the error details.",
)


def map_upstream_error(error: UpstreamApiError, context: ContextLike = None) -> MCPError:
    """Normalize a FreshBooks API error via :data:`UPSTREAM_MAPPINGS`."""
    detail = error.error
    mapping = UPSTREAM_MAPPINGS.get(detail.code, DEFAULT_UPSTREAM_MAPPING)
    if error.status_code is not None and detail.status_code is None:
        detail = detail.model_copy(update={"status_code": error.status_code})

    return _build(
        mapping.code,
        mapping.message(detail),
        context,
        recoverable=mapping.recoverable,
        suggestion=mapping.suggestion(detail),
        freshbooks_error=detail,
        retry_after=error.retry_after if mapping.recoverable else None,
    )


# ---------------------------------------------------------------------------
# Input validation errors
# ---------------------------------------------------------------------------

_TYPE_ERROR_SUFFIXES = ("_type", "_parsing")


def _issue_from_pydantic(err: Mapping[str, Any]) -> ValidationIssue:
    kind = str(err.get("type", ""))
    expected = received = None
    if kind.endswith(_TYPE_ERROR_SUFFIXES):
        expected = kind.rsplit("_", 1)[0]
        received = type(err.get("input")).__name__
    return ValidationIssue(
        path=".".join(str(part) for part in err.get("loc", ())),
        message=str(err.get("msg", "")),
        code=kind or None,
        expected=expected,
        received=received,
    )


def _validation_suggestion_for(issues: tuple[ValidationIssue, ...]) -> str:
    if not issues:
        return default_suggestion(ErrorCode.INVALID_PARAMS)
    if len(issues) == 1:
        issue = issues[0]
        return f'Fix the "{issue.path}" field: {issue.message.lower()}'
    fields = ", ".join(f'"{issue.path}"' for issue in issues)
    return f"Fix the following fields: {fields}"


def map_validation_issues(issues: Iterable[ValidationIssue], context: ContextLike = None) -> MCPError:
    """Normalize an already-extracted list of validation issues."""
    collected = tuple(issues)
    if collected:
        first = collected[0]
        message = f'Validation failed for "{first.path}": {first.message}'
    else:
        message = "Validation failed"

    return _build(
        ErrorCode.INVALID_PARAMS,
        message,
        context,
        recoverable=True,
        suggestion=_validation_suggestion_for(collected),
        validation_errors=collected,
    )


def map_validation_error(error: ValidationError, context: ContextLike = None) -> MCPError:
    """Normalize a pydantic input-validation failure, one issue per error."""
    issues = [_issue_from_pydantic(err) for err in error.errors(include_url=False)]
    return map_validation_issues(issues, context)


# ---------------------------------------------------------------------------
# OAuth errors
# ---------------------------------------------------------------------------

_EXPIRED_OAUTH_CODES = frozenset({"invalid_grant", "token_expired"})
_DENIED_OAUTH_CODES = frozenset({"invalid_client", "unauthorized_client", "access_denied"})


def map_oauth_error(error: OAuthError, context: ContextLike = None) -> MCPError:
    """Normalize an OAuth failure.  Always recoverable."""
    original = UpstreamErrorDetail(code=error.code, message=error.message)

    if error.code in _EXPIRED_OAUTH_CODES or "expired" in error.message.lower():
        return _build(
            ErrorCode.TOKEN_EXPIRED,
            "Authentication token has expired.",
            context,
            recoverable=True,
            suggestion="Call auth_refresh to get a new token, or re-authenticate using auth_get_url",
            freshbooks_error=original,
        )

    if error.code in _DENIED_OAUTH_CODES:
        return _build(
            ErrorCode.NOT_AUTHENTICATED,
            "Authentication failed or access was denied.",
            context,
            recoverable=True,
            suggestion="Re-authenticate using auth_get_url to obtain valid credentials",
            freshbooks_error=original,
        )

    return _build(
        ErrorCode.NOT_AUTHENTICATED,
        f"OAuth error: {error.message}",
        context,
        recoverable=True,
        suggestion="Check your OAuth credentials and try again",
        freshbooks_error=original.model_copy(update={"details": error.details}),
    )


# ---------------------------------------------------------------------------
# Network / transport errors
# ---------------------------------------------------------------------------

TIMEOUT_TOKENS = ("etimedout", "timeout", "timed out")
CONNECTION_TOKENS = (
    "econnrefused",
    "enotfound",
    "econnreset",
    "eai_again",
    "getaddrinfo",
    "connection refused",
    "name or service not known",
)
SOCKET_CLOSED_TOKENS = ("socket hang up", "server disconnected", "connection closed")

# Substrings that mark an otherwise untyped exception as a network failure.
# The token tuples above only refine errors already classified as network.
NETWORK_TOKENS = (
    "etimedout",
    "econnrefused",
    "enotfound",
    "econnreset",
    "eai_again",
    "getaddrinfo",
    "socket hang up",
    "network",
    "fetch failed",
)

NETWORK_EXCEPTION_TYPES: tuple[type[BaseException], ...] = (
    httpx.TransportError,
    TimeoutError,
    ConnectionError,
    socket.gaierror,
)


def is_network_error(error: BaseException) -> bool:
    """True if *error* is a transport failure by type or by message token."""
    if isinstance(error, NETWORK_EXCEPTION_TYPES):
        return True
    text = str(error).lower()
    return any(token in text for token in NETWORK_TOKENS)


def _contains(text: str, tokens: Iterable[str]) -> bool:
    return any(token in text for token in tokens)


def map_network_error(error: BaseException, context: ContextLike = None) -> MCPError:
    """Normalize a transport failure.  Always recoverable."""
    text = str(error).lower()

    if isinstance(error, (TimeoutError, httpx.TimeoutException)) or _contains(text, TIMEOUT_TOKENS):
        return _build(
            ErrorCode.SERVICE_UNAVAILABLE,
            "Request timed out. FreshBooks may be slow to respond.",
            context,
            recoverable=True,
            suggestion="Wait a moment and try again. If the issue persists, check FreshBooks status.",
        )

    if isinstance(error, (ConnectionRefusedError, ConnectionResetError, httpx.ConnectError, socket.gaierror)) or _contains(
        text, CONNECTION_TOKENS
    ):
        return _build(
            ErrorCode.SERVICE_UNAVAILABLE,
            "Could not connect to FreshBooks API.",
            context,
            recoverable=True,
            suggestion="Check your internet connection and try again.",
        )

    if isinstance(error, (httpx.RemoteProtocolError, ConnectionAbortedError, BrokenPipeError)) or _contains(
        text, SOCKET_CLOSED_TOKENS
    ):
        return _build(
            ErrorCode.SERVICE_UNAVAILABLE,
            "Connection was closed unexpectedly.",
            context,
            recoverable=True,
            suggestion="The connection was interrupted. Please try again.",
        )

    return _build(
        ErrorCode.INTERNAL_ERROR,
        f"Network error: {error}",
        context,
        recoverable=True,
        suggestion="An unexpected network error occurred. Please try again.",
    )


# ---------------------------------------------------------------------------
# Bare HTTP status codes
# ---------------------------------------------------------------------------

HTTP_STATUS_CODES: dict[int, tuple[ErrorCode, str]] = {
    401: (ErrorCode.NOT_AUTHENTICATED, "Authentication required or session expired"),
    403: (ErrorCode.PERMISSION_DENIED, "Permission denied"),
    404: (ErrorCode.RESOURCE_NOT_FOUND, "Resource not found"),
    409: (ErrorCode.CONFLICT, "Conflict with existing resource"),
    422: (ErrorCode.VALIDATION_ERROR, "Validation failed"),
    429: (ErrorCode.RATE_LIMITED, "Rate limit exceeded"),
    500: (ErrorCode.SERVICE_UNAVAILABLE, "FreshBooks service is unavailable"),
    502: (ErrorCode.SERVICE_UNAVAILABLE, "FreshBooks service is unavailable"),
    503: (ErrorCode.SERVICE_UNAVAILABLE, "FreshBooks service is unavailable"),
    504: (ErrorCode.SERVICE_UNAVAILABLE, "FreshBooks service is unavailable"),
}


def map_http_error(status_code: int, status_text: str = "Unknown", context: ContextLike = None) -> MCPError:
    """Normalize a bare HTTP status."""
    code, message = HTTP_STATUS_CODES.get(
        status_code, (ErrorCode.INTERNAL_ERROR, f"HTTP error {status_code}: {status_text}")
    )
    return _build(
        code,
        message,
        context,
        freshbooks_error=UpstreamErrorDetail(
            code=f"HTTP_{status_code}",
            message=status_text,
            status_code=status_code,
        ),
    )


# ---------------------------------------------------------------------------
# Anything else
# ---------------------------------------------------------------------------


def map_unknown_error(error: object, context: ContextLike = None) -> MCPError:
    """Normalize an unrecognized failure as a recoverable INTERNAL_ERROR.

    For exceptions the formatted traceback is kept in
    ``freshbooks_error.details["stack"]``; it is only rendered by the
    non-production debug formatter.
    """
    if isinstance(error, BaseException):
        text = str(error) or type(error).__name__
        original = UpstreamErrorDetail(
            code="UNKNOWN_ERROR",
            message=text,
            type=type(error).__name__,
            details={"stack": "".join(traceback.format_exception(error))},
        )
    else:
        text = str(error)
        original = None

    return _build(
        ErrorCode.INTERNAL_ERROR,
        f"Unexpected error: {text}",
        context,
        recoverable=True,
        suggestion=default_suggestion(ErrorCode.INTERNAL_ERROR),
        freshbooks_error=original,
    )
