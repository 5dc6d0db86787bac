"""Closed error taxonomy for the FreshBooks MCP server.

Standard JSON-RPC 2.0 codes plus an application range starting at -32001.
Every value is declared explicitly so reordering members can never shift a
code on the wire.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum


class ErrorCode(IntEnum):
    """Every code a normalized error may ever carry."""

    # JSON-RPC 2.0 reserved
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # Application range
    NOT_AUTHENTICATED = -32001
    TOKEN_EXPIRED = -32002
    PERMISSION_DENIED = -32003
    RATE_LIMITED = -32004
    RESOURCE_NOT_FOUND = -32005
    VALIDATION_ERROR = -32006
    CONFLICT = -32007
    SERVICE_UNAVAILABLE = -32008
    NETWORK_ERROR = -32009
    TIMEOUT = -32010


class UpstreamErrorCode(str, Enum):
    """Error code strings returned by the FreshBooks SDK."""

    UNAUTHORIZED = "UNAUTHORIZED"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_GRANT = "INVALID_GRANT"
    FORBIDDEN = "FORBIDDEN"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    BAD_REQUEST = "BAD_REQUEST"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


STANDARD_CODES = frozenset(
    {
        ErrorCode.PARSE_ERROR,
        ErrorCode.INVALID_REQUEST,
        ErrorCode.METHOD_NOT_FOUND,
        ErrorCode.INVALID_PARAMS,
        ErrorCode.INTERNAL_ERROR,
    }
)

APPLICATION_CODES = frozenset(set(ErrorCode) - STANDARD_CODES)

_CODE_VALUES = frozenset(int(code) for code in ErrorCode)


@dataclass(frozen=True)
class CodeDefaults:
    """Canonical title, recoverability and remediation text for one code."""

    title: str
    recoverable: bool
    suggestion: str


CODE_DEFAULTS: dict[ErrorCode, CodeDefaults] = {
    ErrorCode.PARSE_ERROR: CodeDefaults(
        "Invalid JSON was received",
        False,
        "Send a well-formed JSON-RPC request.",
    ),
    ErrorCode.INVALID_REQUEST: CodeDefaults(
        "The JSON sent is not a valid request",
        False,
        "Ensure the request matches the JSON-RPC 2.0 request structure.",
    ),
    ErrorCode.METHOD_NOT_FOUND: CodeDefaults(
        "The method does not exist or is not available",
        False,
        "List the available tools and check the tool name.",
    ),
    ErrorCode.INVALID_PARAMS: CodeDefaults(
        "Invalid method parameters",
        True,
        "Check the input parameters and try again",
    ),
    ErrorCode.INTERNAL_ERROR: CodeDefaults(
        "Internal server error",
        True,
        "An unexpected error occurred. Please try again.",
    ),
    ErrorCode.NOT_AUTHENTICATED: CodeDefaults(
        "Authentication required",
        True,
        "Please re-authenticate using auth_get_url",
    ),
    ErrorCode.TOKEN_EXPIRED: CodeDefaults(
        "Authentication token expired",
        True,
        "Call auth_refresh to refresh your token, or re-authenticate if refresh fails",
    ),
    ErrorCode.PERMISSION_DENIED: CodeDefaults(
        "Permission denied",
        False,
        "You don't have access to this resource. Contact your administrator.",
    ),
    ErrorCode.RATE_LIMITED: CodeDefaults(
        "Rate limit exceeded",
        True,
        "Wait a moment before making more requests",
    ),
    ErrorCode.RESOURCE_NOT_FOUND: CodeDefaults(
        "Resource not found",
        False,
        "Verify the resource ID is correct. The resource may have been deleted.",
    ),
    ErrorCode.VALIDATION_ERROR: CodeDefaults(
        "Validation failed",
        True,
        "Check the input values and try again",
    ),
    ErrorCode.CONFLICT: CodeDefaults(
        "Conflict with existing resource",
        False,
        "A resource with these details already exists",
    ),
    ErrorCode.SERVICE_UNAVAILABLE: CodeDefaults(
        "FreshBooks service is unavailable",
        True,
        "An error occurred on FreshBooks' side. Please try again.",
    ),
    ErrorCode.NETWORK_ERROR: CodeDefaults(
        "Network communication error",
        True,
        "Check network connection and retry",
    ),
    ErrorCode.TIMEOUT: CodeDefaults(
        "Request timeout",
        True,
        "Retry the request",
    ),
}


def from_value(value: int) -> ErrorCode:
    """Return the taxonomy member for *value*.

    Raises ``ValueError`` for integers outside the closed set.
    """
    return ErrorCode(value)


def is_taxonomy_code(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value in _CODE_VALUES


def is_standard_code(code: int) -> bool:
    return code in STANDARD_CODES


def is_application_code(code: int) -> bool:
    return code in APPLICATION_CODES


def default_recoverable(code: ErrorCode) -> bool:
    return CODE_DEFAULTS[code].recoverable


def default_suggestion(code: ErrorCode) -> str:
    return CODE_DEFAULTS[code].suggestion


def default_title(code: ErrorCode) -> str:
    return CODE_DEFAULTS[code].title
