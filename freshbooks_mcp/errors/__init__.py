"""
Error normalization for the FreshBooks MCP server.

Any failure raised by a tool (FreshBooks API error bodies, pydantic input
validation, OAuth, network and bare HTTP failures) is turned into a single
:class:`MCPError` carrying a taxonomy code, recovery guidance and the
original payload.
"""

from __future__ import annotations

from freshbooks_mcp.errors.codes import CODE_DEFAULTS, ErrorCode, UpstreamErrorCode
from freshbooks_mcp.errors.documentation import (
    ERROR_DOCUMENTATION,
    ErrorDocumentation,
    format_error_documentation,
    get_all_error_documentation,
    get_error_documentation,
    search_error_documentation,
)
from freshbooks_mcp.errors.formatter import (
    format_error_for_agent,
    format_error_for_debug,
    format_error_for_logging,
    format_error_response,
    format_tool_error_result,
    get_error_summary,
    get_retry_delay_ms,
    is_retryable,
    mask_account_id,
)
from freshbooks_mcp.errors.handler import (
    create_auth_error,
    create_not_found_error,
    create_validation_error,
    generate_request_id,
    handle_error,
    normalize_error,
    wrap_handler,
)
from freshbooks_mcp.errors.types import (
    ErrorContext,
    ErrorData,
    HttpStatusError,
    MCPError,
    OAuthError,
    UpstreamApiError,
    UpstreamErrorDetail,
    ValidationIssue,
)

__all__ = [
    "CODE_DEFAULTS",
    "ERROR_DOCUMENTATION",
    "ErrorCode",
    "ErrorContext",
    "ErrorData",
    "ErrorDocumentation",
    "HttpStatusError",
    "MCPError",
    "OAuthError",
    "UpstreamApiError",
    "UpstreamErrorCode",
    "UpstreamErrorDetail",
    "ValidationIssue",
    "create_auth_error",
    "create_not_found_error",
    "create_validation_error",
    "format_error_documentation",
    "format_error_for_agent",
    "format_error_for_debug",
    "format_error_for_logging",
    "format_error_response",
    "format_tool_error_result",
    "generate_request_id",
    "get_all_error_documentation",
    "get_error_documentation",
    "get_error_summary",
    "get_retry_delay_ms",
    "handle_error",
    "is_retryable",
    "mask_account_id",
    "normalize_error",
    "search_error_documentation",
    "wrap_handler",
]
