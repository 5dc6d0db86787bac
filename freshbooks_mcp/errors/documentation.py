"""Human-oriented reference for every error code.

Served to the agent by the ``error_docs`` tool.  Nothing in the error
pipeline reads this catalog for control flow.
"""

from __future__ import annotations

from dataclasses import dataclass

from freshbooks_mcp.errors.codes import ErrorCode


@dataclass(frozen=True)
class ErrorDocumentation:
    name: str
    description: str
    causes: tuple[str, ...]
    solutions: tuple[str, ...]
    examples: tuple[str, ...] = ()

    @property
    def search_text(self) -> str:
        return " ".join((self.name, self.description, *self.causes, *self.solutions)).lower()


ERROR_DOCUMENTATION: dict[ErrorCode, ErrorDocumentation] = {
    # JSON-RPC 2.0
    ErrorCode.PARSE_ERROR: ErrorDocumentation(
        name="Parse Error",
        description="The server received JSON it could not parse",
        causes=(
            "Malformed JSON in the request",
            "Invalid character encoding",
            "Truncated JSON structure",
        ),
        solutions=(
            "Verify the request is valid JSON",
            "Escape special characters correctly",
            "Make sure every brace and bracket is closed",
        ),
        examples=(
            "Missing closing brace in a JSON object",
            "Unescaped quotes inside a string value",
        ),
    ),
    ErrorCode.INVALID_REQUEST: ErrorDocumentation(
        name="Invalid Request",
        description="The JSON sent is not a valid JSON-RPC request object",
        causes=(
            "Missing required fields (jsonrpc, method)",
            "Unsupported jsonrpc version",
            "Badly formed method name",
        ),
        solutions=(
            "Send 'jsonrpc': '2.0' with every request",
            "Provide a valid 'method' field",
            "Follow the JSON-RPC 2.0 request structure",
        ),
        examples=(
            "Request without a 'method' field",
            "jsonrpc set to '1.0' instead of '2.0'",
        ),
    ),
    ErrorCode.METHOD_NOT_FOUND: ErrorDocumentation(
        name="Method Not Found",
        description="The requested method does not exist or is not available",
        causes=(
            "Misspelled tool name",
            "Tool is not registered",
            "Tool was disabled or deprecated",
        ),
        solutions=(
            "Check the spelling of the tool name",
            "List the available tools to confirm it exists",
            "Switch to the current name of a deprecated tool",
        ),
        examples=("Called 'timeentry_creates' instead of 'timeentry_create'",),
    ),
    ErrorCode.INVALID_PARAMS: ErrorDocumentation(
        name="Invalid Parameters",
        description="The tool was called with invalid parameters",
        causes=(
            "Missing required parameters",
            "Parameter has the wrong type",
            "Value outside the allowed range",
            "Malformed nested structure",
        ),
        solutions=(
            "Provide every required parameter",
            "Match parameter types to the tool schema",
            "Keep values within their allowed ranges",
            "Review the validation errors for the failing field",
        ),
        examples=(
            "Missing required 'accountId' parameter",
            "String given instead of a number for 'duration'",
            "Date not in ISO 8601 format",
        ),
    ),
    ErrorCode.INTERNAL_ERROR: ErrorDocumentation(
        name="Internal Error",
        description="An unexpected error occurred inside the server",
        causes=(
            "Unexpected exception in server code",
            "Unhandled error condition",
            "Resource exhaustion on the host",
        ),
        solutions=(
            "Retry the operation",
            "Check the server logs for details",
            "Report the issue if it keeps happening",
        ),
    ),
    # Application
    ErrorCode.NOT_AUTHENTICATED: ErrorDocumentation(
        name="Not Authenticated",
        description="No valid FreshBooks authentication was found",
        causes=(
            "Never authenticated with FreshBooks",
            "Access token expired",
            "Access was revoked by the user",
            "Stored tokens are missing or corrupted",
        ),
        solutions=(
            "Call auth_get_url to start the authentication flow",
            "Open the authorization URL and approve access",
            "Exchange the authorization code with auth_exchange_code",
            "Call auth_refresh if a refresh token is still valid",
        ),
        examples=(
            "First use of the server",
            "User revoked access in FreshBooks settings",
        ),
    ),
    ErrorCode.TOKEN_EXPIRED: ErrorDocumentation(
        name="Token Expired",
        description="The access token has expired and must be refreshed",
        causes=(
            "Token lifetime exceeded (about 12 hours for FreshBooks)",
            "Clock skew on the host",
            "Token invalidated by FreshBooks",
        ),
        solutions=(
            "Call auth_refresh to obtain a new access token",
            "Re-authenticate if the refresh fails",
            "Check that the system clock is accurate",
        ),
        examples=("Token issued 13 hours ago",),
    ),
    ErrorCode.PERMISSION_DENIED: ErrorDocumentation(
        name="Permission Denied",
        description="The account lacks permission to access this resource",
        causes=(
            "Insufficient role in the FreshBooks account",
            "Resource belongs to another account",
            "Feature not included in the FreshBooks plan",
            "Resource is read-only",
        ),
        solutions=(
            "Verify you are using the correct account",
            "Ask your FreshBooks administrator for access",
            "Upgrade the FreshBooks plan if needed",
        ),
        examples=(
            "Regular user deleting someone else's time entry",
            "Modifying an archived resource",
        ),
    ),
    ErrorCode.RATE_LIMITED: ErrorDocumentation(
        name="Rate Limited",
        description="Too many requests were sent in a short period",
        causes=(
            "API rate limit exceeded",
            "Burst of requests sent too quickly",
            "Shared IP address limit reached",
        ),
        solutions=(
            "Wait before sending more requests (see retryAfter)",
            "Back off exponentially between retries",
            "Reduce request frequency",
            "Batch operations where possible",
        ),
        examples=("100 requests sent within one second",),
    ),
    ErrorCode.RESOURCE_NOT_FOUND: ErrorDocumentation(
        name="Resource Not Found",
        description="The requested resource does not exist",
        causes=(
            "Invalid ID provided",
            "Resource was deleted",
            "Resource is in a different account",
        ),
        solutions=(
            "Verify the ID is correct",
            "List resources to find valid IDs",
            "Check that you are using the correct account",
        ),
        examples=(
            "TimeEntry with id 99999 not found",
            "Project deleted before the update was attempted",
        ),
    ),
    ErrorCode.VALIDATION_ERROR: ErrorDocumentation(
        name="Validation Error",
        description="FreshBooks rejected the submitted data",
        causes=(
            "Missing required fields",
            "Invalid field values",
            "Format errors in dates, emails or numbers",
            "Business rule violations",
        ),
        solutions=(
            "Provide all required fields",
            "Use ISO 8601 for dates",
            "Read the error details for the failing field",
            "Make sure values satisfy business rules",
        ),
        examples=(
            "Date sent as MM/DD/YYYY instead of ISO 8601",
            "Negative duration",
        ),
    ),
    ErrorCode.CONFLICT: ErrorDocumentation(
        name="Conflict",
        description="The operation conflicts with existing data",
        causes=(
            "Duplicate entry",
            "Concurrent modification",
            "Resource state does not allow the operation",
        ),
        solutions=(
            "Look for an existing matching resource",
            "Update instead of creating",
            "Fetch the latest version and retry",
        ),
        examples=(
            "Client with the same email already exists",
            "Invoice number already used",
        ),
    ),
    ErrorCode.SERVICE_UNAVAILABLE: ErrorDocumentation(
        name="Service Unavailable",
        description="FreshBooks is temporarily unavailable",
        causes=(
            "FreshBooks API down for maintenance",
            "Network connectivity issues",
            "Request timeout",
            "Service overloaded",
        ),
        solutions=(
            "Wait and retry the operation",
            "Check the FreshBooks status page",
            "Verify the internet connection",
        ),
        examples=(
            "Scheduled maintenance window",
            "Network timeout after 30 seconds",
        ),
    ),
    ErrorCode.NETWORK_ERROR: ErrorDocumentation(
        name="Network Error",
        description="A network communication error occurred",
        causes=(
            "No internet connection",
            "DNS resolution failed",
            "Connection refused by the server",
            "Network unreachable",
        ),
        solutions=(
            "Check your internet connection",
            "Verify DNS settings",
            "Try again later",
        ),
        examples=(
            "Connection refused while the API is down",
            "DNS lookup failure for api.freshbooks.com",
        ),
    ),
    ErrorCode.TIMEOUT: ErrorDocumentation(
        name="Timeout",
        description="The request timed out before a response arrived",
        causes=(
            "Server took too long to respond",
            "High network latency",
            "Large request payload",
        ),
        solutions=(
            "Retry the request",
            "Check network connectivity",
            "Send a smaller payload",
        ),
        examples=("Request exceeded the 30 second timeout",),
    ),
}


def get_error_documentation(code: int) -> ErrorDocumentation | None:
    """Documentation for *code*, or ``None`` for values outside the taxonomy."""
    try:
        return ERROR_DOCUMENTATION.get(ErrorCode(code))
    except ValueError:
        return None


def get_all_error_documentation() -> dict[ErrorCode, ErrorDocumentation]:
    return dict(ERROR_DOCUMENTATION)


def search_error_documentation(query: str) -> list[tuple[ErrorCode, ErrorDocumentation]]:
    """Case-insensitive substring search over name, description, causes and solutions."""
    needle = query.lower()
    return [(code, doc) for code, doc in ERROR_DOCUMENTATION.items() if needle in doc.search_text]


def format_error_documentation(code: int) -> str:
    """Render one entry as markdown."""
    doc = get_error_documentation(code)
    if doc is None:
        return f"No documentation available for error code {code}"

    lines = [
        f"# {doc.name} ({int(code)})",
        "",
        doc.description,
        "",
        "## Common Causes",
        *(f"- {cause}" for cause in doc.causes),
        "",
        "## Solutions",
        *(f"- {solution}" for solution in doc.solutions),
    ]
    if doc.examples:
        lines += ["", "## Examples", *(f"- {example}" for example in doc.examples)]
    return "\n".join(lines)
