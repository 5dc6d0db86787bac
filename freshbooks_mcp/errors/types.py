"""
Normalized error type and the raw failure variants it is built from.

Every failure that crosses the transport boundary is an :class:`MCPError`.
Its payload (:class:`ErrorData`) is a frozen pydantic model whose wire form
uses the camelCase keys of the JSON-RPC ``error.data`` object.

Raw failures are produced as one of a closed set of variants where they
originate:

- :class:`UpstreamApiError`  (FreshBooks API answered with an error body)
- ``pydantic.ValidationError`` (tool input failed its schema)
- :class:`OAuthError`        (token endpoint or OAuth flow failure)
- :class:`HttpStatusError`   (bare HTTP status without a structured body)
- network exceptions          (``httpx.TransportError``, ``OSError`` family)
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from freshbooks_mcp.errors.codes import ErrorCode, default_suggestion
from freshbooks_mcp.exceptions import FreshBooksMCPError

# ---------------------------------------------------------------------------
# Payload models
# ---------------------------------------------------------------------------


class UpstreamErrorDetail(BaseModel):
    """The verbatim source-side error descriptor, kept for debugging."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    code: str
    message: str
    field: str | None = None
    errno: int | None = None
    details: dict[str, Any] | None = None
    status_code: int | None = Field(default=None, alias="statusCode")
    type: str | None = None


class ValidationIssue(BaseModel):
    """One failed input constraint."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    path: str
    message: str
    code: str | None = None
    expected: str | None = None
    received: str | None = None


_TEXT_CONTEXT_KEYS = ("tool", "account_id", "accountId", "request_id", "requestId", "operation")


class ErrorContext(BaseModel):
    """Caller-supplied metadata attached to a normalized error.

    Accepts snake_case or camelCase names; unknown keys are kept as-is.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    tool: str | None = None
    account_id: str | None = Field(default=None, alias="accountId")
    entity_id: int | str | None = Field(default=None, alias="entityId")
    request_id: str | None = Field(default=None, alias="requestId")
    operation: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _coerce_known_fields(cls, data: Any) -> Any:
        """Stringify numeric ids and drop known keys holding non-scalar values."""
        if not isinstance(data, Mapping):
            return data
        cleaned = {str(key): value for key, value in data.items()}
        for key in _TEXT_CONTEXT_KEYS:
            value = cleaned.get(key)
            if value is None or isinstance(value, str):
                continue
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                cleaned[key] = str(value)
            else:
                del cleaned[key]
        for key in ("entity_id", "entityId"):
            value = cleaned.get(key)
            if value is None or isinstance(value, str) or (isinstance(value, int) and not isinstance(value, bool)):
                continue
            if isinstance(value, float):
                cleaned[key] = str(value)
            else:
                del cleaned[key]
        return cleaned

    @classmethod
    def coerce(cls, value: ErrorContext | Mapping[str, Any] | None) -> ErrorContext | None:
        """Accept a context model, a plain mapping, or ``None``."""
        if value is None or isinstance(value, ErrorContext):
            return value
        return cls.model_validate(dict(value))

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ErrorData(BaseModel):
    """Recovery guidance plus preserved source details."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    freshbooks_error: UpstreamErrorDetail | None = Field(default=None, alias="freshbooksError")
    validation_errors: tuple[ValidationIssue, ...] | None = Field(default=None, alias="validationErrors")
    context: ErrorContext | None = None
    recoverable: bool
    suggestion: str = Field(min_length=1)
    retry_after: int | float | None = Field(default=None, alias="retryAfter")
    auth_url: str | None = Field(default=None, alias="authUrl")

    @model_validator(mode="after")
    def _retry_after_implies_recoverable(self) -> ErrorData:
        if self.retry_after is not None and not self.recoverable:
            raise ValueError("retryAfter is only valid on recoverable errors")
        return self


# ---------------------------------------------------------------------------
# Normalized error
# ---------------------------------------------------------------------------


class MCPError(FreshBooksMCPError):
    """The single normalized error shape produced for any failure.

    Attributes:
        code:    Taxonomy code (JSON-RPC ``error.code``).
        message: Deterministic human-readable summary.
        data:    Frozen :class:`ErrorData` payload.
    """

    def __init__(self, code: ErrorCode, message: str, data: ErrorData):
        super().__init__(message)
        self.code = ErrorCode(code)
        self.message = message
        self.data = data

    @property
    def recoverable(self) -> bool:
        return self.data.recoverable

    @property
    def suggestion(self) -> str:
        return self.data.suggestion

    @property
    def context(self) -> ErrorContext | None:
        return self.data.context

    @property
    def original_error(self) -> UpstreamErrorDetail | None:
        return self.data.freshbooks_error

    @property
    def retry_after(self) -> int | float | None:
        return self.data.retry_after

    @property
    def validation_errors(self) -> tuple[ValidationIssue, ...] | None:
        return self.data.validation_errors

    def with_context(self, context: ErrorContext | Mapping[str, Any] | None) -> MCPError:
        """Return an error carrying *context*, first write wins.

        If a context is already attached, or *context* is empty, ``self`` is
        returned unchanged.
        """
        ctx = ErrorContext.coerce(context)
        if ctx is None or self.data.context is not None:
            return self
        return MCPError(self.code, self.message, self.data.model_copy(update={"context": ctx}))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-RPC error object."""
        return {
            "code": int(self.code),
            "message": self.message,
            "data": self.data.model_dump(by_alias=True, exclude_none=True, mode="json"),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> MCPError:
        """Rebuild an error from its :meth:`to_dict` form.

        A missing or empty ``suggestion`` falls back to the code's default,
        and ``retryAfter`` is discarded on non-recoverable errors, so code,
        message and recoverability always survive.
        """
        code = ErrorCode(payload["code"])
        data = dict(payload["data"])
        if not data.get("suggestion"):
            data["suggestion"] = default_suggestion(code)
        if data.get("recoverable") is False:
            data.pop("retryAfter", None)
            data.pop("retry_after", None)
        return cls(code, str(payload["message"]), ErrorData.model_validate(data))

    def __repr__(self) -> str:
        return f"MCPError(code={self.code.name}, message={self.message!r})"


# ---------------------------------------------------------------------------
# Raw failure variants
# ---------------------------------------------------------------------------


def _int_or_none(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return None


def _seconds_or_none(value: Any) -> int | float | None:
    if isinstance(value, float) and value >= 0:
        return value
    return _int_or_none(value)


def _text_or_none(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


class UpstreamApiError(FreshBooksMCPError):
    """An error body returned by the FreshBooks API or SDK."""

    def __init__(
        self,
        error: UpstreamErrorDetail,
        *,
        status_code: int | None = None,
        retry_after: int | float | None = None,
    ):
        super().__init__(error.message)
        self.error = error
        self.status_code = status_code if status_code is not None else error.status_code
        self.retry_after = retry_after

    @classmethod
    def from_response(cls, payload: Mapping[str, Any]) -> UpstreamApiError:
        """Build from an SDK result such as ``{"ok": False, "error": {...}}``.

        ``statusCode`` and ``retryAfter`` are read from the top level first,
        then from inside ``error``.  Debug-only fields that are not of the
        expected shape (a non-numeric ``errno``, a list ``details``) are
        dropped rather than rejecting the whole error.
        """
        body = payload.get("error")
        error: Mapping[str, Any] = body if isinstance(body, Mapping) else {}
        status_code = _int_or_none(payload.get("statusCode", error.get("statusCode")))
        details = error.get("details")
        detail = UpstreamErrorDetail(
            code=str(error.get("code") or "UNKNOWN"),
            message=str(error.get("message") or "Unknown error"),
            field=_text_or_none(error.get("field")),
            errno=_int_or_none(error.get("errno")),
            details=dict(details) if isinstance(details, Mapping) else None,
            status_code=status_code,
            type=_text_or_none(error.get("type")),
        )
        return cls(
            detail,
            status_code=status_code,
            retry_after=_seconds_or_none(payload.get("retryAfter", error.get("retryAfter"))),
        )


class OAuthError(FreshBooksMCPError):
    """A failure raised by the OAuth flow or a token endpoint."""

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details

    @classmethod
    def from_response(cls, payload: Mapping[str, Any]) -> OAuthError:
        """Build from a token endpoint body ``{"error", "error_description"}``."""
        code = str(payload["error"])
        details = {"error_uri": payload["error_uri"]} if payload.get("error_uri") else None
        return cls(code, str(payload.get("error_description") or code), details)


class HttpStatusError(FreshBooksMCPError):
    """A bare HTTP status with no structured error body."""

    def __init__(self, status_code: int, status_text: str = "Unknown"):
        super().__init__(f"HTTP {status_code}: {status_text}")
        self.status_code = status_code
        self.status_text = status_text
