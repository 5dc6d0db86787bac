"""
Thin async FreshBooks HTTP client.

Turns non-2xx responses into raw failure variants (:class:`UpstreamApiError`
when the body describes the error, :class:`HttpStatusError` otherwise),
normalizes them, and retries the recoverable transient ones with tenacity.
Tool bodies call :meth:`FreshBooksClient.request` and let any
:class:`MCPError` propagate to ``wrap_handler``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
)

from freshbooks_mcp.config import ApiConfig
from freshbooks_mcp.errors.codes import ErrorCode, UpstreamErrorCode
from freshbooks_mcp.errors.handler import generate_request_id, normalize_error
from freshbooks_mcp.errors.types import (
    HttpStatusError,
    MCPError,
    UpstreamApiError,
    UpstreamErrorDetail,
)
from freshbooks_mcp.logging import get_logger
from freshbooks_mcp.tracing import get_tracer

log = get_logger("freshbooks_mcp.client")

T = TypeVar("T")

# Only transient failures are worth another attempt.
RETRYABLE_CODES = frozenset(
    {
        ErrorCode.RATE_LIMITED,
        ErrorCode.SERVICE_UNAVAILABLE,
        ErrorCode.NETWORK_ERROR,
        ErrorCode.TIMEOUT,
    }
)

# Upstream code implied by the HTTP status when the body has none.
STATUS_UPSTREAM_CODES: dict[int, UpstreamErrorCode] = {
    400: UpstreamErrorCode.BAD_REQUEST,
    401: UpstreamErrorCode.UNAUTHORIZED,
    403: UpstreamErrorCode.FORBIDDEN,
    404: UpstreamErrorCode.NOT_FOUND,
    409: UpstreamErrorCode.CONFLICT,
    422: UpstreamErrorCode.VALIDATION_ERROR,
    429: UpstreamErrorCode.RATE_LIMIT_EXCEEDED,
    500: UpstreamErrorCode.INTERNAL_ERROR,
    502: UpstreamErrorCode.SERVICE_UNAVAILABLE,
    503: UpstreamErrorCode.SERVICE_UNAVAILABLE,
    504: UpstreamErrorCode.SERVICE_UNAVAILABLE,
}


def should_retry(error: BaseException) -> bool:
    return isinstance(error, MCPError) and error.recoverable and error.code in RETRYABLE_CODES


def parse_retry_after(value: str | None) -> int | None:
    """Seconds from a ``Retry-After`` header; HTTP-date values are ignored."""
    if value is None:
        return None
    value = value.strip()
    return int(value) if value.isdigit() else None


def _first_error(body: Mapping[str, Any]) -> Mapping[str, Any] | None:
    # Accounting API: {"response": {"errors": [{errno, field, message, ...}]}}
    response = body.get("response")
    if isinstance(response, Mapping):
        errors = response.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], Mapping):
            return errors[0]
    errors = body.get("errors")
    if isinstance(errors, list) and errors and isinstance(errors[0], Mapping):
        return errors[0]
    # Projects / time tracking: {"error": ..., "errno": ..., "message": ...}
    if isinstance(body.get("message"), str):
        return body
    return None


def error_from_response(response: httpx.Response) -> Exception:
    """Build the raw failure variant describing a non-2xx response."""
    status = response.status_code
    retry_after = parse_retry_after(response.headers.get("Retry-After"))
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, Mapping):
        if body.get("ok") is False and isinstance(body.get("error"), Mapping):
            error = UpstreamApiError.from_response(body)
            if error.status_code is None:
                error.status_code = status
            if error.retry_after is None:
                error.retry_after = retry_after
            return error

        first = _first_error(body)
        if first is not None:
            upstream = STATUS_UPSTREAM_CODES.get(status)
            field = first.get("field")
            errno = first.get("errno")
            detail = UpstreamErrorDetail(
                code=upstream.value if upstream else f"HTTP_{status}",
                message=str(first.get("message") or response.reason_phrase or "Unknown error"),
                field=None if field is None else str(field),
                errno=errno if isinstance(errno, int) or (isinstance(errno, str) and errno.isdigit()) else None,
                status_code=status,
            )
            return UpstreamApiError(detail, status_code=status, retry_after=retry_after)

    return HttpStatusError(status, response.reason_phrase or "Unknown")


class FreshBooksClient:
    """Authenticated FreshBooks API client bound to one account."""

    def __init__(
        self,
        access_token: str,
        account_id: str | None = None,
        config: ApiConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.account_id = account_id
        self.config = config or ApiConfig()
        self._http = httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
            transport=transport,
        )

    async def __aenter__(self) -> FreshBooksClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Retry policy
    # ------------------------------------------------------------------

    def _wait(self, state: RetryCallState) -> float:
        error = state.outcome.exception() if state.outcome else None
        if isinstance(error, MCPError) and error.retry_after is not None:
            return float(error.retry_after)
        backoff_ms = self.config.base_backoff_ms * 2 ** (state.attempt_number - 1)
        return min(backoff_ms, self.config.max_backoff_ms) / 1000

    @staticmethod
    def _log_retry(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        log.warning(
            "freshbooks_retrying",
            attempt=state.attempt_number,
            wait=state.next_action.sleep if state.next_action else None,
            code=int(error.code) if isinstance(error, MCPError) else None,
        )

    async def execute_with_retry(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        """Run *call*, normalizing failures and retrying transient ones.

        At most ``config.max_retries`` attempts are made.  The final failure
        is raised as an :class:`MCPError` carrying
        ``{operation, requestId, accountId}`` context.
        """
        context: dict[str, Any] = {"operation": operation, "requestId": generate_request_id()}
        if self.account_id is not None:
            context["accountId"] = self.account_id

        retrying = AsyncRetrying(
            retry=retry_if_exception(should_retry),
            stop=stop_after_attempt(self.config.max_retries),
            wait=self._wait,
            before_sleep=self._log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                try:
                    result = await call()
                except Exception as exc:
                    error = normalize_error(exc, context)
                    if error is exc:
                        raise
                    raise error from exc
        return result

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _send(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        tracer = get_tracer()
        with tracer.start_as_current_span("freshbooks.request") as span:
            span.set_attribute("http.method", method)
            span.set_attribute("http.route", path)
            response = await self._http.request(method, path, json=json, params=params)
            span.set_attribute("http.status_code", response.status_code)

            if response.is_success:
                return response.json() if response.content else None

            log.info("freshbooks_error_response", status=response.status_code, path=path)
            raise error_from_response(response)

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
        operation: str | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body."""
        return await self.execute_with_retry(
            operation or f"{method.upper()} {path}",
            lambda: self._send(method, path, json, params),
        )

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)
