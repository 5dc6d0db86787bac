"""Tests for freshbooks_mcp.client: response conversion and retry policy."""

from concurrent.futures import Future
from types import SimpleNamespace

import httpx
import pytest

from freshbooks_mcp.client import (
    FreshBooksClient,
    error_from_response,
    parse_retry_after,
    should_retry,
)
from freshbooks_mcp.config import ApiConfig
from freshbooks_mcp.errors.codes import ErrorCode
from freshbooks_mcp.errors.handler import create_not_found_error, normalize_error
from freshbooks_mcp.errors.types import HttpStatusError, MCPError, UpstreamApiError
from tests.mocks import freshbooks_errors as mocks


def _client(handler, **config) -> tuple[FreshBooksClient, list[httpx.Request]]:
    """Client over a MockTransport that records every request."""
    seen: list[httpx.Request] = []

    def _handle(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request, len(seen))

    config.setdefault("base_backoff_ms", 0)
    client = FreshBooksClient(
        "access-token",
        account_id="ABC123XYZ",
        config=ApiConfig(**config),
        transport=httpx.MockTransport(_handle),
    )
    return client, seen


# ---------------------------------------------------------------------------
# Response conversion
# ---------------------------------------------------------------------------


class TestErrorFromResponse:
    def test_accounting_error_body(self):
        error = error_from_response(mocks.accounting_error_response(404, "TimeEntry not found", field="id"))
        assert isinstance(error, UpstreamApiError)
        assert error.error.code == "NOT_FOUND"
        assert error.error.errno == 1012
        assert error.error.field == "id"
        assert error.status_code == 404

    def test_retry_after_header(self):
        response = mocks.accounting_error_response(429, "Slow down", headers={"Retry-After": "12"})
        error = error_from_response(response)
        assert error.retry_after == 12
        assert normalize_error(error).retry_after == 12

    def test_sdk_shaped_body(self):
        error = error_from_response(httpx.Response(429, json=mocks.rate_limit_error(30)))
        assert isinstance(error, UpstreamApiError)
        assert error.error.code == "RATE_LIMIT_EXCEEDED"
        assert error.retry_after == 30

    def test_flat_error_body(self):
        response = httpx.Response(422, json={"errno": "2001", "message": "Duration must be positive"})
        error = error_from_response(response)
        assert error.error.code == "VALIDATION_ERROR"
        assert error.error.errno == 2001

    def test_unmapped_status_with_body(self):
        error = error_from_response(httpx.Response(418, json={"message": "teapot"}))
        assert error.error.code == "HTTP_418"
        assert normalize_error(error).code is ErrorCode.INTERNAL_ERROR

    def test_no_body(self):
        error = error_from_response(httpx.Response(502, text="<html>bad gateway</html>"))
        assert isinstance(error, HttpStatusError)
        assert error.status_code == 502
        assert error.status_text == "Bad Gateway"


class TestRetryHelpers:
    @pytest.mark.parametrize("value, expected", [("5", 5), (" 60 ", 60), (None, None), ("Wed, 21 Oct 2026 07:28:00 GMT", None)])
    def test_parse_retry_after(self, value, expected):
        assert parse_retry_after(value) == expected

    def test_should_retry(self):
        assert should_retry(normalize_error(mocks.rate_limit_error(1)))
        assert should_retry(normalize_error(Exception("socket hang up")))
        assert not should_retry(normalize_error(ValueError("x")))
        assert not should_retry(create_not_found_error("Project", 1))
        assert not should_retry(ValueError("raw"))


# ---------------------------------------------------------------------------
# Requests and retries
# ---------------------------------------------------------------------------


class TestRequest:
    @pytest.mark.asyncio
    async def test_success_returns_json(self):
        client, seen = _client(lambda request, n: httpx.Response(200, json={"response": {"result": {"id": 1}}}))
        async with client:
            body = await client.get("/accounting/account/ABC/users/clients/1")
        assert body == {"response": {"result": {"id": 1}}}
        assert seen[0].headers["Authorization"] == "Bearer access-token"

    @pytest.mark.asyncio
    async def test_empty_body(self):
        client, _ = _client(lambda request, n: httpx.Response(204))
        async with client:
            assert await client.delete("/projects/1") is None

    @pytest.mark.asyncio
    async def test_non_retryable_error_raised_once(self):
        client, seen = _client(lambda request, n: mocks.accounting_error_response(404, "Not found"))
        async with client:
            with pytest.raises(MCPError) as exc_info:
                await client.get("/x", operation="timeentry_single")

        err = exc_info.value
        assert len(seen) == 1
        assert err.code is ErrorCode.RESOURCE_NOT_FOUND
        assert err.context.operation == "timeentry_single"
        assert err.context.account_id == "ABC123XYZ"
        assert err.context.request_id.startswith("req_")
        assert isinstance(err.__cause__, UpstreamApiError)

    @pytest.mark.asyncio
    async def test_retries_transient_then_succeeds(self):
        def handler(request, n):
            if n < 3:
                return httpx.Response(503)
            return httpx.Response(200, json={"ok": True})

        client, seen = _client(handler)
        async with client:
            assert await client.get("/x") == {"ok": True}
        assert len(seen) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        client, seen = _client(lambda request, n: httpx.Response(503), max_retries=2)
        async with client:
            with pytest.raises(MCPError) as exc_info:
                await client.get("/x")
        assert len(seen) == 2
        assert exc_info.value.code is ErrorCode.SERVICE_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_rate_limit_waits_retry_after(self):
        def handler(request, n):
            if n == 1:
                return mocks.accounting_error_response(429, "Slow down", headers={"Retry-After": "0"})
            return httpx.Response(200, json={})

        client, seen = _client(handler)
        async with client:
            assert await client.get("/x") == {}
        assert len(seen) == 2

    @pytest.mark.asyncio
    async def test_transport_error_normalized_and_retried(self):
        def handler(request, n):
            raise httpx.ConnectError("connection refused", request=request)

        client, seen = _client(handler)
        async with client:
            with pytest.raises(MCPError) as exc_info:
                await client.post("/x", json={"a": 1})
        assert len(seen) == 3
        assert exc_info.value.message == "Could not connect to FreshBooks API."
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_upstream_internal_error_not_retried(self):
        client, seen = _client(lambda request, n: mocks.accounting_error_response(500, "Oops"))
        async with client:
            with pytest.raises(MCPError) as exc_info:
                await client.put("/x", json={})
        assert len(seen) == 1
        assert exc_info.value.code is ErrorCode.INTERNAL_ERROR

    @pytest.mark.asyncio
    async def test_execute_with_retry_passes_mcp_errors_through(self):
        client, _ = _client(lambda request, n: httpx.Response(200))
        inner = create_not_found_error("Project", 1, {"tool": "project_single"})

        async def call():
            raise inner

        async with client:
            with pytest.raises(MCPError) as exc_info:
                await client.execute_with_retry("project_single", call)
        assert exc_info.value is inner


class TestBackoff:
    @staticmethod
    def _state(error, attempt):
        outcome = Future()
        outcome.set_exception(error)
        return SimpleNamespace(outcome=outcome, attempt_number=attempt)

    def test_exponential_capped(self):
        client = FreshBooksClient("t", config=ApiConfig(base_backoff_ms=1000, max_backoff_ms=3000))
        error = normalize_error({"statusCode": 503})
        waits = [client._wait(self._state(error, attempt)) for attempt in (1, 2, 3)]
        assert waits == [1.0, 2.0, 3.0]

    def test_retry_after_overrides_backoff(self):
        client = FreshBooksClient("t", config=ApiConfig(base_backoff_ms=1000))
        error = normalize_error(mocks.rate_limit_error(45))
        assert client._wait(self._state(error, 1)) == 45.0
