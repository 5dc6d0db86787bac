"""Tests for freshbooks_mcp.errors.handler: dispatch and tool wrapping."""

import asyncio
import re

import httpx
import pytest
from pydantic import BaseModel, ValidationError

from freshbooks_mcp.config import FreshBooksMCPConfig, set_config
from freshbooks_mcp.errors.codes import ErrorCode
from freshbooks_mcp.errors.formatter import format_error_for_agent
from freshbooks_mcp.errors.handler import (
    coerce_raw_failure,
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
    HttpStatusError,
    MCPError,
    OAuthError,
    UpstreamApiError,
)
from tests.mocks import freshbooks_errors as mocks

REQUEST_ID_RE = re.compile(r"^req_[0-9A-HJKMNP-TV-Z]{26}$")


class TimeEntryInput(BaseModel):
    accountId: str
    timeEntryId: int


# ---------------------------------------------------------------------------
# Request ids
# ---------------------------------------------------------------------------


class TestRequestId:
    def test_format(self):
        assert REQUEST_ID_RE.match(generate_request_id())

    def test_unique(self):
        assert len({generate_request_id() for _ in range(500)}) == 500


# ---------------------------------------------------------------------------
# Boundary coercion
# ---------------------------------------------------------------------------


class TestCoercion:
    def test_sdk_result_becomes_upstream(self):
        assert isinstance(coerce_raw_failure(mocks.unauthorized_error()), UpstreamApiError)

    def test_wire_error_becomes_mcp_error(self):
        wire = create_not_found_error("Project", 7).to_dict()
        assert isinstance(coerce_raw_failure(wire), MCPError)

    def test_wire_shape_with_ok_key_is_not_normalized(self):
        wire = create_not_found_error("Project", 7).to_dict()
        wire["ok"] = False
        assert not isinstance(coerce_raw_failure(wire), MCPError)

    def test_status_mapping(self):
        raw = coerce_raw_failure({"statusCode": 502, "statusText": "Bad Gateway"})
        assert isinstance(raw, HttpStatusError)
        assert raw.status_text == "Bad Gateway"

    def test_oauth_body(self):
        assert isinstance(coerce_raw_failure(mocks.oauth_error()), OAuthError)

    def test_other_values_untouched(self):
        value = {"something": "else"}
        assert coerce_raw_failure(value) is value
        assert coerce_raw_failure("text") == "text"


# ---------------------------------------------------------------------------
# normalize_error
# ---------------------------------------------------------------------------


class TestNormalizeError:
    def test_upstream_not_found_scenario(self):
        err = normalize_error(
            mocks.not_found_error("TimeEntry", 99999, errno=1012),
            {"tool": "timeentry_single", "entityId": 99999},
        )
        assert err.code is ErrorCode.RESOURCE_NOT_FOUND
        assert err.recoverable is False
        assert err.original_error.code == "NOT_FOUND"
        assert err.original_error.errno == 1012
        assert "not found" in err.message.lower()
        assert err.context.tool == "timeentry_single"
        assert err.context.entity_id == 99999

    def test_validation_scenario(self):
        with pytest.raises(ValidationError) as exc_info:
            TimeEntryInput.model_validate({"timeEntryId": "abc"})
        err = normalize_error(exc_info.value)
        assert err.code is ErrorCode.INVALID_PARAMS
        assert len(err.validation_errors) == 2
        assert err.validation_errors[0].path == "accountId"
        assert err.validation_errors[1].expected == "int"

    def test_rate_limit_scenario(self):
        err = normalize_error(mocks.rate_limit_error(60))
        assert err.recoverable is True
        assert err.retry_after == 60
        assert "Retry After: 60 seconds" in format_error_for_agent(err)

    def test_socket_hang_up_scenario(self):
        err = normalize_error(Exception("socket hang up"))
        assert err.code is ErrorCode.SERVICE_UNAVAILABLE
        assert err.recoverable is True
        assert err.message == "Connection was closed unexpectedly."
        assert err.validation_errors is None

    def test_timeout_word_in_unrelated_error(self):
        err = normalize_error(ValueError("invalid timeout parameter"))
        assert err.code is ErrorCode.INTERNAL_ERROR
        assert err.message == "Unexpected error: invalid timeout parameter"

    def test_oauth(self):
        err = normalize_error(OAuthError("invalid_grant", "expired refresh token"))
        assert err.code is ErrorCode.TOKEN_EXPIRED

    def test_http_status_error(self):
        assert normalize_error(HttpStatusError(404)).code is ErrorCode.RESOURCE_NOT_FOUND

    def test_http_status_before_token_sniffing(self):
        err = normalize_error(HttpStatusError(504, "Gateway Timeout"))
        assert err.original_error.code == "HTTP_504"

    def test_httpx_status_error(self):
        request = httpx.Request("GET", "https://api.freshbooks.com/x")
        response = httpx.Response(403, request=request)
        exc = httpx.HTTPStatusError("forbidden", request=request, response=response)
        err = normalize_error(exc)
        assert err.code is ErrorCode.PERMISSION_DENIED
        assert err.original_error.message == "Forbidden"

    def test_unknown(self):
        err = normalize_error(ValueError("weird"))
        assert err.code is ErrorCode.INTERNAL_ERROR
        assert err.recoverable is True

    def test_non_exception_values(self):
        assert normalize_error(None).code is ErrorCode.INTERNAL_ERROR
        assert normalize_error("boom").message == "Unexpected error: boom"

    def test_idempotent(self):
        once = normalize_error(mocks.forbidden_error(), {"tool": "a"})
        twice = normalize_error(once, {"tool": "b"})
        assert twice is once
        assert twice.to_dict() == once.to_dict()

    def test_context_added_to_bare_normalized_error(self):
        bare = create_validation_error("billable entry requires a project")
        err = normalize_error(bare, ErrorContext(tool="timeentry_create"))
        assert err is not bare
        assert err.context.tool == "timeentry_create"
        assert bare.context is None

    def test_wire_dict_round_trips_through_normalize(self):
        original = normalize_error(mocks.conflict_error("Client", "email"), {"tool": "client_create"})
        again = normalize_error(original.to_dict())
        assert again.to_dict() == original.to_dict()

    def test_ill_typed_context_keys_are_dropped_individually(self):
        err = normalize_error(ValueError("x"), {"tool": "timeentry_single", "entityId": ["not", "scalar"]})
        assert err.code is ErrorCode.INTERNAL_ERROR
        assert err.context.to_dict() == {"tool": "timeentry_single"}

    def test_numeric_account_id_keeps_context(self):
        err = normalize_error(ValueError("x"), {"tool": "timeentry_single", "accountId": 12345, "requestId": "r1"})
        assert err.context.to_dict() == {"tool": "timeentry_single", "accountId": "12345", "requestId": "r1"}

    def test_non_mapping_context_is_dropped(self):
        err = normalize_error(ValueError("x"), 42)
        assert err.context is None
        assert err.code is ErrorCode.INTERNAL_ERROR

    def test_wire_error_without_suggestion_keeps_classification(self):
        err = normalize_error({"code": -32005, "message": "Project 7 gone", "data": {"recoverable": False}})
        assert err.code is ErrorCode.RESOURCE_NOT_FOUND
        assert err.message == "Project 7 gone"
        assert err.recoverable is False
        assert err.suggestion

    def test_upstream_error_with_non_numeric_errno(self):
        err = normalize_error({"ok": False, "error": {"code": "NOT_FOUND", "message": "gone", "errno": "E1012"}})
        assert err.code is ErrorCode.RESOURCE_NOT_FOUND
        assert err.recoverable is False
        assert err.original_error.code == "NOT_FOUND"
        assert err.original_error.errno is None

    def test_never_raises(self, monkeypatch):
        import freshbooks_mcp.errors.handler as handler_mod

        def broken(*args, **kwargs):
            raise RuntimeError("mapper bug")

        monkeypatch.setattr(handler_mod, "map_unknown_error", broken)
        err = normalize_error(ValueError("x"), {"tool": "t"})
        assert err.code is ErrorCode.INTERNAL_ERROR
        assert err.message == "Unexpected error: ValueError"
        assert err.context.tool == "t"

    def test_handle_error_alias(self):
        assert handle_error is normalize_error


# ---------------------------------------------------------------------------
# Direct constructors
# ---------------------------------------------------------------------------


class TestConstructors:
    def test_validation(self):
        err = create_validation_error("billable entry requires a project", {"tool": "timeentry_create"})
        assert err.code is ErrorCode.INVALID_PARAMS
        assert err.recoverable is True
        assert err.context.tool == "timeentry_create"

    def test_auth_explicit_url(self):
        err = create_auth_error("Not signed in", auth_url="https://auth.example.com")
        assert err.code is ErrorCode.NOT_AUTHENTICATED
        assert err.recoverable is True
        assert err.to_dict()["data"]["authUrl"] == "https://auth.example.com"

    def test_auth_url_from_config(self, monkeypatch):
        monkeypatch.setenv("FRESHBOOKS_MCP_AUTH__AUTH_URL_HINT", "https://hint.example.com")
        assert create_auth_error("Not signed in").data.auth_url == "https://hint.example.com"

    def test_auth_url_from_installed_config(self, monkeypatch):
        set_config(FreshBooksMCPConfig(auth={"auth_url_hint": "https://installed.example.com"}))
        monkeypatch.setenv("FRESHBOOKS_MCP_AUTH__AUTH_URL_HINT", "https://env.example.com")
        assert create_auth_error("Not signed in").data.auth_url == "https://installed.example.com"

    def test_not_found(self):
        err = create_not_found_error("TimeEntry", 99999)
        assert err.code is ErrorCode.RESOURCE_NOT_FOUND
        assert err.recoverable is False
        assert err.message == "TimeEntry with id 99999 was not found"


# ---------------------------------------------------------------------------
# wrap_handler
# ---------------------------------------------------------------------------


class TestWrapHandler:
    @pytest.mark.asyncio
    async def test_passes_result_through(self):
        async def handler(payload, context):
            return {"echo": payload}

        wrapped = wrap_handler("echo", handler)
        assert await wrapped({"a": 1}, None) == {"echo": {"a": 1}}

    @pytest.mark.asyncio
    async def test_decorator_form(self):
        @wrap_handler("decorated")
        async def handler(payload, context):
            return "ok"

        assert await handler({}, None) == "ok"
        assert handler.__name__ == "handler"

    @pytest.mark.asyncio
    async def test_normalizes_and_chains(self):
        async def handler(payload, context):
            raise UpstreamApiError.from_response(mocks.not_found_error("TimeEntry", 99999))

        wrapped = wrap_handler("timeentry_single", handler)
        with pytest.raises(MCPError) as exc_info:
            await wrapped({}, {"accountId": "ABC123XYZ"})

        err = exc_info.value
        assert err.code is ErrorCode.RESOURCE_NOT_FOUND
        assert isinstance(err.__cause__, UpstreamApiError)
        assert err.context.tool == "timeentry_single"
        assert err.context.account_id == "ABC123XYZ"
        assert REQUEST_ID_RE.match(err.context.request_id)

    @pytest.mark.asyncio
    async def test_account_id_from_attribute(self, tool_context):
        async def handler(payload, context):
            raise ValueError("x")

        with pytest.raises(MCPError) as exc_info:
            await wrap_handler("t", handler)({}, tool_context)
        assert exc_info.value.context.account_id == "ABC123XYZ"

    @pytest.mark.asyncio
    async def test_existing_context_wins(self):
        inner = create_validation_error("bad", {"tool": "inner_tool"})

        async def handler(payload, context):
            raise inner

        with pytest.raises(MCPError) as exc_info:
            await wrap_handler("outer_tool", handler)({}, None)
        assert exc_info.value is inner
        assert exc_info.value.context.tool == "inner_tool"

    @pytest.mark.asyncio
    async def test_fresh_request_id_per_call(self):
        async def handler(payload, context):
            raise ValueError("x")

        wrapped = wrap_handler("t", handler)
        ids = set()
        for _ in range(3):
            with pytest.raises(MCPError) as exc_info:
                await wrapped({}, None)
            ids.add(exc_info.value.context.request_id)
        assert len(ids) == 3

    @pytest.mark.asyncio
    async def test_concurrent_invocations_isolated(self):
        async def handler(payload, context):
            await asyncio.sleep(0)
            raise ValueError(payload["n"])

        wrapped = wrap_handler("t", handler)
        results = await asyncio.gather(*(wrapped({"n": str(i)}, None) for i in range(10)), return_exceptions=True)
        assert all(isinstance(r, MCPError) for r in results)
        assert len({r.context.request_id for r in results}) == 10
        assert [r.message for r in results] == [f"Unexpected error: {i}" for i in range(10)]

    @pytest.mark.asyncio
    async def test_cancellation_not_intercepted(self):
        async def handler(payload, context):
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await wrap_handler("t", handler)({}, None)
