"""Property-based tests using Hypothesis for the pure error functions."""

from hypothesis import given, settings
from hypothesis import strategies as st

from freshbooks_mcp.errors.codes import ErrorCode, default_recoverable, is_taxonomy_code
from freshbooks_mcp.errors.formatter import (
    format_error_for_agent,
    format_error_for_logging,
    get_retry_delay_ms,
    mask_account_id,
)
from freshbooks_mcp.errors.handler import normalize_error
from freshbooks_mcp.errors.mapper import UPSTREAM_MAPPINGS, map_http_error
from freshbooks_mcp.errors.types import MCPError

context_strategy = st.one_of(
    st.none(),
    st.fixed_dictionaries(
        {},
        optional={
            "tool": st.text(min_size=1, max_size=30),
            "accountId": st.text(max_size=20),
            "entityId": st.one_of(st.integers(), st.text(max_size=10)),
            "requestId": st.text(min_size=1, max_size=40),
        },
    ),
)

raw_strategy = st.one_of(
    st.builds(
        lambda code, message, retry_after: {
            "ok": False,
            "error": {"code": code, "message": message, "retryAfter": retry_after},
        },
        st.one_of(st.sampled_from(sorted(UPSTREAM_MAPPINGS)), st.text(max_size=20)),
        st.text(max_size=50),
        st.one_of(st.none(), st.integers(min_value=0, max_value=3600)),
    ),
    st.builds(lambda status: {"statusCode": status}, st.integers(min_value=100, max_value=599)),
    st.builds(Exception, st.text(max_size=50)),
    st.builds(ValueError, st.text(max_size=50)),
    st.text(max_size=50),
    st.integers(),
    st.none(),
)


# ---------------------------------------------------------------------------
# Normalization invariants
# ---------------------------------------------------------------------------


class TestNormalizeProperties:
    @given(raw=raw_strategy, context=context_strategy)
    @settings(max_examples=200)
    def test_always_produces_valid_error(self, raw, context):
        """Any input yields one normalized error with a taxonomy code and a suggestion."""
        err = normalize_error(raw, context)
        assert isinstance(err, MCPError)
        assert is_taxonomy_code(int(err.code))
        assert err.suggestion
        if err.retry_after is not None:
            assert err.recoverable

    @given(raw=raw_strategy, context=context_strategy)
    @settings(max_examples=100)
    def test_idempotent(self, raw, context):
        once = normalize_error(raw, context)
        assert normalize_error(once, {"tool": "other"}) is once or once.context is None
        assert normalize_error(once.to_dict()).to_dict() == once.to_dict()

    @given(raw=raw_strategy)
    @settings(max_examples=100)
    def test_agent_text_states_recoverability(self, raw):
        err = normalize_error(raw)
        text = format_error_for_agent(err)
        assert text.startswith("**Error:**")
        assert ("may be resolved by retrying" in text) is err.recoverable
        assert ("cannot be recovered by retrying" in text) is (not err.recoverable)


# ---------------------------------------------------------------------------
# HTTP status mapping
# ---------------------------------------------------------------------------


class TestHttpMappingProperties:
    @given(status=st.integers(min_value=100, max_value=599))
    @settings(max_examples=100)
    def test_recoverability_follows_code(self, status):
        err = map_http_error(status)
        assert err.recoverable is default_recoverable(err.code)
        assert err.original_error.status_code == status


# ---------------------------------------------------------------------------
# Masking / retry delay
# ---------------------------------------------------------------------------


class TestMaskProperties:
    @given(account_id=st.text(max_size=6))
    def test_short_ids_fully_masked(self, account_id):
        assert mask_account_id(account_id) == "***"

    @given(account_id=st.text(min_size=7, max_size=64))
    def test_long_ids_keep_edges_only(self, account_id):
        masked = mask_account_id(account_id)
        assert masked == account_id[:3] + "..." + account_id[-3:]
        assert len(masked) == 9

    @given(account_id=st.text(min_size=7, max_size=64))
    def test_log_record_never_contains_full_id(self, account_id):
        err = normalize_error(ValueError("x"), {"accountId": account_id})
        assert format_error_for_logging(err)["accountId"] == mask_account_id(account_id)


class TestRetryDelayProperties:
    @given(retry_after=st.integers(min_value=0, max_value=86_400))
    def test_retry_after_in_milliseconds(self, retry_after):
        err = normalize_error({"ok": False, "error": {"code": "RATE_LIMIT_EXCEEDED", "retryAfter": retry_after}})
        assert get_retry_delay_ms(err) == retry_after * 1000

    @given(raw=raw_strategy)
    @settings(max_examples=100)
    def test_delay_none_iff_not_recoverable(self, raw):
        err = normalize_error(raw)
        delay = get_retry_delay_ms(err)
        assert (delay is None) is (not err.recoverable)
        if delay is not None:
            assert delay >= 0

    def test_codes_without_default_use_fallback(self):
        err = normalize_error({"ok": False, "error": {"code": "UNAUTHORIZED"}})
        assert err.code is ErrorCode.NOT_AUTHENTICATED
        assert get_retry_delay_ms(err) == 1000
