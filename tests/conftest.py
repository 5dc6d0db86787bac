"""Shared test fixtures for the FreshBooks MCP test suite."""

import os

import pytest


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Keep real configuration out of tests.

    Drops FRESHBOOKS_MCP_* and the legacy ENVIRONMENT variable, resets the
    cached configuration and points the default TOML path at an empty temp
    directory.
    """
    import freshbooks_mcp.config as config_mod

    for key in list(os.environ):
        if key.startswith("FRESHBOOKS_MCP_"):
            monkeypatch.delenv(key, raising=False)
    for key in ("ENVIRONMENT", "OTEL_EXPORTER_OTLP_ENDPOINT", "OTEL_TRACES_CONSOLE"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config_mod, "CONFIG_PATH", tmp_path / "missing" / "config.toml")
    monkeypatch.setattr(config_mod, "_config", None)


@pytest.fixture
def tmp_toml(tmp_path):
    """Create a temporary TOML config file and return its Path."""

    def _write(content: str):
        p = tmp_path / "config.toml"
        p.write_text(content)
        return p

    return _write


@pytest.fixture
def tool_context():
    """Invocation context as a tool sees it."""
    from freshbooks_mcp.tools.base import ToolContext

    return ToolContext(account_id="ABC123XYZ")
