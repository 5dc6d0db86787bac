"""FreshBooks MCP bootstrap: configuration, logging and tracing, set up once."""

from __future__ import annotations

from pathlib import Path

from freshbooks_mcp.config import FreshBooksMCPConfig, set_config
from freshbooks_mcp.logging import get_logger, setup_logging
from freshbooks_mcp.tools.base import BaseTool, ToolContext
from freshbooks_mcp.tracing import setup_tracing

log = get_logger("freshbooks_mcp.bootstrap")


def bootstrap(config: FreshBooksMCPConfig | None = None, config_path: Path | None = None) -> FreshBooksMCPConfig:
    """Load configuration, install it process-wide and configure observability.

    JSON log lines are forced in production regardless of ``logging.format``.
    """
    config = config or FreshBooksMCPConfig.load(config_path)
    set_config(config)

    json_output = config.logging.format == "json" or config.is_production
    setup_logging(json_output=json_output, level=config.logging.level)
    setup_tracing(
        service_name="freshbooks-mcp",
        console=config.tracing.console,
        otlp_endpoint=config.tracing.otlp_endpoint,
    )

    log.info(
        "config_loaded",
        environment=config.environment,
        base_url=config.api.base_url,
        max_retries=config.api.max_retries,
    )
    return config


def build_tools(context: ToolContext) -> list[BaseTool]:
    """Instantiate the built-in tools against one shared context."""
    from freshbooks_mcp.tools.error_docs import ErrorDocsTool

    return [ErrorDocsTool(context=context)]
