"""FreshBooks MCP exception hierarchy.

Every exception raised by this package derives from
:class:`FreshBooksMCPError`, so transport code can use a single ``except``
clause for anything the server itself produced.  The normalized error and
the raw failure variants live in :mod:`freshbooks_mcp.errors.types`.
"""


class FreshBooksMCPError(Exception):
    """Base class for all FreshBooks MCP errors."""


class ConfigError(FreshBooksMCPError):
    """Invalid or missing configuration."""
