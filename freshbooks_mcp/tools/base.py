"""Tool base: shared context, schema export and error-normalized invocation.

Every tool validates its arguments against ``input_model`` and runs inside
``wrap_handler``, so failures reach the caller as an ``isError`` tool result.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

import orjson
from pydantic import BaseModel

from freshbooks_mcp.errors.formatter import format_tool_error_result
from freshbooks_mcp.errors.handler import wrap_handler
from freshbooks_mcp.errors.types import MCPError

if TYPE_CHECKING:
    from freshbooks_mcp.client import FreshBooksClient
    from freshbooks_mcp.config import FreshBooksMCPConfig


@dataclass
class ToolContext:
    """Per-session dependencies shared by every tool."""

    account_id: str | None = None
    client: FreshBooksClient | None = None
    config: FreshBooksMCPConfig | None = None
    start_time: float = field(default_factory=time.monotonic)


class BaseTool(ABC):
    """Base class for FreshBooks MCP tools.

    Subclasses declare ``name``, ``description`` and a pydantic
    ``input_model`` and implement :meth:`execute`.  Input validation and the
    tool body both run inside ``wrap_handler``, so every failure leaves
    :meth:`run` as an :class:`MCPError`.
    """

    name: ClassVar[str]
    description: ClassVar[str]
    input_model: ClassVar[type[BaseModel]]

    def __init__(self, context: ToolContext | None = None):
        self.context = context or ToolContext()
        self._wrapped = wrap_handler(self.name, self._invoke)

    @property
    def definition(self) -> dict[str, Any]:
        """MCP tool definition (name, description, JSON schema)."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_model.model_json_schema(),
        }

    @abstractmethod
    async def execute(self, params: Any) -> Any:
        """Executes the tool logic with validated input."""
        ...

    async def _invoke(self, payload: Mapping[str, Any], context: ToolContext) -> Any:
        params = self.input_model.model_validate(dict(payload))
        return await self.execute(params)

    async def run(self, arguments: Mapping[str, Any] | None = None) -> Any:
        """Validate *arguments* and execute; raises :class:`MCPError` on failure."""
        return await self._wrapped(arguments or {}, self.context)

    async def call(self, arguments: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Run the tool and shape the outcome as an MCP ``tools/call`` result."""
        try:
            result = await self.run(arguments)
        except MCPError as error:
            return format_tool_error_result(error)

        text = result if isinstance(result, str) else orjson.dumps(result, default=str).decode("utf-8")
        return {"content": [{"type": "text", "text": text}]}
