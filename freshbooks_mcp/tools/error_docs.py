"""Error Docs Tool: look up or search the error code catalog."""

from __future__ import annotations

from pydantic import BaseModel, Field

from freshbooks_mcp.errors.documentation import (
    format_error_documentation,
    get_error_documentation,
    search_error_documentation,
)
from freshbooks_mcp.errors.handler import create_not_found_error, create_validation_error
from freshbooks_mcp.tools.base import BaseTool


class ErrorDocsInput(BaseModel):
    code: int | None = Field(default=None, description="Error code to explain, e.g. -32005.")
    query: str | None = Field(default=None, min_length=1, description="Free-text search over the catalog.")


class ErrorDocsTool(BaseTool):
    name = "error_docs"
    description = (
        "Explains FreshBooks MCP error codes: what they mean, common causes and how to fix them. "
        "Pass `code` for one error or `query` to search."
    )
    input_model = ErrorDocsInput

    async def execute(self, params: ErrorDocsInput) -> str:  # type: ignore[override]
        if params.code is not None:
            if get_error_documentation(params.code) is None:
                raise create_not_found_error("ErrorCode", params.code)
            return format_error_documentation(params.code)

        if params.query is None:
            raise create_validation_error("Provide either 'code' or 'query'")

        matches = search_error_documentation(params.query)
        if not matches:
            return f"No error documentation matches '{params.query}'."
        return "\n\n---\n\n".join(format_error_documentation(code) for code, _ in matches)
