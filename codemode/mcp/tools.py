"""
MCP tool definitions for the codemode server.

The server exposes exactly one tool, ``execute``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

EXECUTE_TOOL = "execute"


@dataclass
class ToolParameter:
    """Parameter definition for an MCP tool."""

    name: str
    description: str
    type: str = "string"
    required: bool = False
    default: Any = None


@dataclass
class ToolDefinition:
    """Definition of an MCP tool."""

    name: str
    description: str
    parameters: list[ToolParameter]

    def to_mcp_schema(self) -> dict[str, Any]:
        """Convert to MCP tool schema format."""
        properties = {}
        required = []

        for param in self.parameters:
            prop = {
                "type": param.type,
                "description": param.description,
            }
            if param.default is not None:
                prop["default"] = param.default

            properties[param.name] = prop

            if param.required:
                required.append(param.name)

        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        }


class CodeModeTools:
    """Tools exposed via MCP."""

    @staticmethod
    def execute(default_timeout_ms: int = 30000) -> ToolDefinition:
        """Tool for running a snippet in the sandbox."""
        return ToolDefinition(
            name=EXECUTE_TOOL,
            description=(
                "Execute a JavaScript/TypeScript snippet in a sandbox. The snippet runs "
                "as the body of an async function: use `return` for the result and "
                "`await` capability calls such as `filesystem.readFile({ path })`, "
                "`bestcase.searchBestCases({ keywords })`, `guides.searchGuides({ keywords })` "
                "and `metadata.analyzeFile({ filePath, content })`. "
                "import/export statements are removed; `context` holds the optional "
                "context argument."
            ),
            parameters=[
                ToolParameter(
                    name="code",
                    description="Snippet to execute",
                    type="string",
                    required=True,
                ),
                ToolParameter(
                    name="timeoutMs",
                    description="Timeout in milliseconds",
                    type="integer",
                    required=False,
                    default=default_timeout_ms,
                ),
                ToolParameter(
                    name="context",
                    description="JSON value exposed to the snippet as the read-only global `context`",
                    type="object",
                    required=False,
                ),
            ],
        )

    @classmethod
    def all_tools(cls, default_timeout_ms: int = 30000) -> list[ToolDefinition]:
        return [cls.execute(default_timeout_ms)]

    @classmethod
    def to_mcp_tools(cls, default_timeout_ms: int = 30000) -> list[dict[str, Any]]:
        """Convert all tools to MCP schema format."""
        return [tool.to_mcp_schema() for tool in cls.all_tools(default_timeout_ms)]
