"""
MCP server for codemode.

Exposes the sandbox as a single ``execute`` tool to MCP clients.

Usage:
    codemode serve
"""

from .server import CodeModeServer, ServerConfig, ToolCallResult, create_server
from .tools import CodeModeTools, ToolDefinition, ToolParameter

__all__ = [
    "CodeModeServer",
    "CodeModeTools",
    "ServerConfig",
    "ToolCallResult",
    "ToolDefinition",
    "ToolParameter",
    "create_server",
]
