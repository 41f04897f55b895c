"""
codemode MCP server.

JSON-RPC 2.0 over newline-delimited stdio. stdout carries protocol messages
only; diagnostics go to the ``codemode`` logger on stderr.
"""

from __future__ import annotations

import asyncio
import json
import sys
from dataclasses import dataclass
from typing import Any

from ..core.logging import get_logger
from ..sandbox.engine import SandboxEngine
from ..sandbox.types import ExecutionRequest
from .tools import EXECUTE_TOOL, CodeModeTools

logger = get_logger(__name__)

PROTOCOL_VERSION = "2024-11-05"


@dataclass
class ServerConfig:
    """Configuration for the MCP server."""

    name: str = "codemode"
    version: str = "0.1.0"
    transport: str = "stdio"


@dataclass
class ToolCallResult:
    """Result of a tool call."""

    success: bool
    content: Any
    error: str | None = None

    def to_mcp_response(self) -> dict[str, Any]:
        """Convert to MCP response format."""
        if self.content is not None:
            text = (
                json.dumps(self.content, indent=2)
                if isinstance(self.content, (dict, list))
                else str(self.content)
            )
        else:
            text = self.error or "Unknown error"
        response: dict[str, Any] = {"content": [{"type": "text", "text": text}]}
        if not self.success:
            response["isError"] = True
        return response


class CodeModeServer:
    """
    MCP server for codemode.

    Handles MCP protocol messages and dispatches ``execute`` calls to a
    :class:`SandboxEngine`.
    """

    def __init__(self, config: ServerConfig | None = None, engine: SandboxEngine | None = None):
        self.config = config or ServerConfig()
        self.engine = engine or SandboxEngine()

    async def handle_initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle MCP initialize request."""
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {
                "tools": {},
            },
            "serverInfo": {
                "name": self.config.name,
                "version": self.config.version,
            },
        }

    async def handle_tools_list(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle tools/list request."""
        return {
            "tools": CodeModeTools.to_mcp_tools(self.engine.config.sandbox.default_timeout_ms),
        }

    async def handle_tools_call(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle tools/call request."""
        tool_name = params.get("name", "")
        arguments = params.get("arguments") or {}

        if tool_name != EXECUTE_TOOL:
            return ToolCallResult(
                success=False,
                content=None,
                error=f"Tool not found: {tool_name}. Only '{EXECUTE_TOOL}' tool is available.",
            ).to_mcp_response()

        logger.info(f"Tool call: {tool_name}")
        return (await self._handle_execute(arguments)).to_mcp_response()

    async def _handle_execute(self, args: dict[str, Any]) -> ToolCallResult:
        """Handle execute tool call."""
        request = ExecutionRequest(
            code=args.get("code", ""),
            timeout_ms=args.get("timeoutMs"),
            context=args.get("context"),
        )
        result = await self.engine.run(request)
        return ToolCallResult(success=result.ok, content=result.to_dict(), error=result.error)

    async def handle_message(self, message: dict[str, Any]) -> dict[str, Any] | None:
        """Handle an incoming MCP message."""
        method = message.get("method", "")
        params = message.get("params") or {}
        msg_id = message.get("id")

        handlers = {
            "initialize": self.handle_initialize,
            "tools/list": self.handle_tools_list,
            "tools/call": self.handle_tools_call,
        }

        handler = handlers.get(method)
        if handler is None:
            if msg_id is not None:
                return {
                    "jsonrpc": "2.0",
                    "id": msg_id,
                    "error": {
                        "code": -32601,
                        "message": f"Method not found: {method}",
                    },
                }
            return None

        try:
            result = await handler(params)
            if msg_id is not None:
                return {
                    "jsonrpc": "2.0",
                    "id": msg_id,
                    "result": result,
                }
            return None
        except Exception as e:
            logger.error(f"Request {method} failed: {e}")
            if msg_id is not None:
                return {
                    "jsonrpc": "2.0",
                    "id": msg_id,
                    "error": {
                        "code": -32603,
                        "message": str(e),
                    },
                }
            return None

    async def run_stdio(self) -> None:
        """Run the server using stdio transport."""
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader(limit=16 * 1024 * 1024)
        protocol = asyncio.StreamReaderProtocol(reader)
        await loop.connect_read_pipe(lambda: protocol, sys.stdin)

        writer_transport, writer_protocol = await loop.connect_write_pipe(
            asyncio.streams.FlowControlMixin, sys.stdout
        )
        writer = asyncio.StreamWriter(writer_transport, writer_protocol, reader, loop)

        logger.info(f"{self.config.name} MCP server listening on stdio")
        while True:
            line = await reader.readline()
            if not line:
                break

            try:
                message = json.loads(line.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError):
                logger.warning("Ignoring malformed message")
                continue
            if not isinstance(message, dict):
                logger.warning("Ignoring non-object message")
                continue

            response = await self.handle_message(message)
            if response is not None:
                writer.write((json.dumps(response) + "\n").encode("utf-8"))
                await writer.drain()

        logger.info("stdin closed, shutting down")

    async def run(self) -> None:
        """Run the MCP server."""
        if self.config.transport == "stdio":
            await self.run_stdio()
        else:
            raise NotImplementedError(f"Transport not implemented: {self.config.transport}")


def create_server(
    config: ServerConfig | None = None, engine: SandboxEngine | None = None
) -> CodeModeServer:
    """Create a codemode MCP server instance."""
    return CodeModeServer(config, engine)
