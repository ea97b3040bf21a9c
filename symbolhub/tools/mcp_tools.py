"""
Dynamic tools served by MCP (Model Context Protocol) servers.

Servers are listed in a JSON config file::

    {"mcpServers": {"git": {"command": "uvx", "args": ["mcp-server-git"], "env": {}}}}

Each server is spawned over stdio, its tools are listed once at startup
and registered with the broker under ``mcp::<tool name>``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import AsyncExitStack
from pathlib import Path
from typing import Any, Mapping

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import SerializationError, ToolBrokerConfigError, ToolInvocationError, WrongToolInputError
from .types import Tool, ToolInput, ToolOutput, dynamic_tool_type

logger = logging.getLogger(__name__)


# ── Config file ────────────────────────────────────────────────────

class MCPServerConfig(BaseModel):
    command: str
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] | None = None


class MCPConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    mcp_servers: dict[str, MCPServerConfig] = Field(default_factory=dict, alias="mcpServers")


def load_mcp_config(config_path: str) -> MCPConfig | None:
    """Read the server config; a missing file means no MCP servers."""
    path = Path(config_path).expanduser()
    if not path.exists():
        logger.info("[mcp] no config at %s, skipping MCP tools", path)
        return None
    try:
        return MCPConfig.model_validate_json(path.read_text())
    except (OSError, ValidationError) as e:
        raise ToolBrokerConfigError(f"invalid MCP config {path}: {e}") from e


async def setup_mcp_clients(
    config_path: str,
    exit_stack: AsyncExitStack,
    timeout: float | None = None,
) -> dict[str, ClientSession]:
    """Spawn every configured server and return initialized sessions by server name.

    A server that fails to start within ``timeout`` seconds is logged,
    shut down and skipped. The sessions stay open until ``exit_stack``
    is closed.
    """
    config = load_mcp_config(config_path)
    if config is None:
        return {}

    clients: dict[str, ClientSession] = {}
    for server_name, server in config.mcp_servers.items():
        params = StdioServerParameters(command=server.command, args=server.args, env=server.env)
        server_stack = AsyncExitStack()
        try:
            # contexts are entered in this task; their task groups must exit here too
            async with asyncio.timeout(timeout):
                read, write = await server_stack.enter_async_context(stdio_client(params))
                session = await server_stack.enter_async_context(ClientSession(read, write))
                await session.initialize()
        except TimeoutError:
            await server_stack.aclose()
            logger.error("[mcp] server '%s' (%s) did not start within %ss", server_name, server.command, timeout)
            continue
        except Exception as e:
            await server_stack.aclose()
            logger.error("[mcp] failed to start server '%s' (%s): %s", server_name, server.command, e)
            continue
        await exit_stack.enter_async_context(server_stack)
        logger.info("[mcp] connected to server '%s'", server_name)
        clients[server_name] = session
    return clients


# ── Usage text ─────────────────────────────────────────────────────

def generate_schema_usage(tool_name: str, schema: Mapping[str, Any]) -> str:
    """LLM-facing usage text for a JSON-schema described tool."""
    properties: Mapping[str, Any] = schema.get("properties") or {}
    required = set(schema.get("required") or [])

    lines = []
    for name, prop in properties.items():
        requirement = "required" if name in required else "optional"
        description = prop.get("description", "")
        prop_type = prop.get("type", "any")
        lines.append(f"- {name}: ({requirement}) {description}, type={prop_type}")

    usage = [f"<{tool_name}>"]
    for name in properties:
        usage.append(f"<{name}>\nvalue\n</{name}>")
    usage.append(f"</{tool_name}>")

    return "\n".join(lines + ["", "Usage:"] + usage)


# ── Dynamic tool ───────────────────────────────────────────────────

class DynamicMCPToolInput(ToolInput):
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)

    def tool_type(self) -> str:
        return dynamic_tool_type(self.tool_name)


class MCPToolCallResponse(ToolOutput):
    server_name: str
    tool_name: str
    is_error: bool = False
    text: str = ""
    result: dict[str, Any] = Field(default_factory=dict)


class DynamicMCPTool(Tool):
    """One tool offered by one MCP server."""

    def __init__(
        self,
        server_name: str,
        tool_name: str,
        description: str,
        input_schema: Mapping[str, Any],
        client: ClientSession,
        timeout: float | None = None,
    ):
        self.server_name = server_name
        self.tool_name = tool_name
        self.description = description
        self.input_schema = dict(input_schema)
        self.client = client
        self.timeout = timeout

    @property
    def tool_type(self) -> str:
        return dynamic_tool_type(self.tool_name)

    async def invoke(self, tool_input: ToolInput) -> MCPToolCallResponse:
        if not isinstance(tool_input, DynamicMCPToolInput) or tool_input.tool_name != self.tool_name:
            raise WrongToolInputError(self.tool_type, tool_input)

        try:
            json.dumps(tool_input.arguments)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"arguments for '{self.tool_name}' are not JSON: {e}") from e

        logger.info("[mcp] calling %s on server '%s'", self.tool_name, self.server_name)
        try:
            result = await self.client.call_tool(self.tool_name, arguments=tool_input.arguments)
        except Exception as e:
            raise ToolInvocationError(f"MCP call {self.server_name}/{self.tool_name} failed: {e}") from e

        texts = [item.text for item in (result.content or []) if getattr(item, "text", None) is not None]
        try:
            payload = result.model_dump(mode="json")
        except Exception as e:
            raise SerializationError(f"could not encode result of '{self.tool_name}': {e}") from e

        return MCPToolCallResponse(
            server_name=self.server_name,
            tool_name=self.tool_name,
            is_error=bool(result.isError),
            text="\n".join(texts),
            result=payload,
        )

    def tool_description(self) -> str:
        return f"### {self.tool_name}\n(mcp server={self.server_name})\n{self.description}"

    def tool_input_format(self) -> str:
        return generate_schema_usage(self.tool_name, self.input_schema)


async def discover_mcp_tools(
    clients: Mapping[str, ClientSession],
    existing: Mapping[str, Tool],
    timeout: float | None = None,
) -> dict[str, DynamicMCPTool]:
    """List tools on every client; duplicate names abort the whole pass."""
    discovered: dict[str, DynamicMCPTool] = {}
    for server_name, client in clients.items():
        try:
            listing = await asyncio.wait_for(client.list_tools(), timeout)
        except TimeoutError as e:
            raise ToolBrokerConfigError(f"server '{server_name}' did not list its tools within {timeout}s") from e
        except Exception as e:
            raise ToolBrokerConfigError(f"failed listing tools from server '{server_name}': {e}") from e

        try:
            for info in listing.tools:
                key = dynamic_tool_type(info.name)
                owner = discovered.get(key) or existing.get(key)
                if owner is not None:
                    owner_server = getattr(owner, "server_name", "?")
                    raise ToolBrokerConfigError(
                        f"duplicate MCP tool '{info.name}' offered by '{server_name}' and '{owner_server}'"
                    )
                discovered[key] = DynamicMCPTool(
                    server_name=server_name,
                    tool_name=info.name,
                    description=info.description or "",
                    input_schema=info.inputSchema or {},
                    client=client,
                    timeout=timeout,
                )
        except (AttributeError, TypeError, ValueError) as e:
            raise ToolBrokerConfigError(f"malformed tool listing from server '{server_name}': {e}") from e
        logger.info("[mcp] server '%s' offers %d tools", server_name, len(listing.tools))
    return discovered
