"""Tests for MCP config loading, tool discovery and dynamic tool calls."""

import asyncio
import json
from contextlib import AsyncExitStack
from types import SimpleNamespace

import pytest
from mcp import types as mcp_types

from symbolhub.tools.broker import ToolBroker
from symbolhub.tools.errors import SerializationError, ToolBrokerConfigError, ToolInvocationError
from symbolhub.tools import mcp_tools
from symbolhub.tools.mcp_tools import DynamicMCPToolInput, generate_schema_usage, load_mcp_config, setup_mcp_clients

GIT_LOG_SCHEMA = {
    "type": "object",
    "properties": {
        "repo_path": {"type": "string", "description": "Path to the repository"},
        "max_count": {"type": "integer", "description": "How many commits"},
    },
    "required": ["repo_path"],
}


class FakeMCPClient:
    """Stands in for an initialized ``mcp.ClientSession``."""

    def __init__(self, tools: list[str], fail_calls: bool = False, error_result: bool = False):
        self.tools = tools
        self.fail_calls = fail_calls
        self.error_result = error_result
        self.calls: list[tuple[str, dict]] = []

    async def list_tools(self):
        return mcp_types.ListToolsResult(tools=[
            mcp_types.Tool(name=name, description=f"{name} tool", inputSchema=GIT_LOG_SCHEMA)
            for name in self.tools
        ])

    async def call_tool(self, name, arguments=None):
        if self.fail_calls:
            raise ConnectionError("server went away")
        self.calls.append((name, arguments))
        return mcp_types.CallToolResult(
            content=[mcp_types.TextContent(type="text", text=f"ran {name}")],
            isError=self.error_result,
        )


def test_missing_config_means_no_servers(tmp_path):
    assert load_mcp_config(str(tmp_path / "absent.json")) is None


def test_config_file_is_parsed(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"mcpServers": {"git": {"command": "uvx", "args": ["mcp-server-git"]}}}))

    config = load_mcp_config(str(path))

    assert config.mcp_servers["git"].command == "uvx"
    assert config.mcp_servers["git"].args == ["mcp-server-git"]


def test_invalid_config_is_fatal(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")

    with pytest.raises(ToolBrokerConfigError):
        load_mcp_config(str(path))


def test_with_mcp_and_no_config_registers_nothing(tmp_path):
    broker = ToolBroker()
    asyncio.run(broker.with_mcp(str(tmp_path / "absent.json")))
    assert broker.tool_types() == []


def test_schema_usage_text():
    usage = generate_schema_usage("git_log", GIT_LOG_SCHEMA)

    assert usage.splitlines() == [
        "- repo_path: (required) Path to the repository, type=string",
        "- max_count: (optional) How many commits, type=integer",
        "",
        "Usage:",
        "<git_log>",
        "<repo_path>",
        "value",
        "</repo_path>",
        "<max_count>",
        "value",
        "</max_count>",
        "</git_log>",
    ]


def test_discovered_tools_are_invocable_through_the_broker():
    client = FakeMCPClient(["git_log", "git_status"])
    broker = ToolBroker()

    async def scenario():
        count = await broker.register_mcp_tools({"git": client}, timeout=5.0)
        response = await broker.invoke(DynamicMCPToolInput(tool_name="git_log", arguments={"repo_path": "/repo"}))
        return count, response

    count, response = asyncio.run(scenario())

    assert count == 2
    assert broker.has_tool("mcp::git_log") and broker.has_tool("mcp::git_status")
    assert broker.get_tool_description("mcp::git_log") == "### git_log\n(mcp server=git)\ngit_log tool"
    assert broker.get_tool_reminder("mcp::git_log").startswith("### mcp::git_log\n- repo_path: (required)")
    assert client.calls == [("git_log", {"repo_path": "/repo"})]
    assert response.server_name == "git"
    assert response.text == "ran git_log"
    assert not response.is_error
    assert response.result["content"][0]["text"] == "ran git_log"


def test_duplicate_tool_names_register_nothing():
    broker = ToolBroker()
    clients = {"one": FakeMCPClient(["search"]), "two": FakeMCPClient(["search"])}

    with pytest.raises(ToolBrokerConfigError, match="duplicate MCP tool 'search'"):
        asyncio.run(broker.register_mcp_tools(clients))
    assert broker.tool_types() == []


def test_failed_mcp_call_is_an_invocation_error():
    broker = ToolBroker()

    async def scenario():
        await broker.register_mcp_tools({"git": FakeMCPClient(["git_log"], fail_calls=True)})
        await broker.invoke(DynamicMCPToolInput(tool_name="git_log", arguments={}))

    with pytest.raises(ToolInvocationError):
        asyncio.run(scenario())


def test_unserializable_arguments_are_rejected():
    broker = ToolBroker()

    async def scenario():
        await broker.register_mcp_tools({"git": FakeMCPClient(["git_log"])})
        await broker.invoke(DynamicMCPToolInput(tool_name="git_log", arguments={"when": object()}))

    with pytest.raises(SerializationError):
        asyncio.run(scenario())


def test_error_result_is_reported():
    broker = ToolBroker()

    async def scenario():
        await broker.register_mcp_tools({"git": FakeMCPClient(["git_log"], error_result=True)})
        return await broker.invoke(DynamicMCPToolInput(tool_name="git_log", arguments={}))

    response = asyncio.run(scenario())

    assert response.is_error
    assert response.result["isError"] is True


class MalformedListingClient:
    async def list_tools(self):
        return SimpleNamespace(tools=[SimpleNamespace(name="git_log")])


def test_malformed_tool_listing_is_a_config_error():
    broker = ToolBroker()
    clients = {"ok": FakeMCPClient(["search"]), "odd": MalformedListingClient()}

    with pytest.raises(ToolBrokerConfigError, match="malformed tool listing from server 'odd'"):
        asyncio.run(broker.register_mcp_tools(clients))
    assert broker.tool_types() == []


class SlowListingClient(FakeMCPClient):
    async def list_tools(self):
        await asyncio.sleep(1.0)
        return await super().list_tools()


def test_slow_tool_listing_is_a_config_error():
    broker = ToolBroker()

    with pytest.raises(ToolBrokerConfigError, match="did not list its tools within 0.05s"):
        asyncio.run(broker.register_mcp_tools({"slow": SlowListingClient(["git_log"])}, timeout=0.05))
    assert broker.tool_types() == []


class FakeStdio:
    """Stands in for ``stdio_client``; the command decides how the server behaves."""

    opened: list["FakeStdio"] = []

    def __init__(self, params):
        self.command = params.command
        self.closed = False
        FakeStdio.opened.append(self)

    async def __aenter__(self):
        if self.command == "hang":
            await asyncio.sleep(10)
        return self.command, None

    async def __aexit__(self, *exc_info):
        self.closed = True


class FakeSession:
    def __init__(self, read, write):
        self.command = read

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    async def initialize(self):
        if self.command == "broken":
            raise RuntimeError("handshake failed")


def test_servers_that_fail_to_start_are_closed_and_skipped(tmp_path, monkeypatch):
    monkeypatch.setattr(mcp_tools, "stdio_client", FakeStdio)
    monkeypatch.setattr(mcp_tools, "ClientSession", FakeSession)
    monkeypatch.setattr(FakeStdio, "opened", [])
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"mcpServers": {
        "good": {"command": "good"},
        "broken": {"command": "broken"},
        "stuck": {"command": "hang"},
    }}))

    async def scenario():
        stack = AsyncExitStack()
        clients = await setup_mcp_clients(str(path), stack, timeout=0.05)
        open_before_close = {s.command: s.closed for s in FakeStdio.opened}
        await stack.aclose()
        return clients, open_before_close

    clients, closed = asyncio.run(scenario())

    assert list(clients) == ["good"]
    # the failed handshake shut its server down right away
    assert closed == {"good": False, "broken": True, "hang": False}
    assert all(s.closed for s in FakeStdio.opened if s.command == "good")
