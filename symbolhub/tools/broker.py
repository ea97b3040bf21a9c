"""
Tool broker: one ``invoke`` in front of every capability.

The registry maps a tool type (``ToolType`` for built-ins, ``mcp::<name>``
for MCP tools) to its implementation. It is filled at startup and only
read afterwards.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import AsyncExitStack
from typing import Mapping

import httpx

from .code_edit import CodeEditingForErrorTool, CodeEditingTool
from .code_symbol import CodeCorrectnessActionTool, ImportantSymbolsTool, ProbeAnswerTool, ShouldEditTool
from .editor import EditorApplyTool, OpenFileTool
from .errors import MissingToolError, ToolError, ToolInvocationError, ToolTimeoutError
from .grep import FindInFileTool
from .lsp import (
    GetQuickFixTool,
    GoToDefinitionTool,
    GoToImplementationTool,
    GoToReferencesTool,
    LSPDiagnosticsTool,
    LSPQuickFixInvocationTool,
)
from .mcp_tools import discover_mcp_tools, setup_mcp_clients
from .types import Tool, ToolInput, ToolOutput, ToolType
from ..config import AgentConfig
from ..core.llm import LLMBroker, LLMProperties
from ..ui_events import UIEvent, UIEventSink

logger = logging.getLogger(__name__)


class ToolBroker:
    def __init__(self, tools: Mapping[str, Tool] | None = None, ui_events: UIEventSink | None = None):
        self._tools: dict[str, Tool] = dict(tools or {})
        self._ui_events = ui_events
        self._exit_stack = AsyncExitStack()

    @classmethod
    def default(
        cls,
        llm_client: LLMBroker,
        config: AgentConfig,
        ui_events: UIEventSink | None = None,
        fail_over_llm: LLMProperties | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "ToolBroker":
        """The built-in tool set: editor bridge, local grep and LLM tools."""
        editor = dict(transport=transport, timeout=config.tool_timeout)
        llm = dict(
            llm_client=llm_client, fail_over_llm=fail_over_llm,
            ui_events=ui_events, timeout=config.llm_timeout,
        )
        tools: dict[str, Tool] = {
            ToolType.OPEN_FILE: OpenFileTool(**editor),
            ToolType.GO_TO_DEFINITIONS: GoToDefinitionTool(**editor),
            ToolType.GO_TO_REFERENCES: GoToReferencesTool(**editor),
            ToolType.GO_TO_IMPLEMENTATIONS: GoToImplementationTool(**editor),
            ToolType.LSP_DIAGNOSTICS: LSPDiagnosticsTool(**editor),
            ToolType.GET_QUICK_FIX: GetQuickFixTool(**editor),
            ToolType.APPLY_QUICK_FIX: LSPQuickFixInvocationTool(**editor),
            ToolType.EDITOR_APPLY_EDITS: EditorApplyTool(**editor),
            ToolType.GREP_IN_FILE: FindInFileTool(),
            ToolType.CODE_EDITING: CodeEditingTool(**llm),
            ToolType.CODE_CORRECTNESS_ACTION_SELECTION: CodeCorrectnessActionTool(**llm),
            ToolType.CODE_EDITING_FOR_ERROR: CodeEditingForErrorTool(**llm),
            ToolType.SHOULD_EDIT_CODE: ShouldEditTool(**llm),
            ToolType.PROBE_ANSWER: ProbeAnswerTool(**llm),
            ToolType.IMPORTANT_SYMBOLS: ImportantSymbolsTool(**llm),
        }
        return cls(tools, ui_events=ui_events)

    # ── Registry ───────────────────────────────────────────────────

    def register(self, tool_type: ToolType | str, tool: Tool) -> None:
        self._tools[tool_type] = tool

    def has_tool(self, tool_type: ToolType | str) -> bool:
        return tool_type in self._tools

    def tool_types(self) -> list[str]:
        return [str(t) for t in self._tools]

    def get_tool_description(self, tool_type: ToolType | str) -> str | None:
        tool = self._tools.get(tool_type)
        return tool.tool_description() if tool else None

    def get_tool_reminder(self, tool_type: ToolType | str) -> str | None:
        tool = self._tools.get(tool_type)
        if tool is None:
            return None
        return f"### {tool_type}\n{tool.tool_input_format()}"

    # ── MCP ────────────────────────────────────────────────────────

    async def with_mcp(self, config_path: str, timeout: float | None = None) -> "ToolBroker":
        """Spawn the configured MCP servers and register their tools."""
        clients = await setup_mcp_clients(config_path, self._exit_stack, timeout=timeout)
        await self.register_mcp_tools(clients, timeout=timeout)
        return self

    async def register_mcp_tools(self, clients: Mapping[str, object], timeout: float | None = None) -> int:
        """Register the tools of already connected MCP clients.

        Raises ``ToolBrokerConfigError`` on duplicate tool names, in which
        case nothing from this pass is registered.
        """
        discovered = await discover_mcp_tools(clients, self._tools, timeout=timeout)
        self._tools.update(discovered)
        logger.info("[broker] registered %d MCP tools", len(discovered))
        return len(discovered)

    async def aclose(self) -> None:
        await self._exit_stack.aclose()

    # ── Dispatch ───────────────────────────────────────────────────

    async def invoke(
        self,
        tool_input: ToolInput,
        timeout: float | None = None,
        ui_events: UIEventSink | None = None,
    ) -> ToolOutput:
        """
        Route ``tool_input`` to its tool and await the result.

        An unregistered tool type raises ``MissingToolError`` before any
        side effect. The invocation is announced on the UI event sink
        first; a closed sink does not affect the call.
        """
        tool_type = tool_input.tool_type()
        tool = self._tools.get(tool_type)
        if tool is None:
            raise MissingToolError(str(tool_type))

        sink = ui_events or self._ui_events
        if sink is not None:
            sink.send(UIEvent.tool_event(str(tool_type), tool_input.summary()))

        deadline = timeout if timeout is not None else tool.timeout
        start = time.time()
        try:
            if deadline is None:
                result = await tool.invoke(tool_input)
            else:
                result = await asyncio.wait_for(tool.invoke(tool_input), timeout=deadline)
        except asyncio.TimeoutError as e:
            logger.warning("[broker] %s timed out after %.1fs", tool_type, deadline)
            raise ToolTimeoutError(str(tool_type), deadline) from e
        except ToolError:
            raise
        except Exception as e:
            logger.exception("[broker] %s raised unexpectedly", tool_type)
            raise ToolInvocationError(f"{tool_type} failed: {e}") from e

        logger.debug("[broker] %s done in %.0fms", tool_type, (time.time() - start) * 1000)
        return result
