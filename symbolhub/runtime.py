"""
Process-wide agent runtime: the objects every request shares.

Built once in the FastAPI lifespan. Building it spawns the MCP servers,
so a bad MCP configuration fails here, before the app serves anything.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from .config import AgentConfig, get_agent_config
from .core.llm import LLMBroker, LLMProperties, get_config
from .symbol.identifier import UserContext
from .symbol.manager import SymbolManager
from .symbol.toolbox import ToolBox
from .symbol.tracker import SymbolTracker
from .tools.broker import ToolBroker
from .ui_events import UIEventSink

logger = logging.getLogger(__name__)


@dataclass
class AgentRuntime:
    config: AgentConfig
    ui_events: UIEventSink
    broker: ToolBroker
    toolbox: ToolBox
    manager: SymbolManager
    llm_properties: LLMProperties

    @classmethod
    async def start(
        cls,
        config: AgentConfig | None = None,
        llm_client: LLMBroker | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        with_mcp: bool = True,
    ) -> "AgentRuntime":
        config = config or get_agent_config()
        model_config = get_config()
        ui_events = UIEventSink()
        broker = ToolBroker.default(
            llm_client or LLMBroker(),
            config,
            ui_events=ui_events,
            fail_over_llm=model_config.failover_properties(),
            transport=transport,
        )
        if with_mcp:
            try:
                await broker.with_mcp(config.mcp_config_path, timeout=config.tool_timeout)
            except BaseException:
                await broker.aclose()
                raise
        toolbox = ToolBox(broker, SymbolTracker(), config, ui_events=ui_events)
        llm_properties = model_config.default_properties()
        manager = SymbolManager(toolbox, llm_properties)
        logger.info(
            "[runtime] ready: %d tools, editor at %s",
            len(broker.tool_types()), config.editor_url,
        )
        return cls(
            config=config,
            ui_events=ui_events,
            broker=broker,
            toolbox=toolbox,
            manager=manager,
            llm_properties=llm_properties,
        )

    def new_session(self, user_context: UserContext) -> SymbolManager:
        """A manager with its own locker, for one agent request."""
        return SymbolManager(self.toolbox, self.llm_properties, user_context)

    async def aclose(self) -> None:
        await self.manager.shutdown()
        self.ui_events.close()
        await self.broker.aclose()


_runtime: AgentRuntime | None = None


def set_runtime(runtime: AgentRuntime | None) -> None:
    global _runtime
    _runtime = runtime


def get_runtime() -> AgentRuntime:
    if _runtime is None:
        raise RuntimeError("agent runtime not started")
    return _runtime
