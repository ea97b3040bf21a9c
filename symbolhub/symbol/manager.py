"""
SymbolManager: turns a user request into work for symbol actors.

Asks the LLM which symbols the request touches, locates them, registers
an actor for each located one and sends all of them their edit request
through the locker with bounded fan-out.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from .events import SymbolEventRequest, SymbolEventResponse
from .identifier import MechaCodeSymbolThinking, UserContext
from .locker import SymbolLocker
from .toolbox import ToolBox
from ..core.llm import LLMProperties
from ..utils.concurrency import execute_in_parallel

logger = logging.getLogger(__name__)


@dataclass
class AgentRunResult:
    responses: list[SymbolEventResponse] = field(default_factory=list)
    skipped: list[MechaCodeSymbolThinking] = field(default_factory=list)
    total_time_ms: float = 0.0


class SymbolManager:
    def __init__(
        self,
        tools: ToolBox,
        llm_properties: LLMProperties,
        user_context: UserContext | None = None,
    ):
        self.tools = tools
        self.llm_properties = llm_properties
        self.user_context = user_context or UserContext()
        self.locker = SymbolLocker(
            tools,
            llm_properties,
            self.user_context,
            request_timeout=tools.config.request_timeout,
        )

    async def initial_request(self, user_query: str, user_context: UserContext | None = None) -> AgentRunResult:
        start = time.time()
        user_context = user_context or self.user_context
        selection = await self.tools.request_important_symbols(user_query, user_context, self.llm_properties)
        thinkings = await self.tools.important_symbols(selection, user_context)

        located = [thinking for thinking in thinkings if thinking.snippet is not None]
        skipped = [thinking for thinking in thinkings if thinking.snippet is None]
        for thinking in skipped:
            logger.info(
                "[manager] skipping %s in %s (new=%s, not located)",
                thinking.symbol_name, thinking.fs_file_path, thinking.is_new,
            )

        for thinking in located:
            await self.locker.create_symbol_agent(thinking)

        async def send_edit(thinking: MechaCodeSymbolThinking) -> SymbolEventResponse:
            instructions = list(thinking.steps) or [user_query]
            return await self.locker.dispatch(SymbolEventRequest.edit(
                thinking.to_symbol_identifier(),
                instructions,
                extra_context=f"User request: {user_query}\n\n{user_context.to_prompt()}".strip(),
            ))

        results = await execute_in_parallel(
            located, send_edit, max_concurrent=self.tools.config.fanout_limit, label="symbol edit",
        )
        responses = [
            result if isinstance(result, SymbolEventResponse)
            else SymbolEventResponse.failure(thinking.to_symbol_identifier(), result)
            for thinking, result in zip(located, results)
        ]
        elapsed = (time.time() - start) * 1000
        logger.info(
            "[manager] %d symbol(s) edited, %d skipped in %.0fms",
            sum(1 for r in responses if r.ok), len(skipped), elapsed,
        )
        return AgentRunResult(responses=responses, skipped=skipped, total_time_ms=round(elapsed, 1))

    async def dispatch(self, request: SymbolEventRequest) -> SymbolEventResponse:
        return await self.locker.dispatch(request)

    async def shutdown(self) -> None:
        await self.locker.shutdown()
