"""
Symbol actors.

One actor owns one code symbol. Requests arrive on a FIFO mailbox and are
handled one at a time by a single consumer task, so work on the same
symbol never interleaves while different symbols run concurrently. Every
request carries a reply future that is resolved exactly once, with a
failure response when handling raised.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING

from .errors import ActorTerminatedError, SymbolError
from .events import (
    AskQuestionEvent,
    EditEvent,
    EditOutcome,
    OutlineEvent,
    ProbeEvent,
    SymbolEvent,
    SymbolEventResponse,
    SymbolToEdit,
    event_name,
)
from .identifier import MechaCodeSymbolThinking, Snippet, SymbolIdentifier
from .toolbox import ToolBox
from ..core.llm import LLMProperties
from ..ui_events import UIEvent

if TYPE_CHECKING:
    from .locker import SymbolLocker

logger = logging.getLogger(__name__)


class ActorState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    IDLE = "idle"
    TERMINATED = "terminated"


_Envelope = tuple[SymbolEvent, "asyncio.Future[SymbolEventResponse]"]


class SymbolActor:
    def __init__(
        self,
        identifier: SymbolIdentifier,
        thinking: MechaCodeSymbolThinking,
        hub: "SymbolLocker",
        tools: ToolBox,
        llm_properties: LLMProperties,
    ):
        self.identifier = identifier
        self.thinking = thinking
        self.hub = hub
        self.tools = tools
        self.llm_properties = llm_properties
        self.state = ActorState.CREATED
        self.edit_history: list[EditOutcome] = []
        self.processed = 0

        self._mailbox: asyncio.Queue[_Envelope | None] = asyncio.Queue()
        self._task: asyncio.Task | None = None
        self._current_reply: asyncio.Future | None = None

    def __repr__(self) -> str:
        return f"SymbolActor({self.identifier}, {self.state.value})"

    @property
    def fs_file_path(self) -> str:
        return self.thinking.fs_file_path

    @property
    def snippet(self) -> Snippet | None:
        return self.thinking.snippet

    @property
    def is_terminated(self) -> bool:
        return self.state == ActorState.TERMINATED

    # ── Lifecycle ──────────────────────────────────────────────────

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name=f"symbol-actor:{self.identifier}")
        return self._task

    def send(self, event: SymbolEvent, reply: "asyncio.Future[SymbolEventResponse]") -> None:
        if self.is_terminated:
            raise ActorTerminatedError(f"actor for {self.identifier} has terminated")
        self._mailbox.put_nowait((event, reply))

    def terminate(self) -> None:
        """Stop after the requests already queued."""
        if not self.is_terminated:
            self._mailbox.put_nowait(None)

    async def wait_closed(self) -> None:
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def run(self) -> None:
        logger.info("[actor] %s started", self.identifier)
        try:
            while True:
                self.state = ActorState.IDLE
                envelope = await self._mailbox.get()
                if envelope is None:
                    break
                self.state = ActorState.RUNNING
                event, reply = envelope
                self._current_reply = reply
                await self._handle(event, reply)
                self._current_reply = None
        finally:
            self.state = ActorState.TERMINATED
            self._fail_pending()
            logger.info("[actor] %s terminated after %d request(s)", self.identifier, self.processed)

    def _fail_pending(self) -> None:
        error = ActorTerminatedError(f"actor for {self.identifier} terminated")
        if self._current_reply is not None:
            self._reply(self._current_reply, SymbolEventResponse.failure(self.identifier, error))
            self._current_reply = None
        while not self._mailbox.empty():
            envelope = self._mailbox.get_nowait()
            if envelope is not None:
                self._reply(envelope[1], SymbolEventResponse.failure(self.identifier, error))

    def _reply(self, reply: asyncio.Future, response: SymbolEventResponse) -> None:
        if reply.done():
            logger.info("[actor] %s: caller stopped waiting, dropping reply", self.identifier)
            return
        reply.set_result(response)

    # ── Request handling ───────────────────────────────────────────

    async def _handle(self, event: SymbolEvent, reply: asyncio.Future) -> None:
        name = event_name(event)
        self.tools.emit(UIEvent.symbol_event(self.identifier.symbol_name, self.fs_file_path, name))
        try:
            response = await self._process(event)
        except SymbolError as e:
            logger.warning("[actor] %s %s failed: %s", self.identifier, name, e)
            response = SymbolEventResponse.failure(self.identifier, e)
        except Exception as e:
            logger.exception("[actor] %s %s crashed", self.identifier, name)
            response = SymbolEventResponse.failure(self.identifier, e)
        self.processed += 1
        self._reply(reply, response)

    async def _process(self, event: SymbolEvent) -> SymbolEventResponse:
        if isinstance(event, EditEvent):
            return await self._edit(event)
        if isinstance(event, ProbeEvent):
            return await self._probe(event)
        if isinstance(event, AskQuestionEvent):
            return await self._ask_question(event)
        if isinstance(event, OutlineEvent):
            outline = await self.tools.outline_nodes_for_symbol(self.fs_file_path, self.identifier.symbol_name)
            return SymbolEventResponse.success(self.identifier, answer=outline)
        raise TypeError(f"unknown symbol event {type(event).__name__}")

    async def _refresh_snippet(self) -> Snippet:
        """Re-find the symbol; it may have moved since the last request."""
        previous = self.thinking.snippet
        if previous is None:
            snippet = await self.tools.find_snippet_for_symbol(self.fs_file_path, self.identifier.symbol_name)
        else:
            node = await self.tools.find_symbol_to_edit(SymbolToEdit(
                symbol_name=previous.symbol_name,
                fs_file_path=previous.fs_file_path,
                range=previous.range,
                instructions=[],
            ))
            file_content = await self.tools.symbol_tracker.get_file_content(previous.fs_file_path)
            snippet = Snippet.from_outline_node(node, file_content)
        if snippet != previous:
            self.thinking.set_snippet(snippet)
        return snippet

    async def _edit(self, event: EditEvent) -> SymbolEventResponse:
        snippet = await self._refresh_snippet()
        for step in event.instructions:
            self.thinking.add_step(step)

        symbol_to_edit = SymbolToEdit(
            symbol_name=snippet.symbol_name,
            fs_file_path=snippet.fs_file_path,
            range=snippet.range,
            instructions=list(event.instructions),
        )
        extra_context = event.extra_context or self.thinking.user_context.to_prompt()
        file_content = (await self.tools.file_open(snippet.fs_file_path)).file_contents
        edited_code = await self.tools.code_edit(
            snippet.fs_file_path,
            file_content,
            snippet.range,
            extra_context,
            "\n".join(event.instructions),
            self.llm_properties,
        )
        report = await self.tools.check_code_correctness(
            symbol_to_edit, snippet.content, edited_code, extra_context, self.llm_properties,
        )
        self.tools.emit(UIEvent.edit_event(snippet.symbol_name, snippet.fs_file_path, edited_code))

        outcome = EditOutcome(original_code=snippet.content, edited_code=edited_code, correctness=report)
        self.edit_history.append(outcome)

        # the edit is in the file now; anything after this point only informs
        try:
            await self._refresh_snippet()
            if event.follow_up:
                outcome.followups_scheduled = await self.tools.check_for_followups(
                    symbol_to_edit, snippet.content, edited_code, self.hub,
                )
        except SymbolError as e:
            logger.warning("[actor] %s edited, follow-ups skipped: %s", self.identifier, e)

        if not report.resolved:
            logger.warning(
                "[actor] %s edited with %d unresolved diagnostic(s)",
                self.identifier, len(report.remaining_diagnostics),
            )
        return SymbolEventResponse.success(self.identifier, answer=edited_code, edit=outcome)

    async def _probe(self, event: ProbeEvent) -> SymbolEventResponse:
        snippet = await self._refresh_snippet()
        answer = await self.tools.probe_symbol(snippet, event.query, event.history, self.llm_properties)
        return SymbolEventResponse.success(self.identifier, answer=answer)

    async def _ask_question(self, event: AskQuestionEvent) -> SymbolEventResponse:
        snippet = await self._refresh_snippet()
        decision = await self.tools.should_edit_symbol(snippet, event.question, self.llm_properties)
        if not decision.should_edit:
            return SymbolEventResponse.success(self.identifier, answer=decision.thinking or "no change needed")
        # edits triggered by another symbol's change do not fan out again
        return await self._edit(EditEvent(instructions=[event.question], follow_up=False))
