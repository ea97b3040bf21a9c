"""
SymbolLocker: routes symbol requests to their actors.

Holds the registry ``SymbolIdentifier → SymbolActor``. A request for an
unknown symbol resolves the symbol's location, creates its actor and
registers it before the actor starts. Lookup-or-insert happens under one
lock and inserts an in-flight creation future, so concurrent first
requests for the same symbol all land on a single actor. The lock is
never held across tool calls.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from .actor import SymbolActor
from .errors import ActorTerminatedError, ReplyTimeoutError, SymbolError, UnresolvableSymbolError
from .events import SymbolEventRequest, SymbolEventResponse
from .identifier import MechaCodeSymbolThinking, SymbolIdentifier, UserContext
from .toolbox import ToolBox
from ..core.llm import LLMProperties

logger = logging.getLogger(__name__)

ActorFactory = Callable[[], Awaitable[SymbolActor]]


def _consume_exception(future: asyncio.Future) -> None:
    if not future.cancelled():
        future.exception()


class SymbolLocker:
    def __init__(
        self,
        tools: ToolBox,
        llm_properties: LLMProperties,
        user_context: UserContext | None = None,
        request_timeout: float | None = None,
    ):
        self.tools = tools
        self.llm_properties = llm_properties
        self.user_context = user_context or UserContext()
        self.request_timeout = request_timeout
        self._symbols: dict[SymbolIdentifier, SymbolActor] = {}
        self._pending: dict[SymbolIdentifier, asyncio.Future[SymbolActor]] = {}
        self._lock = asyncio.Lock()
        self._background: set[asyncio.Task] = set()
        self.actors_created = 0
        self._closed = False

    # ── Registry ───────────────────────────────────────────────────

    def active_symbols(self) -> list[SymbolIdentifier]:
        return [identifier for identifier, actor in self._symbols.items() if not actor.is_terminated]

    def get_actor(self, identifier: SymbolIdentifier) -> SymbolActor | None:
        return self._symbols.get(identifier)

    async def _get_or_create(self, identifier: SymbolIdentifier, factory: ActorFactory) -> SymbolActor:
        async with self._lock:
            if self._closed:
                raise ActorTerminatedError(f"locker is shut down, not creating {identifier}")
            actor = self._symbols.get(identifier)
            if actor is not None and not actor.is_terminated:
                return actor
            if actor is not None:
                logger.info("[locker] removing terminated actor %s", identifier)
                del self._symbols[identifier]

            pending = self._pending.get(identifier)
            creator = pending is None
            if creator:
                if identifier.fs_file_path is None:
                    raise UnresolvableSymbolError(identifier.symbol_name)
                pending = asyncio.get_running_loop().create_future()
                pending.add_done_callback(_consume_exception)
                self._pending[identifier] = pending

        if not creator:
            return await asyncio.shield(pending)

        try:
            actor = await factory()
        except BaseException as e:
            async with self._lock:
                self._pending.pop(identifier, None)
            if isinstance(e, Exception):
                pending.set_exception(e)
            else:
                pending.set_exception(ActorTerminatedError(f"creation of {identifier} was cancelled"))
            raise

        async with self._lock:
            self._pending.pop(identifier, None)
            if self._closed:
                error = ActorTerminatedError(f"locker shut down while creating {identifier}")
                pending.set_exception(error)
                raise error
            self._symbols[identifier] = actor
            self.actors_created += 1
        actor.start()
        pending.set_result(actor)
        logger.info("[locker] created actor for %s", identifier)
        return actor

    def _new_actor(self, thinking: MechaCodeSymbolThinking) -> SymbolActor:
        return SymbolActor(
            identifier=thinking.to_symbol_identifier(),
            thinking=thinking,
            hub=self,
            tools=self.tools,
            llm_properties=self.llm_properties,
        )

    async def _resolve_symbol(self, identifier: SymbolIdentifier) -> SymbolActor:
        snippet = await self.tools.find_snippet_for_symbol(identifier.fs_file_path, identifier.symbol_name)
        thinking = MechaCodeSymbolThinking(
            symbol_name=identifier.symbol_name,
            fs_file_path=identifier.fs_file_path,
            snippet=snippet,
            user_context=self.user_context,
        )
        return self._new_actor(thinking)

    async def create_symbol_agent(self, thinking: MechaCodeSymbolThinking) -> SymbolActor:
        """Register an actor for an already located symbol (or return the live one)."""
        async def build() -> SymbolActor:
            return self._new_actor(thinking)
        return await self._get_or_create(thinking.to_symbol_identifier(), build)

    # ── Routing ────────────────────────────────────────────────────

    async def process_request(
        self,
        request: SymbolEventRequest,
        reply: "asyncio.Future[SymbolEventResponse]",
    ) -> None:
        """Forward ``request`` to its actor; resolution errors go to ``reply``."""
        identifier = request.symbol

        async def factory() -> SymbolActor:
            return await self._resolve_symbol(identifier)

        try:
            actor = await self._get_or_create(identifier, factory)
            try:
                actor.send(request.event, reply)
            except ActorTerminatedError:
                # the actor died between lookup and send; recreate it once
                actor = await self._get_or_create(identifier, factory)
                actor.send(request.event, reply)
        except SymbolError as e:
            logger.info("[locker] %s rejected: %s", identifier, e)
            self._fail(reply, identifier, e)
        except asyncio.CancelledError:
            self._fail(reply, identifier, ActorTerminatedError("request cancelled before delivery"))
            raise
        except Exception as e:
            logger.exception("[locker] routing %s failed", identifier)
            self._fail(reply, identifier, e)

    @staticmethod
    def _fail(reply: asyncio.Future, identifier: SymbolIdentifier, error: Exception) -> None:
        if not reply.done():
            reply.set_result(SymbolEventResponse.failure(identifier, error))

    async def dispatch(self, request: SymbolEventRequest, timeout: float | None = None) -> SymbolEventResponse:
        """Send ``request`` and wait for the actor's response."""
        reply: asyncio.Future[SymbolEventResponse] = asyncio.get_running_loop().create_future()
        await self.process_request(request, reply)
        deadline = timeout if timeout is not None else self.request_timeout
        try:
            return await asyncio.wait_for(reply, timeout=deadline)
        except asyncio.TimeoutError:
            error = ReplyTimeoutError(f"no reply from {request.symbol} within {deadline:.1f}s")
            return SymbolEventResponse.failure(request.symbol, error)

    def send_nowait(self, request: SymbolEventRequest) -> asyncio.Task:
        """Fire-and-forget dispatch, used for follow-ups between symbols."""
        task = asyncio.create_task(self.dispatch(request))
        self._background.add(task)
        task.add_done_callback(self._background_done)
        return task

    def _background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        if task.exception() is not None:
            logger.error("[locker] background request crashed: %s", task.exception())
            return
        response = task.result()
        if not response.ok:
            logger.warning("[locker] follow-up for %s failed: %s", response.symbol, response.error)

    async def wait_for_background(self) -> None:
        """Wait until follow-ups (including ones they trigger) are done."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def shutdown(self) -> None:
        for task in list(self._background):
            task.cancel()
        await asyncio.gather(*list(self._background), return_exceptions=True)
        async with self._lock:
            self._closed = True
            actors = list(self._symbols.values())
            self._symbols.clear()
        for actor in actors:
            actor.terminate()
        await asyncio.gather(*(actor.wait_closed() for actor in actors))
        logger.info("[locker] shut down %d actor(s)", len(actors))
