"""
Shared plumbing for LLM-backed tools: fail-over, delta forwarding and
parsing of fenced answers.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, ClassVar, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import SerializationError, ToolInvocationError, WrongToolInputError
from .types import Tool, ToolInput
from ..core.llm import LLMBroker, LLMProperties, LLMStreamChunk
from ..ui_events import UIEvent, UIEventSink

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_CODE_BLOCK_RE = re.compile(r"```[\w+#.-]*\n(.*?)```", re.DOTALL)


class LLMTool(Tool):
    """Base for tools that answer by calling an LLM.

    If the request's LLM fails and a different ``fail_over_llm`` is
    configured, the call is retried once on the fail-over model.
    """

    input_type: ClassVar[type[ToolInput]]
    temperature: ClassVar[float] = 0.2

    def __init__(
        self,
        llm_client: LLMBroker,
        fail_over_llm: LLMProperties | None = None,
        ui_events: UIEventSink | None = None,
        timeout: float | None = None,
    ):
        self.llm_client = llm_client
        self.fail_over_llm = fail_over_llm
        self.ui_events = ui_events
        self.timeout = timeout

    def _check_input(self, tool_input: ToolInput):
        if not isinstance(tool_input, self.input_type):
            raise WrongToolInputError(str(self.input_type.TOOL_TYPE), tool_input)
        return tool_input

    async def _complete(self, messages: list[dict], llm: LLMProperties) -> str:
        try:
            return await self._stream(messages, llm)
        except Exception as e:
            if self.fail_over_llm is None or self.fail_over_llm == llm:
                raise ToolInvocationError(f"LLM call failed ({llm.litellm_model}): {e}") from e
            logger.warning(
                "[llm_tool] %s failed on %s, retrying on %s: %s",
                type(self).__name__, llm.litellm_model, self.fail_over_llm.litellm_model, e,
            )
        try:
            return await self._stream(messages, self.fail_over_llm)
        except Exception as e:
            raise ToolInvocationError(f"LLM call failed on fail-over ({self.fail_over_llm.litellm_model}): {e}") from e

    async def _stream(self, messages: list[dict], llm: LLMProperties) -> str:
        if self.ui_events is None:
            return await self.llm_client.stream_completion(llm, messages, temperature=self.temperature)

        deltas: asyncio.Queue[LLMStreamChunk] = asyncio.Queue()
        forwarder = asyncio.create_task(self._forward_deltas(deltas))
        try:
            return await self.llm_client.stream_completion(
                llm, messages, temperature=self.temperature, delta_sink=deltas,
            )
        finally:
            deltas.put_nowait(LLMStreamChunk(delta="", answer_up_until_now="", done=True))
            await forwarder

    async def _forward_deltas(self, deltas: asyncio.Queue[LLMStreamChunk]):
        source = type(self).__name__
        while True:
            chunk = await deltas.get()
            if chunk.done:
                return
            self.ui_events.send(UIEvent.llm_delta(source, chunk.delta))


def extract_code_block(answer: str) -> str:
    """Contents of the first fenced code block, or the stripped answer."""
    match = _CODE_BLOCK_RE.search(answer)
    if match:
        return match.group(1).rstrip("\n")
    return answer.strip()


def parse_json_answer(answer: str, model: type[ModelT]) -> ModelT:
    """Parse a (possibly fenced) JSON answer into ``model``."""
    content = answer.strip()
    if "```json" in content:
        content = content.split("```json")[1].split("```")[0].strip()
    elif "```" in content:
        content = content.split("```")[1].split("```")[0].strip()
    try:
        data: Any = json.loads(content)
        return model.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise SerializationError(f"could not parse LLM answer as {model.__name__}: {e}") from e
