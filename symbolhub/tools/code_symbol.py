"""
LLM decisions about code symbols: which quick fix to take, whether a
symbol needs editing, answering questions about a symbol, and picking
the symbols a user query should touch.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from .llm_tool import LLMTool, parse_json_answer
from .lsp import QuickFixOption
from .types import ToolInput, ToolOutput, ToolType
from ..core.llm import LLMProperties

logger = logging.getLogger(__name__)


# ── Correctness action selection ───────────────────────────────────

class CodeCorrectnessRequest(ToolInput):
    TOOL_TYPE = ToolType.CODE_CORRECTNESS_ACTION_SELECTION

    fs_file_contents: str
    fs_file_path: str
    code_above: str = ""
    code_below: str = ""
    code_in_selection: str
    symbol_name: str
    instruction: str
    previous_code: str
    diagnostics: list[str]
    quick_fix_actions: list[QuickFixOption]
    llm: LLMProperties


class CodeCorrectnessAction(ToolOutput):
    thinking: str = ""
    index: int = Field(ge=0)


CORRECTNESS_SYSTEM_PROMPT = """You are fixing errors that appeared after an edit to `{symbol_name}`.
You get the diagnostics and a numbered list of actions. Pick exactly one action:
a quick fix offered by the language server, or the final action which rewrites the code yourself.
Reply with JSON: {{"thinking": "<short reasoning>", "index": <action number>}}"""


def format_actions(quick_fix_actions: list[QuickFixOption]) -> str:
    lines = [f"{i}. {option.label}" for i, option in enumerate(quick_fix_actions)]
    lines.append(f"{len(quick_fix_actions)}. code_editing: rewrite the code to fix the errors")
    return "\n".join(lines)


class CodeCorrectnessActionTool(LLMTool):
    input_type = CodeCorrectnessRequest
    temperature = 0.0

    async def invoke(self, tool_input: ToolInput) -> CodeCorrectnessAction:
        request = self._check_input(tool_input)
        user = "\n\n".join([
            f"File: {request.fs_file_path}",
            f"<instruction>\n{request.instruction}\n</instruction>",
            f"<previous_code>\n{request.previous_code}\n</previous_code>",
            f"<code_in_selection>\n{request.code_in_selection}\n</code_in_selection>",
            "<diagnostics>\n" + "\n".join(request.diagnostics) + "\n</diagnostics>",
            f"<actions>\n{format_actions(request.quick_fix_actions)}\n</actions>",
        ])
        answer = await self._complete(
            [
                {"role": "system", "content": CORRECTNESS_SYSTEM_PROMPT.format(symbol_name=request.symbol_name)},
                {"role": "user", "content": user},
            ],
            request.llm,
        )
        action = parse_json_answer(answer, CodeCorrectnessAction)
        logger.info("[correctness] %s: picked action %d", request.symbol_name, action.index)
        return action

    def tool_description(self) -> str:
        return "### code_correctness_action_selection\nChoose a quick fix or a rewrite for diagnostics."

    def tool_input_format(self) -> str:
        return "<code_correctness_action_selection>\n<index>\n0\n</index>\n</code_correctness_action_selection>"


# ── Should edit ────────────────────────────────────────────────────

class ShouldEditRequest(ToolInput):
    TOOL_TYPE = ToolType.SHOULD_EDIT_CODE

    symbol_name: str
    fs_file_path: str
    code: str
    query: str
    llm: LLMProperties


class ShouldEditResponse(ToolOutput):
    thinking: str = ""
    should_edit: bool


SHOULD_EDIT_SYSTEM_PROMPT = """You own the code symbol shown to you. Another engineer sends you a request.
Decide whether your code must change to satisfy it.
Reply with JSON: {"thinking": "<short reasoning>", "should_edit": true|false}"""


class ShouldEditTool(LLMTool):
    input_type = ShouldEditRequest
    temperature = 0.0

    async def invoke(self, tool_input: ToolInput) -> ShouldEditResponse:
        request = self._check_input(tool_input)
        user = (
            f"Symbol `{request.symbol_name}` in {request.fs_file_path}:\n"
            f"<code>\n{request.code}\n</code>\n\n<request>\n{request.query}\n</request>"
        )
        answer = await self._complete(
            [{"role": "system", "content": SHOULD_EDIT_SYSTEM_PROMPT}, {"role": "user", "content": user}],
            request.llm,
        )
        return parse_json_answer(answer, ShouldEditResponse)

    def tool_description(self) -> str:
        return "### should_edit_code\nDecide whether a symbol must change for a request."

    def tool_input_format(self) -> str:
        return "<should_edit_code>\n<query>\nrequest\n</query>\n</should_edit_code>"


# ── Probe ──────────────────────────────────────────────────────────

class ProbeAnswerRequest(ToolInput):
    TOOL_TYPE = ToolType.PROBE_ANSWER

    symbol_name: str
    fs_file_path: str
    code: str
    query: str
    history: str = ""
    llm: LLMProperties


class ProbeAnswerResponse(ToolOutput):
    answer: str


PROBE_SYSTEM_PROMPT = """You are an expert on the code symbol shown to you.
Answer the question about it precisely, citing the relevant lines. If the code does not
contain the answer, say what it does contain that is relevant."""


class ProbeAnswerTool(LLMTool):
    input_type = ProbeAnswerRequest

    async def invoke(self, tool_input: ToolInput) -> ProbeAnswerResponse:
        request = self._check_input(tool_input)
        user = f"Symbol `{request.symbol_name}` in {request.fs_file_path}:\n<code>\n{request.code}\n</code>\n\n"
        if request.history:
            user += f"<history>\n{request.history}\n</history>\n\n"
        user += f"<question>\n{request.query}\n</question>"
        answer = await self._complete(
            [{"role": "system", "content": PROBE_SYSTEM_PROMPT}, {"role": "user", "content": user}],
            request.llm,
        )
        return ProbeAnswerResponse(answer=answer.strip())

    def tool_description(self) -> str:
        return "### probe_answer\nAnswer a question about a symbol's code."

    def tool_input_format(self) -> str:
        return "<probe_answer>\n<query>\nquestion\n</query>\n</probe_answer>"


# ── Important symbols ──────────────────────────────────────────────

class ImportantSymbolsRequest(ToolInput):
    TOOL_TYPE = ToolType.IMPORTANT_SYMBOLS

    user_query: str
    file_outlines: str = ""
    user_context: str = ""
    llm: LLMProperties


class CodeSymbolWithSteps(BaseModel):
    code_symbol: str
    file_path: str
    is_new: bool = False
    steps: list[str] = Field(default_factory=list)
    thinking: str = ""


class ImportantSymbolsResponse(ToolOutput):
    symbols: list[CodeSymbolWithSteps] = Field(default_factory=list)


IMPORTANT_SYMBOLS_SYSTEM_PROMPT = """You plan code changes. Given a user query, the outlines of the
files in scope and extra context, list the code symbols (classes, functions, methods) that must be
created or changed, in the order they should be handled. For each symbol give the file it lives in,
whether it is new, and the concrete steps to perform on it.
Reply with JSON:
{"symbols": [{"code_symbol": "...", "file_path": "...", "is_new": false, "steps": ["..."], "thinking": "..."}]}"""


class ImportantSymbolsTool(LLMTool):
    input_type = ImportantSymbolsRequest

    async def invoke(self, tool_input: ToolInput) -> ImportantSymbolsResponse:
        request = self._check_input(tool_input)
        user = f"<user_query>\n{request.user_query}\n</user_query>"
        if request.file_outlines:
            user += f"\n\n<file_outlines>\n{request.file_outlines}\n</file_outlines>"
        if request.user_context:
            user += f"\n\n<user_context>\n{request.user_context}\n</user_context>"
        answer = await self._complete(
            [{"role": "system", "content": IMPORTANT_SYMBOLS_SYSTEM_PROMPT}, {"role": "user", "content": user}],
            request.llm,
        )
        response = parse_json_answer(answer, ImportantSymbolsResponse)
        logger.info("[important_symbols] %d symbols selected", len(response.symbols))
        return response

    def tool_description(self) -> str:
        return "### important_symbols\nPick the code symbols a change request should touch."

    def tool_input_format(self) -> str:
        return "<important_symbols>\n<user_query>\nquery\n</user_query>\n</important_symbols>"
