"""
LLM code editing: rewriting a selected symbol for an instruction, and
rewriting it again to fix diagnostics left after an edit.
"""

from __future__ import annotations

import logging

from .errors import ToolInvocationError
from .llm_tool import LLMTool, extract_code_block
from .types import ToolInput, ToolOutput, ToolType
from ..core.llm import LLMProperties

logger = logging.getLogger(__name__)


class CodeEditRequest(ToolInput):
    TOOL_TYPE = ToolType.CODE_EDITING

    fs_file_path: str
    language: str = ""
    above: str = ""
    below: str = ""
    in_range_selection: str
    extra_context: str = ""
    instruction: str
    llm: LLMProperties


class CodeEditResponse(ToolOutput):
    edited_code: str


EDIT_SYSTEM_PROMPT = """You are an expert software engineer editing one code symbol in a larger file.
You are shown the code above the selection, the selection itself and the code below it.
Rewrite ONLY the selection so that it satisfies the instruction.
- Keep the indentation of the original selection.
- Do not repeat code from above or below the selection.
- Reply with the complete rewritten selection inside a single fenced code block and nothing else."""


def _edit_user_message(
    fs_file_path: str,
    language: str,
    above: str,
    selection: str,
    below: str,
    extra_context: str,
    instruction: str,
) -> str:
    parts = [f"File: {fs_file_path}"]
    if extra_context:
        parts.append(f"<extra_context>\n{extra_context}\n</extra_context>")
    parts.append(f"<code_above>\n{above}\n</code_above>" if above else "<code_above>\n(start of file)\n</code_above>")
    parts.append(f"<code_in_selection>\n```{language}\n{selection}\n```\n</code_in_selection>")
    parts.append(f"<code_below>\n{below}\n</code_below>" if below else "<code_below>\n(end of file)\n</code_below>")
    parts.append(f"<instruction>\n{instruction}\n</instruction>")
    return "\n\n".join(parts)


class CodeEditingTool(LLMTool):
    input_type = CodeEditRequest

    async def invoke(self, tool_input: ToolInput) -> CodeEditResponse:
        request = self._check_input(tool_input)
        messages = [
            {"role": "system", "content": EDIT_SYSTEM_PROMPT},
            {"role": "user", "content": _edit_user_message(
                request.fs_file_path, request.language, request.above, request.in_range_selection,
                request.below, request.extra_context, request.instruction,
            )},
        ]
        answer = await self._complete(messages, request.llm)
        edited = extract_code_block(answer)
        if not edited:
            raise ToolInvocationError(f"LLM returned no code for {request.fs_file_path}")
        logger.info("[code_edit] %s: %d → %d chars", request.fs_file_path, len(request.in_range_selection), len(edited))
        return CodeEditResponse(edited_code=edited)

    def tool_description(self) -> str:
        return "### code_editing\nRewrite the selected code so it follows an instruction."

    def tool_input_format(self) -> str:
        return (
            "<code_editing>\n<fs_file_path>\npath\n</fs_file_path>\n"
            "<instruction>\nwhat to change\n</instruction>\n</code_editing>"
        )


# ── Editing to fix errors ──────────────────────────────────────────

class CodeEditingErrorRequest(ToolInput):
    TOOL_TYPE = ToolType.CODE_EDITING_FOR_ERROR

    fs_file_path: str
    code_above: str = ""
    code_below: str = ""
    code_in_selection: str
    extra_context: str = ""
    original_code: str
    error_instructions: str
    instructions: str
    llm: LLMProperties


ERROR_FIX_SYSTEM_PROMPT = """You are an expert software engineer. The code in the selection was just edited
to follow the user's instructions, but the language server now reports errors in it.
Fix the errors while keeping the intent of the edit.
Reply with the complete corrected selection inside a single fenced code block and nothing else."""


class CodeEditingForErrorTool(LLMTool):
    input_type = CodeEditingErrorRequest

    async def invoke(self, tool_input: ToolInput) -> CodeEditResponse:
        request = self._check_input(tool_input)
        user = "\n\n".join([
            f"File: {request.fs_file_path}",
            f"<original_code>\n{request.original_code}\n</original_code>",
            f"<instructions>\n{request.instructions}\n</instructions>",
            f"<extra_context>\n{request.extra_context}\n</extra_context>" if request.extra_context else "",
            f"<code_above>\n{request.code_above}\n</code_above>",
            f"<code_in_selection>\n{request.code_in_selection}\n</code_in_selection>",
            f"<code_below>\n{request.code_below}\n</code_below>",
            f"<errors>\n{request.error_instructions}\n</errors>",
        ])
        answer = await self._complete(
            [{"role": "system", "content": ERROR_FIX_SYSTEM_PROMPT}, {"role": "user", "content": user}],
            request.llm,
        )
        fixed = extract_code_block(answer)
        if not fixed:
            raise ToolInvocationError(f"LLM returned no fix for {request.fs_file_path}")
        return CodeEditResponse(edited_code=fixed)

    def tool_description(self) -> str:
        return "### code_editing_for_error\nRewrite freshly edited code to fix the diagnostics it produced."

    def tool_input_format(self) -> str:
        return "<code_editing_for_error>\n<errors>\ndiagnostics\n</errors>\n</code_editing_for_error>"
