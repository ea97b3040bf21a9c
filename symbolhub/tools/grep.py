"""Local search for a symbol name inside already loaded file contents."""

from __future__ import annotations

import re

from .errors import WrongToolInputError
from .types import Tool, ToolInput, ToolOutput, ToolType
from ..text_document import Position


class FindInFileRequest(ToolInput):
    TOOL_TYPE = ToolType.GREP_IN_FILE

    file_contents: str
    file_symbol: str


class FindInFileResponse(ToolOutput):
    position: Position | None = None


def find_symbol_position(file_contents: str, symbol: str) -> Position | None:
    """Position of the first whole-word occurrence of ``symbol``."""
    if not symbol:
        return None
    pattern = re.compile(rf"(?<![\w]){re.escape(symbol)}(?![\w])")
    byte_offset = 0
    for line_number, line in enumerate(file_contents.split("\n")):
        match = pattern.search(line)
        if match:
            return Position(
                line=line_number,
                character=match.start(),
                byte_offset=byte_offset + len(line[:match.start()].encode("utf-8")),
            )
        byte_offset += len(line.encode("utf-8")) + 1
    return None


class FindInFileTool(Tool):
    timeout = None

    async def invoke(self, tool_input: ToolInput) -> FindInFileResponse:
        if not isinstance(tool_input, FindInFileRequest):
            raise WrongToolInputError(ToolType.GREP_IN_FILE.value, tool_input)
        return FindInFileResponse(position=find_symbol_position(tool_input.file_contents, tool_input.file_symbol))

    def tool_description(self) -> str:
        return "### grep_in_file\nFind the first occurrence of a symbol name in a file."

    def tool_input_format(self) -> str:
        return "<grep_in_file>\n<file_symbol>\nname\n</file_symbol>\n</grep_in_file>"
