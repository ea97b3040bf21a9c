"""
Editor bridge transport plus the file-level editor tools.

The editor (VS Code-style extension) exposes a tiny JSON-over-HTTP API:
every call is ``POST {editor_url}/{endpoint}`` with a pydantic-encoded
body. Transport problems become ``ToolInvocationError``; anything that
fails to encode or decode becomes ``SerializationError``.
"""

from __future__ import annotations

import logging
from typing import ClassVar, TypeVar

import httpx
from pydantic import BaseModel, ValidationError
from pydantic_core import PydanticSerializationError

from .errors import SerializationError, ToolInvocationError, WrongToolInputError
from .types import Tool, ToolInput, ToolOutput, ToolType
from ..text_document import Range

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class EditorTool(Tool):
    """Base for tools that talk to the editor bridge.

    ``transport`` is handed to ``httpx.AsyncClient``; tests pass an
    ``httpx.MockTransport`` that simulates the editor.
    """

    input_type: ClassVar[type[ToolInput]]
    endpoint: ClassVar[str]

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None, timeout: float | None = None):
        self._transport = transport
        self.timeout = timeout

    def _check_input(self, tool_input: ToolInput):
        if not isinstance(tool_input, self.input_type):
            raise WrongToolInputError(str(self.input_type.TOOL_TYPE), tool_input)
        return tool_input

    async def _post(self, editor_url: str, request: BaseModel, response_model: type[ResponseT]) -> ResponseT:
        try:
            body = request.model_dump_json()
        except PydanticSerializationError as e:
            raise SerializationError(f"could not encode {type(request).__name__}: {e}") from e

        url = f"{editor_url.rstrip('/')}{self.endpoint}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(url, content=body, headers={"Content-Type": "application/json"})
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("[editor] %s failed: %s", self.endpoint, e)
            raise ToolInvocationError(f"editor request to {self.endpoint} failed: {e}") from e

        try:
            return response_model.model_validate_json(resp.content)
        except ValidationError as e:
            raise SerializationError(f"bad response from {self.endpoint}: {e.error_count()} error(s)") from e


# ── Open file ──────────────────────────────────────────────────────

class OpenFileRequest(ToolInput):
    TOOL_TYPE = ToolType.OPEN_FILE

    fs_file_path: str
    editor_url: str


class OpenFileResponse(ToolOutput):
    fs_file_path: str
    file_contents: str
    exists: bool
    language: str = ""


class OpenFileTool(EditorTool):
    input_type = OpenFileRequest
    endpoint = "/file_open"

    async def invoke(self, tool_input: ToolInput) -> OpenFileResponse:
        request = self._check_input(tool_input)
        return await self._post(request.editor_url, request, OpenFileResponse)

    def tool_description(self) -> str:
        return "### open_file\nOpen a file in the editor and read its full contents."

    def tool_input_format(self) -> str:
        return "<open_file>\n<fs_file_path>\nabsolute path\n</fs_file_path>\n</open_file>"


# ── Apply edits ────────────────────────────────────────────────────

class EditorApplyRequest(ToolInput):
    TOOL_TYPE = ToolType.EDITOR_APPLY_EDITS

    fs_file_path: str
    edited_content: str
    selected_range: Range
    editor_url: str
    apply_directly: bool = True


class EditorApplyResponse(ToolOutput):
    fs_file_path: str
    success: bool


class EditorApplyTool(EditorTool):
    input_type = EditorApplyRequest
    endpoint = "/apply_edits"

    async def invoke(self, tool_input: ToolInput) -> EditorApplyResponse:
        request = self._check_input(tool_input)
        logger.info(
            "[editor] applying edit to %s lines %d-%d",
            request.fs_file_path, request.selected_range.start_line, request.selected_range.end_line,
        )
        return await self._post(request.editor_url, request, EditorApplyResponse)

    def tool_description(self) -> str:
        return "### editor_apply_edits\nReplace a range of a file in the editor with new content."

    def tool_input_format(self) -> str:
        return (
            "<editor_apply_edits>\n<fs_file_path>\npath\n</fs_file_path>\n"
            "<edited_content>\nnew code\n</edited_content>\n</editor_apply_edits>"
        )
