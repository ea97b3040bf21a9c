"""LSP navigation, diagnostics and quick fixes, forwarded to the editor bridge."""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from .editor import EditorTool
from .types import ToolInput, ToolOutput, ToolType
from ..text_document import Position, Range

logger = logging.getLogger(__name__)


class Location(BaseModel):
    fs_file_path: str
    range: Range


# ── Go to definition ───────────────────────────────────────────────

class GoToDefinitionRequest(ToolInput):
    TOOL_TYPE = ToolType.GO_TO_DEFINITIONS

    fs_file_path: str
    editor_url: str
    position: Position


class GoToDefinitionResponse(ToolOutput):
    definitions: list[Location] = Field(default_factory=list)


class GoToDefinitionTool(EditorTool):
    input_type = GoToDefinitionRequest
    endpoint = "/go_to_definition"

    async def invoke(self, tool_input: ToolInput) -> GoToDefinitionResponse:
        request = self._check_input(tool_input)
        return await self._post(request.editor_url, request, GoToDefinitionResponse)

    def tool_description(self) -> str:
        return "### go_to_definitions\nFind where the symbol at a position is defined."

    def tool_input_format(self) -> str:
        return "<go_to_definitions>\n<fs_file_path>\npath\n</fs_file_path>\n<line>\n0\n</line>\n</go_to_definitions>"


# ── Go to references ───────────────────────────────────────────────

class GoToReferencesRequest(ToolInput):
    TOOL_TYPE = ToolType.GO_TO_REFERENCES

    fs_file_path: str
    position: Position
    editor_url: str


class GoToReferencesResponse(ToolOutput):
    reference_locations: list[Location] = Field(default_factory=list)


class GoToReferencesTool(EditorTool):
    input_type = GoToReferencesRequest
    endpoint = "/go_to_references"

    async def invoke(self, tool_input: ToolInput) -> GoToReferencesResponse:
        request = self._check_input(tool_input)
        response = await self._post(request.editor_url, request, GoToReferencesResponse)
        logger.debug("[lsp] %d references for %s", len(response.reference_locations), request.fs_file_path)
        return response

    def tool_description(self) -> str:
        return "### go_to_references\nList every place the symbol at a position is used."

    def tool_input_format(self) -> str:
        return "<go_to_references>\n<fs_file_path>\npath\n</fs_file_path>\n<line>\n0\n</line>\n</go_to_references>"


# ── Go to implementations ──────────────────────────────────────────

class GoToImplementationRequest(ToolInput):
    TOOL_TYPE = ToolType.GO_TO_IMPLEMENTATIONS

    fs_file_path: str
    position: Position
    editor_url: str


class GoToImplementationResponse(ToolOutput):
    implementation_locations: list[Location] = Field(default_factory=list)


class GoToImplementationTool(EditorTool):
    input_type = GoToImplementationRequest
    endpoint = "/go_to_implementation"

    async def invoke(self, tool_input: ToolInput) -> GoToImplementationResponse:
        request = self._check_input(tool_input)
        return await self._post(request.editor_url, request, GoToImplementationResponse)

    def tool_description(self) -> str:
        return "### go_to_implementations\nList implementations of the type or trait at a position."

    def tool_input_format(self) -> str:
        return (
            "<go_to_implementations>\n<fs_file_path>\npath\n</fs_file_path>\n"
            "<line>\n0\n</line>\n</go_to_implementations>"
        )


# ── Diagnostics ────────────────────────────────────────────────────

class Diagnostic(BaseModel):
    diagnostic: str
    range: Range


class LSPDiagnosticsRequest(ToolInput):
    TOOL_TYPE = ToolType.LSP_DIAGNOSTICS

    fs_file_path: str
    range: Range
    editor_url: str


class LSPDiagnosticsResponse(ToolOutput):
    diagnostics: list[Diagnostic] = Field(default_factory=list)


class LSPDiagnosticsTool(EditorTool):
    input_type = LSPDiagnosticsRequest
    endpoint = "/diagnostics"

    async def invoke(self, tool_input: ToolInput) -> LSPDiagnosticsResponse:
        request = self._check_input(tool_input)
        return await self._post(request.editor_url, request, LSPDiagnosticsResponse)

    def tool_description(self) -> str:
        return "### lsp_diagnostics\nErrors and warnings the language server reports for a range."

    def tool_input_format(self) -> str:
        return "<lsp_diagnostics>\n<fs_file_path>\npath\n</fs_file_path>\n</lsp_diagnostics>"


# ── Quick fixes ────────────────────────────────────────────────────

class QuickFixOption(BaseModel):
    label: str
    number: int


class GetQuickFixRequest(ToolInput):
    TOOL_TYPE = ToolType.GET_QUICK_FIX

    fs_file_path: str
    editor_url: str
    range: Range
    request_id: str


class GetQuickFixResponse(ToolOutput):
    options: list[QuickFixOption] = Field(default_factory=list)


class GetQuickFixTool(EditorTool):
    input_type = GetQuickFixRequest
    endpoint = "/select_quick_fix"

    async def invoke(self, tool_input: ToolInput) -> GetQuickFixResponse:
        request = self._check_input(tool_input)
        return await self._post(request.editor_url, request, GetQuickFixResponse)

    def tool_description(self) -> str:
        return "### get_quick_fix\nList the code actions the language server offers for a range."

    def tool_input_format(self) -> str:
        return "<get_quick_fix>\n<fs_file_path>\npath\n</fs_file_path>\n</get_quick_fix>"


class LSPQuickFixInvocationRequest(ToolInput):
    TOOL_TYPE = ToolType.APPLY_QUICK_FIX

    request_id: str
    index: int
    editor_url: str


class LSPQuickFixInvocationResponse(ToolOutput):
    request_id: str
    invocation_success: bool


class LSPQuickFixInvocationTool(EditorTool):
    input_type = LSPQuickFixInvocationRequest
    endpoint = "/invoke_quick_fix"

    async def invoke(self, tool_input: ToolInput) -> LSPQuickFixInvocationResponse:
        request = self._check_input(tool_input)
        response = await self._post(request.editor_url, request, LSPQuickFixInvocationResponse)
        if not response.invocation_success:
            logger.info("[lsp] quick fix %d for request %s was not applied", request.index, request.request_id)
        return response

    def tool_description(self) -> str:
        return "### apply_quick_fix\nInvoke one of the quick fixes listed by get_quick_fix."

    def tool_input_format(self) -> str:
        return "<apply_quick_fix>\n<index>\n0\n</index>\n</apply_quick_fix>"
