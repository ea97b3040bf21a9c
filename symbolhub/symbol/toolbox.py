"""
ToolBox: the typed facade symbol actors work through.

Every method builds a tool input, sends it through the ``ToolBroker``
and checks the output type. Tool failures surface as ``SymbolToolError``
(the original ``ToolError`` is the ``__cause__``); a mismatched output
type is a ``WrongToolOutputError`` wrapped the same way.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, TypeVar

from .errors import (
    DefinitionNotFoundError,
    ExpectedFileToExistError,
    NoContainingSymbolError,
    OutlineNodeNotFoundError,
    SnippetNotFoundError,
    SymbolError,
    SymbolNotFoundError,
    SymbolToolError,
)
from .events import CorrectnessReport, SymbolEventRequest, SymbolToEdit
from .identifier import MechaCodeSymbolThinking, Snippet, SymbolIdentifier, UserContext
from .outline import OutlineNode, OutlineNodeContent
from .tracker import SymbolTracker
from ..config import AgentConfig
from ..core.llm import LLMProperties
from ..text_document import Position, Range, split_file_content_into_parts
from ..tools.broker import ToolBroker
from ..tools.code_edit import CodeEditingErrorRequest, CodeEditRequest, CodeEditResponse
from ..tools.code_symbol import (
    CodeCorrectnessAction,
    CodeCorrectnessRequest,
    ImportantSymbolsRequest,
    ImportantSymbolsResponse,
    ProbeAnswerRequest,
    ProbeAnswerResponse,
    ShouldEditRequest,
    ShouldEditResponse,
)
from ..tools.editor import EditorApplyRequest, EditorApplyResponse, OpenFileRequest, OpenFileResponse
from ..tools.errors import ToolError, ToolInvocationError, WrongToolOutputError
from ..tools.grep import FindInFileRequest, FindInFileResponse
from ..tools.lsp import (
    Diagnostic,
    GetQuickFixRequest,
    GetQuickFixResponse,
    GoToDefinitionRequest,
    GoToDefinitionResponse,
    GoToImplementationRequest,
    GoToImplementationResponse,
    GoToReferencesRequest,
    GoToReferencesResponse,
    LSPDiagnosticsRequest,
    LSPDiagnosticsResponse,
    LSPQuickFixInvocationRequest,
    LSPQuickFixInvocationResponse,
    QuickFixOption,
)
from ..tools.types import ToolInput, ToolOutput
from ..ui_events import UIEvent, UIEventSink
from ..utils.concurrency import execute_in_parallel

if TYPE_CHECKING:
    from .locker import SymbolLocker

logger = logging.getLogger(__name__)

OutputT = TypeVar("OutputT", bound=ToolOutput)

# lines of context shown around a reference in follow-up prompts
REFERENCE_CONTEXT_LINES = 4


class ToolBox:
    def __init__(
        self,
        tools: ToolBroker,
        symbol_tracker: SymbolTracker,
        config: AgentConfig,
        ui_events: UIEventSink | None = None,
    ):
        self.tools = tools
        self.symbol_tracker = symbol_tracker
        self.config = config
        self.editor_url = config.editor_url
        self.ui_events = ui_events

    def emit(self, event: UIEvent) -> None:
        if self.ui_events is not None:
            self.ui_events.send(event)

    async def _invoke(self, request: ToolInput, expected: type[OutputT]) -> OutputT:
        try:
            result = await self.tools.invoke(request, ui_events=self.ui_events)
        except ToolError as e:
            raise SymbolToolError(e) from e
        if not isinstance(result, expected):
            error = WrongToolOutputError(expected, result)
            raise SymbolToolError(error) from error
        return result

    # ── Files and outlines ─────────────────────────────────────────

    async def file_open(self, fs_file_path: str) -> OpenFileResponse:
        """Read a file through the editor and refresh its outline."""
        response = await self._invoke(
            OpenFileRequest(fs_file_path=fs_file_path, editor_url=self.editor_url), OpenFileResponse,
        )
        if not response.exists:
            raise ExpectedFileToExistError(fs_file_path)
        await self.symbol_tracker.add_document(fs_file_path, response.file_contents, response.language)
        return response

    async def open_files(self, fs_file_paths: list[str]) -> dict[str, OpenFileResponse]:
        """Open many files with bounded fan-out; files that fail are left out."""
        paths = sorted(set(fs_file_paths))
        results = await execute_in_parallel(
            paths, self.file_open, max_concurrent=self.config.fanout_limit, label="file open",
        )
        return {
            path: result for path, result in zip(paths, results)
            if isinstance(result, OpenFileResponse)
        }

    async def get_outline_nodes_grouped(self, fs_file_path: str) -> list[OutlineNode]:
        return await self.symbol_tracker.get_symbols_outline(fs_file_path) or []

    async def get_outline_nodes(self, fs_file_path: str) -> list[OutlineNodeContent]:
        """Every outline node content in the file, children flattened in."""
        contents = []
        for node in await self.get_outline_nodes_grouped(fs_file_path):
            contents.extend(node.all_contents())
        return contents

    @staticmethod
    def grab_symbols_from_outline(outline_nodes: list[OutlineNode], symbol_name: str) -> list[OutlineNodeContent]:
        found = []
        for node in outline_nodes:
            if node.content.name == symbol_name:
                found.append(node.content)
            elif node.is_class():
                found.extend(child for child in node.children if child.name == symbol_name)
        return found

    async def find_in_file(self, file_contents: str, symbol_name: str) -> Position | None:
        response = await self._invoke(
            FindInFileRequest(file_contents=file_contents, file_symbol=symbol_name), FindInFileResponse,
        )
        return response.position

    async def find_snippet_for_symbol(self, fs_file_path: str, symbol_name: str) -> Snippet:
        """
        Locate ``symbol_name`` in ``fs_file_path``.

        Looks in the file's outline first. When the name is not defined
        there (an imported symbol, say), finds its first use in the file
        and follows go-to-definition to wherever it lives.
        """
        opened = await self.file_open(fs_file_path)
        outline_nodes = await self.symbol_tracker.get_symbols_outline(fs_file_path)
        if outline_nodes is None:
            raise OutlineNodeNotFoundError(symbol_name)

        candidates = self.grab_symbols_from_outline(outline_nodes, symbol_name)
        if candidates:
            return Snippet.from_outline_node(candidates[0], opened.file_contents)

        position = await self.find_in_file(opened.file_contents, symbol_name)
        if position is None:
            raise SnippetNotFoundError(symbol_name, fs_file_path)
        definition = await self.go_to_definition(fs_file_path, position)
        return await self.grab_symbol_content_from_definition(symbol_name, definition)

    async def grab_symbol_content_from_definition(
        self, symbol_name: str, definition: GoToDefinitionResponse,
    ) -> Snippet:
        if not definition.definitions:
            raise DefinitionNotFoundError(symbol_name)
        location = definition.definitions[0]
        opened = await self.file_open(location.fs_file_path)
        outline_nodes = await self.get_outline_nodes_grouped(location.fs_file_path)
        candidates = self.grab_symbols_from_outline(outline_nodes, symbol_name)
        if not candidates:
            raise SymbolNotFoundError(f"'{symbol_name}' not defined in {location.fs_file_path}")
        # prefer the node that actually holds the definition position
        candidates.sort(key=lambda node: node.range.minimal_line_distance(location.range))
        return Snippet.from_outline_node(candidates[0], opened.file_contents)

    async def find_symbol_to_edit(self, symbol_to_edit: SymbolToEdit) -> OutlineNodeContent:
        """The outline node named like the symbol that is closest to its last known range."""
        await self.file_open(symbol_to_edit.fs_file_path)
        candidates = [
            node for node in await self.get_outline_nodes(symbol_to_edit.fs_file_path)
            if node.name == symbol_to_edit.symbol_name
        ]
        if not candidates:
            raise SymbolNotFoundError(
                f"'{symbol_to_edit.symbol_name}' no longer in {symbol_to_edit.fs_file_path}"
            )
        candidates.sort(key=lambda node: symbol_to_edit.range.minimal_line_distance(node.range))
        return candidates[0]

    async def outline_nodes_for_symbol(self, fs_file_path: str, symbol_name: str) -> str:
        """Outline of a symbol; class-like symbols include their implementations."""
        await self.file_open(fs_file_path)
        outline_nodes = await self.symbol_tracker.get_symbols_outline(fs_file_path)
        if outline_nodes is None:
            raise ExpectedFileToExistError(fs_file_path)
        outline_node = next((node for node in outline_nodes if node.name == symbol_name), None)
        if outline_node is None:
            raise OutlineNodeNotFoundError(symbol_name)

        if outline_node.is_function():
            return f"<outline_list>\n{_format_outline(symbol_name, outline_node)}\n</outline_list>"

        implementations = await self.go_to_implementations_exact(
            fs_file_path, outline_node.content.identifier_position(),
        )
        file_paths = [location.fs_file_path for location in implementations.implementation_locations]
        await self.open_files(file_paths)

        outlines = []
        for path in sorted(set(file_paths)):
            for node in await self.get_outline_nodes_grouped(path):
                if node.name == symbol_name and node.range != outline_node.range:
                    outlines.append(_format_outline(symbol_name, node))
        outlines.append(_format_outline(symbol_name, outline_node))
        return "<outline_list>\n" + "\n".join(outlines) + "\n</outline_list>"

    # ── Editor / LSP ───────────────────────────────────────────────

    async def go_to_definition(self, fs_file_path: str, position: Position) -> GoToDefinitionResponse:
        return await self._invoke(
            GoToDefinitionRequest(fs_file_path=fs_file_path, editor_url=self.editor_url, position=position),
            GoToDefinitionResponse,
        )

    async def go_to_references(self, fs_file_path: str, position: Position) -> GoToReferencesResponse:
        return await self._invoke(
            GoToReferencesRequest(fs_file_path=fs_file_path, position=position, editor_url=self.editor_url),
            GoToReferencesResponse,
        )

    async def go_to_implementations_exact(self, fs_file_path: str, position: Position) -> GoToImplementationResponse:
        return await self._invoke(
            GoToImplementationRequest(fs_file_path=fs_file_path, position=position, editor_url=self.editor_url),
            GoToImplementationResponse,
        )

    async def get_lsp_diagnostics(self, fs_file_path: str, selection: Range) -> list[Diagnostic]:
        response = await self._invoke(
            LSPDiagnosticsRequest(fs_file_path=fs_file_path, range=selection, editor_url=self.editor_url),
            LSPDiagnosticsResponse,
        )
        return response.diagnostics

    async def get_quick_fix_actions(self, fs_file_path: str, selection: Range, request_id: str) -> list[QuickFixOption]:
        response = await self._invoke(
            GetQuickFixRequest(
                fs_file_path=fs_file_path, editor_url=self.editor_url, range=selection, request_id=request_id,
            ),
            GetQuickFixResponse,
        )
        return response.options

    async def invoke_quick_action(self, index: int, request_id: str) -> bool:
        response = await self._invoke(
            LSPQuickFixInvocationRequest(request_id=request_id, index=index, editor_url=self.editor_url),
            LSPQuickFixInvocationResponse,
        )
        return response.invocation_success

    async def apply_edits_to_editor(self, fs_file_path: str, selection: Range, edited_content: str) -> EditorApplyResponse:
        response = await self._invoke(
            EditorApplyRequest(
                fs_file_path=fs_file_path,
                edited_content=edited_content,
                selected_range=selection,
                editor_url=self.editor_url,
                apply_directly=self.config.apply_edits_directly,
            ),
            EditorApplyResponse,
        )
        if not response.success:
            error = ToolInvocationError(f"editor refused the edit to {fs_file_path}")
            raise SymbolToolError(error) from error
        return response

    # ── LLM work ───────────────────────────────────────────────────

    async def code_edit(
        self,
        fs_file_path: str,
        file_content: str,
        selection: Range,
        extra_context: str,
        instruction: str,
        llm: LLMProperties,
    ) -> str:
        above, below, in_selection = split_file_content_into_parts(file_content, selection)
        response = await self._invoke(
            CodeEditRequest(
                fs_file_path=fs_file_path,
                language=await self.symbol_tracker.get_language(fs_file_path),
                above=above,
                below=below,
                in_range_selection=in_selection,
                extra_context=extra_context,
                instruction=instruction,
                llm=llm,
            ),
            CodeEditResponse,
        )
        return response.edited_code

    async def check_code_correctness(
        self,
        symbol_edited: SymbolToEdit,
        original_code: str,
        edited_code: str,
        extra_context: str,
        llm: LLMProperties,
    ) -> CorrectnessReport:
        """
        Apply ``edited_code`` and then drive the diagnostics to zero.

        Each round re-locates the symbol, reads diagnostics over its range
        and, if there are any, lets the LLM pick either one of the editor's
        quick fixes or a corrective rewrite. Gives up after
        ``correctness_max_tries`` rounds and reports what is left.
        """
        fs_file_path = symbol_edited.fs_file_path
        instruction = "\n".join(symbol_edited.instructions)
        max_tries = self.config.correctness_max_tries

        symbol = await self.find_symbol_to_edit(symbol_edited)
        await self.apply_edits_to_editor(fs_file_path, symbol.range, edited_code)

        diagnostics: list[Diagnostic] = []
        tries = 0
        while tries < max_tries:
            tries += 1
            try:
                symbol = await self.find_symbol_to_edit(symbol_edited)
            except SymbolNotFoundError as e:
                # the applied code renamed or removed the symbol
                logger.warning("[correctness] lost track of %s after edit: %s", symbol_edited.symbol_name, e)
                return CorrectnessReport(
                    resolved=False, attempts=tries, remaining_diagnostics=[d.diagnostic for d in diagnostics],
                )
            file_content = (await self.file_open(fs_file_path)).file_contents
            diagnostics = await self.get_lsp_diagnostics(fs_file_path, symbol.range)
            if not diagnostics:
                logger.info("[correctness] %s clean after %d round(s)", symbol_edited.symbol_name, tries)
                return CorrectnessReport(resolved=True, attempts=tries)

            messages = [d.diagnostic for d in diagnostics]
            request_id = str(uuid.uuid4())
            quick_fixes = await self.get_quick_fix_actions(fs_file_path, symbol.range, request_id)
            above, below, in_selection = split_file_content_into_parts(file_content, symbol.range)
            action = await self._invoke(
                CodeCorrectnessRequest(
                    fs_file_contents=file_content,
                    fs_file_path=fs_file_path,
                    code_above=above,
                    code_below=below,
                    code_in_selection=in_selection,
                    symbol_name=symbol_edited.symbol_name,
                    instruction=instruction,
                    previous_code=original_code,
                    diagnostics=messages,
                    quick_fix_actions=quick_fixes,
                    llm=llm,
                ),
                CodeCorrectnessAction,
            )

            if action.index < len(quick_fixes):
                option = quick_fixes[action.index]
                self.emit(UIEvent.correctness_event(symbol_edited.symbol_name, tries, len(diagnostics), option.label))
                if not await self.invoke_quick_action(option.number, request_id):
                    logger.warning("[correctness] quick fix '%s' failed for %s", option.label, symbol_edited.symbol_name)
                continue

            self.emit(UIEvent.correctness_event(symbol_edited.symbol_name, tries, len(diagnostics), "code_editing"))
            fixed = await self._invoke(
                CodeEditingErrorRequest(
                    fs_file_path=fs_file_path,
                    code_above=above,
                    code_below=below,
                    code_in_selection=in_selection,
                    extra_context=extra_context,
                    original_code=original_code,
                    error_instructions="\n".join(messages),
                    instructions=instruction,
                    llm=llm,
                ),
                CodeEditResponse,
            )
            await self.apply_edits_to_editor(fs_file_path, symbol.range, fixed.edited_code)

        logger.warning(
            "[correctness] %s still has %d diagnostic(s) after %d round(s)",
            symbol_edited.symbol_name, len(diagnostics), tries,
        )
        return CorrectnessReport(
            resolved=False, attempts=tries, remaining_diagnostics=[d.diagnostic for d in diagnostics],
        )

    async def should_edit_symbol(self, snippet: Snippet, question: str, llm: LLMProperties) -> ShouldEditResponse:
        return await self._invoke(
            ShouldEditRequest(
                symbol_name=snippet.symbol_name,
                fs_file_path=snippet.fs_file_path,
                code=snippet.content,
                query=question,
                llm=llm,
            ),
            ShouldEditResponse,
        )

    async def probe_symbol(self, snippet: Snippet, query: str, history: str, llm: LLMProperties) -> str:
        response = await self._invoke(
            ProbeAnswerRequest(
                symbol_name=snippet.symbol_name,
                fs_file_path=snippet.fs_file_path,
                code=snippet.content,
                query=query,
                history=history,
                llm=llm,
            ),
            ProbeAnswerResponse,
        )
        return response.answer

    async def file_outlines(self, fs_file_paths: list[str]) -> str:
        opened = await self.open_files(fs_file_paths)
        sections = []
        for path in sorted(opened):
            nodes = await self.get_outline_nodes_grouped(path)
            if nodes:
                body = "\n".join(node.get_outline_short() for node in nodes)
                sections.append(f"<file_path>\n{path}\n</file_path>\n<outline>\n{body}\n</outline>")
        return "\n".join(sections)

    async def request_important_symbols(
        self, user_query: str, user_context: UserContext, llm: LLMProperties,
    ) -> ImportantSymbolsResponse:
        return await self._invoke(
            ImportantSymbolsRequest(
                user_query=user_query,
                file_outlines=await self.file_outlines(user_context.file_paths),
                user_context=user_context.to_prompt(),
                llm=llm,
            ),
            ImportantSymbolsResponse,
        )

    async def important_symbols(
        self, response: ImportantSymbolsResponse, user_context: UserContext,
    ) -> list[MechaCodeSymbolThinking]:
        """Turn the LLM's picks into thinking records, locating existing symbols."""
        thinkings = [
            MechaCodeSymbolThinking(
                symbol_name=symbol.code_symbol,
                fs_file_path=symbol.file_path,
                is_new=symbol.is_new,
                steps=list(symbol.steps),
                thinking=symbol.thinking,
                user_context=user_context,
            )
            for symbol in response.symbols
        ]

        async def locate(thinking: MechaCodeSymbolThinking) -> None:
            if thinking.is_new:
                return
            try:
                thinking.set_snippet(await self.find_snippet_for_symbol(thinking.fs_file_path, thinking.symbol_name))
            except SymbolError as e:
                logger.warning("[toolbox] could not locate %s: %s", thinking.symbol_name, e)

        await execute_in_parallel(thinkings, locate, max_concurrent=self.config.fanout_limit, label="symbol lookup")
        return thinkings

    # ── Follow-ups ─────────────────────────────────────────────────

    async def check_for_followups(
        self,
        symbol_edited: SymbolToEdit,
        original_code: str,
        edited_code: str,
        hub: "SymbolLocker",
    ) -> int:
        """
        Tell every symbol that references the edited one about the change.

        References are grouped by the innermost outline node enclosing
        them; each such symbol gets one ask-question request through the
        locker, without waiting for its answer. References inside the
        edited symbol itself are ignored. Returns how many were sent.
        """
        symbol = await self.find_symbol_to_edit(symbol_edited)
        if not (symbol.is_function_type() or symbol.is_class_type()):
            raise NoContainingSymbolError(f"'{symbol_edited.symbol_name}' is not a function or class")

        references = await self.go_to_references(symbol_edited.fs_file_path, symbol.identifier_position())
        locations = references.reference_locations
        if not locations:
            return 0

        await self.open_files([location.fs_file_path for location in locations])

        edited_identifier = SymbolIdentifier.with_file_path(symbol_edited.symbol_name, symbol_edited.fs_file_path)
        scheduled: set[SymbolIdentifier] = set()
        for location in locations:
            position = location.range.start_position
            if location.fs_file_path == symbol_edited.fs_file_path and symbol.range.contains_position(position):
                continue
            target = _enclosing_symbol(await self.get_outline_nodes_grouped(location.fs_file_path), position)
            if target is None:
                continue
            identifier = SymbolIdentifier.with_file_path(target.name, target.fs_file_path)
            if identifier == edited_identifier or identifier in scheduled:
                continue

            file_content = await self.symbol_tracker.get_file_content(location.fs_file_path) or ""
            prompt = _followup_prompt(
                original_code, edited_code, symbol_edited, target, location.fs_file_path,
                _content_with_reference_highlight(file_content, position.line),
            )
            hub.send_nowait(SymbolEventRequest.ask_question(identifier, prompt))
            scheduled.add(identifier)

        logger.info(
            "[followup] %s: %d reference(s), %d symbol(s) notified",
            symbol_edited.symbol_name, len(locations), len(scheduled),
        )
        return len(scheduled)


# ── Helpers ────────────────────────────────────────────────────────

def _format_outline(symbol_name: str, node: OutlineNode) -> str:
    location = f"{node.fs_file_path}-{node.range.start_line}:{node.range.end_line}"
    return (
        f"<outline>\n<symbol_name>\n{symbol_name}\n</symbol_name>\n"
        f"<file_path>\n{location}\n</file_path>\n"
        f"<content>\n{node.get_outline_short()}\n</content>\n</outline>"
    )


def _enclosing_symbol(outline_nodes: list[OutlineNode], position: Position) -> OutlineNodeContent | None:
    """Innermost outline node content containing ``position``."""
    for node in outline_nodes:
        if node.range.contains_position(position):
            return node.child_containing(position) or node.content
    return None


def _content_with_reference_highlight(file_content: str, reference_line: int) -> str:
    lines = file_content.split("\n")
    start = max(reference_line - REFERENCE_CONTEXT_LINES, 0)
    end = min(reference_line + REFERENCE_CONTEXT_LINES, len(lines) - 1)
    shown = []
    for number in range(start, end + 1):
        if number == reference_line:
            shown.append(f"<line_with_reference>\n{lines[number]}\n</line_with_reference>")
        else:
            shown.append(lines[number])
    return "\n".join(shown)


def _followup_prompt(
    original_code: str,
    edited_code: str,
    symbol_edited: SymbolToEdit,
    child_symbol: OutlineNodeContent,
    file_path_for_followup: str,
    content_with_highlight: str,
) -> str:
    edited_name = symbol_edited.symbol_name
    instructions = "\n".join(symbol_edited.instructions)
    return f"""Another engineer has changed the code for `{edited_name}` which is present in `{symbol_edited.fs_file_path}`
The original code for `{edited_name}` is given below along with the new code and the instructions for why the change was done:
<old_code>
{original_code}
</old_code>

<new_code>
{edited_code}
</new_code>

<instructions_for_change>
{instructions}
</instructions_for_change>

The `{edited_name}` is being used in `{child_symbol.name}` in the following line:
<file_path>
{file_path_for_followup}
</file_path>
<content>
{content_with_highlight}
</content>

There might be need for further changes to the `{child_symbol.name}`
Please handle these changes as required."""
