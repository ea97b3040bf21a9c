"""Identity and working memory of code symbols."""

from __future__ import annotations

from dataclasses import dataclass, field

from .errors import SnippetRangeError
from .outline import OutlineNodeContent
from ..text_document import Range


@dataclass(frozen=True)
class SymbolIdentifier:
    """Routing key for symbol actors. Two identifiers are equal only when
    both the name and the file path match exactly."""
    symbol_name: str
    fs_file_path: str | None = None

    @classmethod
    def with_file_path(cls, symbol_name: str, fs_file_path: str) -> "SymbolIdentifier":
        return cls(symbol_name=symbol_name, fs_file_path=fs_file_path)

    def __str__(self) -> str:
        if self.fs_file_path:
            return f"{self.symbol_name}@{self.fs_file_path}"
        return self.symbol_name


@dataclass(frozen=True)
class Snippet:
    """A located symbol. Replaced, never mutated, when it moves."""
    symbol_name: str
    range: Range
    fs_file_path: str
    content: str
    outline_node_content: OutlineNodeContent

    @classmethod
    def from_outline_node(cls, node: OutlineNodeContent, file_content: str | None = None) -> "Snippet":
        if file_content is not None and not node.range.fits_in(file_content):
            raise SnippetRangeError(node.name, node.fs_file_path)
        return cls(
            symbol_name=node.name,
            range=node.range,
            fs_file_path=node.fs_file_path,
            content=node.content,
            outline_node_content=node,
        )

    @property
    def language(self) -> str:
        return self.outline_node_content.language


@dataclass
class UserContext:
    """Context supplied by the caller: files in scope and free-form notes."""
    file_paths: list[str] = field(default_factory=list)
    notes: str = ""

    def to_prompt(self) -> str:
        parts = []
        if self.file_paths:
            parts.append("Files in scope:\n" + "\n".join(f"- {path}" for path in self.file_paths))
        if self.notes:
            parts.append(self.notes)
        return "\n\n".join(parts)


@dataclass
class MechaCodeSymbolThinking:
    """Working memory for a symbol the agent plans to touch."""
    symbol_name: str
    fs_file_path: str
    is_new: bool = False
    steps: list[str] = field(default_factory=list)
    thinking: str = ""
    snippet: Snippet | None = None
    user_context: UserContext = field(default_factory=UserContext)

    def add_step(self, step: str) -> None:
        self.steps.append(step)

    def set_snippet(self, snippet: Snippet) -> None:
        self.snippet = snippet

    def to_symbol_identifier(self) -> SymbolIdentifier:
        return SymbolIdentifier.with_file_path(self.symbol_name, self.fs_file_path)
