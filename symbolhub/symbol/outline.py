"""
Outline nodes: the structural view of a file the agent reasons about.

A file's outline is a list of top-level ``OutlineNode``s. Class-like
nodes carry their methods as children; functions have none.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .parser import SymbolDef
from ..text_document import Position, Range

CLASS_KINDS = {"class", "struct", "enum", "trait", "interface", "module"}
IMPLEMENTATION_KINDS = {"impl"}
FUNCTION_KINDS = {"function", "method"}


class OutlineNodeType(str, Enum):
    CLASS_DEFINITION = "class_definition"
    CLASS_IMPLEMENTATION = "class_implementation"
    FUNCTION = "function"


@dataclass
class OutlineNodeContent:
    name: str
    node_type: OutlineNodeType
    range: Range
    identifier_range: Range
    fs_file_path: str
    content: str
    language: str = ""

    def is_class_definition(self) -> bool:
        return self.node_type == OutlineNodeType.CLASS_DEFINITION

    def is_class_type(self) -> bool:
        return self.node_type in (OutlineNodeType.CLASS_DEFINITION, OutlineNodeType.CLASS_IMPLEMENTATION)

    def is_function_type(self) -> bool:
        return self.node_type == OutlineNodeType.FUNCTION

    @property
    def signature(self) -> str:
        return self.content.split("\n", 1)[0].rstrip()

    def identifier_position(self) -> Position:
        return self.identifier_range.start_position


@dataclass
class OutlineNode:
    content: OutlineNodeContent
    children: list[OutlineNodeContent] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.content.name

    @property
    def range(self) -> Range:
        return self.content.range

    @property
    def fs_file_path(self) -> str:
        return self.content.fs_file_path

    def is_class(self) -> bool:
        return self.content.is_class_type()

    def is_function(self) -> bool:
        return self.content.is_function_type()

    def all_contents(self) -> list[OutlineNodeContent]:
        return [self.content, *self.children]

    def child_containing(self, position: Position) -> OutlineNodeContent | None:
        for child in self.children:
            if child.range.contains_position(position):
                return child
        return None

    def get_outline_short(self) -> str:
        """Signature of the node plus the signatures of its children."""
        lines = [self.content.signature]
        for child in self.children:
            lines.append(f"    {child.signature.strip()}")
        return "\n".join(lines)


def _node_type(kind: str) -> OutlineNodeType:
    if kind in IMPLEMENTATION_KINDS:
        return OutlineNodeType.CLASS_IMPLEMENTATION
    if kind in CLASS_KINDS:
        return OutlineNodeType.CLASS_DEFINITION
    return OutlineNodeType.FUNCTION


def _to_content(definition: SymbolDef, language: str) -> OutlineNodeContent:
    return OutlineNodeContent(
        name=definition.name,
        node_type=_node_type(definition.kind),
        range=definition.range,
        identifier_range=definition.identifier_range,
        fs_file_path=definition.file_path,
        content=definition.content,
        language=language,
    )


def build_outline_nodes(definitions: list[SymbolDef], language: str = "") -> list[OutlineNode]:
    """Group source-ordered definitions into top-level outline nodes.

    Functions directly inside a class-like definition become its children.
    Anything nested deeper stays part of its enclosing node's content.
    """
    nodes: list[OutlineNode] = []
    top_level: dict[int, OutlineNode] = {}
    for index, definition in enumerate(definitions):
        if definition.parent_index is None:
            node = OutlineNode(content=_to_content(definition, language))
            top_level[index] = node
            nodes.append(node)
            continue
        parent = top_level.get(definition.parent_index)
        if parent is not None and parent.is_class() and definition.kind in FUNCTION_KINDS:
            parent.children.append(_to_content(definition, language))
    return nodes
