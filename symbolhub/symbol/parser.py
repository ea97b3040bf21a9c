"""
Tree-sitter based symbol extraction.

Walks the syntax tree of a file and records every class-like and
function-like definition with its full range and the range of its name.
Definitions come back in source order; ``parent_index`` points at the
innermost enclosing definition, which is how methods find their class.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

import tree_sitter_go
import tree_sitter_javascript
import tree_sitter_python
import tree_sitter_rust
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

from ..text_document import Position, Range

logger = logging.getLogger(__name__)

# ── Language setup ────────────────────────────────────────────────

# Map file extensions to (language_func, language name)
LANGUAGE_CONFIG: dict[str, tuple] = {
    "rs": (tree_sitter_rust.language, "rust"),
    "py": (tree_sitter_python.language, "python"),
    "js": (tree_sitter_javascript.language, "javascript"),
    "jsx": (tree_sitter_javascript.language, "javascript"),
    "ts": (tree_sitter_typescript.language_typescript, "typescript"),
    "tsx": (tree_sitter_typescript.language_tsx, "typescript"),
    "go": (tree_sitter_go.language, "go"),
}

_JS_DEFINITIONS = {
    "class_declaration": "class",
    "interface_declaration": "interface",
    "function_declaration": "function",
    "generator_function_declaration": "function",
    "method_definition": "method",
}

# node type → definition kind, per extension
DEFINITION_TYPES: dict[str, dict[str, str]] = {
    "py": {
        "class_definition": "class",
        "function_definition": "function",
    },
    "rs": {
        "struct_item": "struct",
        "enum_item": "enum",
        "trait_item": "trait",
        "impl_item": "impl",
        "mod_item": "module",
        "function_item": "function",
    },
    "js": _JS_DEFINITIONS,
    "jsx": _JS_DEFINITIONS,
    "ts": _JS_DEFINITIONS,
    "tsx": _JS_DEFINITIONS,
    "go": {
        "type_spec": "struct",
        "function_declaration": "function",
        "method_declaration": "method",
    },
}

# Field holding the definition's name when it is not "name"
NAME_FIELDS = {"impl_item": "type"}


@lru_cache(maxsize=10)
def _get_language(ext: str) -> Language | None:
    """Get the tree-sitter Language for a file extension."""
    config = LANGUAGE_CONFIG.get(ext)
    if not config:
        return None
    lang_func, _ = config
    return Language(lang_func())


def get_parser(ext: str) -> Parser | None:
    """Get a parser for the given file extension."""
    lang = _get_language(ext)
    if lang is None:
        return None
    return Parser(lang)


def language_for_path(file_path: str) -> str:
    config = LANGUAGE_CONFIG.get(Path(file_path).suffix.lstrip("."))
    return config[1] if config else ""


def content_hash(content: str) -> str:
    return hashlib.sha256(content.encode()).hexdigest()[:16]


# ── Data models ───────────────────────────────────────────────────

@dataclass
class SymbolDef:
    """A symbol definition extracted from source code."""
    name: str
    kind: str  # "function", "method", "class", "struct", "enum", "trait", "impl", "interface", "module"
    file_path: str
    range: Range
    identifier_range: Range
    content: str
    parent_index: int | None = None  # index of the enclosing definition

    @property
    def signature(self) -> str:
        return self.content.split("\n", 1)[0].strip()


@dataclass
class FileParseResult:
    file_path: str
    content_hash: str
    language: str = ""
    definitions: list[SymbolDef] = field(default_factory=list)


def _position(point, byte_offset: int) -> Position:
    return Position(line=point[0], character=point[1], byte_offset=byte_offset)


def _node_range(node: Node) -> Range:
    return Range(
        start_position=_position(node.start_point, node.start_byte),
        end_position=_position(node.end_point, node.end_byte),
    )


# ── Main parser ───────────────────────────────────────────────────

def parse_file(file_path: str, content: str) -> FileParseResult:
    """Parse a source file and extract its definitions.

    Unsupported extensions give an empty result rather than an error.
    """
    ext = Path(file_path).suffix.lstrip(".")
    result = FileParseResult(
        file_path=file_path,
        content_hash=content_hash(content),
        language=language_for_path(file_path),
    )

    parser = get_parser(ext)
    if parser is None:
        logger.debug("[parser] no grammar for %s", file_path)
        return result

    source = content.encode("utf-8")
    tree = parser.parse(source)
    definition_types = DEFINITION_TYPES[ext]

    # Pre-order walk with an explicit stack so definitions land in source order.
    stack: list[tuple[Node, int | None]] = [(tree.root_node, None)]
    while stack:
        node, parent_index = stack.pop()
        enclosing = parent_index

        kind = definition_types.get(node.type)
        if kind is not None:
            name_node = node.child_by_field_name(NAME_FIELDS.get(node.type, "name"))
            if name_node is not None:
                result.definitions.append(SymbolDef(
                    name=source[name_node.start_byte:name_node.end_byte].decode("utf-8", errors="replace"),
                    kind=kind,
                    file_path=file_path,
                    range=_node_range(node),
                    identifier_range=_node_range(name_node),
                    content=source[node.start_byte:node.end_byte].decode("utf-8", errors="replace"),
                    parent_index=parent_index,
                ))
                enclosing = len(result.definitions) - 1

        for child in reversed(node.children):
            stack.append((child, enclosing))

    logger.debug("[parser] %s: %d definitions", file_path, len(result.definitions))
    return result
