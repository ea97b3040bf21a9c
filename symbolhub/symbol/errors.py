"""Errors raised while locating and working on symbols."""

from __future__ import annotations

from ..tools.errors import ToolError


class SymbolError(Exception):
    kind = "symbol_error"

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": str(self)}


class SymbolNotFoundError(SymbolError):
    kind = "symbol_not_found"


class SnippetNotFoundError(SymbolError):
    kind = "snippet_not_found"

    def __init__(self, symbol_name: str, fs_file_path: str):
        super().__init__(f"could not locate '{symbol_name}' in {fs_file_path}")
        self.symbol_name = symbol_name
        self.fs_file_path = fs_file_path


class SnippetRangeError(SymbolError):
    kind = "snippet_out_of_range"

    def __init__(self, symbol_name: str, fs_file_path: str):
        super().__init__(f"range of '{symbol_name}' lies outside {fs_file_path}")


class OutlineNodeNotFoundError(SymbolError):
    kind = "outline_node_not_found"

    def __init__(self, symbol_name: str):
        super().__init__(f"no outline node for '{symbol_name}'")
        self.symbol_name = symbol_name


class DefinitionNotFoundError(SymbolError):
    kind = "definition_not_found"

    def __init__(self, symbol_name: str):
        super().__init__(f"no definition found for '{symbol_name}'")


class NoContainingSymbolError(SymbolError):
    kind = "no_containing_symbol"


class UnresolvableSymbolError(SymbolError):
    kind = "unresolvable_symbol"

    def __init__(self, symbol_name: str):
        super().__init__(f"'{symbol_name}' has no file path and no live actor")
        self.symbol_name = symbol_name


class ExpectedFileToExistError(SymbolError):
    kind = "file_not_found"

    def __init__(self, fs_file_path: str):
        super().__init__(f"expected {fs_file_path} to exist")


class SymbolToolError(SymbolError):
    """A tool failure surfaced while working on a symbol; the ``ToolError``
    is kept as ``__cause__`` and decides the kind."""

    def __init__(self, error: ToolError):
        super().__init__(str(error))
        self.kind = error.kind


class ActorTerminatedError(SymbolError):
    kind = "actor_terminated"


class ReplyTimeoutError(SymbolError):
    kind = "reply_timeout"
