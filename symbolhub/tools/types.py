"""
Tool contract.

Every capability the agent can use (editor bridge calls, LLM calls, MCP
server tools) is a ``Tool``: it receives a ``ToolInput`` and returns a
``ToolOutput``. Inputs know which tool they are for through
``tool_type()``; the broker routes on that key.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict
from pydantic_core import PydanticSerializationError


class ToolType(str, Enum):
    OPEN_FILE = "open_file"
    GO_TO_DEFINITIONS = "go_to_definitions"
    GO_TO_REFERENCES = "go_to_references"
    GO_TO_IMPLEMENTATIONS = "go_to_implementations"
    LSP_DIAGNOSTICS = "lsp_diagnostics"
    GET_QUICK_FIX = "get_quick_fix"
    APPLY_QUICK_FIX = "apply_quick_fix"
    EDITOR_APPLY_EDITS = "editor_apply_edits"
    GREP_IN_FILE = "grep_in_file"
    CODE_EDITING = "code_editing"
    CODE_CORRECTNESS_ACTION_SELECTION = "code_correctness_action_selection"
    CODE_EDITING_FOR_ERROR = "code_editing_for_error"
    SHOULD_EDIT_CODE = "should_edit_code"
    PROBE_ANSWER = "probe_answer"
    IMPORTANT_SYMBOLS = "important_symbols"

    def __str__(self) -> str:
        return self.value


MCP_TOOL_PREFIX = "mcp::"


def dynamic_tool_type(tool_name: str) -> str:
    """Registry key for an MCP tool."""
    return f"{MCP_TOOL_PREFIX}{tool_name}"


class ToolInput(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    TOOL_TYPE: ClassVar[ToolType | None] = None

    def tool_type(self) -> ToolType | str:
        if self.TOOL_TYPE is None:
            raise NotImplementedError(f"{type(self).__name__} has no tool type")
        return self.TOOL_TYPE

    def summary(self) -> dict[str, Any]:
        """Payload for UI events (LLM credentials left out)."""
        try:
            return self.model_dump(mode="json", exclude={"llm", "fail_over_llm"})
        except PydanticSerializationError:
            return {"input": type(self).__name__}


class ToolOutput(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)


class Tool(ABC):
    """A capability behind the broker."""

    # Per-invocation deadline in seconds; the broker enforces it.
    timeout: float | None = None

    @abstractmethod
    async def invoke(self, tool_input: ToolInput) -> ToolOutput:
        ...

    @abstractmethod
    def tool_description(self) -> str:
        ...

    @abstractmethod
    def tool_input_format(self) -> str:
        ...
