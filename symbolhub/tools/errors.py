"""Errors raised by the tool broker and the tools behind it."""

from __future__ import annotations


class ToolError(Exception):
    """Base class for every tool failure. ``kind`` is the wire-facing tag."""
    kind = "tool_error"

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": str(self)}


class MissingToolError(ToolError):
    kind = "missing_tool"

    def __init__(self, tool_type: str):
        super().__init__(f"no tool registered for '{tool_type}'")
        self.tool_type = tool_type


class ToolInvocationError(ToolError):
    kind = "invocation_failed"


class SerializationError(ToolError):
    kind = "serialization_failed"


class ToolTimeoutError(ToolError):
    kind = "timeout"

    def __init__(self, tool_type: str, timeout: float):
        super().__init__(f"tool '{tool_type}' timed out after {timeout:.1f}s")
        self.tool_type = tool_type
        self.timeout = timeout


class WrongToolInputError(ToolError):
    kind = "wrong_tool_input"

    def __init__(self, tool_type: str, got: object):
        super().__init__(f"tool '{tool_type}' received {type(got).__name__}")
        self.tool_type = tool_type


class WrongToolOutputError(ToolError):
    kind = "wrong_tool_output"

    def __init__(self, expected: type, got: object):
        super().__init__(f"expected {expected.__name__}, got {type(got).__name__}")


class ToolBrokerConfigError(ToolError):
    """Fatal at startup: bad MCP config or duplicate dynamic tool names."""
    kind = "broker_config"
