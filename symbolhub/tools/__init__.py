from .broker import ToolBroker
from .errors import (
    MissingToolError,
    SerializationError,
    ToolBrokerConfigError,
    ToolError,
    ToolInvocationError,
    ToolTimeoutError,
    WrongToolInputError,
    WrongToolOutputError,
)
from .types import Tool, ToolInput, ToolOutput, ToolType

__all__ = [
    "ToolBroker",
    "Tool",
    "ToolInput",
    "ToolOutput",
    "ToolType",
    "ToolError",
    "MissingToolError",
    "ToolInvocationError",
    "SerializationError",
    "ToolTimeoutError",
    "WrongToolInputError",
    "WrongToolOutputError",
    "ToolBrokerConfigError",
]
