"""
Agent runtime configuration.

Values are read from the environment once (``.env`` is loaded by main.py
before this module is imported). Tests build their own ``AgentConfig``
with explicit values instead of touching the singleton.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_EDITOR_URL = "http://localhost:42427"
DEFAULT_MCP_CONFIG_PATH = "~/.aide/config.json"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("[config] %s=%r is not an integer, using %d", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("[config] %s=%r is not a number, using %.1f", name, raw, default)
        return default


@dataclass
class AgentConfig:
    """Knobs for the broker, the locker and the correctness loop."""
    editor_url: str = ""
    mcp_config_path: str = ""
    correctness_max_tries: int | None = None
    fanout_limit: int | None = None
    tool_timeout: float | None = None      # editor bridge / local tools, seconds
    llm_timeout: float | None = None       # LLM backed tools, seconds
    request_timeout: float | None = None   # symbol request round trip, seconds
    apply_edits_directly: bool = True
    log_dir: str = ""

    def __post_init__(self):
        if not self.editor_url:
            self.editor_url = os.getenv("EDITOR_URL", DEFAULT_EDITOR_URL).rstrip("/")
        if not self.mcp_config_path:
            self.mcp_config_path = os.getenv("MCP_CONFIG_PATH", DEFAULT_MCP_CONFIG_PATH)
        if self.correctness_max_tries is None:
            self.correctness_max_tries = _env_int("CORRECTNESS_MAX_TRIES", 5)
        if self.fanout_limit is None:
            self.fanout_limit = _env_int("FANOUT_LIMIT", 100)
        if self.tool_timeout is None:
            self.tool_timeout = _env_float("TOOL_TIMEOUT_SECONDS", 30.0)
        if self.llm_timeout is None:
            self.llm_timeout = _env_float("LLM_TIMEOUT_SECONDS", 300.0)
        if self.request_timeout is None:
            self.request_timeout = _env_float("REQUEST_TIMEOUT_SECONDS", 900.0)
        if not self.log_dir:
            self.log_dir = os.getenv("LOG_DIR", "")


_config: AgentConfig | None = None


def get_agent_config() -> AgentConfig:
    global _config
    if _config is None:
        _config = AgentConfig()
    return _config
