"""Pydantic request/response models for the agent API."""

from typing import Literal

from pydantic import BaseModel, Field


# ── Request models ────────────────────────────────────────────────


class SymbolRequest(BaseModel):
    symbol_name: str
    fs_file_path: str | None = None
    kind: Literal["edit", "probe", "ask_question", "outline"]
    instructions: list[str] = []    # edit
    query: str = ""                 # probe / ask_question
    history: str = ""               # probe
    extra_context: str = ""         # edit
    follow_up: bool = True          # edit
    timeout: float | None = Field(default=None, gt=0)


class AgentRequest(BaseModel):
    user_query: str
    file_paths: list[str] = []
    notes: str = ""


# ── Response models ───────────────────────────────────────────────


class ErrorPayload(BaseModel):
    kind: str
    message: str


class CorrectnessPayload(BaseModel):
    resolved: bool
    attempts: int
    remaining_diagnostics: list[str] = []


class EditPayload(BaseModel):
    original_code: str
    edited_code: str
    correctness: CorrectnessPayload
    followups_scheduled: int = 0


class SymbolResponse(BaseModel):
    symbol_name: str
    fs_file_path: str | None = None
    ok: bool
    answer: str = ""
    edit: EditPayload | None = None
    error: ErrorPayload | None = None


class SkippedSymbol(BaseModel):
    symbol_name: str
    fs_file_path: str
    is_new: bool


class AgentResponse(BaseModel):
    responses: list[SymbolResponse]
    skipped: list[SkippedSymbol] = []
    total_time_ms: float = 0


class ToolInfo(BaseModel):
    tool_type: str
    description: str
    reminder: str


class ToolsResponse(BaseModel):
    tools: list[ToolInfo]


class HealthResponse(BaseModel):
    status: str
    version: str = "0.1.0"
    tools_registered: int = 0
    active_symbols: int = 0
    features: dict[str, bool] = {"streaming": True}
