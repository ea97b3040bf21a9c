"""Requests symbol actors accept and the responses they reply with."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from .identifier import SymbolIdentifier
from ..text_document import Range


# ── Requests ───────────────────────────────────────────────────────

@dataclass
class EditEvent:
    instructions: list[str]
    extra_context: str = ""
    follow_up: bool = True


@dataclass
class ProbeEvent:
    query: str
    history: str = ""


@dataclass
class AskQuestionEvent:
    question: str


@dataclass
class OutlineEvent:
    pass


SymbolEvent = Union[EditEvent, ProbeEvent, AskQuestionEvent, OutlineEvent]


def event_name(event: SymbolEvent) -> str:
    return {
        EditEvent: "edit",
        ProbeEvent: "probe",
        AskQuestionEvent: "ask_question",
        OutlineEvent: "outline",
    }[type(event)]


@dataclass
class SymbolEventRequest:
    symbol: SymbolIdentifier
    event: SymbolEvent

    @classmethod
    def edit(cls, symbol: SymbolIdentifier, instructions: list[str], extra_context: str = "",
             follow_up: bool = True) -> "SymbolEventRequest":
        return cls(symbol, EditEvent(instructions, extra_context, follow_up))

    @classmethod
    def probe(cls, symbol: SymbolIdentifier, query: str, history: str = "") -> "SymbolEventRequest":
        return cls(symbol, ProbeEvent(query, history))

    @classmethod
    def ask_question(cls, symbol: SymbolIdentifier, question: str) -> "SymbolEventRequest":
        return cls(symbol, AskQuestionEvent(question))

    @classmethod
    def outline(cls, symbol: SymbolIdentifier) -> "SymbolEventRequest":
        return cls(symbol, OutlineEvent())


@dataclass
class SymbolToEdit:
    """What the correctness loop and follow-ups need to re-find an edited symbol."""
    symbol_name: str
    fs_file_path: str
    range: Range
    instructions: list[str]


# ── Responses ──────────────────────────────────────────────────────

@dataclass
class CorrectnessReport:
    resolved: bool
    attempts: int
    remaining_diagnostics: list[str] = field(default_factory=list)


@dataclass
class EditOutcome:
    original_code: str
    edited_code: str
    correctness: CorrectnessReport
    followups_scheduled: int = 0


@dataclass
class SymbolEventResponse:
    symbol: SymbolIdentifier
    ok: bool
    answer: str = ""
    edit: EditOutcome | None = None
    error: dict[str, str] | None = None

    @classmethod
    def success(cls, symbol: SymbolIdentifier, answer: str = "", edit: EditOutcome | None = None) -> "SymbolEventResponse":
        return cls(symbol=symbol, ok=True, answer=answer, edit=edit)

    @classmethod
    def failure(cls, symbol: SymbolIdentifier, error: Exception) -> "SymbolEventResponse":
        if hasattr(error, "to_dict"):
            details = error.to_dict()
        else:
            details = {"kind": "internal_error", "message": str(error) or type(error).__name__}
        return cls(symbol=symbol, ok=False, error=details)
