"""
Editor Simulator - an in-memory stand-in for the editor bridge.

It answers the editor's JSON-over-HTTP API (file open, LSP navigation,
diagnostics, quick fixes, apply edits) from in-memory files and scripted
LSP answers, and plugs into the tools as an ``httpx.MockTransport``.

Usage:
    from editor_simulator import EditorSimulator

    sim = EditorSimulator(files={"/repo/a.rs": "fn main() {}\\n"})
    broker = ToolBroker.default(llm, config, transport=sim.transport())
"""

from .hooks import AssertionHooks, FailingHooks, SimulatorHooks
from .models import EditorCall
from .simulator import EditorSimulator, location, span

__all__ = [
    "EditorSimulator",
    "EditorCall",
    "SimulatorHooks",
    "AssertionHooks",
    "FailingHooks",
    "location",
    "span",
]
