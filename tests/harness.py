"""
Wires the real broker, tracker, toolbox and locker to the editor
simulator and the scripted LLM.
"""
from __future__ import annotations

from dataclasses import dataclass

from editor_simulator import EditorSimulator
from fakes import ScriptedLLM
from symbolhub.config import AgentConfig
from symbolhub.core.llm import LLMBroker, LLMProperties
from symbolhub.symbol.identifier import UserContext
from symbolhub.symbol.locker import SymbolLocker
from symbolhub.symbol.manager import SymbolManager
from symbolhub.symbol.toolbox import ToolBox
from symbolhub.symbol.tracker import SymbolTracker
from symbolhub.tools.broker import ToolBroker
from symbolhub.ui_events import UIEventSink

EDITOR_URL = "http://editor.test"

LLM = LLMProperties(model="anthropic/claude-test")

A_RS = "/repo/src/a.rs"
B_RS = "/repo/src/b.rs"

# 0-based lines: parseConfig spans 2-4, load spans 6-8
A_RS_CONTENT = """use crate::b::Foo;

pub fn parseConfig(input: &str) -> Config {
    Config::new(input)
}

pub fn load() -> Config {
    parseConfig("x")
}
"""

# Foo struct spans 0-2, impl Foo spans 4-8 with bar on 5-7
B_RS_CONTENT = """pub struct Foo {
    value: i32,
}

impl Foo {
    pub fn bar(&self) -> i32 {
        self.value
    }
}
"""


def make_config(**overrides) -> AgentConfig:
    values = dict(
        editor_url=EDITOR_URL,
        mcp_config_path="/nonexistent/mcp.json",
        correctness_max_tries=5,
        fanout_limit=10,
        tool_timeout=5.0,
        llm_timeout=5.0,
        request_timeout=10.0,
    )
    values.update(overrides)
    return AgentConfig(**values)


@dataclass
class Harness:
    sim: EditorSimulator
    llm: ScriptedLLM
    config: AgentConfig
    ui_events: UIEventSink
    broker: ToolBroker
    tracker: SymbolTracker
    toolbox: ToolBox

    def locker(self, user_context: UserContext | None = None) -> SymbolLocker:
        return SymbolLocker(self.toolbox, LLM, user_context, request_timeout=self.config.request_timeout)

    def manager(self, user_context: UserContext | None = None) -> SymbolManager:
        return SymbolManager(self.toolbox, LLM, user_context)

    def events_of(self, kind: str) -> list[dict]:
        """Drain the UI sink and return the payloads of ``kind`` events."""
        payloads = []
        while not self.ui_events._queue.empty():
            event = self.ui_events._queue.get_nowait()
            if event is not None and event.kind.value == kind:
                payloads.append(event.payload)
        return payloads


def make_harness(
    files: dict[str, str] | None = None,
    llm: ScriptedLLM | None = None,
    sim: EditorSimulator | None = None,
    fail_over_llm: LLMProperties | None = None,
    **config_overrides,
) -> Harness:
    sim = sim or EditorSimulator(files if files is not None else {A_RS: A_RS_CONTENT, B_RS: B_RS_CONTENT})
    llm = llm or ScriptedLLM()
    config = make_config(**config_overrides)
    ui_events = UIEventSink()
    broker = ToolBroker.default(
        LLMBroker(completion_func=llm), config,
        ui_events=ui_events, fail_over_llm=fail_over_llm, transport=sim.transport(),
    )
    tracker = SymbolTracker()
    toolbox = ToolBox(broker, tracker, config, ui_events=ui_events)
    return Harness(sim, llm, config, ui_events, broker, tracker, toolbox)
