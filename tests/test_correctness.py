"""Tests for the apply-then-diagnose correctness loop."""

import asyncio

from editor_simulator import span
from fakes import CORRECTNESS, ERROR_FIX, ScriptedLLM
from harness import A_RS, LLM, make_harness
from symbolhub.symbol.events import SymbolToEdit
from symbolhub.text_document import Range
from symbolhub.ui_events import UIEventKind

ORIGINAL = 'pub fn load() -> Config {\n    parseConfig("x")\n}'
BROKEN = 'pub fn load() -> Config {\n    parseConfig(BROKEN)\n}'
FIXED = 'pub fn load() -> Config {\n    parseConfig("fixed")\n}'


def broken_diagnostics(path, contents):
    if "BROKEN" not in contents:
        return []
    return [{"diagnostic": "E0425: cannot find value `BROKEN` in this scope", "range": span(7, 7)}]


def load_to_edit() -> SymbolToEdit:
    return SymbolToEdit(
        symbol_name="load", fs_file_path=A_RS, range=Range.from_lines(6, 8, end_character=1),
        instructions=["pass a better default"],
    )


def run_loop(h, edited_code: str):
    async def scenario():
        await h.toolbox.file_open(A_RS)
        return await h.toolbox.check_code_correctness(load_to_edit(), ORIGINAL, edited_code, "", LLM)

    return asyncio.run(scenario())


def test_clean_edit_is_resolved_in_one_round():
    h = make_harness(llm=ScriptedLLM({}))
    h.sim.diagnostics_for = broken_diagnostics

    report = run_loop(h, FIXED)

    assert report.resolved
    assert report.attempts == 1
    assert report.remaining_diagnostics == []
    assert 'parseConfig("fixed")' in h.sim.files[A_RS]
    assert len(h.sim.applied_edits) == 1
    assert h.llm.calls == []


def test_quick_fix_resolves_diagnostics():
    llm = ScriptedLLM({CORRECTNESS: '{"thinking": "use the quick fix", "index": 0}'})
    h = make_harness(llm=llm)
    h.sim.diagnostics_for = broken_diagnostics
    h.sim.quick_fixes = ['Replace with "x"']
    h.sim.on_quick_fix = lambda number: h.sim.files.update({A_RS: h.sim.files[A_RS].replace("BROKEN", '"x"')})

    report = run_loop(h, BROKEN)

    assert report.resolved
    assert report.attempts == 2
    assert h.sim.quick_fix_invocations == [0]
    assert len(h.sim.applied_edits) == 1
    assert "E0425" in llm.calls_for(CORRECTNESS)[0].user
    events = h.events_of(UIEventKind.CORRECTNESS_EVENT.value)
    assert events == [{"symbol_name": "load", "attempt": 1, "diagnostics": 1, "action": 'Replace with "x"'}]


def test_code_editing_action_rewrites_the_symbol():
    llm = ScriptedLLM({
        CORRECTNESS: '{"thinking": "quick fix is wrong", "index": 1}',
        ERROR_FIX: f"```rust\n{FIXED}\n```",
    })
    h = make_harness(llm=llm)
    h.sim.diagnostics_for = broken_diagnostics
    h.sim.quick_fixes = ["Remove line"]

    report = run_loop(h, BROKEN)

    assert report.resolved
    assert report.attempts == 2
    assert h.sim.quick_fix_invocations == []
    assert [e["edited_content"] for e in h.sim.applied_edits] == [BROKEN, FIXED]
    fix_prompt = llm.calls_for(ERROR_FIX)[0].user
    assert "<errors>\nE0425" in fix_prompt
    assert f"<original_code>\n{ORIGINAL}\n</original_code>" in fix_prompt
    assert "<instructions>\npass a better default\n</instructions>" in fix_prompt


def test_gives_up_after_max_tries_with_a_soft_report():
    llm = ScriptedLLM({
        CORRECTNESS: '{"thinking": "rewrite", "index": 0}',
        ERROR_FIX: f"```rust\n{BROKEN}\n```",
    })
    h = make_harness(llm=llm, correctness_max_tries=3)
    h.sim.diagnostics_for = broken_diagnostics

    report = run_loop(h, BROKEN)

    assert not report.resolved
    assert report.attempts == 3
    assert report.remaining_diagnostics == ["E0425: cannot find value `BROKEN` in this scope"]
    assert len(llm.calls_for(CORRECTNESS)) == 3
    # initial edit plus one rewrite per round
    assert len(h.sim.applied_edits) == 4


def test_refused_edit_surfaces_as_a_tool_error():
    h = make_harness(llm=ScriptedLLM({}))
    h.sim.refuse_edits = True

    async def scenario():
        await h.toolbox.file_open(A_RS)
        try:
            await h.toolbox.check_code_correctness(load_to_edit(), ORIGINAL, FIXED, "", LLM)
        except Exception as e:
            return e

    error = asyncio.run(scenario())
    assert error.kind == "invocation_failed"
