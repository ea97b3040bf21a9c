"""End-to-end tests for symbol actors: edits, follow-ups, questions, probes and outlines."""

import asyncio

from editor_simulator import FailingHooks, location
from fakes import EDIT, PROBE, SHOULD_EDIT, ScriptedLLM
from harness import A_RS, B_RS, make_harness
from symbolhub.symbol.events import SymbolEventRequest
from symbolhub.symbol.identifier import SymbolIdentifier
from symbolhub.ui_events import UIEventKind

NEW_PARSE_CONFIG = (
    "pub fn parseConfig(input: &str, strict: bool) -> Config {\n"
    "    let _ = strict;\n"
    "    Config::new(input)\n"
    "}"
)
NEW_LOAD = 'pub fn load() -> Config {\n    parseConfig("x", true)\n}'


def selection_of(messages) -> str:
    user = messages[-1]["content"]
    return user.split("<code_in_selection>", 1)[1].split("</code_in_selection>", 1)[0]


def scripted_edit(messages) -> str:
    if "fn parseConfig" in selection_of(messages):
        return f"```rust\n{NEW_PARSE_CONFIG}\n```"
    return f"```rust\n{NEW_LOAD}\n```"


def parse_config() -> SymbolIdentifier:
    return SymbolIdentifier("parseConfig", A_RS)


def test_edit_fans_out_to_referencing_symbols():
    llm = ScriptedLLM({
        EDIT: scripted_edit,
        SHOULD_EDIT: '{"thinking": "call site must pass strict", "should_edit": true}',
    })
    h = make_harness(llm=llm)
    # positions as reported after the edit: parseConfig grew by one line
    h.sim.references[(A_RS, 2)] = [location(A_RS, 2, start_character=7), location(A_RS, 8, start_character=4)]

    async def scenario():
        locker = h.locker()
        response = await locker.dispatch(SymbolEventRequest.edit(parse_config(), ["add a strict flag"]))
        await locker.wait_for_background()
        load_actor = locker.get_actor(SymbolIdentifier("load", A_RS))
        await locker.shutdown()
        return response, load_actor

    response, load_actor = asyncio.run(scenario())

    assert response.ok
    assert response.edit.edited_code == NEW_PARSE_CONFIG
    assert response.edit.original_code.startswith("pub fn parseConfig(input: &str) -> Config {")
    assert response.edit.correctness.resolved
    assert response.edit.followups_scheduled == 1

    content = h.sim.files[A_RS]
    assert NEW_PARSE_CONFIG in content
    assert NEW_LOAD in content

    question = llm.calls_for(SHOULD_EDIT)[0].user
    assert "Another engineer has changed the code for `parseConfig`" in question
    assert '<line_with_reference>\n    parseConfig("x")\n</line_with_reference>' in question
    assert "The `parseConfig` is being used in `load`" in question

    # the follow-up edit does not fan out again
    assert len(h.sim.calls_to("/go_to_references")) == 1
    assert load_actor.edit_history[0].followups_scheduled == 0
    assert len(llm.calls_for(EDIT)) == 2

    symbol_events = [(e["symbol_name"], e["event"]) for e in h.events_of(UIEventKind.SYMBOL_EVENT.value)]
    assert symbol_events == [("parseConfig", "edit"), ("load", "ask_question")]


def test_references_inside_the_symbol_are_ignored():
    llm = ScriptedLLM({EDIT: scripted_edit})
    h = make_harness(llm=llm)
    h.sim.references[(A_RS, 2)] = [location(A_RS, 2, start_character=7), location(A_RS, 3, start_character=4)]

    async def scenario():
        locker = h.locker()
        response = await locker.dispatch(SymbolEventRequest.edit(parse_config(), ["add a strict flag"]))
        await locker.wait_for_background()
        await locker.shutdown()
        return response, locker.actors_created

    response, created = asyncio.run(scenario())

    assert response.edit.followups_scheduled == 0
    assert created == 1


def test_ask_question_without_edit():
    llm = ScriptedLLM({SHOULD_EDIT: '{"thinking": "signature unchanged for me", "should_edit": false}'})
    h = make_harness(llm=llm)

    async def scenario():
        locker = h.locker()
        response = await locker.dispatch(SymbolEventRequest.ask_question(
            SymbolIdentifier("load", A_RS), "parseConfig now logs its input",
        ))
        await locker.shutdown()
        return response

    response = asyncio.run(scenario())

    assert response.ok
    assert response.answer == "signature unchanged for me"
    assert response.edit is None
    assert h.sim.applied_edits == []


def test_failed_edit_applies_nothing():
    h = make_harness(llm=ScriptedLLM({EDIT: "```\n```"}))

    async def scenario():
        locker = h.locker()
        response = await locker.dispatch(SymbolEventRequest.edit(parse_config(), ["rename"]))
        actor = locker.get_actor(parse_config())
        await locker.shutdown()
        return response, actor

    response, actor = asyncio.run(scenario())

    assert not response.ok
    assert response.error["kind"] == "invocation_failed"
    assert h.sim.applied_edits == []
    assert actor.edit_history == []


def test_edit_survives_unreachable_references():
    h = make_harness(llm=ScriptedLLM({EDIT: scripted_edit}))
    h.sim.hooks = FailingHooks(unreachable={"/go_to_references"})

    async def scenario():
        locker = h.locker()
        response = await locker.dispatch(SymbolEventRequest.edit(parse_config(), ["add a strict flag"]))
        actor = locker.get_actor(parse_config())
        await locker.shutdown()
        return response, actor

    response, actor = asyncio.run(scenario())

    assert response.ok
    assert response.edit.edited_code == NEW_PARSE_CONFIG
    assert response.edit.followups_scheduled == 0
    assert NEW_PARSE_CONFIG in h.sim.files[A_RS]
    assert len(h.sim.applied_edits) == 1
    assert actor.edit_history == [response.edit]


def test_renamed_symbol_ends_correctness_with_unresolved_report():
    renamed = "pub fn parse_config(input: &str) -> Config {\n    Config::new(input)\n}"
    h = make_harness(llm=ScriptedLLM({EDIT: f"```rust\n{renamed}\n```"}))

    async def scenario():
        locker = h.locker()
        response = await locker.dispatch(SymbolEventRequest.edit(parse_config(), ["use snake case"]))
        await locker.shutdown()
        return response

    response = asyncio.run(scenario())

    assert response.ok
    assert response.edit.correctness.resolved is False
    assert response.edit.correctness.attempts == 1
    assert response.edit.followups_scheduled == 0
    assert renamed in h.sim.files[A_RS]
    assert h.sim.calls_to("/go_to_references") == []


def test_probe_passes_history_and_code():
    llm = ScriptedLLM({PROBE: "It builds a Config from the input."})
    h = make_harness(llm=llm)

    async def scenario():
        locker = h.locker()
        response = await locker.dispatch(SymbolEventRequest.probe(
            parse_config(), "what does it return?", history="load calls parseConfig",
        ))
        await locker.shutdown()
        return response

    response = asyncio.run(scenario())

    assert response.answer == "It builds a Config from the input."
    user = llm.calls[0].user
    assert "<history>\nload calls parseConfig\n</history>" in user
    assert "Config::new(input)" in user


def test_outline_of_function():
    h = make_harness()

    async def scenario():
        locker = h.locker()
        response = await locker.dispatch(SymbolEventRequest.outline(SymbolIdentifier("load", A_RS)))
        await locker.shutdown()
        return response

    response = asyncio.run(scenario())

    assert response.answer.startswith("<outline_list>\n<outline>\n<symbol_name>\nload\n</symbol_name>")
    assert f"{A_RS}-6:8" in response.answer
    assert "pub fn load() -> Config {" in response.answer
    assert h.sim.calls_to("/go_to_implementation") == []


def test_outline_of_class_includes_implementations():
    h = make_harness()
    h.sim.implementations[(B_RS, 0)] = [location(B_RS, 4, 8)]

    async def scenario():
        locker = h.locker()
        response = await locker.dispatch(SymbolEventRequest.outline(SymbolIdentifier("Foo", B_RS)))
        await locker.shutdown()
        return response

    response = asyncio.run(scenario())

    assert response.ok
    assert f"{B_RS}-4:8" in response.answer
    assert f"{B_RS}-0:2" in response.answer
    assert "impl Foo {\n    pub fn bar(&self) -> i32 {" in response.answer
    assert response.answer.index("impl Foo") < response.answer.index("pub struct Foo")
