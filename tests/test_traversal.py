""" Test cases for DialogManager. """

import pytest

from terminus.errors import ContentIntegrityError, IntegrityCase, InvalidChoiceSelection
from terminus.interrupts import ManualClock, InterruptOutcome
from terminus.registry import GraphRegistry
from terminus.state import StateChange, apply_change
from terminus.traversal import DialogManager, evaluate_choices
from terminus.dialog import Interrupt
from terminus.predicates import load_condition
from . import choice, node, terminal, graph

def test_trust_gated_choice_appears(state):
    g = graph("samuel", [
        node("A",
            choice("to_b", "B", visible={"trust": {"min": 5}}),
            choice("warm_up", "A", consequence=StateChange(trust_change=1)),
        ),
        terminal("B"),
    ])
    apply_change(state, StateChange(character_id="samuel", trust_change=4))
    manager = DialogManager(GraphRegistry([g]), state)

    presented = manager.enter_node("A")
    assert [c.choice_id for c in presented.visible_choices] == ["warm_up"]
    assert [c.choice_id for c in presented.hidden_choices] == ["to_b"]

    assert manager.select_choice("warm_up") == "A"
    assert state.trust("samuel") == 5

    presented = manager.enter_node("A")
    assert [c.choice_id for c in presented.visible_choices] == ["to_b", "warm_up"]
    assert manager.select_choice("to_b") == "B"

def test_enter_applies_entry_effects(registry, state):
    registry.graph("samuel").nodes["samuel_start"].on_enter.append(StateChange(add_global_flags=["met_samuel"], trust_change=1))
    manager = DialogManager(registry, state)

    presented = manager.enter_node("samuel_start")
    assert presented.node_id == "samuel_start"
    assert presented.graph_id == "samuel"
    assert not presented.fallback
    assert "met_samuel" in state.global_flags
    assert state.trust("samuel") == 1
    assert state.current_node_id == "samuel_start"
    assert state.character("samuel").conversation_history == ["samuel_start"]

def test_enter_does_not_depend_on_selection(registry, state):
    manager = DialogManager(registry, state)
    manager.enter_node("samuel_hub")
    snapshot = state.copy()
    manager.enter_node("samuel_hub")
    # only bookkeeping changes on re-entry
    snapshot.character("samuel").conversation_history.append("samuel_hub")
    assert state == snapshot

def test_cross_graph_hop(registry, state):
    manager = DialogManager(registry, state)
    manager.enter_node("samuel_hub")
    next_id = manager.select_choice("to_maya")
    assert next_id == "@maya.INTRODUCTION"

    presented = manager.enter_node(next_id)
    assert presented.graph_id == "maya"
    assert presented.node_id == "maya_intro"
    assert state.character("maya").conversation_history == ["maya_intro"]

    assert manager.enter_node(manager.select_choice("back")).node_id == "samuel_hub"

def test_missing_node_fails_closed(registry, state, caplog):
    manager = DialogManager(registry, state)
    presented = manager.enter_node("no_such_node")
    assert presented.fallback
    assert presented.node_id == "samuel_hub_fallback"
    assert "no_such_node" in caplog.text

def test_unmet_required_state_fails_closed(state):
    g = graph("samuel", [
        node("samuel_hub_fallback", choice("c", "secret")),
        node("secret", choice("c", "samuel_hub_fallback"), required_state=load_condition({"has_global_flags": ["knows_secret"]})),
    ])
    manager = DialogManager(GraphRegistry([g]), state)

    assert not manager.is_accessible("secret")
    assert manager.enter_node("secret").node_id == "samuel_hub_fallback"

    apply_change(state, StateChange(add_global_flags=["knows_secret"]))
    assert manager.is_accessible("secret")
    assert manager.enter_node("secret").node_id == "secret"

def test_explicit_fallback_node(registry, state):
    manager = DialogManager(registry, state, fallback_node_id="samuel_start")
    assert manager.enter_node("nowhere").node_id == "samuel_start"

def test_invalid_selection_leaves_state_alone(state):
    g = graph("samuel", [
        node("A",
            choice("hidden", "B", visible={"has_global_flags": ["never"]}, consequence=StateChange(add_global_flags=["bad"])),
            choice("disabled", "B", enabled={"trust": {"min": 9}}, consequence=StateChange(add_global_flags=["bad"])),
            choice("ok", "B"),
        ),
        terminal("B"),
    ])
    manager = DialogManager(GraphRegistry([g]), state)
    presented = manager.enter_node("A")
    assert [c.choice_id for c in presented.disabled_choices] == ["disabled"]
    assert presented.disabled_choices[0].reason == "Need trust >= 9 (have 0)"

    before = state.to_dict()
    for choice_id in ("hidden", "disabled", "not_a_choice"):
        with pytest.raises(InvalidChoiceSelection) as e:
            manager.select_choice(choice_id)
        assert e.value.node_id == "A"
    assert state.to_dict() == before

    assert manager.select_choice("ok") == "B"
    # the node has been left, its choices are no longer live
    with pytest.raises(InvalidChoiceSelection):
        manager.select_choice("ok")

def test_select_before_enter(registry, state):
    manager = DialogManager(registry, state)
    with pytest.raises(InvalidChoiceSelection):
        manager.select_choice("to_hub")

def test_exit_effects_then_consequence_then_tags(state):
    g = graph("samuel", [
        node("A",
            choice(
                "c", "B",
                consequence=StateChange(remove_global_flags=["leaving"], pattern_changes={"helping": 2}),
                pattern="helping",
                skills=["communication", "leadership"],
            ),
            on_exit=[StateChange(add_global_flags=["leaving"], trust_change=1)],
        ),
        terminal("B"),
    ])
    manager = DialogManager(GraphRegistry([g]), state)
    manager.enter_node("A")
    assert "leaving" not in state.global_flags
    manager.select_choice("c")

    assert "leaving" not in state.global_flags
    assert state.trust("samuel") == 1
    assert state.pattern("helping") == 3
    assert state.skill("communication") == 1
    assert state.skill("leadership") == 1

def test_render_payload(registry, state):
    manager = DialogManager(registry, state)
    presented = manager.enter_node("samuel_hub")
    render = presented.to_render()
    assert render["speaker"] == "Speaker"
    assert render["selectedText"] == "text of samuel_hub"
    assert [c["choiceId"] for c in render["visibleChoices"]] == ["to_maya", "leave"]
    assert render["disabledChoices"] == []

def test_evaluate_choices_hidden_is_never_enabled(state):
    n = node("A", choice("c", "B", visible={"has_global_flags": ["nope"]}))
    evaluated = evaluate_choices(n, state)
    assert not evaluated[0].visible
    assert not evaluated[0].enabled

def make_interrupt_graph():
    return graph("maya", [
        node("maya_intro",
            choice("talk", "maya_talk"),
            character="maya",
            interrupt=Interrupt(3.0, "Catch it", "maya_caught", "maya_dropped", StateChange(trust_change=1)),
        ),
        terminal("maya_talk", character="maya"),
        terminal("maya_caught", character="maya"),
        terminal("maya_dropped", character="maya"),
    ])

def test_interrupt_acted(state):
    manager = DialogManager(GraphRegistry([make_interrupt_graph()]), state)
    clock = ManualClock()
    manager.enter_node("maya_intro")
    race = manager.start_interrupt(clock)

    clock.advance(1.0)
    assert race.poll() is None
    assert race.act() == "maya_caught"
    assert race.outcome == InterruptOutcome.ACTED
    assert state.trust("maya") == 1
    # the interrupt settled the node
    with pytest.raises(InvalidChoiceSelection):
        manager.select_choice("talk")

def test_interrupt_missed(state):
    manager = DialogManager(GraphRegistry([make_interrupt_graph()]), state)
    clock = ManualClock()
    manager.enter_node("maya_intro")
    race = manager.start_interrupt(clock)

    clock.advance(3.0)
    assert race.poll() == "maya_dropped"
    assert state.trust("maya") == 0
    assert manager.enter_node(race.next_node_id).node_id == "maya_dropped"

def test_choice_cancels_interrupt(state):
    manager = DialogManager(GraphRegistry([make_interrupt_graph()]), state)
    manager.enter_node("maya_intro")
    race = manager.start_interrupt(ManualClock())
    assert manager.select_choice("talk") == "maya_talk"
    assert race.outcome == InterruptOutcome.CANCELLED
    assert state.trust("maya") == 0

def test_start_interrupt_needs_one(registry, state):
    manager = DialogManager(registry, state)
    manager.enter_node("samuel_hub")
    with pytest.raises(ValueError):
        manager.start_interrupt(ManualClock())

def test_demo_walkthrough(demo_registry, state):
    manager = DialogManager(demo_registry, state)

    presented = manager.enter_node("samuel_introduction")
    assert "met_samuel" in state.global_flags
    assert presented.selected_text.startswith("Another traveler.")
    assert [c.choice_id for c in presented.visible_choices] == ["intro_ask_station", "intro_wait"]

    presented = manager.enter_node(manager.select_choice("intro_wait"))
    assert state.pattern("patience") == 1
    assert state.trust("samuel") == 1

    presented = manager.enter_node(manager.select_choice("station_where_to_start"))
    assert presented.node_id == "samuel_hub_initial"
    # devon stays hidden until the player has met maya
    assert [c.choice_id for c in presented.hidden_choices] == ["hub_visit_devon", "hub_samuel_story"]

    presented = manager.enter_node(manager.select_choice("hub_visit_maya"))
    assert presented.node_id == "maya_introduction"
    assert "knows_about_maya" in state.knowledge_flags("samuel")
    assert "met_maya" in state.global_flags
    # patience is dominant so maya's patient voice is used
    assert presented.selected_text.startswith("Oh. You've been standing there")

    presented = manager.enter_node(manager.select_choice("maya_reassure"))
    assert presented.node_id == "maya_project"
    assert state.trust("maya") == 1
    assert [c.choice_id for c in presented.hidden_choices] == ["maya_robotics"]

    presented = manager.enter_node(manager.select_choice("maya_back_to_samuel"))
    assert presented.node_id == "samuel_hub_initial"
    assert "hub_visit_devon" in [c.choice_id for c in presented.visible_choices]

    presented = manager.enter_node(manager.select_choice("hub_visit_devon"))
    assert presented.node_id == "devon_introduction"
    assert not presented.fallback

def test_missing_fallback_is_a_clear_error(state):
    g = graph("maya", [
        node("maya_intro", choice("c", "maya_secret"), character="maya"),
        node("maya_secret", choice("c", "maya_intro"), character="maya", required_state=load_condition({"has_global_flags": ["x"]})),
    ])
    manager = DialogManager(GraphRegistry([g]), state)
    before = state.to_dict()
    for node_id in ("maya_secret", "maya_nowhere"):
        with pytest.raises(ContentIntegrityError) as e:
            manager.enter_node(node_id)
        assert e.value.case == IntegrityCase.MISSING_FALLBACK_NODE
        assert "samuel_hub_fallback" in str(e.value)
    assert state.to_dict() == before

def test_available_nodes_by_priority(state):
    g = graph("samuel", [
        node("hub",
            choice("low", "low"),
            choice("gated", "gated"),
            choice("high", "high"),
            choice("again", "low"),
            choice("broken", "nowhere"),
            choice("other", "@maya.INTRODUCTION"),
        ),
        terminal("low"),
        terminal("gated", priority=5, required_state=load_condition({"trust": {"min": 3}})),
        terminal("high", priority=2),
    ])
    maya = graph("maya", [terminal("maya_intro", character="maya")], entry_points={"INTRODUCTION": "maya_intro"})
    manager = DialogManager(GraphRegistry([g, maya]), state)

    assert [n.node_id for n in manager.available_nodes("hub")] == ["high", "low", "maya_intro"]

    apply_change(state, StateChange(character_id="samuel", trust_change=3))
    assert [n.node_id for n in manager.available_nodes("hub")] == ["gated", "high", "low", "maya_intro"]
