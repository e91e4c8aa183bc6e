""" Test cases for loading dialog graphs. """

import pytest

from terminus import dialog
from terminus.dialog import VariantKind
from terminus.errors import ContentIntegrityError, IntegrityCase

GRAPH = """
graph_id = "maya"
version = "1.0.0"
title = "Maya Chen"
start_node_id = "maya_introduction"
quarantined = ["maya_unfinished_arc"]

[entry_points]
INTRODUCTION = "maya_introduction"

[[nodes]]
node_id = "maya_introduction"
speaker = "Maya Chen"
priority = 2

[nodes.required_state]
lacks_global_flags = ["maya_left"]

[[nodes.content]]
text = "Hi."
emotion = "anxious"
pattern_reflection = [{pattern = "analytical", min_level = 3, text = "You noticed."}]
voice_variations = {helping = "Oh, hi."}

[[nodes.on_enter]]
add_global_flags = ["met_maya"]

[nodes.interrupt]
action_text = "Catch it"
target_node_id = "maya_caught"
missed_node_id = "maya_dropped"

[[nodes.choices]]
choice_id = "ask"
text = "What are you working on?"
next_node_id = "maya_caught"
pattern = "analytical"
skills = ["communication"]
visible_condition = {trust = {min = 5}}
consequence = {character_id = "maya", trust_change = 1}

[[nodes]]
node_id = "maya_caught"
speaker = "Maya Chen"
tags = ["terminal"]

[[nodes.content]]
text = "Thanks."

[[nodes]]
node_id = "maya_dropped"
speaker = "Maya Chen"
tags = ["terminal"]

[[nodes.content]]
text = "Oh no."
"""

def test_load_graph():
    g = dialog.loads_dialog(GRAPH)
    assert g.graph_id == "maya"
    assert g.character == "maya"
    assert g.start_node_id == "maya_introduction"
    assert g.entry_points == {"INTRODUCTION": "maya_introduction"}
    assert g.quarantined == {"maya_unfinished_arc"}
    assert len(g.nodes) == 3
    assert g.total_choices() == 1

    intro = g.nodes["maya_introduction"]
    assert intro.character == "maya"
    assert intro.priority == 2
    assert [v.kind for v in intro.content] == [VariantKind.PATTERN_REFLECTION, VariantKind.VOICE, VariantKind.BASE]
    assert intro.base_content.text == "Hi."
    assert all(v.emotion == "anxious" for v in intro.content)
    assert intro.on_enter[0].add_global_flags == ("met_maya",)
    assert intro.required_state is not None
    assert intro.required_state.lacks_global_flags == ("maya_left",)

    ask = intro.choice("ask")
    assert ask is not None
    assert ask.pattern == "analytical"
    assert ask.skills == ("communication",)
    assert ask.visible_condition is not None and ask.visible_condition.is_trust_gated()
    assert ask.consequence is not None and ask.consequence.trust_change == 1

    assert intro.interrupt is not None
    assert intro.interrupt.duration == 4.0
    assert intro.outgoing_targets() == ["maya_caught", "maya_caught", "maya_dropped"]
    assert g.nodes["maya_caught"].terminal

def test_load_bundled_graphs():
    graphs = dialog.load_dialogs()
    assert [g.graph_id for g in graphs] == ["devon", "maya", "samuel"]

def test_node_without_base_text():
    with pytest.raises(ContentIntegrityError) as e:
        dialog.load_dialog_node({
            "node_id": "n",
            "speaker": "S",
            "content": [{"voice_variations": {"helping": "only a voice"}}],
        })
    assert e.value.case == IntegrityCase.MISSING_BASE_CONTENT

def test_node_without_content():
    with pytest.raises(ContentIntegrityError) as e:
        dialog.load_dialog_node({"node_id": "n", "speaker": "S"})
    assert e.value.case == IntegrityCase.MISSING_BASE_CONTENT

def test_malformed_choice():
    with pytest.raises(ContentIntegrityError) as e:
        dialog.load_dialog_node({
            "node_id": "n",
            "speaker": "S",
            "content": [{"text": "t"}],
            "choices": [{"choice_id": "c", "text": "go"}],
        }, "g")
    assert e.value.case == IntegrityCase.MALFORMED_NODE
    assert "next_node_id" in str(e.value)
    assert '"n"' in str(e.value)

def test_malformed_condition_names_node():
    with pytest.raises(ContentIntegrityError) as e:
        dialog.load_dialog_node({
            "node_id": "n",
            "speaker": "S",
            "content": [{"text": "t"}],
            "required_state": {"trust": {"min": 3, "max": 1}},
        }, "g")
    assert e.value.case == IntegrityCase.MALFORMED_CONDITION
    assert 'graph "g" node "n"' in str(e.value)

def test_reflection_needs_min_level():
    with pytest.raises(ContentIntegrityError):
        dialog.load_content([{"text": "t", "pattern_reflection": [{"pattern": "helping", "text": "r"}]}], "test")

def test_bad_interrupt_duration():
    with pytest.raises(ContentIntegrityError):
        dialog.load_interrupt({"duration": -1, "action_text": "a", "target_node_id": "x", "missed_node_id": "y"}, "test")

def test_missing_graph_id():
    with pytest.raises(ContentIntegrityError):
        dialog.load_dialog({"start_node_id": "a", "nodes": []})

def test_to_dict_is_structural():
    a = dialog.loads_dialog(GRAPH).nodes["maya_introduction"]
    b = dialog.loads_dialog(GRAPH).nodes["maya_introduction"]
    assert a is not b
    assert a.to_dict() == b.to_dict()
