from terminus import content
from terminus.dialog import ContentVariant, DialogNode, VariantKind, load_content
from terminus.state import StateChange, apply_change
from . import choice

def make_node() -> DialogNode:
    variants = load_content([{
        "text": "base text",
        "pattern_reflection": [
            {"pattern": "analytical", "min_level": 3, "text": "analytical reflection"},
            {"pattern": "helping", "min_level": 2, "text": "helping reflection"},
        ],
        "skill_reflection": [{"skill": "communication", "min_level": 2, "text": "communication reflection"}],
        "voice_variations": {"patience": "patient voice", "building": "builder voice"},
    }], "test")
    return DialogNode("n", "Speaker", variants, [])

def test_base_when_nothing_applies(state):
    assert content.select_content(make_node(), state).text == "base text"

def test_voice_for_dominant_pattern(state):
    apply_change(state, StateChange(pattern_changes={"patience": 1}))
    assert content.select_content(make_node(), state).text == "patient voice"

def test_voice_skipped_when_dominant_pattern_has_none(state):
    apply_change(state, StateChange(pattern_changes={"exploring": 1}))
    assert content.select_content(make_node(), state).text == "base text"

def test_skill_reflection_beats_voice(state):
    apply_change(state, StateChange(pattern_changes={"patience": 1}, skill_changes={"communication": 2}))
    assert content.select_content(make_node(), state).text == "communication reflection"

def test_pattern_reflection_beats_everything(state):
    apply_change(state, StateChange(pattern_changes={"patience": 5, "helping": 2}, skill_changes={"communication": 5}))
    selected = content.select_content(make_node(), state)
    assert selected.kind == VariantKind.PATTERN_REFLECTION
    assert selected.text == "helping reflection"

def test_first_met_reflection_in_authored_order(state):
    apply_change(state, StateChange(pattern_changes={"analytical": 3, "helping": 2}))
    assert content.select_content(make_node(), state).text == "analytical reflection"

def test_dominant_pattern_ties_follow_pattern_order(state):
    assert content.dominant_pattern(state) is None
    apply_change(state, StateChange(pattern_changes={"building": 2, "patience": 2}))
    assert content.dominant_pattern(state) == "patience"
    apply_change(state, StateChange(pattern_changes={"building": 1}))
    assert content.dominant_pattern(state) == "building"
    assert content.dominant_pattern(state, min_value=4) is None

def test_selection_is_deterministic_and_read_only(state):
    apply_change(state, StateChange(pattern_changes={"building": 1}))
    node = make_node()
    snapshot = state.copy()
    first = content.select_content(node, state)
    second = content.select_content(node, snapshot)
    assert first.text == second.text
    assert first.variation_id == second.variation_id
    assert state == snapshot

def test_choice_text_voice_variation(state):
    c = choice("c", "next", text="Hello.", voice_variations={"helping": "Hey, you okay?"})
    assert content.choice_text(c, state) == "Hello."
    apply_change(state, StateChange(pattern_changes={"helping": 1}))
    assert content.choice_text(c, state) == "Hey, you okay?"

def test_select_variant_falls_back_to_base(state):
    variants = [
        ContentVariant(VariantKind.SKILL_REFLECTION, "skilled", key="leadership", min_level=1),
        ContentVariant(VariantKind.BASE, "plain"),
    ]
    assert content.select_variant(variants, state).text == "plain"
