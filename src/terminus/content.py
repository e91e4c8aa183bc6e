""" Picks which of a node's content variants the player sees.

Precedence is fixed: pattern reflections, then skill reflections, then the
voice variation for the player's dominant pattern, then base text. Within a
kind the first variant in authored order whose threshold is met wins.

Selection only reads state. It never records what was shown.
"""

from typing import Optional, Sequence
from collections.abc import Mapping

from terminus import config
from terminus.dialog import ContentVariant, DialogChoice, DialogNode, VariantKind
from terminus.state import GameState


def dominant_pattern(state:GameState, pattern_order:Optional[Sequence[str]]=None, min_value:Optional[int]=None) -> Optional[str]:
    """ The pattern with the highest accumulator value.

    Ties go to whichever pattern comes first in pattern_order, with patterns
    missing from pattern_order after all listed ones, alphabetically. Returns
    None if no pattern reaches min_value. """

    if pattern_order is None:
        pattern_order = config.Settings.narrative.PATTERN_ORDER
    if min_value is None:
        min_value = config.Settings.narrative.DOMINANT_PATTERN_MIN

    rank = {p: i for i, p in enumerate(pattern_order)}
    candidates = [(p, v) for p, v in state.patterns.items() if v >= min_value]
    if len(candidates) == 0:
        return None
    pattern, _ = min(candidates, key=lambda x: (-x[1], rank.get(x[0], len(rank)), x[0]))
    return pattern

def _first_met(variants:Sequence[ContentVariant], kind:VariantKind, levels:Mapping[str, int]) -> Optional[ContentVariant]:
    for variant in variants:
        if variant.kind != kind:
            continue
        assert variant.key is not None
        if levels.get(variant.key, 0) >= variant.min_level:
            return variant
    return None

def select_variant(variants:Sequence[ContentVariant], state:GameState) -> ContentVariant:
    reflection = _first_met(variants, VariantKind.PATTERN_REFLECTION, state.patterns)
    if reflection is not None:
        return reflection

    reflection = _first_met(variants, VariantKind.SKILL_REFLECTION, state.skills)
    if reflection is not None:
        return reflection

    dominant = dominant_pattern(state)
    if dominant is not None:
        for variant in variants:
            if variant.kind == VariantKind.VOICE and variant.key == dominant:
                return variant

    for variant in variants:
        if variant.kind == VariantKind.BASE:
            return variant

    raise ValueError("content has no base variant")

def select_content(node:DialogNode, state:GameState) -> ContentVariant:
    """ Deterministically picks the one variant of node to present. """
    return select_variant(node.content, state)

def choice_text(choice:DialogChoice, state:GameState) -> str:
    """ Display text for choice, voiced for the player's dominant pattern
    when the choice has a matching variation. """
    if choice.voice_variations:
        dominant = dominant_pattern(state)
        if dominant is not None and dominant in choice.voice_variations:
            return choice.voice_variations[dominant]
    return choice.text
