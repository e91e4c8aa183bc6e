""" Walking dialog graphs one step at a time.

DialogManager drives a single player session: enter_node applies a node's
entry effects, picks its content and partitions its choices, select_choice
applies the chosen choice's effects and hands back where to go next.
Resolving that target, same graph or another, happens on the next enter_node
so the manager never cares which graph a node lives in.
"""

import logging
from typing import Optional, Sequence, Any

from terminus import config, content, predicates, util
from terminus.dialog import ContentVariant, DialogChoice, DialogNode, DialogGraph, Interrupt
from terminus.errors import ContentIntegrityError, IntegrityCase, InvalidChoiceSelection, RuntimeNodeNotFoundError
from terminus.interrupts import Clock, InterruptRace, MonotonicClock
from terminus.registry import GraphRegistry
from terminus.state import GameState, StateChange, apply_change, apply_changes


class EvaluatedChoice:
    def __init__(self, choice:DialogChoice, text:str, visible:bool, enabled:bool, reason:Optional[str]=None) -> None:
        self.choice = choice
        self.text = text
        self.visible = visible
        self.enabled = enabled
        self.reason = reason

    @property
    def choice_id(self) -> str:
        return self.choice.choice_id

    def __repr__(self) -> str:
        return f'EvaluatedChoice({self.choice_id!r}, visible={self.visible}, enabled={self.enabled})'


def evaluate_choices(node:DialogNode, state:GameState, character_id:Optional[str]=None) -> list[EvaluatedChoice]:
    """ Evaluates visibility and enablement of each of node's choices. A
    hidden choice is never enabled. """
    if character_id is None:
        character_id = node.character
    evaluated = []
    for choice in node.choices:
        visible = predicates.evaluate(choice.visible_condition, state, character_id)
        enabled = visible and predicates.evaluate(choice.enabled_condition, state, character_id)
        reason = None
        if visible and not enabled:
            reason = predicates.disabled_reason(choice.enabled_condition, state, character_id)
        evaluated.append(EvaluatedChoice(choice, content.choice_text(choice, state), visible, enabled, reason))
    return evaluated


class PresentedNode:
    """ What the renderer gets for one turn. """

    def __init__(
            self,
            node:DialogNode,
            graph_id:str,
            selected:ContentVariant,
            choices:Sequence[EvaluatedChoice],
            fallback:bool=False,
    ) -> None:
        self.node = node
        self.graph_id = graph_id
        self.content = selected
        self.visible_choices = [c for c in choices if c.visible and c.enabled]
        self.disabled_choices = [c for c in choices if c.visible and not c.enabled]
        self.hidden_choices = [c for c in choices if not c.visible]
        self.fallback = fallback

    @property
    def node_id(self) -> str:
        return self.node.node_id

    @property
    def speaker(self) -> str:
        return self.node.speaker

    @property
    def selected_text(self) -> str:
        return self.content.text

    @property
    def interrupt(self) -> Optional[Interrupt]:
        return self.node.interrupt

    def selectable(self, choice_id:str) -> Optional[EvaluatedChoice]:
        return next((c for c in self.visible_choices if c.choice_id == choice_id), None)

    def to_render(self) -> dict[str, Any]:
        return {
            "speaker": self.speaker,
            "selectedText": self.selected_text,
            "visibleChoices": [{"choiceId": c.choice_id, "text": c.text} for c in self.visible_choices],
            "disabledChoices": [{"choiceId": c.choice_id, "text": c.text, "reason": c.reason} for c in self.disabled_choices],
        }


class DialogManager:
    def __init__(self, registry:GraphRegistry, state:GameState, fallback_node_id:Optional[str]=None) -> None:
        self.logger = logging.getLogger(util.fullname(self))
        self.registry = registry
        self.state = state
        self.fallback_node_id = fallback_node_id or config.Settings.narrative.SAFE_FALLBACK_NODE_ID
        self.presented:Optional[PresentedNode] = None
        self.interrupt_race:Optional[InterruptRace] = None

    @property
    def current_id(self) -> Optional[str]:
        return self.presented.node_id if self.presented else None

    @property
    def node(self) -> Optional[DialogNode]:
        return self.presented.node if self.presented else None

    def is_accessible(self, node_id:str) -> bool:
        """ Whether node_id resolves and its required state is met. """
        try:
            _, node = self.registry.resolve(node_id)
        except RuntimeNodeNotFoundError:
            return False
        return predicates.evaluate(node.required_state, self.state, node.character)

    def available_nodes(self, node_id:str) -> list[DialogNode]:
        """ The accessible nodes node_id's choices lead to, highest priority
        first. Ties keep choice order. Targets that don't resolve are skipped. """
        _, node = self.registry.resolve(node_id)
        available:list[DialogNode] = []
        for target in util.unique(node.outgoing_targets()):
            try:
                _, next_node = self.registry.resolve(target)
            except RuntimeNodeNotFoundError:
                self.logger.warning(f'"{node_id}" points to missing node "{target}"')
                continue
            if next_node not in available and predicates.evaluate(next_node.required_state, self.state, next_node.character):
                available.append(next_node)
        available.sort(key=lambda n: -n.priority)
        return available

    def _fallback(self, node_id:str) -> tuple[DialogGraph, DialogNode, bool]:
        try:
            graph, node = self.registry.resolve(self.fallback_node_id)
        except RuntimeNodeNotFoundError as e:
            raise ContentIntegrityError(
                IntegrityCase.MISSING_FALLBACK_NODE,
                f'cannot fail closed from "{node_id}", fallback node "{self.fallback_node_id}" is not in any registered graph',
            ) from e
        return graph, node, True

    def _resolve_or_fallback(self, node_id:str) -> tuple[DialogGraph, DialogNode, bool]:
        try:
            graph, node = self.registry.resolve(node_id)
        except RuntimeNodeNotFoundError:
            self.logger.warning(f'node "{node_id}" not found, falling back to "{self.fallback_node_id}"')
            return self._fallback(node_id)

        if not predicates.evaluate(node.required_state, self.state, node.character):
            self.logger.warning(f'required state for "{node_id}" unmet, falling back to "{self.fallback_node_id}"')
            return self._fallback(node_id)

        return graph, node, False

    def enter_node(self, node_id:str) -> PresentedNode:
        """ Makes node_id current and returns what to show.

        Entry effects apply unconditionally before content is selected and
        choices are evaluated. A node that can't be resolved, or whose
        required state isn't met, fails closed to the fallback node. """

        if self.interrupt_race is not None and not self.interrupt_race.resolved:
            self.interrupt_race.cancel()
        self.interrupt_race = None

        graph, node, fallback = self._resolve_or_fallback(node_id)
        self.logger.debug(f'entering {graph.graph_id}/{node.node_id}')

        apply_changes(self.state, node.on_enter, node.character)
        if node.character is not None:
            self.state.character(node.character).conversation_history.append(node.node_id)
        self.state.current_node_id = node.node_id

        self.presented = PresentedNode(
            node,
            graph.graph_id,
            content.select_content(node, self.state),
            evaluate_choices(node, self.state),
            fallback=fallback,
        )
        return self.presented

    def select_choice(self, choice_id:str) -> str:
        """ Applies the chosen choice's effects and returns its target,
        unresolved.

        Only a visible and enabled choice of the current node can be
        selected. Anything else raises InvalidChoiceSelection and leaves
        state alone. """

        if self.presented is None:
            raise InvalidChoiceSelection(choice_id, None)
        evaluated = self.presented.selectable(choice_id)
        if evaluated is None:
            self.logger.warning(f'rejected selection of "{choice_id}" at "{self.presented.node_id}"')
            raise InvalidChoiceSelection(choice_id, self.presented.node_id)

        if self.interrupt_race is not None and not self.interrupt_race.resolved:
            self.interrupt_race.cancel()
        self.interrupt_race = None

        node = self.presented.node
        choice = evaluated.choice
        apply_changes(self.state, node.on_exit, node.character)
        if choice.consequence is not None:
            apply_change(self.state, choice.consequence, node.character)
        apply_change(self.state, _choice_tags_change(choice))

        self.logger.debug(f'selected {node.node_id}/{choice_id} -> {choice.next_node_id}')
        self.presented = None
        return choice.next_node_id

    def start_interrupt(self, clock:Optional[Clock]=None) -> InterruptRace:
        """ Starts the current node's interrupt timer. """
        if self.presented is None or self.presented.interrupt is None:
            raise ValueError(f'node {self.current_id} has no interrupt')
        if clock is None:
            clock = MonotonicClock()
        self.interrupt_race = InterruptRace(
            self.presented.interrupt,
            self.state,
            clock,
            character_id=self.presented.node.character,
            on_resolve=self._interrupt_resolved,
        )
        return self.interrupt_race

    def _interrupt_resolved(self, race:InterruptRace) -> None:
        # the interrupt settled this node, its choices are no longer live
        self.presented = None


def _choice_tags_change(choice:DialogChoice) -> StateChange:
    """ The accumulation implied by a choice's pattern and skill tags. """
    pattern_changes = {choice.pattern: 1} if choice.pattern else {}
    skill_changes = {s: 1 for s in choice.skills}
    return StateChange(pattern_changes=pattern_changes, skill_changes=skill_changes)
