""" Player state: trust, pattern and skill accumulators, flags.

A GameState is owned by the host application, one per player session, and is
passed by reference into every engine call. Flags are the only way
information crosses node boundaries.

All mutation funnels through apply_change so that effect semantics (trust
clamping, accumulators that never decrease) live in one place.
"""

import enum
import logging
from typing import Any, Optional, Iterable
from collections.abc import Mapping, MutableMapping, Collection

from terminus import config, util
from terminus.errors import ContentIntegrityError, IntegrityCase

logger = logging.getLogger(__name__)


class RelationshipStatus(enum.Enum):
    STRANGER = "stranger"
    ACQUAINTANCE = "acquaintance"
    CONFIDANT = "confidant"


def parse_relationship(value:Any) -> RelationshipStatus:
    if isinstance(value, RelationshipStatus):
        return value
    try:
        return RelationshipStatus(value)
    except ValueError as e:
        raise ContentIntegrityError(IntegrityCase.MALFORMED_CONDITION, f'unknown relationship status "{value}"') from e


class CharacterState:
    """ Everything the player has built up with a single character. """

    def __init__(
            self,
            character_id:str,
            trust:Optional[int]=None,
            knowledge_flags:Optional[Iterable[str]]=None,
            relationship_status:Optional[RelationshipStatus]=None,
            conversation_history:Optional[Iterable[str]]=None,
    ) -> None:
        self.character_id = character_id
        self.trust:int = config.Settings.narrative.DEFAULT_TRUST if trust is None else trust
        self.knowledge_flags:set[str] = set(knowledge_flags or ())
        if relationship_status is None:
            relationship_status = parse_relationship(config.Settings.narrative.DEFAULT_RELATIONSHIP)
        self.relationship_status = relationship_status
        self.conversation_history:list[str] = list(conversation_history or ())

    def copy(self) -> "CharacterState":
        return CharacterState(
            self.character_id,
            self.trust,
            self.knowledge_flags,
            self.relationship_status,
            self.conversation_history,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "character_id": self.character_id,
            "trust": self.trust,
            "knowledge_flags": sorted(self.knowledge_flags),
            "relationship_status": self.relationship_status.value,
            "conversation_history": list(self.conversation_history),
        }

    @staticmethod
    def from_dict(data:Mapping[str, Any]) -> "CharacterState":
        return CharacterState(
            data["character_id"],
            data.get("trust"),
            data.get("knowledge_flags", []),
            parse_relationship(data["relationship_status"]) if "relationship_status" in data else None,
            data.get("conversation_history", []),
        )


class GameState:
    """ The mutable per-player state every engine call reads and writes. """

    def __init__(
            self,
            player_id:str="",
            characters:Optional[Iterable[CharacterState]]=None,
            global_flags:Optional[Iterable[str]]=None,
            patterns:Optional[Mapping[str, int]]=None,
            skills:Optional[Mapping[str, int]]=None,
            current_node_id:str="",
            save_version:Optional[str]=None,
    ) -> None:
        self.player_id = player_id
        self.save_version = save_version or config.Settings.narrative.SAVE_VERSION
        self.characters:dict[str, CharacterState] = {c.character_id: c for c in (characters or ())}
        self.global_flags:set[str] = set(global_flags or ())
        self.patterns:dict[str, int] = {p: 0 for p in config.Settings.narrative.PATTERN_ORDER}
        if patterns:
            self.patterns.update(patterns)
        self.skills:dict[str, int] = dict(skills or {})
        self.current_node_id = current_node_id

    @staticmethod
    def new(player_id:str, characters:Optional[Iterable[str]]=None) -> "GameState":
        if characters is None:
            characters = config.Settings.narrative.CHARACTERS
        return GameState(player_id, [CharacterState(c) for c in characters])

    def character(self, character_id:str) -> CharacterState:
        """ Gets the state for character_id, creating a fresh one if this
        player has never met them. """
        if character_id not in self.characters:
            self.characters[character_id] = CharacterState(character_id)
        return self.characters[character_id]

    def has_character(self, character_id:str) -> bool:
        return character_id in self.characters

    def trust(self, character_id:str) -> int:
        if character_id not in self.characters:
            return config.Settings.narrative.DEFAULT_TRUST
        return self.characters[character_id].trust

    def knowledge_flags(self, character_id:str) -> Collection[str]:
        if character_id not in self.characters:
            return frozenset()
        return self.characters[character_id].knowledge_flags

    def relationship(self, character_id:str) -> RelationshipStatus:
        if character_id not in self.characters:
            return parse_relationship(config.Settings.narrative.DEFAULT_RELATIONSHIP)
        return self.characters[character_id].relationship_status

    def pattern(self, name:str) -> int:
        return self.patterns.get(name, 0)

    def skill(self, name:str) -> int:
        return self.skills.get(name, 0)

    def copy(self) -> "GameState":
        return GameState(
            self.player_id,
            [c.copy() for c in self.characters.values()],
            self.global_flags,
            self.patterns,
            self.skills,
            self.current_node_id,
            self.save_version,
        )

    def to_dict(self) -> dict[str, Any]:
        """ A json friendly snapshot. Sets become sorted lists so two equal
        states always produce equal snapshots. """
        return {
            "save_version": self.save_version,
            "player_id": self.player_id,
            "characters": [self.characters[k].to_dict() for k in sorted(self.characters)],
            "global_flags": sorted(self.global_flags),
            "patterns": dict(sorted(self.patterns.items())),
            "skills": dict(sorted(self.skills.items())),
            "current_node_id": self.current_node_id,
        }

    @staticmethod
    def from_dict(data:Mapping[str, Any]) -> "GameState":
        return GameState(
            data.get("player_id", ""),
            [CharacterState.from_dict(c) for c in data.get("characters", [])],
            data.get("global_flags", []),
            data.get("patterns", {}),
            data.get("skills", {}),
            data.get("current_node_id", ""),
            data.get("save_version"),
        )

    def __eq__(self, other:Any) -> bool:
        if not isinstance(other, GameState):
            return NotImplemented
        return self.to_dict() == other.to_dict()


class StateChange:
    """ A declared state mutation: a node's entry/exit effect or a choice
    consequence.

    character scoped parts (trust, relationship, knowledge flags) apply to
    character_id, or to the ambient character when that's not set. """

    def __init__(
            self,
            character_id:Optional[str]=None,
            trust_change:int=0,
            set_relationship:Optional[RelationshipStatus]=None,
            add_knowledge_flags:Iterable[str]=(),
            remove_knowledge_flags:Iterable[str]=(),
            add_global_flags:Iterable[str]=(),
            remove_global_flags:Iterable[str]=(),
            pattern_changes:Optional[Mapping[str, int]]=None,
            skill_changes:Optional[Mapping[str, int]]=None,
    ) -> None:
        self.character_id = character_id
        self.trust_change = trust_change
        self.set_relationship = set_relationship
        self.add_knowledge_flags = tuple(add_knowledge_flags)
        self.remove_knowledge_flags = tuple(remove_knowledge_flags)
        self.add_global_flags = tuple(add_global_flags)
        self.remove_global_flags = tuple(remove_global_flags)
        self.pattern_changes:Mapping[str, int] = dict(pattern_changes or {})
        self.skill_changes:Mapping[str, int] = dict(skill_changes or {})

    def is_character_scoped(self) -> bool:
        return bool(self.trust_change or self.set_relationship or self.add_knowledge_flags or self.remove_knowledge_flags)

    def to_dict(self) -> dict[str, Any]:
        d:dict[str, Any] = {}
        if self.character_id is not None: d["character_id"] = self.character_id
        if self.trust_change: d["trust_change"] = self.trust_change
        if self.set_relationship is not None: d["set_relationship"] = self.set_relationship.value
        if self.add_knowledge_flags: d["add_knowledge_flags"] = sorted(self.add_knowledge_flags)
        if self.remove_knowledge_flags: d["remove_knowledge_flags"] = sorted(self.remove_knowledge_flags)
        if self.add_global_flags: d["add_global_flags"] = sorted(self.add_global_flags)
        if self.remove_global_flags: d["remove_global_flags"] = sorted(self.remove_global_flags)
        if self.pattern_changes: d["pattern_changes"] = dict(sorted(self.pattern_changes.items()))
        if self.skill_changes: d["skill_changes"] = dict(sorted(self.skill_changes.items()))
        return d


STATE_CHANGE_KEYS = frozenset((
    "character_id", "trust_change", "set_relationship",
    "add_knowledge_flags", "remove_knowledge_flags",
    "add_global_flags", "remove_global_flags",
    "pattern_changes", "skill_changes",
))

def _flag_list(data:Mapping[str, Any], key:str) -> list[str]:
    value = data.get(key, [])
    if not isinstance(value, list) or not all(isinstance(x, str) for x in value):
        raise ContentIntegrityError(IntegrityCase.MALFORMED_NODE, f'{key} must be a list of strings, got {value!r}')
    return value

def _delta_table(data:Mapping[str, Any], key:str) -> dict[str, int]:
    value = data.get(key, {})
    if not isinstance(value, dict) or not all(isinstance(v, int) and not isinstance(v, bool) for v in value.values()):
        raise ContentIntegrityError(IntegrityCase.MALFORMED_NODE, f'{key} must be a table of integers, got {value!r}')
    return value

def load_state_change(data:Mapping[str, Any]) -> StateChange:
    if not isinstance(data, Mapping):
        raise ContentIntegrityError(IntegrityCase.MALFORMED_NODE, f'state change must be a table, got {data!r}')
    unknown = set(data.keys()) - STATE_CHANGE_KEYS
    if unknown:
        raise ContentIntegrityError(IntegrityCase.MALFORMED_NODE, f'unknown state change keys {sorted(unknown)}')

    trust_change = data.get("trust_change", 0)
    if not isinstance(trust_change, int) or isinstance(trust_change, bool):
        raise ContentIntegrityError(IntegrityCase.MALFORMED_NODE, f'trust_change must be an integer, got {trust_change!r}')

    return StateChange(
        character_id=data.get("character_id"),
        trust_change=trust_change,
        set_relationship=parse_relationship(data["set_relationship"]) if "set_relationship" in data else None,
        add_knowledge_flags=_flag_list(data, "add_knowledge_flags"),
        remove_knowledge_flags=_flag_list(data, "remove_knowledge_flags"),
        add_global_flags=_flag_list(data, "add_global_flags"),
        remove_global_flags=_flag_list(data, "remove_global_flags"),
        pattern_changes=_delta_table(data, "pattern_changes"),
        skill_changes=_delta_table(data, "skill_changes"),
    )


def _accumulate(accumulators:MutableMapping[str, int], deltas:Mapping[str, int], kind:str) -> None:
    for name, delta in deltas.items():
        if delta < 0:
            # accumulators only ever grow
            logger.debug(f'ignoring negative {kind} delta {name}={delta}')
            continue
        accumulators[name] = accumulators.get(name, 0) + delta

def apply_change(state:GameState, change:StateChange, character_id:Optional[str]=None) -> None:
    """ Applies change to state in place.

    Adds happen before removes within a single change, so a change that both
    adds and removes the same flag leaves it removed. Trust is clamped to the
    configured bounds. Negative pattern and skill deltas are ignored. """

    for flag in change.add_global_flags:
        state.global_flags.add(flag)
    for flag in change.remove_global_flags:
        state.global_flags.discard(flag)

    _accumulate(state.patterns, change.pattern_changes, "pattern")
    _accumulate(state.skills, change.skill_changes, "skill")

    target = change.character_id or character_id
    if target is None:
        if change.is_character_scoped():
            logger.warning(f'character scoped state change with no character in context, skipping {change.to_dict()}')
        return

    char_state = state.character(target)
    if change.trust_change:
        char_state.trust = int(util.clip(
            char_state.trust + change.trust_change,
            config.Settings.narrative.MIN_TRUST,
            config.Settings.narrative.MAX_TRUST,
        ))
    if change.set_relationship is not None:
        char_state.relationship_status = change.set_relationship
    for flag in change.add_knowledge_flags:
        char_state.knowledge_flags.add(flag)
    for flag in change.remove_knowledge_flags:
        char_state.knowledge_flags.discard(flag)

def apply_changes(state:GameState, changes:Iterable[StateChange], character_id:Optional[str]=None) -> None:
    for change in changes:
        apply_change(state, change, character_id)
