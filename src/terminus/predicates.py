""" A boolean logic predicate library and the dialogue condition language.

Conditions are a closed language: a conjunction of independently optional
clauses over a GameState. Authored condition tables are parsed once at load
time into StateCondition, which compiles to a tree of Criteria for
evaluation. An empty condition is vacuously true.
"""

import abc
import logging
from typing import TypeVar, Generic, Optional, Any, Sequence
from collections.abc import Mapping, Iterable

from terminus import config
from terminus.errors import ContentIntegrityError, IntegrityCase
from terminus.state import GameState, RelationshipStatus, parse_relationship

logger = logging.getLogger(__name__)

T = TypeVar('T')

class Criteria(Generic[T], abc.ABC):
    @abc.abstractmethod
    def evaluate(self, universe:T) -> bool: ...

class Literal(Criteria[T]):
    def __init__(self, value:bool) -> None:
        self.value = value
    def evaluate(self, universe:T) -> bool:
        return self.value

class Negation(Criteria[T]):
    def __init__(self, inner:Criteria[T]) -> None:
        self.inner = inner

    def evaluate(self, universe:T) -> bool:
        return not self.inner.evaluate(universe)

class Disjunction(Criteria[T]):
    def __init__(self, a:Criteria[T], b:Criteria[T]) -> None:
        self.a = a
        self.b = b

    def evaluate(self, universe:T) -> bool:
        return self.a.evaluate(universe) or self.b.evaluate(universe)

class Conjunction(Criteria[T]):
    def __init__(self, a:Criteria[T], b:Criteria[T]) -> None:
        self.a = a
        self.b = b

    def evaluate(self, universe:T) -> bool:
        return self.a.evaluate(universe) and self.b.evaluate(universe)

def conjoin(criteria:Sequence[Criteria[T]]) -> Criteria[T]:
    """ Folds criteria into a right leaning Conjunction chain. No criteria is
    vacuously true. """
    if len(criteria) == 0:
        return Literal(True)
    result = criteria[-1]
    for c in reversed(criteria[:-1]):
        result = Conjunction(c, result)
    return result


class StateUniverse:
    """ What a condition is evaluated against: the player state and the
    character in whose scene the condition appears. """
    def __init__(self, state:GameState, character_id:Optional[str]=None) -> None:
        self.state = state
        self.character_id = character_id


class Range:
    def __init__(self, low:Optional[int]=None, high:Optional[int]=None) -> None:
        self.low = low
        self.high = high

    def contains(self, value:int) -> bool:
        if self.low is not None and value < self.low:
            return False
        if self.high is not None and value > self.high:
            return False
        return True

    def describe(self) -> str:
        if self.low is not None and self.high is not None:
            return f'{self.low}..{self.high}'
        elif self.low is not None:
            return f'>= {self.low}'
        elif self.high is not None:
            return f'<= {self.high}'
        else:
            return 'any'

    def to_dict(self) -> dict[str, int]:
        d = {}
        if self.low is not None: d["min"] = self.low
        if self.high is not None: d["max"] = self.high
        return d


class CharacterScopedCriteria(Criteria[StateUniverse]):
    """ Base for clauses that need a character. Fails closed when there is no
    character in scope. """
    def __init__(self, character_id:Optional[str]) -> None:
        self.character_id = character_id

    def resolve_character(self, universe:StateUniverse) -> Optional[str]:
        character_id = self.character_id or universe.character_id
        if character_id is None:
            logger.warning(f'{self.__class__.__name__} requires a character but none is in scope')
        return character_id

class TrustCriteria(CharacterScopedCriteria):
    def __init__(self, trust_range:Range, character_id:Optional[str]=None) -> None:
        super().__init__(character_id)
        self.trust_range = trust_range

    def evaluate(self, universe:StateUniverse) -> bool:
        character_id = self.resolve_character(universe)
        if character_id is None:
            return False
        return self.trust_range.contains(universe.state.trust(character_id))

class RelationshipCriteria(CharacterScopedCriteria):
    def __init__(self, statuses:Iterable[RelationshipStatus], character_id:Optional[str]=None) -> None:
        super().__init__(character_id)
        self.statuses = frozenset(statuses)

    def evaluate(self, universe:StateUniverse) -> bool:
        character_id = self.resolve_character(universe)
        if character_id is None:
            return False
        return universe.state.relationship(character_id) in self.statuses

class KnowledgeFlagCriteria(CharacterScopedCriteria):
    def __init__(self, flag:str, character_id:Optional[str]=None) -> None:
        super().__init__(character_id)
        self.flag = flag

    def evaluate(self, universe:StateUniverse) -> bool:
        character_id = self.resolve_character(universe)
        if character_id is None:
            return False
        return self.flag in universe.state.knowledge_flags(character_id)

class LacksKnowledgeFlagCriteria(KnowledgeFlagCriteria):
    # not a Negation of KnowledgeFlagCriteria: a missing character must fail
    # this clause too rather than pass it
    def evaluate(self, universe:StateUniverse) -> bool:
        character_id = self.resolve_character(universe)
        if character_id is None:
            return False
        return self.flag not in universe.state.knowledge_flags(character_id)

class GlobalFlagCriteria(Criteria[StateUniverse]):
    def __init__(self, flag:str) -> None:
        self.flag = flag

    def evaluate(self, universe:StateUniverse) -> bool:
        return self.flag in universe.state.global_flags

class PatternCriteria(Criteria[StateUniverse]):
    def __init__(self, pattern:str, pattern_range:Range) -> None:
        self.pattern = pattern
        self.pattern_range = pattern_range

    def evaluate(self, universe:StateUniverse) -> bool:
        return self.pattern_range.contains(universe.state.pattern(self.pattern))

class SkillCriteria(Criteria[StateUniverse]):
    def __init__(self, skill:str, skill_range:Range) -> None:
        self.skill = skill
        self.skill_range = skill_range

    def evaluate(self, universe:StateUniverse) -> bool:
        return self.skill_range.contains(universe.state.skill(self.skill))


def expand_combo(combo_id:str, combos:Mapping[str, Any]) -> list[Criteria[StateUniverse]]:
    """ Expands a named skill combo into its skill minimum clauses. """
    if combo_id not in combos:
        raise ContentIntegrityError(IntegrityCase.UNKNOWN_COMBO, f'unknown skill combo "{combo_id}"')
    combo = combos[combo_id]
    skills = combo["skills"]
    min_levels = combo["min_levels"]
    if len(skills) != len(min_levels):
        raise ContentIntegrityError(IntegrityCase.UNKNOWN_COMBO, f'skill combo "{combo_id}" has {len(skills)} skills but {len(min_levels)} min levels')
    return [SkillCriteria(skill, Range(low=level)) for skill, level in zip(skills, min_levels)]


class StateCondition:
    """ A parsed, immutable condition. Every clause is optional and all
    present clauses must hold. """

    def __init__(
            self,
            trust:Optional[Range]=None,
            patterns:Optional[Mapping[str, Range]]=None,
            skills:Optional[Mapping[str, Range]]=None,
            relationship:Iterable[RelationshipStatus]=(),
            has_global_flags:Iterable[str]=(),
            lacks_global_flags:Iterable[str]=(),
            has_knowledge_flags:Iterable[str]=(),
            lacks_knowledge_flags:Iterable[str]=(),
            required_combos:Iterable[str]=(),
            character:Optional[str]=None,
    ) -> None:
        self.trust = trust
        self.patterns:Mapping[str, Range] = dict(patterns or {})
        self.skills:Mapping[str, Range] = dict(skills or {})
        self.relationship = tuple(relationship)
        self.has_global_flags = tuple(has_global_flags)
        self.lacks_global_flags = tuple(lacks_global_flags)
        self.has_knowledge_flags = tuple(has_knowledge_flags)
        self.lacks_knowledge_flags = tuple(lacks_knowledge_flags)
        self.required_combos = tuple(required_combos)
        self.character = character

    def is_empty(self) -> bool:
        return not (
            self.trust or self.patterns or self.skills or self.relationship
            or self.has_global_flags or self.lacks_global_flags
            or self.has_knowledge_flags or self.lacks_knowledge_flags
            or self.required_combos
        )

    def is_trust_gated(self) -> bool:
        return self.trust is not None

    def is_flag_gated(self) -> bool:
        return bool(self.has_global_flags or self.lacks_global_flags or self.has_knowledge_flags or self.lacks_knowledge_flags)

    def referenced_global_flags(self) -> frozenset[str]:
        """ Global flags that must be set for this condition to hold. """
        return frozenset(self.has_global_flags)

    def referenced_knowledge_flags(self) -> frozenset[str]:
        """ Knowledge flags that must be set for this condition to hold. """
        return frozenset(self.has_knowledge_flags)

    def to_criteria(self, combos:Optional[Mapping[str, Any]]=None) -> Criteria[StateUniverse]:
        """ Compiles this condition to a Criteria tree.

        Unknown combos compile to a false literal so a broken gate stays shut
        at runtime. The validator reports them separately. """
        if combos is None:
            combos = config.SkillCombos

        criteria:list[Criteria[StateUniverse]] = []
        if self.trust is not None:
            criteria.append(TrustCriteria(self.trust, self.character))
        if self.relationship:
            criteria.append(RelationshipCriteria(self.relationship, self.character))
        for flag in self.has_knowledge_flags:
            criteria.append(KnowledgeFlagCriteria(flag, self.character))
        for flag in self.lacks_knowledge_flags:
            criteria.append(LacksKnowledgeFlagCriteria(flag, self.character))
        for flag in self.has_global_flags:
            criteria.append(GlobalFlagCriteria(flag))
        for flag in self.lacks_global_flags:
            criteria.append(Negation(GlobalFlagCriteria(flag)))
        for pattern, pattern_range in self.patterns.items():
            criteria.append(PatternCriteria(pattern, pattern_range))
        for skill, skill_range in self.skills.items():
            criteria.append(SkillCriteria(skill, skill_range))
        for combo_id in self.required_combos:
            try:
                criteria.extend(expand_combo(combo_id, combos))
            except ContentIntegrityError:
                logger.warning(f'condition requires unknown skill combo "{combo_id}", treating as unmet')
                criteria.append(Literal(False))

        return conjoin(criteria)

    def to_dict(self) -> dict[str, Any]:
        d:dict[str, Any] = {}
        if self.trust is not None: d["trust"] = self.trust.to_dict()
        if self.patterns: d["patterns"] = {k: v.to_dict() for k, v in sorted(self.patterns.items())}
        if self.skills: d["skills"] = {k: v.to_dict() for k, v in sorted(self.skills.items())}
        if self.relationship: d["relationship"] = sorted(r.value for r in self.relationship)
        if self.has_global_flags: d["has_global_flags"] = sorted(self.has_global_flags)
        if self.lacks_global_flags: d["lacks_global_flags"] = sorted(self.lacks_global_flags)
        if self.has_knowledge_flags: d["has_knowledge_flags"] = sorted(self.has_knowledge_flags)
        if self.lacks_knowledge_flags: d["lacks_knowledge_flags"] = sorted(self.lacks_knowledge_flags)
        if self.required_combos: d["required_combos"] = sorted(self.required_combos)
        if self.character is not None: d["character"] = self.character
        return d


CONDITION_KEYS = frozenset((
    "trust", "patterns", "skills", "relationship",
    "has_global_flags", "lacks_global_flags",
    "has_knowledge_flags", "lacks_knowledge_flags",
    "required_combos", "character",
))

def _malformed(message:str) -> ContentIntegrityError:
    return ContentIntegrityError(IntegrityCase.MALFORMED_CONDITION, message)

def load_range(data:Any, what:str) -> Range:
    if not isinstance(data, Mapping):
        raise _malformed(f'{what} must be a table with min and/or max, got {data!r}')
    unknown = set(data.keys()) - {"min", "max"}
    if unknown:
        raise _malformed(f'{what} has unknown keys {sorted(unknown)}')
    low = data.get("min")
    high = data.get("max")
    for bound in (low, high):
        if bound is not None and (not isinstance(bound, (int, float)) or isinstance(bound, bool)):
            raise _malformed(f'{what} bounds must be numbers, got {bound!r}')
    if low is not None and high is not None and low > high:
        raise _malformed(f'{what} has min {low} greater than max {high}')
    return Range(low, high)

def _string_list(data:Mapping[str, Any], key:str) -> list[str]:
    value = data.get(key, [])
    if not isinstance(value, list) or not all(isinstance(x, str) for x in value):
        raise _malformed(f'{key} must be a list of strings, got {value!r}')
    return value

def _range_table(data:Mapping[str, Any], key:str) -> dict[str, Range]:
    value = data.get(key, {})
    if not isinstance(value, Mapping):
        raise _malformed(f'{key} must be a table of ranges, got {value!r}')
    return {name: load_range(r, f'{key}.{name}') for name, r in value.items()}

def load_condition(data:Optional[Mapping[str, Any]]) -> Optional[StateCondition]:
    """ Parses an authored condition table. None stays None. """
    if data is None:
        return None
    if not isinstance(data, Mapping):
        raise _malformed(f'condition must be a table, got {data!r}')
    unknown = set(data.keys()) - CONDITION_KEYS
    if unknown:
        raise _malformed(f'unknown condition keys {sorted(unknown)}')

    character = data.get("character")
    if character is not None and not isinstance(character, str):
        raise _malformed(f'condition character must be a string, got {character!r}')

    return StateCondition(
        trust=load_range(data["trust"], "trust") if "trust" in data else None,
        patterns=_range_table(data, "patterns"),
        skills=_range_table(data, "skills"),
        relationship=[parse_relationship(r) for r in _string_list(data, "relationship")],
        has_global_flags=_string_list(data, "has_global_flags"),
        lacks_global_flags=_string_list(data, "lacks_global_flags"),
        has_knowledge_flags=_string_list(data, "has_knowledge_flags"),
        lacks_knowledge_flags=_string_list(data, "lacks_knowledge_flags"),
        required_combos=_string_list(data, "required_combos"),
        character=character,
    )


def evaluate(condition:Optional[StateCondition], state:GameState, character_id:Optional[str]=None, combos:Optional[Mapping[str, Any]]=None) -> bool:
    """ Tests condition against state. No condition means no constraint. """
    if condition is None:
        return True
    return condition.to_criteria(combos).evaluate(StateUniverse(state, character_id))

def disabled_reason(condition:Optional[StateCondition], state:GameState, character_id:Optional[str]=None) -> str:
    """ A human readable reason condition is not met, for tooltips. """
    if condition is None:
        return "Unknown reason"

    reasons:list[str] = []
    character_id = condition.character or character_id
    if condition.trust is not None and character_id is not None:
        trust = state.trust(character_id)
        if not condition.trust.contains(trust):
            reasons.append(f'Need trust {condition.trust.describe()} (have {trust})')
    if condition.relationship and character_id is not None:
        if state.relationship(character_id) not in condition.relationship:
            reasons.append(f'Need {" or ".join(r.value for r in condition.relationship)} relationship')
    for flag in condition.has_global_flags:
        if flag not in state.global_flags:
            reasons.append(f'Missing requirement: {flag}')
    for pattern, pattern_range in condition.patterns.items():
        if not pattern_range.contains(state.pattern(pattern)):
            reasons.append(f'Need {pattern} {pattern_range.describe()}')
    for skill, skill_range in condition.skills.items():
        if not skill_range.contains(state.skill(skill)):
            reasons.append(f'Need {skill} {skill_range.describe()}')

    return ", ".join(reasons) if reasons else "Requirements not met"
