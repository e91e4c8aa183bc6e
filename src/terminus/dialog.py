""" Dialog graphs: nodes, content variants, choices and their loading.

Graphs are authored as toml, one graph per file, and validated once when
they're loaded. Anything malformed raises ContentIntegrityError so the rest of
the engine can rely on the shapes here without re-checking optional fields.
"""

import os
import enum
import logging
from typing import Sequence, Any, Optional, Iterable, Mapping

import toml # type: ignore

from terminus import config
from terminus.errors import ContentIntegrityError, IntegrityCase
from terminus.predicates import StateCondition, load_condition
from terminus.state import StateChange, load_state_change

logger = logging.getLogger(__name__)

TERMINAL_TAG = "terminal"


class VariantKind(enum.Enum):
    PATTERN_REFLECTION = enum.auto()
    SKILL_REFLECTION = enum.auto()
    VOICE = enum.auto()
    BASE = enum.auto()


class ContentVariant:
    """ One block of text a node might present.

    key is the pattern (reflections and voice variants) or skill the variant
    is conditioned on. Base variants have no key. """

    def __init__(self, kind:VariantKind, text:str, key:Optional[str]=None, min_level:int=0, emotion:Optional[str]=None, variation_id:str="") -> None:
        self.kind = kind
        self.text = text
        self.key = key
        self.min_level = min_level
        self.emotion = emotion
        self.variation_id = variation_id

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.name, "text": self.text, "key": self.key, "min_level": self.min_level, "emotion": self.emotion}

    def __repr__(self) -> str:
        return f'ContentVariant({self.kind.name}, {self.variation_id!r})'


class Interrupt:
    """ A timed micro-choice layered on a node. Acting in time leads to
    target_node_id, letting the window lapse leads to missed_node_id. """

    def __init__(self, duration:float, action_text:str, target_node_id:str, missed_node_id:str, consequence:Optional[StateChange]=None) -> None:
        self.duration = duration
        self.action_text = action_text
        self.target_node_id = target_node_id
        self.missed_node_id = missed_node_id
        self.consequence = consequence

    def to_dict(self) -> dict[str, Any]:
        return {
            "duration": self.duration,
            "action_text": self.action_text,
            "target_node_id": self.target_node_id,
            "missed_node_id": self.missed_node_id,
            "consequence": self.consequence.to_dict() if self.consequence else None,
        }


class DialogChoice:
    def __init__(
            self,
            choice_id:str,
            text:str,
            next_node_id:str,
            visible_condition:Optional[StateCondition]=None,
            enabled_condition:Optional[StateCondition]=None,
            consequence:Optional[StateChange]=None,
            pattern:Optional[str]=None,
            skills:Sequence[str]=(),
            preview:Optional[str]=None,
            voice_variations:Optional[Mapping[str, str]]=None,
    ) -> None:
        self.choice_id = choice_id
        self.text = text
        self.next_node_id = next_node_id
        self.visible_condition = visible_condition
        self.enabled_condition = enabled_condition
        self.consequence = consequence
        self.pattern = pattern
        self.skills = tuple(skills)
        self.preview = preview
        self.voice_variations:Mapping[str, str] = dict(voice_variations or {})

    def to_dict(self) -> dict[str, Any]:
        return {
            "choice_id": self.choice_id,
            "text": self.text,
            "next_node_id": self.next_node_id,
            "visible_condition": self.visible_condition.to_dict() if self.visible_condition else None,
            "enabled_condition": self.enabled_condition.to_dict() if self.enabled_condition else None,
            "consequence": self.consequence.to_dict() if self.consequence else None,
            "pattern": self.pattern,
            "skills": sorted(self.skills),
            "preview": self.preview,
            "voice_variations": dict(sorted(self.voice_variations.items())),
        }

    def __repr__(self) -> str:
        return f'DialogChoice({self.choice_id!r} -> {self.next_node_id!r})'


class DialogNode:
    def __init__(
            self,
            node_id:str,
            speaker:str,
            content:Sequence[ContentVariant],
            choices:Sequence[DialogChoice],
            character:Optional[str]=None,
            required_state:Optional[StateCondition]=None,
            on_enter:Sequence[StateChange]=(),
            on_exit:Sequence[StateChange]=(),
            tags:Sequence[str]=(),
            priority:int=0,
            metadata:Optional[Mapping[str, Any]]=None,
            interrupt:Optional[Interrupt]=None,
    ) -> None:
        self.node_id = node_id
        self.speaker = speaker
        self.content = list(content)
        self.choices = list(choices)
        self.character = character
        self.required_state = required_state
        self.on_enter = list(on_enter)
        self.on_exit = list(on_exit)
        self.tags = tuple(tags)
        self.priority = priority
        self.metadata:Mapping[str, Any] = dict(metadata or {})
        self.interrupt = interrupt

    @property
    def terminal(self) -> bool:
        return TERMINAL_TAG in self.tags

    @property
    def base_content(self) -> ContentVariant:
        return next(c for c in self.content if c.kind == VariantKind.BASE)

    def choice(self, choice_id:str) -> Optional[DialogChoice]:
        return next((c for c in self.choices if c.choice_id == choice_id), None)

    def outgoing_targets(self) -> list[str]:
        """ Every node id this node can hand control to: choice targets and
        interrupt outcomes. """
        targets = [c.next_node_id for c in self.choices]
        if self.interrupt is not None:
            targets.append(self.interrupt.target_node_id)
            targets.append(self.interrupt.missed_node_id)
        return targets

    def state_changes(self) -> Iterable[StateChange]:
        """ Every state change this node or its choices can apply. """
        yield from self.on_enter
        yield from self.on_exit
        for c in self.choices:
            if c.consequence is not None:
                yield c.consequence
        if self.interrupt is not None and self.interrupt.consequence is not None:
            yield self.interrupt.consequence

    def to_dict(self) -> dict[str, Any]:
        """ A structural description of the node, used to compare nodes that
        two graphs both claim. """
        return {
            "node_id": self.node_id,
            "speaker": self.speaker,
            "character": self.character,
            "content": [c.to_dict() for c in self.content],
            "choices": [c.to_dict() for c in self.choices],
            "required_state": self.required_state.to_dict() if self.required_state else None,
            "on_enter": [c.to_dict() for c in self.on_enter],
            "on_exit": [c.to_dict() for c in self.on_exit],
            "tags": sorted(self.tags),
            "interrupt": self.interrupt.to_dict() if self.interrupt else None,
        }

    def __repr__(self) -> str:
        return f'DialogNode({self.node_id!r})'


class DialogGraph:
    def __init__(
            self,
            graph_id:str,
            start_node_id:str,
            nodes:Sequence[DialogNode],
            entry_points:Optional[Mapping[str, str]]=None,
            shared_entry_points:Iterable[str]=(),
            quarantined:Iterable[str]=(),
            version:str="",
            title:str="",
            character:Optional[str]=None,
    ) -> None:
        self.graph_id = graph_id
        self.start_node_id = start_node_id
        # node_list keeps authored order, including any duplicate ids, so the
        # validator can see what the nodes dict would hide
        self.node_list = list(nodes)
        self.nodes = {x.node_id:x for x in self.node_list}
        self.entry_points:Mapping[str, str] = dict(entry_points or {})
        self.shared_entry_points = frozenset(shared_entry_points)
        self.quarantined = frozenset(quarantined)
        self.version = version
        self.title = title
        self.character = character or graph_id

    def with_nodes(self, nodes:Sequence[DialogNode]) -> "DialogGraph":
        """ A copy of this graph holding just nodes. """
        return DialogGraph(
            self.graph_id,
            self.start_node_id,
            nodes,
            self.entry_points,
            self.shared_entry_points,
            self.quarantined,
            self.version,
            self.title,
            self.character,
        )

    def total_choices(self) -> int:
        return sum(len(n.choices) for n in self.node_list)

    def __repr__(self) -> str:
        return f'DialogGraph({self.graph_id!r}, {len(self.nodes)} nodes)'


def _malformed(where:str, message:str) -> ContentIntegrityError:
    return ContentIntegrityError(IntegrityCase.MALFORMED_NODE, f'{where}: {message}')

def _require_str(data:Mapping[str, Any], key:str, where:str) -> str:
    if key not in data:
        raise _malformed(where, f'missing required field "{key}"')
    if not isinstance(data[key], str) or data[key] == "":
        raise _malformed(where, f'"{key}" must be a non-empty string, got {data[key]!r}')
    return data[key]

def _optional_str(data:Mapping[str, Any], key:str, where:str) -> Optional[str]:
    if key in data and not isinstance(data[key], str):
        raise _malformed(where, f'"{key}" must be a string, got {data[key]!r}')
    return data.get(key)

def _str_list(data:Mapping[str, Any], key:str, where:str) -> list[str]:
    value = data.get(key, [])
    if not isinstance(value, list) or not all(isinstance(x, str) for x in value):
        raise _malformed(where, f'"{key}" must be a list of strings, got {value!r}')
    return value

def _str_table(data:Mapping[str, Any], key:str, where:str) -> dict[str, str]:
    value = data.get(key, {})
    if not isinstance(value, Mapping) or not all(isinstance(x, str) for x in value.values()):
        raise _malformed(where, f'"{key}" must be a table of strings, got {value!r}')
    return dict(value)

def _table_list(data:Mapping[str, Any], key:str, where:str) -> list[Mapping[str, Any]]:
    value = data.get(key, [])
    if not isinstance(value, list) or not all(isinstance(x, Mapping) for x in value):
        raise _malformed(where, f'"{key}" must be a list of tables, got {value!r}')
    return value

def _wrap(where:str, e:ContentIntegrityError) -> ContentIntegrityError:
    return ContentIntegrityError(e.case, f'{where}: {e}')


def load_content(content_data:Sequence[Mapping[str, Any]], where:str) -> list[ContentVariant]:
    """ Flattens authored content blocks into tagged variants.

    Authored blocks carry a base text plus optional rewrites. Variants come
    out grouped by kind in selection precedence order, each group keeping
    authored order. """

    if not isinstance(content_data, list) or len(content_data) == 0:
        raise ContentIntegrityError(IntegrityCase.MISSING_BASE_CONTENT, f'{where}: node has no content')

    reflections:list[ContentVariant] = []
    skill_reflections:list[ContentVariant] = []
    voices:list[ContentVariant] = []
    bases:list[ContentVariant] = []

    for i, block in enumerate(content_data):
        block_where = f'{where} content[{i}]'
        if not isinstance(block, Mapping):
            raise _malformed(block_where, "content blocks must be tables")
        variation_id = block.get("variation_id", f'{i}')
        emotion = _optional_str(block, "emotion", block_where)

        for j, r in enumerate(_table_list(block, "pattern_reflection", block_where)):
            reflections.append(ContentVariant(
                VariantKind.PATTERN_REFLECTION,
                _require_str(r, "text", f'{block_where} pattern_reflection[{j}]'),
                key=_require_str(r, "pattern", f'{block_where} pattern_reflection[{j}]'),
                min_level=_min_level(r, f'{block_where} pattern_reflection[{j}]'),
                emotion=_optional_str(r, "emotion", block_where) or emotion,
                variation_id=f'{variation_id}:pattern:{j}',
            ))
        for j, r in enumerate(_table_list(block, "skill_reflection", block_where)):
            skill_reflections.append(ContentVariant(
                VariantKind.SKILL_REFLECTION,
                _require_str(r, "text", f'{block_where} skill_reflection[{j}]'),
                key=_require_str(r, "skill", f'{block_where} skill_reflection[{j}]'),
                min_level=_min_level(r, f'{block_where} skill_reflection[{j}]'),
                emotion=_optional_str(r, "emotion", block_where) or emotion,
                variation_id=f'{variation_id}:skill:{j}',
            ))
        for pattern, text in _str_table(block, "voice_variations", block_where).items():
            voices.append(ContentVariant(
                VariantKind.VOICE,
                text,
                key=pattern,
                emotion=emotion,
                variation_id=f'{variation_id}:voice:{pattern}',
            ))

        if "text" in block:
            bases.append(ContentVariant(
                VariantKind.BASE,
                _require_str(block, "text", block_where),
                emotion=emotion,
                variation_id=variation_id,
            ))

    if len(bases) == 0:
        raise ContentIntegrityError(IntegrityCase.MISSING_BASE_CONTENT, f'{where}: node has no plain base text to fall back on')

    return reflections + skill_reflections + voices + bases

def _min_level(data:Mapping[str, Any], where:str) -> int:
    value = data.get("min_level")
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise _malformed(where, f'"min_level" must be a non-negative integer, got {value!r}')
    return value

def load_dialog_choice(choice_data:Mapping[str, Any], where:str) -> DialogChoice:
    if not isinstance(choice_data, Mapping):
        raise _malformed(where, "choices must be tables")
    choice_id = _require_str(choice_data, "choice_id", where)
    where = f'{where} choice "{choice_id}"'
    try:
        visible_condition = load_condition(choice_data.get("visible_condition"))
        enabled_condition = load_condition(choice_data.get("enabled_condition"))
        consequence = load_state_change(choice_data["consequence"]) if "consequence" in choice_data else None
    except ContentIntegrityError as e:
        raise _wrap(where, e) from e

    return DialogChoice(
        choice_id,
        _require_str(choice_data, "text", where),
        _require_str(choice_data, "next_node_id", where),
        visible_condition=visible_condition,
        enabled_condition=enabled_condition,
        consequence=consequence,
        pattern=_optional_str(choice_data, "pattern", where),
        skills=_str_list(choice_data, "skills", where),
        preview=_optional_str(choice_data, "preview", where),
        voice_variations=_str_table(choice_data, "voice_variations", where),
    )

def load_interrupt(interrupt_data:Mapping[str, Any], where:str) -> Interrupt:
    where = f'{where} interrupt'
    if not isinstance(interrupt_data, Mapping):
        raise _malformed(where, "interrupt must be a table")
    duration = interrupt_data.get("duration", config.Settings.interrupts.DEFAULT_DURATION)
    if not isinstance(duration, (int, float)) or isinstance(duration, bool) or duration <= 0:
        raise _malformed(where, f'"duration" must be a positive number, got {duration!r}')
    try:
        consequence = load_state_change(interrupt_data["consequence"]) if "consequence" in interrupt_data else None
    except ContentIntegrityError as e:
        raise _wrap(where, e) from e
    return Interrupt(
        float(duration),
        _require_str(interrupt_data, "action_text", where),
        _require_str(interrupt_data, "target_node_id", where),
        _require_str(interrupt_data, "missed_node_id", where),
        consequence,
    )

def load_dialog_node(dialog_data:Mapping[str, Any], graph_id:str="", default_character:Optional[str]=None) -> DialogNode:
    if not isinstance(dialog_data, Mapping):
        raise _malformed(graph_id, "nodes must be tables")
    node_id = _require_str(dialog_data, "node_id", f'graph "{graph_id}"')
    where = f'graph "{graph_id}" node "{node_id}"'

    choices_data = dialog_data.get("choices", [])
    if not isinstance(choices_data, list):
        raise _malformed(where, '"choices" must be a list')
    on_enter_data = dialog_data.get("on_enter", [])
    on_exit_data = dialog_data.get("on_exit", [])
    if not isinstance(on_enter_data, list) or not isinstance(on_exit_data, list):
        raise _malformed(where, '"on_enter" and "on_exit" must be lists of state changes')
    priority = dialog_data.get("priority", 0)
    if not isinstance(priority, int) or isinstance(priority, bool):
        raise _malformed(where, f'"priority" must be an integer, got {priority!r}')
    metadata = dialog_data.get("metadata", {})
    if not isinstance(metadata, Mapping):
        raise _malformed(where, '"metadata" must be a table')

    try:
        content = load_content(dialog_data.get("content", []), where)
        required_state = load_condition(dialog_data.get("required_state"))
        on_enter = [load_state_change(x) for x in on_enter_data]
        on_exit = [load_state_change(x) for x in on_exit_data]
    except ContentIntegrityError as e:
        if str(e).startswith(where):
            raise
        raise _wrap(where, e) from e

    return DialogNode(
        node_id,
        _require_str(dialog_data, "speaker", where),
        content,
        [load_dialog_choice(x, where) for x in choices_data],
        character=_optional_str(dialog_data, "character", where) or default_character,
        required_state=required_state,
        on_enter=on_enter,
        on_exit=on_exit,
        tags=_str_list(dialog_data, "tags", where),
        priority=priority,
        metadata=metadata,
        interrupt=load_interrupt(dialog_data["interrupt"], where) if "interrupt" in dialog_data else None,
    )

def load_dialog(dialog_data:Mapping[str, Any]) -> DialogGraph:
    """ Builds a DialogGraph from a parsed graph table. """
    graph_id = _require_str(dialog_data, "graph_id", "graph")
    where = f'graph "{graph_id}"'
    character = _optional_str(dialog_data, "character", where) or graph_id
    nodes_data = dialog_data.get("nodes", [])
    if not isinstance(nodes_data, list):
        raise _malformed(where, '"nodes" must be a list')

    return DialogGraph(
        graph_id,
        _require_str(dialog_data, "start_node_id", where),
        [load_dialog_node(x, graph_id, character) for x in nodes_data],
        entry_points=_str_table(dialog_data, "entry_points", where),
        shared_entry_points=_str_list(dialog_data, "shared_entry_points", where),
        quarantined=_str_list(dialog_data, "quarantined", where),
        version=dialog_data.get("version", ""),
        title=dialog_data.get("title", ""),
        character=character,
    )

def loads_dialog(data:str) -> DialogGraph:
    return load_dialog(toml.loads(data))

def load_dialog_file(path:str) -> DialogGraph:
    logger.debug(f'loading dialog graph from {path}')
    with open(path, "rt") as f:
        return load_dialog(toml.load(f))

def load_dialogs(graphs_dir:Optional[str]=None) -> list[DialogGraph]:
    """ Loads every *.toml graph in graphs_dir, in file name order. """
    if graphs_dir is None:
        graphs_dir = config.default_graphs_dir()
    graphs = []
    for filename in sorted(os.listdir(graphs_dir)):
        if not filename.endswith(".toml"):
            continue
        graphs.append(load_dialog_file(os.path.join(graphs_dir, filename)))
    logger.info(f'loaded {len(graphs)} dialog graphs from {graphs_dir}')
    return graphs
