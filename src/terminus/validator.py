""" Static analysis of a loaded dialog corpus.

Validation is map then reduce. Each graph is checked on its own first (node
and choice ids, start and entry points, content, combos, terminal tagging,
references that don't resolve inside the graph). Then the checks that need
the merged view run once over everything: duplicate ids across graphs,
references that leave their graph, global reachability and flags nobody
sets.

Reachability deliberately over-approximates. Every edge is followed no
matter what condition guards it, so a node is only an orphan if nothing at
all points at it from a start node or entry point.
"""

import enum
import json
import logging
import warnings
import collections
from typing import Optional, Sequence, Any, Iterable
from collections.abc import Mapping

import graphviz # type: ignore
import tqdm # type: ignore

from terminus import config, util
from terminus.dialog import DialogGraph, DialogNode, DialogChoice, VariantKind
from terminus.errors import ContentIntegrityError, DuplicateNodeIdError, IntegrityCase, UnsatisfiableConditionWarning
from terminus.predicates import StateCondition, expand_combo
from terminus.registry import GraphRegistry, is_entry_ref

CONTINUE_TEXTS = frozenset(("...", "continue", "[continue]"))


class Severity(enum.Enum):
    ERROR = enum.auto()
    WARNING = enum.auto()


class DiagnosticKind(enum.Enum):
    DUPLICATE_NODE_ID = enum.auto()
    DUPLICATE_GRAPH_ID = enum.auto()
    DUPLICATE_CHOICE_ID = enum.auto()
    DANGLING_REFERENCE = enum.auto()
    MISSING_START_NODE = enum.auto()
    MISSING_ENTRY_POINT = enum.auto()
    ORPHAN_NODE = enum.auto()
    UNKNOWN_COMBO = enum.auto()
    MISSING_FALLBACK_NODE = enum.auto()
    UNSATISFIABLE_GATE = enum.auto()
    TERMINAL_WITHOUT_DECLARATION = enum.auto()
    FAKE_CHOICE_CLUSTER = enum.auto()
    SHADOWED_VARIANT = enum.auto()
    UNKNOWN_VOICE_PATTERN = enum.auto()


KIND_SEVERITY = {
    DiagnosticKind.DUPLICATE_NODE_ID: Severity.ERROR,
    DiagnosticKind.DUPLICATE_GRAPH_ID: Severity.ERROR,
    DiagnosticKind.DUPLICATE_CHOICE_ID: Severity.ERROR,
    DiagnosticKind.DANGLING_REFERENCE: Severity.ERROR,
    DiagnosticKind.MISSING_START_NODE: Severity.ERROR,
    DiagnosticKind.MISSING_ENTRY_POINT: Severity.ERROR,
    DiagnosticKind.ORPHAN_NODE: Severity.ERROR,
    DiagnosticKind.UNKNOWN_COMBO: Severity.ERROR,
    DiagnosticKind.MISSING_FALLBACK_NODE: Severity.ERROR,
    DiagnosticKind.UNSATISFIABLE_GATE: Severity.WARNING,
    DiagnosticKind.TERMINAL_WITHOUT_DECLARATION: Severity.WARNING,
    DiagnosticKind.FAKE_CHOICE_CLUSTER: Severity.WARNING,
    DiagnosticKind.SHADOWED_VARIANT: Severity.WARNING,
    DiagnosticKind.UNKNOWN_VOICE_PATTERN: Severity.WARNING,
}


class Diagnostic:
    def __init__(
            self,
            kind:DiagnosticKind,
            graph_id:str,
            message:str,
            node_id:Optional[str]=None,
            choice_id:Optional[str]=None,
            suggestion:Optional[str]=None,
            error:Optional[ContentIntegrityError]=None,
    ) -> None:
        self.kind = kind
        self.severity = KIND_SEVERITY[kind]
        self.graph_id = graph_id
        self.message = message
        self.node_id = node_id
        self.choice_id = choice_id
        self.suggestion = suggestion
        # the integrity error this diagnostic stands for, errors only
        self.error = error

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def to_dict(self) -> dict[str, Any]:
        d:dict[str, Any] = {
            "severity": self.severity.name.lower(),
            "kind": self.kind.name.lower(),
            "graph": self.graph_id,
            "message": self.message,
        }
        if self.node_id is not None: d["node_id"] = self.node_id
        if self.choice_id is not None: d["choice_id"] = self.choice_id
        if self.suggestion is not None: d["suggestion"] = self.suggestion
        return d

    def __str__(self) -> str:
        # corpus wide diagnostics have no graph
        where = self.graph_id or "corpus"
        if self.node_id is not None:
            where = f'{where}/{self.node_id}'
        return f'[{where}] {self.message}'

    def __repr__(self) -> str:
        return f'Diagnostic({self.kind.name}, {self.graph_id!r}, {self.node_id!r})'


class GraphStats:
    def __init__(self, graph_id:str) -> None:
        self.graph_id = graph_id
        self.nodes = 0
        self.choices = 0
        self.interrupts = 0
        self.reachable = 0
        self.orphans = 0
        self.dangling = 0
        self.trust_gated_nodes = 0
        self.trust_gated_choices = 0
        self.flag_gated_nodes = 0
        self.flag_gated_choices = 0
        self.fake_choice_clusters = 0
        self.pattern_counts:dict[str, int] = {p: 0 for p in config.Settings.narrative.PATTERN_ORDER}

    def to_dict(self) -> dict[str, Any]:
        return dict(vars(self))


class ValidationReport:
    def __init__(self, diagnostics:Sequence[Diagnostic], stats:Mapping[str, GraphStats]) -> None:
        self.diagnostics = list(diagnostics)
        self.stats = dict(stats)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.WARNING]

    def of_kind(self, kind:DiagnosticKind) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.kind == kind]

    def integrity_errors(self) -> list[ContentIntegrityError]:
        return [d.error for d in self.errors if d.error is not None]

    def ok(self, strict:bool=False) -> bool:
        if strict:
            return len(self.diagnostics) == 0
        return len(self.errors) == 0

    def exit_code(self, strict:bool=False) -> int:
        """ 0 when clean, 1 when there are errors (or, if strict, any
        diagnostics at all). """
        return 0 if self.ok(strict) else 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok(),
            "error_count": len(self.errors),
            "warning_count": len(self.warnings),
            "errors": [d.to_dict() for d in self.errors],
            "warnings": [d.to_dict() for d in self.warnings],
            "stats": [s.to_dict() for s in self.stats.values()],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def summary(self, max_listed:Optional[int]=None) -> str:
        if max_listed is None:
            max_listed = config.Settings.validator.MAX_LISTED

        lines = []
        for s in self.stats.values():
            lines.append(
                f'{s.graph_id}: {s.nodes} nodes, {s.choices} choices, {s.interrupts} interrupts, '
                f'{s.reachable} reachable, {s.orphans} orphaned, {s.dangling} dangling'
            )

        for label, diagnostics in (("errors", self.errors), ("warnings", self.warnings)):
            if len(diagnostics) == 0:
                continue
            lines.append("")
            lines.append(f'{len(diagnostics)} {label}:')
            for d in diagnostics[:max_listed]:
                lines.append(f'  {util.elipsis(str(d), 160)}')
                if d.suggestion:
                    lines.append(f'    {d.suggestion}')
            if len(diagnostics) > max_listed:
                lines.append(f'  ... and {len(diagnostics) - max_listed} more')

        lines.append("")
        if self.ok():
            lines.append(f'OK: {len(self.stats)} graphs, no errors')
        else:
            lines.append(f'FAILED: {len(self.errors)} errors in {len(self.stats)} graphs')
        return "\n".join(lines)


def is_continue_choice(text:str) -> bool:
    t = util.normalize_text(text)
    return t in CONTINUE_TEXTS or t.startswith("[continue]")

def choice_signature(choice:DialogChoice) -> str:
    """ Everything that makes a choice mean something, so two choices with the
    same signature are the same choice twice. """
    d = choice.to_dict()
    del d["choice_id"]
    d["text"] = util.normalize_text(choice.text)
    if choice.preview is not None:
        d["preview"] = util.normalize_text(choice.preview)
    return json.dumps(d, sort_keys=True)

def node_conditions(node:DialogNode) -> Iterable[tuple[Optional[DialogChoice], StateCondition]]:
    """ Every condition on node, paired with the choice it guards, if any. """
    if node.required_state is not None:
        yield None, node.required_state
    for choice in node.choices:
        if choice.visible_condition is not None:
            yield choice, choice.visible_condition
        if choice.enabled_condition is not None:
            yield choice, choice.enabled_condition


class GraphCheck:
    """ Result of the per-graph pass: local diagnostics plus whatever the
    merged pass needs. """
    def __init__(self, graph:DialogGraph, stats:GraphStats) -> None:
        self.graph = graph
        self.stats = stats
        self.diagnostics:list[Diagnostic] = []
        # (node id, choice id or None for interrupts, target) not found locally
        self.unresolved:list[tuple[str, Optional[str], str]] = []


class GraphValidator:
    def __init__(
            self,
            combos:Optional[Mapping[str, Any]]=None,
            pattern_order:Optional[Sequence[str]]=None,
            fallback_node_id:Optional[str]=None,
    ) -> None:
        self.logger = logging.getLogger(util.fullname(self))
        self.combos = config.SkillCombos if combos is None else combos
        self.pattern_order = config.Settings.narrative.PATTERN_ORDER if pattern_order is None else pattern_order
        # where the runtime fails closed to, it must exist
        self.fallback_node_id = config.Settings.narrative.SAFE_FALLBACK_NODE_ID if fallback_node_id is None else fallback_node_id

    def validate(self, graphs:Sequence[DialogGraph], registry:Optional[GraphRegistry]=None, progress:bool=False) -> ValidationReport:
        """ Runs every check over graphs.

        graphs should already have drafts filtered. registry defaults to a
        non-strict registry over graphs so duplicate ids are reported rather
        than raised. """

        if registry is None:
            registry = GraphRegistry(graphs, strict=False)

        self.logger.info(f'checking {len(graphs)} graphs')
        checks = [self.check_graph(g) for g in tqdm.tqdm(graphs, desc="graphs", unit="graph", disable=not progress)]

        diagnostics:list[Diagnostic] = []
        for check in checks:
            diagnostics.extend(check.diagnostics)

        self.logger.info("checking merged view")
        diagnostics.extend(self.check_duplicates(registry))
        diagnostics.extend(self.check_fallback(registry))
        diagnostics.extend(self.check_references(checks, registry))
        diagnostics.extend(self.check_reachability(checks, registry))
        diagnostics.extend(self.check_gates(graphs))

        report = ValidationReport(diagnostics, {c.graph.graph_id: c.stats for c in checks})
        self.logger.info(f'{len(report.errors)} errors, {len(report.warnings)} warnings')
        return report

    def check_graph(self, graph:DialogGraph) -> GraphCheck:
        self.logger.debug(f'checking graph {graph.graph_id}')
        stats = GraphStats(graph.graph_id)
        stats.pattern_counts = {p: 0 for p in self.pattern_order}
        check = GraphCheck(graph, stats)

        seen:set[str] = set()
        for node in graph.node_list:
            if node.node_id in seen:
                check.diagnostics.append(Diagnostic(
                    DiagnosticKind.DUPLICATE_NODE_ID, graph.graph_id,
                    f'duplicate node id "{node.node_id}"',
                    node_id=node.node_id,
                    suggestion="each node must have a unique id within its graph",
                    error=ContentIntegrityError(IntegrityCase.DUPLICATE_NODE_ID, f'{graph.graph_id}: duplicate node id "{node.node_id}"'),
                ))
            seen.add(node.node_id)
            self._check_node(check, node)

        if graph.start_node_id not in graph.nodes:
            check.diagnostics.append(Diagnostic(
                DiagnosticKind.MISSING_START_NODE, graph.graph_id,
                f'start node "{graph.start_node_id}" does not exist',
                suggestion="make start_node_id name a node in this graph",
                error=ContentIntegrityError(IntegrityCase.MISSING_START_NODE, f'{graph.graph_id}: start node "{graph.start_node_id}" does not exist'),
            ))
        for name, node_id in graph.entry_points.items():
            if node_id not in graph.nodes:
                check.diagnostics.append(Diagnostic(
                    DiagnosticKind.MISSING_ENTRY_POINT, graph.graph_id,
                    f'entry point {name} names missing node "{node_id}"',
                    node_id=node_id,
                    error=ContentIntegrityError(IntegrityCase.DANGLING_REFERENCE, f'{graph.graph_id}: entry point {name} names missing node "{node_id}"'),
                ))

        stats.nodes = len(graph.node_list)
        stats.choices = graph.total_choices()
        return check

    def _check_node(self, check:GraphCheck, node:DialogNode) -> None:
        graph_id = check.graph.graph_id
        stats = check.stats

        if node.interrupt is not None:
            stats.interrupts += 1
        if node.required_state is not None:
            if node.required_state.is_trust_gated():
                stats.trust_gated_nodes += 1
            if node.required_state.is_flag_gated():
                stats.flag_gated_nodes += 1

        # targets that don't resolve locally get another look once every
        # graph is indexed
        for choice in node.choices:
            if is_entry_ref(choice.next_node_id) or choice.next_node_id not in check.graph.nodes:
                check.unresolved.append((node.node_id, choice.choice_id, choice.next_node_id))
        if node.interrupt is not None:
            for target in (node.interrupt.target_node_id, node.interrupt.missed_node_id):
                if is_entry_ref(target) or target not in check.graph.nodes:
                    check.unresolved.append((node.node_id, None, target))

        if len(node.choices) == 0 and not node.terminal:
            check.diagnostics.append(Diagnostic(
                DiagnosticKind.TERMINAL_WITHOUT_DECLARATION, graph_id,
                "node has no choices but is not tagged terminal",
                node_id=node.node_id,
                suggestion='add choices or tag the node "terminal"',
            ))

        choice_ids:set[str] = set()
        for choice in node.choices:
            if choice.choice_id in choice_ids:
                check.diagnostics.append(Diagnostic(
                    DiagnosticKind.DUPLICATE_CHOICE_ID, graph_id,
                    f'duplicate choice id "{choice.choice_id}"',
                    node_id=node.node_id,
                    choice_id=choice.choice_id,
                    error=ContentIntegrityError(IntegrityCase.MALFORMED_NODE, f'{graph_id}/{node.node_id}: duplicate choice id "{choice.choice_id}"'),
                ))
            choice_ids.add(choice.choice_id)

            if choice.pattern is not None:
                stats.pattern_counts[choice.pattern] = stats.pattern_counts.get(choice.pattern, 0) + 1
            if choice.visible_condition is not None or choice.enabled_condition is not None:
                conditions = [c for c in (choice.visible_condition, choice.enabled_condition) if c is not None]
                if any(c.is_trust_gated() for c in conditions):
                    stats.trust_gated_choices += 1
                if any(c.is_flag_gated() for c in conditions):
                    stats.flag_gated_choices += 1

            for pattern in choice.voice_variations:
                if pattern not in self.pattern_order:
                    check.diagnostics.append(Diagnostic(
                        DiagnosticKind.UNKNOWN_VOICE_PATTERN, graph_id,
                        f'choice voice variation for unknown pattern "{pattern}"',
                        node_id=node.node_id,
                        choice_id=choice.choice_id,
                    ))

        self._check_fake_choices(check, node)
        self._check_combos(check, node)
        self._check_variants(check, node)

    def _check_fake_choices(self, check:GraphCheck, node:DialogNode) -> None:
        clusters:dict[str, list[DialogChoice]] = collections.defaultdict(list)
        for choice in node.choices:
            if is_continue_choice(choice.text):
                continue
            clusters[choice_signature(choice)].append(choice)

        for cluster in clusters.values():
            if len(cluster) < 2:
                continue
            check.stats.fake_choice_clusters += 1
            texts = ", ".join(f'"{util.elipsis(c.text, 60)}"' for c in cluster)
            check.diagnostics.append(Diagnostic(
                DiagnosticKind.FAKE_CHOICE_CLUSTER, check.graph.graph_id,
                f'{len(cluster)} identical choices all lead to "{cluster[0].next_node_id}"',
                node_id=node.node_id,
                suggestion=f'choices: {texts}. dedupe them or make their conditions or effects differ',
            ))

    def _check_combos(self, check:GraphCheck, node:DialogNode) -> None:
        for choice, condition in node_conditions(node):
            for combo_id in condition.required_combos:
                try:
                    expand_combo(combo_id, self.combos)
                except ContentIntegrityError as e:
                    check.diagnostics.append(Diagnostic(
                        DiagnosticKind.UNKNOWN_COMBO, check.graph.graph_id,
                        str(e),
                        node_id=node.node_id,
                        choice_id=choice.choice_id if choice else None,
                        suggestion=f'declare skill_combos.{combo_id} in config or fix the name',
                        error=e,
                    ))

    def _check_variants(self, check:GraphCheck, node:DialogNode) -> None:
        for i, variant in enumerate(node.content):
            shadow = next((
                v for v in node.content[:i]
                if v.kind == variant.kind and v.key == variant.key and v.min_level <= variant.min_level
            ), None)
            if shadow is not None:
                check.diagnostics.append(Diagnostic(
                    DiagnosticKind.SHADOWED_VARIANT, check.graph.graph_id,
                    f'{variant.kind.name.lower()} variant {variant.variation_id} can never be selected, {shadow.variation_id} always matches first',
                    node_id=node.node_id,
                ))

            if variant.kind == VariantKind.VOICE and variant.key not in self.pattern_order:
                check.diagnostics.append(Diagnostic(
                    DiagnosticKind.UNKNOWN_VOICE_PATTERN, check.graph.graph_id,
                    f'voice variation for unknown pattern "{variant.key}"',
                    node_id=node.node_id,
                ))

    def check_duplicates(self, registry:GraphRegistry) -> list[Diagnostic]:
        diagnostics = []
        for graph_id in registry.duplicate_graphs:
            diagnostics.append(Diagnostic(
                DiagnosticKind.DUPLICATE_GRAPH_ID, graph_id,
                f'graph id "{graph_id}" is used by more than one graph',
                suggestion="give each graph file its own graph_id",
                error=ContentIntegrityError(IntegrityCase.DUPLICATE_GRAPH_ID, f'graph id "{graph_id}" is used by more than one graph'),
            ))
        for node_id, graph_ids in registry.collisions.items():
            diagnostics.append(Diagnostic(
                DiagnosticKind.DUPLICATE_NODE_ID, graph_ids[0],
                f'node id "{node_id}" is defined by graphs {", ".join(graph_ids)}',
                node_id=node_id,
                suggestion="rename one of them, or declare it a shared entry point in each graph with identical content",
                error=DuplicateNodeIdError(node_id, graph_ids),
            ))
        return diagnostics

    def check_fallback(self, registry:GraphRegistry) -> list[Diagnostic]:
        """ The node sessions fail closed to has to be there. """
        if registry.resolve_id(self.fallback_node_id) is not None:
            return []
        return [Diagnostic(
            DiagnosticKind.MISSING_FALLBACK_NODE, "",
            f'fallback node "{self.fallback_node_id}" is not in any graph',
            suggestion="add the node or point narrative.SAFE_FALLBACK_NODE_ID at one that exists",
            error=ContentIntegrityError(IntegrityCase.MISSING_FALLBACK_NODE, f'fallback node "{self.fallback_node_id}" is not in any graph'),
        )]

    def check_references(self, checks:Sequence[GraphCheck], registry:GraphRegistry) -> list[Diagnostic]:
        diagnostics = []
        for check in checks:
            graph_id = check.graph.graph_id
            for node_id, choice_id, target in check.unresolved:
                if registry.resolve_id(target) is not None:
                    continue
                check.stats.dangling += 1
                source = f'choice "{choice_id}"' if choice_id is not None else "interrupt"
                diagnostics.append(Diagnostic(
                    DiagnosticKind.DANGLING_REFERENCE, graph_id,
                    f'{source} points to non-existent node "{target}"',
                    node_id=node_id,
                    choice_id=choice_id,
                    error=ContentIntegrityError(IntegrityCase.DANGLING_REFERENCE, f'{graph_id}/{node_id}: {source} points to non-existent node "{target}"'),
                ))
        return diagnostics

    def check_reachability(self, checks:Sequence[GraphCheck], registry:GraphRegistry) -> list[Diagnostic]:
        """ Breadth first search from every start node and entry point over
        every edge in the corpus. """

        definitions:dict[str, list[DialogNode]] = collections.defaultdict(list)
        roots:list[str] = []
        for check in checks:
            graph = check.graph
            for node in graph.node_list:
                definitions[node.node_id].append(node)
            roots.append(graph.start_node_id)
            roots.extend(graph.entry_points.values())
            roots.extend(graph.shared_entry_points)

        visited:set[str] = set()
        queue:collections.deque[str] = collections.deque()
        for root in util.unique(roots):
            if root in definitions:
                visited.add(root)
                queue.append(root)

        while queue:
            node_id = queue.popleft()
            for node in definitions[node_id]:
                for target in node.outgoing_targets():
                    # dangling targets are reported by check_references
                    resolved = registry.resolve_id(target)
                    if resolved is not None and resolved not in visited:
                        visited.add(resolved)
                        queue.append(resolved)

        diagnostics = []
        for check in checks:
            reported:set[str] = set()
            for node in check.graph.node_list:
                if node.node_id in visited:
                    continue
                if node.node_id in reported:
                    continue
                reported.add(node.node_id)
                diagnostics.append(Diagnostic(
                    DiagnosticKind.ORPHAN_NODE, check.graph.graph_id,
                    f'orphaned node "{node.node_id}" is unreachable from any start node or entry point',
                    node_id=node.node_id,
                    suggestion="add a choice pointing to it, declare it an entry point, or remove it",
                ))
            check.stats.orphans = len(reported)
            check.stats.reachable = len(set(check.graph.nodes) & visited)
        return diagnostics

    def check_gates(self, graphs:Sequence[DialogGraph]) -> list[Diagnostic]:
        """ Gates on flags that no loaded effect ever sets. """
        set_global:set[str] = set()
        set_knowledge:set[str] = set()
        for graph in graphs:
            for node in graph.node_list:
                for change in node.state_changes():
                    set_global.update(change.add_global_flags)
                    set_knowledge.update(change.add_knowledge_flags)

        diagnostics = []
        for graph in graphs:
            for node in graph.node_list:
                for choice, condition in node_conditions(node):
                    missing = sorted(
                        [f for f in condition.referenced_global_flags() if f not in set_global]
                        + [f for f in condition.referenced_knowledge_flags() if f not in set_knowledge]
                    )
                    for flag in missing:
                        where = f'choice "{choice.choice_id}"' if choice is not None else "required state"
                        message = f'{where} requires flag "{flag}" which nothing in the corpus sets'
                        warnings.warn(f'{graph.graph_id}/{node.node_id}: {message}', UnsatisfiableConditionWarning)
                        diagnostics.append(Diagnostic(
                            DiagnosticKind.UNSATISFIABLE_GATE, graph.graph_id,
                            message,
                            node_id=node.node_id,
                            choice_id=choice.choice_id if choice else None,
                            suggestion="set the flag in some on_enter or consequence, unless something outside the dialog sets it",
                        ))
        return diagnostics


def viz(graph:DialogGraph, orphans:Iterable[str]=()) -> graphviz.Digraph:
    """ Renders graph with graphviz. Orphans are drawn in red and targets in
    other graphs dashed. """
    orphans = frozenset(orphans)
    g = graphviz.Digraph(graph.graph_id, graph_attr={"rankdir": "TB"})

    for node in graph.node_list:
        attrs = {}
        if node.node_id in orphans:
            attrs["color"] = "red"
        if node.terminal:
            attrs["shape"] = "doublecircle"
        elif node.node_id == graph.start_node_id:
            attrs["shape"] = "box"
        g.node(node.node_id, label=f'{node.node_id}\n{util.elipsis(node.base_content.text, 30)}', **attrs)

    external:set[str] = set()
    for node in graph.node_list:
        for choice in node.choices:
            if choice.next_node_id not in graph.nodes:
                external.add(choice.next_node_id)
            style = "dashed" if choice.visible_condition or choice.enabled_condition else "solid"
            g.edge(node.node_id, choice.next_node_id, label=choice.choice_id, style=style)
        if node.interrupt is not None:
            for target, label in ((node.interrupt.target_node_id, "act"), (node.interrupt.missed_node_id, "missed")):
                if target not in graph.nodes:
                    external.add(target)
                g.edge(node.node_id, target, label=label, color="orange")

    for target in sorted(external):
        g.node(target, style="dashed")

    return g
