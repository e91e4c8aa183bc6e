""" Global index of node ids to the graph that owns them.

Node ids are a single flat namespace even though graphs are authored per
character. The registry is the one place that knows that, so choices can hand
control to nodes in other graphs and authoring collisions get caught.

A choice may also target another graph's declared entry point symbolically as
"@<graph_id>.<ENTRY_POINT>", which the registry resolves to a node id.
"""

import logging
import collections
from typing import Optional, Sequence
from collections.abc import Mapping

from terminus import util
from terminus.dialog import DialogGraph, DialogNode
from terminus.errors import ContentIntegrityError, DuplicateNodeIdError, IntegrityCase, RuntimeNodeNotFoundError

ENTRY_REF_PREFIX = "@"

def is_entry_ref(target:str) -> bool:
    return target.startswith(ENTRY_REF_PREFIX)

def parse_entry_ref(target:str) -> tuple[str, str]:
    graph_id, _, name = target[len(ENTRY_REF_PREFIX):].partition(".")
    return graph_id, name


class GraphRegistry:
    """ Maps every node id to its owning graph.

    Two graphs may define the same node id only if both declare it a shared
    entry point and both definitions are structurally identical. Otherwise
    construction raises DuplicateNodeIdError, or, with strict=False, records
    the collision in collisions and keeps the first owner.

    Graph ids must be unique too. A second graph with an id already
    registered raises ContentIntegrityError, or, with strict=False, is
    recorded in duplicate_graphs and left out of the index. """

    def __init__(self, graphs:Sequence[DialogGraph], strict:bool=True) -> None:
        self.logger = logging.getLogger(util.fullname(self))
        self.graphs:dict[str, DialogGraph] = {}
        self.owners:dict[str, str] = {}
        self.collisions:dict[str, list[str]] = collections.defaultdict(list)
        self.duplicate_graphs:list[str] = []

        for graph in graphs:
            if graph.graph_id in self.graphs:
                if strict:
                    raise ContentIntegrityError(IntegrityCase.DUPLICATE_GRAPH_ID, f'graph id "{graph.graph_id}" is used by more than one graph')
                self.logger.warning(f'graph id "{graph.graph_id}" registered twice, ignoring the second')
                self.duplicate_graphs.append(graph.graph_id)
                continue
            self.graphs[graph.graph_id] = graph

            for node in graph.node_list:
                owner_id = self.owners.get(node.node_id)
                if owner_id is None:
                    self.owners[node.node_id] = graph.graph_id
                    continue
                if owner_id == graph.graph_id:
                    # duplicate within one graph is a per-graph authoring
                    # problem, the validator reports it
                    continue
                if self._shared(node, self.graphs[owner_id], graph):
                    continue

                if strict:
                    raise DuplicateNodeIdError(node.node_id, [owner_id, graph.graph_id])
                if len(self.collisions[node.node_id]) == 0:
                    self.collisions[node.node_id].append(owner_id)
                self.collisions[node.node_id].append(graph.graph_id)

        self.collisions = dict(self.collisions)
        self.logger.debug(f'indexed {len(self.owners)} nodes across {len(self.graphs)} graphs')

    def _shared(self, node:DialogNode, owner:DialogGraph, other:DialogGraph) -> bool:
        node_id = node.node_id
        if node_id not in owner.shared_entry_points or node_id not in other.shared_entry_points:
            return False
        a = owner.nodes[node_id].to_dict()
        b = node.to_dict()
        # an unset character defaults to each graph's own, so it only counts
        # when it was set to something else
        if a["character"] == owner.character and b["character"] == other.character:
            del a["character"]
            del b["character"]
        return a == b

    def __contains__(self, node_id:str) -> bool:
        return self.resolve_id(node_id) is not None

    def __len__(self) -> int:
        return len(self.owners)

    def graph(self, graph_id:str) -> DialogGraph:
        return self.graphs[graph_id]

    def owner(self, node_id:str) -> Optional[str]:
        node_id = self.resolve_id(node_id) or node_id
        return self.owners.get(node_id)

    def resolve_id(self, target:str) -> Optional[str]:
        """ Turns a choice target into a concrete node id, or None if it
        names nothing. """
        if is_entry_ref(target):
            graph_id, name = parse_entry_ref(target)
            graph = self.graphs.get(graph_id)
            if graph is None or name not in graph.entry_points:
                return None
            target = graph.entry_points[name]
        if target not in self.owners:
            return None
        return target

    def resolve(self, target:str) -> tuple[DialogGraph, DialogNode]:
        node_id = self.resolve_id(target)
        if node_id is None:
            raise RuntimeNodeNotFoundError(target)
        graph = self.graphs[self.owners[node_id]]
        return graph, graph.nodes[node_id]

    def entry_point_ids(self) -> Mapping[str, set[str]]:
        """ Declared entry point node ids, per graph. """
        return {g.graph_id: set(g.entry_points.values()) for g in self.graphs.values()}
