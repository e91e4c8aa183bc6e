""" Draft/quarantine filtering.

Nodes that are authored but not shipping are declared per graph in its
quarantined list. Unless drafts are switched on they're dropped before the
registry is built, so their dangling references never reach production
validation.
"""

import logging
from typing import Optional, Sequence
from collections.abc import Collection, Mapping

from terminus import config
from terminus.dialog import DialogGraph, DialogNode

logger = logging.getLogger(__name__)

def filter_nodes(graph_key:str, nodes:Sequence[DialogNode], quarantine:Mapping[str, Collection[str]], include_drafts:Optional[bool]=None) -> list[DialogNode]:
    """ Drops graph_key's quarantined nodes unless include_drafts.

    include_drafts defaults to the environment toggle. Filtering an already
    filtered list is a no-op. """
    if include_drafts is None:
        include_drafts = config.include_drafts()
    if include_drafts:
        return list(nodes)

    quarantined = quarantine.get(graph_key, ())
    kept = [n for n in nodes if n.node_id not in quarantined]
    if len(kept) != len(nodes):
        logger.debug(f'{graph_key}: quarantined {len(nodes) - len(kept)} draft nodes')
    return kept

def filter_graph(graph:DialogGraph, include_drafts:Optional[bool]=None) -> DialogGraph:
    return graph.with_nodes(filter_nodes(
        graph.graph_id,
        graph.node_list,
        {graph.graph_id: graph.quarantined},
        include_drafts,
    ))

def filter_graphs(graphs:Sequence[DialogGraph], include_drafts:Optional[bool]=None) -> list[DialogGraph]:
    if include_drafts is None:
        include_drafts = config.include_drafts()
    return [filter_graph(g, include_drafts) for g in graphs]
