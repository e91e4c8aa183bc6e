from typing import Optional, Sequence, Any, Mapping

from terminus import dialog
from terminus.dialog import ContentVariant, DialogChoice, DialogNode, DialogGraph, VariantKind
from terminus.predicates import load_condition
from terminus.state import StateChange

def base(text:str) -> ContentVariant:
    return ContentVariant(VariantKind.BASE, text, variation_id="base")

def choice(
        choice_id:str,
        next_node_id:str,
        text:Optional[str]=None,
        visible:Optional[Mapping[str, Any]]=None,
        enabled:Optional[Mapping[str, Any]]=None,
        consequence:Optional[StateChange]=None,
        **kwargs:Any,
) -> DialogChoice:
    """ Builds a choice, conditions given as authored tables. """
    return DialogChoice(
        choice_id,
        text or f'go to {next_node_id} via {choice_id}',
        next_node_id,
        visible_condition=load_condition(visible),
        enabled_condition=load_condition(enabled),
        consequence=consequence,
        **kwargs,
    )

def node(node_id:str, *choices:DialogChoice, text:Optional[str]=None, character:Optional[str]="samuel", **kwargs:Any) -> DialogNode:
    return DialogNode(
        node_id,
        "Speaker",
        [base(text or f'text of {node_id}')],
        list(choices),
        character=character,
        **kwargs,
    )

def terminal(node_id:str, **kwargs:Any) -> DialogNode:
    return node(node_id, tags=[dialog.TERMINAL_TAG], **kwargs)

def graph(graph_id:str, nodes:Sequence[DialogNode], start_node_id:Optional[str]=None, **kwargs:Any) -> DialogGraph:
    if start_node_id is None:
        start_node_id = nodes[0].node_id
    return DialogGraph(graph_id, start_node_id, nodes, **kwargs)
