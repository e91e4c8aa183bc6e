""" Errors raised while loading, indexing and walking dialogue graphs. """

import enum
from typing import Any, Optional, Sequence


class IntegrityCase(enum.Enum):
    DUPLICATE_NODE_ID = enum.auto()
    DANGLING_REFERENCE = enum.auto()
    MALFORMED_CONDITION = enum.auto()
    MALFORMED_NODE = enum.auto()
    MISSING_BASE_CONTENT = enum.auto()
    MISSING_START_NODE = enum.auto()
    UNKNOWN_COMBO = enum.auto()
    DUPLICATE_GRAPH_ID = enum.auto()
    MISSING_FALLBACK_NODE = enum.auto()


class ContentIntegrityError(Exception):
    """ Authored content is broken in a way that must block a release. """

    def __init__(self, case:IntegrityCase, *args:Any, **kwargs:Any) -> None:
        super().__init__(*args, **kwargs)
        self.case = case


class DuplicateNodeIdError(ContentIntegrityError):
    def __init__(self, node_id:str, graph_ids:Sequence[str]) -> None:
        super().__init__(
            IntegrityCase.DUPLICATE_NODE_ID,
            f'node id "{node_id}" is defined by more than one graph: {", ".join(graph_ids)}'
        )
        self.node_id = node_id
        self.graph_ids = tuple(graph_ids)


class UnsatisfiableConditionWarning(UserWarning):
    """ A gate references a flag no loaded content ever sets. """


class RuntimeNodeNotFoundError(LookupError):
    def __init__(self, node_id:str, graph_id:Optional[str]=None) -> None:
        if graph_id:
            super().__init__(f'node "{node_id}" not found in graph "{graph_id}"')
        else:
            super().__init__(f'node "{node_id}" not found in any registered graph')
        self.node_id = node_id
        self.graph_id = graph_id


class InvalidChoiceSelection(ValueError):
    def __init__(self, choice_id:str, node_id:Optional[str]) -> None:
        super().__init__(f'choice "{choice_id}" is not a visible and enabled choice of node "{node_id}"')
        self.choice_id = choice_id
        self.node_id = node_id


class InterruptStateError(RuntimeError):
    pass
