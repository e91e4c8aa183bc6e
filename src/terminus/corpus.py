""" Loading the full set of shipped graphs: read, filter drafts, index. """

import logging
from typing import Optional

from terminus import config, dialog, drafts
from terminus.registry import GraphRegistry

logger = logging.getLogger(__name__)

def load_corpus(graphs_dir:Optional[str]=None, include_drafts:Optional[bool]=None, strict:bool=True) -> GraphRegistry:
    """ Loads every graph under graphs_dir and indexes the post-filter
    result.

    The draft toggle is read from the environment once, here, unless
    include_drafts overrides it. """
    if include_drafts is None:
        include_drafts = config.include_drafts()
    logger.info(f'loading corpus, drafts {"included" if include_drafts else "excluded"}')
    graphs = drafts.filter_graphs(dialog.load_dialogs(graphs_dir), include_drafts)
    return GraphRegistry(graphs, strict=strict)
