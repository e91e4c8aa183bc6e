import logging
from typing import Generator

import pytest

from terminus import config, corpus
from terminus.dialog import DialogGraph
from terminus.registry import GraphRegistry
from terminus.state import GameState
from . import choice, node, terminal, graph

# some logging to turn on if we like
#logging.getLogger("terminus.traversal").level = logging.DEBUG
#logging.getLogger("terminus.validator").level = logging.DEBUG

@pytest.fixture(autouse=True)
def builtin_config() -> Generator[None, None, None]:
    """ Puts back the built-in config after tests that override it. """
    yield
    config.load_config()

@pytest.fixture
def state() -> GameState:
    return GameState.new("player")

@pytest.fixture
def samuel_graph() -> DialogGraph:
    return graph("samuel", [
        node("samuel_start", choice("to_hub", "samuel_hub")),
        node("samuel_hub",
            choice("to_maya", "@maya.INTRODUCTION"),
            choice("leave", "samuel_end"),
        ),
        node("samuel_hub_fallback", choice("back_to_hub", "samuel_hub")),
        terminal("samuel_end"),
    ], entry_points={"HUB": "samuel_hub", "FALLBACK": "samuel_hub_fallback"})

@pytest.fixture
def maya_graph() -> DialogGraph:
    return graph("maya", [
        node("maya_intro", choice("back", "@samuel.HUB"), character="maya"),
    ], entry_points={"INTRODUCTION": "maya_intro"})

@pytest.fixture
def small_graphs(samuel_graph:DialogGraph, maya_graph:DialogGraph) -> list[DialogGraph]:
    return [samuel_graph, maya_graph]

@pytest.fixture
def registry(small_graphs:list[DialogGraph]) -> GraphRegistry:
    return GraphRegistry(small_graphs)

@pytest.fixture
def demo_registry() -> GraphRegistry:
    return corpus.load_corpus(include_drafts=False)
