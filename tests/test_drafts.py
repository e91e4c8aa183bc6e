from terminus import config, corpus, drafts
from . import choice, node, terminal, graph

def make_graph():
    return graph("maya", [
        node("maya_intro", choice("c", "maya_end")),
        terminal("maya_end"),
        node("maya_unfinished_arc", choice("c", "maya_arc_part_two")),
    ], quarantined=["maya_unfinished_arc"])

def test_excludes_quarantined_by_default(monkeypatch):
    monkeypatch.delenv(config.DRAFT_CONTENT_ENV, raising=False)
    g = make_graph()
    kept = drafts.filter_nodes(g.graph_id, g.node_list, {g.graph_id: g.quarantined})
    assert [n.node_id for n in kept] == ["maya_intro", "maya_end"]

def test_includes_drafts_when_toggled(monkeypatch):
    monkeypatch.setenv(config.DRAFT_CONTENT_ENV, "true")
    g = make_graph()
    kept = drafts.filter_nodes(g.graph_id, g.node_list, {g.graph_id: g.quarantined})
    assert len(kept) == 3

def test_explicit_toggle_wins(monkeypatch):
    monkeypatch.setenv(config.DRAFT_CONTENT_ENV, "true")
    g = make_graph()
    assert len(drafts.filter_graph(g, include_drafts=False).nodes) == 2

def test_quarantine_is_per_graph():
    g = make_graph()
    kept = drafts.filter_nodes("devon", g.node_list, {g.graph_id: g.quarantined}, include_drafts=False)
    assert len(kept) == 3

def test_idempotent():
    g = make_graph()
    for include in (True, False):
        once = drafts.filter_nodes(g.graph_id, g.node_list, {g.graph_id: g.quarantined}, include)
        twice = drafts.filter_nodes(g.graph_id, once, {g.graph_id: g.quarantined}, include)
        assert [n.node_id for n in once] == [n.node_id for n in twice]

def test_filter_graph_keeps_declarations():
    g = drafts.filter_graph(make_graph(), include_drafts=False)
    assert g.quarantined == {"maya_unfinished_arc"}
    assert g.start_node_id == "maya_intro"
    assert "maya_unfinished_arc" not in g.nodes

def test_corpus_reads_toggle(monkeypatch):
    monkeypatch.setenv(config.DRAFT_CONTENT_ENV, "1")
    assert "samuel_unfinished_memory" in corpus.load_corpus()
    monkeypatch.setenv(config.DRAFT_CONTENT_ENV, "no")
    assert "samuel_unfinished_memory" not in corpus.load_corpus()
