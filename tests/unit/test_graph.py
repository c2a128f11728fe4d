"""Unit tests for the per-query graph views."""
import pytest

from tracelink_mcp_server.graph import GraphViews
from tracelink_mcp_server.models.item import ItemIndex
from tracelink_mcp_server.models.link import LinkCreate, LinkType
from tracelink_mcp_server.utils.validation import coerce_edges


@pytest.fixture
def model_views(link_store, model_items, model_edges):
    for source, target, link_type in (
        ("TC", "REQ-B", "verifies"),
        ("FN", "REQ-A", "satisfies"),
        ("REQ-B", "REQ-A", "derives"),
        ("REQ-C", "REQ-B", "conflicts"),
    ):
        link_store.add_link(LinkCreate(sourceItemId=source, targetItemId=target, type=link_type))
    return GraphViews(ItemIndex.of(model_items), coerce_edges(model_edges), link_store.links())


def test_containment_forest(model_views):
    assert model_views.parent_of("SUB") == "SYS"
    assert model_views.parent_of("FN") == "SUB"
    assert model_views.parent_of("SYS") is None
    assert model_views.children_of("SYS") == ["SUB", "REQ-A"]
    assert model_views.children_of("REQ-C") == []


def test_non_containment_edges_count_as_structure_only(model_views):
    assert model_views.parent_of("HW") is None
    assert model_views.structural_degree("HW") == 1
    assert model_views.structural_degree("SUB") == 3
    assert model_views.structural_degree("ACT") == 0


def test_first_containment_parent_wins():
    edges = coerce_edges([
        {"source": "A", "target": "C", "relationType": "contains"},
        {"source": "B", "target": "C", "relationType": "contains"},
    ])

    views = GraphViews(ItemIndex(), edges)

    assert views.parent_of("C") == "A"


def test_digraph_excludes_conflicts(model_views):
    assert model_views.digraph_nodes() == ["FN", "REQ-A", "REQ-B", "TC"]
    assert model_views.successors("REQ-B") == ["REQ-A"]
    assert model_views.successors("REQ-C") == []


def test_conflicts_are_undirected(model_views):
    assert model_views.conflicts_of("REQ-B") == ["REQ-C"]
    assert model_views.conflicts_of("REQ-C") == ["REQ-B"]


def test_links_to_filters_by_type(model_views):
    incoming = model_views.links_to("REQ-A")
    assert [link.source.itemId for link in incoming] == ["FN", "REQ-B"]

    satisfying = model_views.links_to("REQ-A", {LinkType.SATISFIES})
    assert [link.source.itemId for link in satisfying] == ["FN"]

    assert model_views.links_from("TC", {LinkType.DERIVES}) == []


def test_link_index_covers_both_positions(model_views):
    assert len(model_views.links_for("REQ-B")) == 3
    assert [link.source.itemId for link in model_views.incoming_links("REQ-B")] == ["TC", "REQ-C"]
    assert [link.target.itemId for link in model_views.outgoing_links("REQ-B")] == ["REQ-A"]
    assert model_views.link_count("ACT") == 0


def test_unknown_item_yields_empty_views(model_views):
    assert model_views.links_for("NOPE") == []
    assert model_views.incoming_links("NOPE") == []
    assert model_views.successors("NOPE") == []
    assert model_views.children_of("NOPE") == []


def test_returned_lists_are_copies(model_views):
    model_views.links_for("REQ-B").clear()
    model_views.children_of("SYS").append("X")

    assert len(model_views.links_for("REQ-B")) == 3
    assert model_views.children_of("SYS") == ["SUB", "REQ-A"]
