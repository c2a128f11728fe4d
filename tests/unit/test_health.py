"""Unit tests for the health analyzer.

Tests orphan, cycle, coverage, stale-pin and dangling-link detection,
plus version-change impact analysis.
"""
import pytest

from tracelink_mcp_server import health
from tracelink_mcp_server.graph import GraphViews
from tracelink_mcp_server.models.health import IssueType, Severity
from tracelink_mcp_server.models.item import ItemIndex
from tracelink_mcp_server.models.link import LinkStatus
from tracelink_mcp_server.utils.errors import ErrorKind, ItemNotFoundError


def link(engine, source, target, link_type):
    result = engine.add_link(source, target, link_type)
    assert result.ok, result.error
    return result.value


def bump(items, item_id, version):
    for item in items:
        if item["id"] == item_id:
            item["version"] = version


# ============================================================================
# Orphans and coverage
# ============================================================================

def test_find_orphans_in_input_order(engine, model_items, model_edges):
    link(engine, "TC", "REQ-B", "verifies")
    link(engine, "FN", "REQ-A", "satisfies")

    assert engine.find_orphans(model_items, model_edges) == ["REQ-C", "ACT"]


def test_floating_connector_never_orphan(engine, model_items):
    orphans = engine.find_orphans(model_items)

    assert "CONN" not in orphans
    assert len(orphans) == len(model_items) - 1


def test_any_structural_relation_prevents_orphan(engine, model_items, model_edges):
    assert "HW" not in engine.find_orphans(model_items, model_edges)


def test_find_uncovered_requirements(engine, model_items):
    link(engine, "TC", "REQ-B", "verifies")
    link(engine, "FN", "REQ-A", "satisfies")

    assert engine.find_uncovered_requirements(model_items) == ["REQ-C"]


def test_removing_coverage_link_uncovers_requirement(engine, scenario_items):
    created = link(engine, "T1", "R1", "verifies")
    assert engine.find_uncovered_requirements(scenario_items) == []

    engine.remove_link(created.id)

    assert engine.find_uncovered_requirements(scenario_items) == ["R1"]


def test_coverage_needs_covering_item_type(engine, model_items):
    link(engine, "ACT", "REQ-A", "satisfies")
    link(engine, "REQ-B", "REQ-A", "verifies")

    assert "REQ-A" in engine.find_uncovered_requirements(model_items)


def test_coverage_needs_coverage_link_type(engine, model_items):
    link(engine, "TC", "REQ-A", "refines")
    link(engine, "FN", "REQ-B", "derives")

    assert engine.find_uncovered_requirements(model_items) == ["REQ-A", "REQ-B", "REQ-C"]


def test_coverage_from_missing_item_does_not_count(engine, model_items):
    link(engine, "TC-DELETED", "REQ-A", "verifies")

    assert "REQ-A" in engine.find_uncovered_requirements(model_items)


# ============================================================================
# Circular dependencies
# ============================================================================

def test_no_cycles_in_acyclic_graph(engine, model_items):
    link(engine, "TC", "REQ-B", "verifies")
    link(engine, "REQ-B", "REQ-A", "derives")
    link(engine, "FN", "REQ-A", "satisfies")

    assert engine.find_circular_deps() == []


def test_two_node_cycle(engine):
    link(engine, "A", "B", "derives")
    link(engine, "B", "A", "derives")

    assert engine.find_circular_deps() == [["A", "B", "A"]]


def test_cycle_report_independent_of_insertion_order(engine):
    link(engine, "B", "A", "refines")
    link(engine, "A", "B", "satisfies")

    assert engine.find_circular_deps() == [["A", "B", "A"]]


def test_conflicts_links_never_form_cycles(engine):
    link(engine, "A", "B", "conflicts")
    link(engine, "B", "A", "conflicts")

    assert engine.find_circular_deps() == []


def test_cycle_reported_from_revisited_node(engine):
    link(engine, "A", "B", "derives")
    link(engine, "B", "C", "derives")
    link(engine, "C", "B", "verifies")

    assert engine.find_circular_deps() == [["B", "C", "B"]]


def test_separate_cycles_all_reported(engine):
    link(engine, "C", "D", "derives")
    link(engine, "D", "C", "derives")
    link(engine, "A", "B", "derives")
    link(engine, "B", "A", "derives")

    assert engine.find_circular_deps() == [["A", "B", "A"], ["C", "D", "C"]]


def test_cycle_detection_is_repeatable(engine):
    link(engine, "X", "Y", "derives")
    link(engine, "Y", "Z", "derives")
    link(engine, "Z", "X", "derives")

    first = engine.find_circular_deps()

    assert first == [["X", "Y", "Z", "X"]]
    assert engine.find_circular_deps() == first


# ============================================================================
# Stale pins, dangling links and the unified report
# ============================================================================

def test_linked_scenario_is_healthy(engine, scenario_items, scenario_edges):
    created = link(engine, "T1", "R1", "verifies")
    engine.pin_link(created.id, scenario_items)

    assert engine.run_health_checks(scenario_items, scenario_edges) == []


def test_version_bump_makes_pin_stale(engine, scenario_items, scenario_edges):
    created = link(engine, "T1", "R1", "verifies")
    engine.pin_link(created.id, scenario_items)
    bump(scenario_items, "R1", "1.1")

    issues = engine.run_health_checks(scenario_items, scenario_edges)

    assert len(issues) == 1
    issue = issues[0]
    assert issue.severity == Severity.CRITICAL
    assert issue.type == IssueType.STALE_PIN
    assert issue.relatedLinkId == created.id
    assert issue.relatedItemIds == ["R1"]
    assert issue.message == f"Link {created.id}: target R1 pinned to v1.0, current is v1.1"
    assert issue.details["liveVersion"] == "1.1"


def test_repin_clears_stale_pin(engine, scenario_items, scenario_edges):
    created = link(engine, "T1", "R1", "verifies")
    engine.pin_link(created.id, scenario_items)
    bump(scenario_items, "R1", "1.1")

    engine.pin_link(created.id, scenario_items)

    assert engine.run_health_checks(scenario_items, scenario_edges) == []
    assert engine.store.get_link(created.id).target.pinnedVersion == "1.1"


def test_unpin_clears_stale_pin(engine, scenario_items, scenario_edges):
    created = link(engine, "T1", "R1", "verifies")
    engine.pin_link(created.id, scenario_items)
    bump(scenario_items, "T1", "2.0")

    engine.unpin_link(created.id)

    assert engine.run_health_checks(scenario_items, scenario_edges) == []


def test_stale_pin_per_drifted_endpoint(engine, scenario_items, scenario_edges):
    created = link(engine, "T1", "R1", "verifies")
    engine.pin_link(created.id, scenario_items)
    bump(scenario_items, "R1", "1.1")
    bump(scenario_items, "T1", "1.1")

    issues = engine.run_health_checks(scenario_items, scenario_edges)

    assert [issue.details["endpoint"] for issue in issues] == ["source", "target"]


def test_dangling_link_reported(engine, scenario_items, scenario_edges):
    link(engine, "T1", "R1", "verifies")
    ghost = link(engine, "T1", "R-GONE", "verifies")

    issues = engine.run_health_checks(scenario_items, scenario_edges)

    dangling = [issue for issue in issues if issue.type == IssueType.DANGLING_LINK]
    assert len(dangling) == 1
    assert dangling[0].severity == Severity.CRITICAL
    assert dangling[0].relatedLinkId == ghost.id
    assert dangling[0].details == {"endpoint": "target", "itemId": "R-GONE"}


def test_dangling_check_skipped_without_items(engine):
    link(engine, "T1", "R1", "verifies")

    assert engine.run_health_checks([]) == []


def test_critical_issues_listed_first(engine, model_items, model_edges):
    created = link(engine, "TC", "REQ-B", "verifies")
    engine.pin_link(created.id, model_items)
    bump(model_items, "REQ-B", "1.1")

    issues = engine.run_health_checks(model_items, model_edges)

    severities = [issue.severity for issue in issues]
    assert severities[0] == Severity.CRITICAL
    assert severities == sorted(severities, key=lambda s: s != Severity.CRITICAL)
    types = [issue.type for issue in issues]
    assert IssueType.ORPHAN in types
    assert IssueType.UNCOVERED_REQUIREMENT in types


def test_cycle_issue_in_report(engine):
    link(engine, "A", "B", "derives")
    link(engine, "B", "A", "derives")

    issues = engine.run_health_checks(None)

    assert len(issues) == 1
    assert issues[0].type == IssueType.CIRCULAR_DEPENDENCY
    assert issues[0].relatedItemIds == ["A", "B"]
    assert issues[0].message == "Circular dependency: A -> B -> A"


# ============================================================================
# Effective status
# ============================================================================

def test_effective_status_overlays_broken(engine, scenario_items):
    created = link(engine, "T1", "R1", "verifies")
    engine.update_link_status(created.id, "agreed")
    engine.pin_link(created.id, scenario_items)

    assert engine.get_link_statuses(scenario_items) == {created.id: LinkStatus.AGREED}

    bump(scenario_items, "R1", "1.1")

    assert engine.get_link_statuses(scenario_items) == {created.id: LinkStatus.BROKEN}
    assert engine.store.get_link(created.id).status == LinkStatus.AGREED


def test_floating_link_never_broken(engine, scenario_items):
    created = link(engine, "T1", "R1", "verifies")
    bump(scenario_items, "R1", "9.0")

    assert engine.get_link_statuses(scenario_items)[created.id] == LinkStatus.PROPOSED


def test_item_without_version_is_present_and_pinnable(engine, scenario_items, scenario_edges):
    scenario_items[2]["version"] = None
    created = link(engine, "T1", "R1", "verifies")

    assert engine.run_health_checks(scenario_items, scenario_edges) == []

    pinned = engine.pin_link(created.id, scenario_items)

    assert pinned.ok, pinned.error
    assert pinned.value.source.pinnedVersion == "1.0"
    assert engine.run_health_checks(scenario_items, scenario_edges) == []
    report = engine.baseline_all_links(scenario_items).value
    assert report.failed == 0


def test_missing_item_is_dangling_not_stale(engine, scenario_items):
    created = link(engine, "T1", "R1", "verifies")
    engine.pin_link(created.id, scenario_items)
    remaining = [item for item in scenario_items if item["id"] != "R1"]

    assert engine.get_link_statuses(remaining)[created.id] == LinkStatus.PROPOSED


# ============================================================================
# Impact analysis
# ============================================================================

@pytest.fixture
def chain(engine):
    """R2 derives R1, R3 derives R2."""
    return [
        link(engine, "R2", "R1", "derives"),
        link(engine, "R3", "R2", "derives"),
    ]


def test_impact_downstream_is_transitive(engine, chain, chain_items):
    analysis = engine.get_impact_analysis("R1", chain_items, "2.0").unwrap()

    assert analysis.downstream == ["R2", "R3"]
    assert analysis.upstream == []
    assert analysis.currentVersion == "1.0"
    assert analysis.proposedVersion == "2.0"
    assert analysis.affectedLinks == []


def test_impact_of_leaf(engine, chain, chain_items):
    analysis = engine.get_impact_analysis("R3", chain_items).unwrap()

    assert analysis.downstream == []


def test_impact_upstream_follows_verifies(engine, scenario_items):
    link(engine, "T1", "R1", "verifies")

    test_case = engine.get_impact_analysis("T1", scenario_items).unwrap()
    requirement = engine.get_impact_analysis("R1", scenario_items).unwrap()

    assert test_case.upstream == ["R1"]
    assert test_case.downstream == []
    assert requirement.upstream == []
    assert requirement.downstream == []


def test_impact_flags_pins_that_would_go_stale(engine, chain, chain_items):
    direct, indirect = chain
    engine.baseline_all_links(chain_items)

    analysis = engine.get_impact_analysis("R1", chain_items, "2.0").unwrap()

    affected = {entry.linkId: entry for entry in analysis.affectedLinks}
    assert set(affected) == {direct.id, indirect.id}
    assert affected[direct.id].pinnedVersion == "1.0"
    assert affected[direct.id].wouldBecomeStale is True
    assert affected[direct.id].alreadyStale is False
    assert affected[indirect.id].pinnedVersion is None
    assert affected[indirect.id].wouldBecomeStale is False


def test_impact_same_version_keeps_pins(engine, chain, chain_items):
    engine.baseline_all_links(chain_items)

    analysis = engine.get_impact_analysis("R1", chain_items, "1.0").unwrap()

    assert not any(entry.wouldBecomeStale for entry in analysis.affectedLinks)


def test_impact_reports_already_stale_pins(engine, chain, chain_items):
    direct, _ = chain
    engine.pin_link(direct.id, chain_items)
    bump(chain_items, "R1", "1.1")

    analysis = engine.get_impact_analysis("R1", chain_items, "1.2").unwrap()

    assert analysis.affectedLinks[0].alreadyStale is True


def test_impact_flags_version_regression(engine, chain_items):
    bump(chain_items, "R1", "1.9")

    backwards = engine.get_impact_analysis("R1", chain_items, "1.8").unwrap()
    forwards = engine.get_impact_analysis("R1", chain_items, "1.10").unwrap()

    assert backwards.versionRegression is True
    assert forwards.versionRegression is False


def test_impact_of_unknown_item(engine, chain_items):
    result = engine.get_impact_analysis("R9", chain_items, "2.0")

    assert not result.ok
    assert result.error.kind == ErrorKind.ITEM_NOT_FOUND


def test_impact_raises_for_unknown_item_at_analyzer_level(chain_items):
    views = GraphViews(ItemIndex.of(chain_items))

    with pytest.raises(ItemNotFoundError):
        health.get_impact_analysis(views, "R9")


def test_impact_terminates_on_cycles(engine):
    items = [{"id": "A", "itemType": "requirement"}, {"id": "B", "itemType": "requirement"}]
    link(engine, "A", "B", "derives")
    link(engine, "B", "A", "derives")

    analysis = engine.get_impact_analysis("A", items).unwrap()

    assert analysis.downstream == ["B"]
