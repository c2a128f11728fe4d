"""Health Analyzer

Consistency checks over one GraphViews snapshot:
- Orphan items (no structural edge, no link)
- Circular dependencies in the traceability digraph
- Requirements without verifying/satisfying coverage
- Stale pins and links to missing items
- Version-change impact analysis

All functions are pure reads and never raise on odd input; empty or
malformed collections simply produce empty results.
"""

import logging
from collections import deque
from typing import Dict, List, Optional, Set

from .graph import GraphViews
from .models.health import (
    AffectedLink,
    HealthIssue,
    ImpactAnalysis,
    IssueType,
    Severity,
)
from .models.item import ItemIndex, ItemType
from .models.link import LinkStatus, LinkType, RequirementLink
from .models.version import is_regression
from .utils.errors import ItemNotFoundError

logger = logging.getLogger(__name__)

# Inbound link types that count as coverage for a requirement
COVERAGE_LINK_TYPES = frozenset({LinkType.VERIFIES, LinkType.SATISFIES})

# Item kinds whose verifies/satisfies links cover a requirement
COVERING_ITEM_TYPES = frozenset({
    ItemType.TESTCASE.value,
    ItemType.FUNCTION.value,
    ItemType.SUBSYSTEM.value,
    ItemType.SYSTEM.value,
})

# Links whose source consumes (depends on) its target
DOWNSTREAM_LINK_TYPES = frozenset({LinkType.DERIVES, LinkType.SATISFIES, LinkType.REFINES})

UPSTREAM_LINK_TYPES = frozenset({LinkType.VERIFIES})


def stale_endpoints(link: RequirementLink, index: ItemIndex) -> List[Dict[str, str]]:
    """Pinned endpoints whose recorded version differs from the live item.

    Endpoints whose item is missing are not stale; they are dangling.
    """
    if not link.pinned:
        return []
    stale = []
    for side, endpoint in link.endpoints():
        live_version = index.version_of(endpoint.itemId)
        if live_version is None:
            continue
        if endpoint.pinnedVersion != live_version:
            stale.append({
                "endpoint": side,
                "itemId": endpoint.itemId,
                "pinnedVersion": endpoint.pinnedVersion,
                "liveVersion": live_version,
            })
    return stale


def effective_status(link: RequirementLink, index: ItemIndex) -> LinkStatus:
    """Stored lifecycle status, overlaid with 'broken' while a pin is stale."""
    if stale_endpoints(link, index):
        return LinkStatus.BROKEN
    return link.status


def find_orphans(views: GraphViews) -> List[str]:
    """Items with no structural edge and no requirement link, in input order.

    Floating connectors are UI-only and never reported.
    """
    orphans = []
    for item in views.index.ordered():
        if item.isFloatingConnector:
            continue
        if views.structural_degree(item.id) == 0 and views.link_count(item.id) == 0:
            orphans.append(item.id)
    logger.debug(f"Found {len(orphans)} orphan item(s)")
    return orphans


def find_circular_deps(views: GraphViews) -> List[List[str]]:
    """Cycles in the traceability digraph.

    Iterative depth-first search with an explicit stack and an on-stack
    set. Roots and neighbours are visited in ascending item ID order so the
    reported cycles are identical on every run. Each back-edge yields one
    cycle: the stack path from the revisited node to the current node,
    closed with the revisited node again (e.g. ['A', 'B', 'A']). A node
    already visited, including every node of a reported cycle, never starts
    a fresh search. 'conflicts' links are not part of the digraph.
    """
    cycles: List[List[str]] = []
    visited: Set[str] = set()

    for root in views.digraph_nodes():
        if root in visited:
            continue

        visited.add(root)
        path = [root]
        on_stack = {root}
        stack = [iter(views.successors(root))]

        while stack:
            descended = False
            for neighbour in stack[-1]:
                if neighbour in on_stack:
                    start = path.index(neighbour)
                    cycle = path[start:] + [neighbour]
                    logger.debug(f"Cycle detected: {' -> '.join(cycle)}")
                    cycles.append(cycle)
                elif neighbour not in visited:
                    visited.add(neighbour)
                    on_stack.add(neighbour)
                    path.append(neighbour)
                    stack.append(iter(views.successors(neighbour)))
                    descended = True
                    break
            if not descended:
                stack.pop()
                on_stack.discard(path.pop())

    return cycles


def find_uncovered_requirements(views: GraphViews) -> List[str]:
    """Requirement items with no inbound verifies/satisfies link from a covering item.

    Covering items are testcases, functions, subsystems and systems.
    Links from items missing in the current item set do not count.
    """
    uncovered = []
    for item in views.index.ordered():
        if item.itemType != ItemType.REQUIREMENT.value:
            continue
        covered = False
        for link in views.links_to(item.id, COVERAGE_LINK_TYPES):
            source = views.index.get(link.source.itemId)
            if source is not None and source.itemType in COVERING_ITEM_TYPES:
                covered = True
                break
        if not covered:
            uncovered.append(item.id)
    return uncovered


def find_stale_pins(views: GraphViews) -> List[HealthIssue]:
    """One critical 'stale-pin' issue per pinned endpoint that drifted."""
    issues = []
    for link in views.links:
        for stale in stale_endpoints(link, views.index):
            issues.append(HealthIssue(
                severity=Severity.CRITICAL,
                type=IssueType.STALE_PIN,
                message=(
                    f"Link {link.id}: {stale['endpoint']} {stale['itemId']} pinned to "
                    f"v{stale['pinnedVersion']}, current is v{stale['liveVersion']}"
                ),
                relatedItemIds=[stale["itemId"]],
                relatedLinkId=link.id,
                details=stale,
            ))
    return issues


def find_dangling_links(views: GraphViews) -> List[HealthIssue]:
    """One critical 'dangling-link' issue per endpoint whose item is missing.

    Skipped entirely when no items were supplied: without an item set
    nothing can be judged missing.
    """
    if not views.index:
        return []
    issues = []
    for link in views.links:
        for side, endpoint in link.endpoints():
            if endpoint.itemId in views.index:
                continue
            issues.append(HealthIssue(
                severity=Severity.CRITICAL,
                type=IssueType.DANGLING_LINK,
                message=f"Link {link.id}: {side} item {endpoint.itemId} no longer exists",
                relatedItemIds=[endpoint.itemId],
                relatedLinkId=link.id,
                details={"endpoint": side, "itemId": endpoint.itemId},
            ))
    return issues


def run_health_checks(views: GraphViews) -> List[HealthIssue]:
    """Unified issue list: critical link problems first, then warnings."""
    issues = find_stale_pins(views)
    issues.extend(find_dangling_links(views))

    for item_id in find_orphans(views):
        issues.append(HealthIssue(
            severity=Severity.WARNING,
            type=IssueType.ORPHAN,
            message=f"Item {item_id} has no structural connections or requirement links",
            relatedItemIds=[item_id],
        ))

    for cycle in find_circular_deps(views):
        issues.append(HealthIssue(
            severity=Severity.WARNING,
            type=IssueType.CIRCULAR_DEPENDENCY,
            message=f"Circular dependency: {' -> '.join(cycle)}",
            relatedItemIds=cycle[:-1],
            details={"cycle": cycle},
        ))

    for item_id in find_uncovered_requirements(views):
        issues.append(HealthIssue(
            severity=Severity.WARNING,
            type=IssueType.UNCOVERED_REQUIREMENT,
            message=f"Requirement {item_id} has no verifying or satisfying link",
            relatedItemIds=[item_id],
        ))

    logger.info(
        f"Health check: {sum(1 for i in issues if i.severity == Severity.CRITICAL)} critical, "
        f"{sum(1 for i in issues if i.severity == Severity.WARNING)} warning(s)"
    )
    return issues


def _affected_link(
    link: RequirementLink,
    item_id: str,
    proposed_version: Optional[str],
    index: ItemIndex
) -> AffectedLink:
    pinned_version = None
    would_become_stale = False
    for _, endpoint in link.endpoints():
        if endpoint.itemId == item_id:
            pinned_version = endpoint.pinnedVersion
            # Same predicate as the stale-pin check, against the hypothetical version
            would_become_stale = proposed_version is None or pinned_version != proposed_version
    return AffectedLink(
        linkId=link.id,
        type=link.type,
        sourceItemId=link.source.itemId,
        targetItemId=link.target.itemId,
        pinnedVersion=pinned_version,
        alreadyStale=bool(stale_endpoints(link, index)),
        wouldBecomeStale=would_become_stale,
    )


def get_impact_analysis(
    views: GraphViews,
    item_id: str,
    proposed_new_version: Optional[str] = None
) -> ImpactAnalysis:
    """Trace what a version change of ``item_id`` would touch.

    Downstream: items depending on ``item_id`` through derives, satisfies
    or refines (the sources of links pointing at it), transitively.
    Upstream: items ``item_id`` verifies, following verifies links from
    source to target, transitively. Both are breadth-first with a visited
    set, so cycles terminate.

    Raises:
        ItemNotFoundError: If ``item_id`` is not in the item set
    """
    item = views.index.get(item_id)
    if item is None:
        raise ItemNotFoundError(
            f"Item {item_id} not found",
            details={"item_id": item_id}
        )

    downstream: List[str] = []
    affected: List[AffectedLink] = []
    visited = {item_id}
    queue = deque([item_id])
    while queue:
        current = queue.popleft()
        for link in views.links_to(current, DOWNSTREAM_LINK_TYPES):
            if link.pinned:
                affected.append(_affected_link(link, item_id, proposed_new_version, views.index))
            dependant = link.source.itemId
            if dependant not in visited:
                visited.add(dependant)
                downstream.append(dependant)
                queue.append(dependant)

    upstream: List[str] = []
    visited = {item_id}
    queue = deque([item_id])
    while queue:
        current = queue.popleft()
        for link in views.links_from(current, UPSTREAM_LINK_TYPES):
            dependency = link.target.itemId
            if dependency not in visited:
                visited.add(dependency)
                upstream.append(dependency)
                queue.append(dependency)

    regression = False
    if proposed_new_version is not None:
        regression = is_regression(item.version, proposed_new_version)
        if regression:
            logger.warning(
                f"Proposed version {proposed_new_version} for {item_id} orders before current {item.version}"
            )

    logger.debug(
        f"Impact of {item_id}: {len(downstream)} downstream, {len(upstream)} upstream, "
        f"{len(affected)} pinned link(s)"
    )
    return ImpactAnalysis(
        itemId=item_id,
        currentVersion=item.version,
        proposedVersion=proposed_new_version,
        versionRegression=regression,
        downstream=downstream,
        upstream=upstream,
        affectedLinks=affected,
    )
