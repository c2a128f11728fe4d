"""Traceability MCP Server - Read Operations Tools

This module contains the read-only MCP tools over the traceability engine:
- Link lookups per item
- Health checks (orphans, cycles, coverage, stale pins)
- Version-change impact analysis

Items and edges are passed on every call; malformed records are skipped
rather than failing the query.
"""
from typing import Optional, Dict, Any, List
import logging

from mcp.server.fastmcp import Context

from ..models.health import Severity
from ..models.link import LINK_TYPE_INFO

logger = logging.getLogger(__name__)

LINK_DIRECTIONS = ("both", "incoming", "outgoing")


# ============================================================================
# Link lookups
# ============================================================================

async def trace_get_links_for_node(
    ctx: Context,
    item_id: str,
    direction: str = "both",
    items: Optional[List[Dict[str, Any]]] = None
) -> List[Dict[str, Any]]:
    """Get the requirement links touching an item.

    Args:
        ctx: MCP context with traceability engine
        item_id: Item ID
        direction: 'both' (default), 'incoming' (item is target) or
            'outgoing' (item is source)
        items: Current canvas items; when given, each link also carries
            'effectiveStatus' ('broken' while a pin is stale)

    Returns:
        List of links; empty for unknown or unlinked items

    Raises:
        ValueError: If direction is not one of both/incoming/outgoing
    """
    if direction not in LINK_DIRECTIONS:
        raise ValueError(f"Invalid direction '{direction}', must be one of {LINK_DIRECTIONS}")

    logger.info(f"Getting links for item: item_id={item_id}, direction={direction}")
    engine = ctx.request_context.lifespan_context["engine"]

    if direction == "incoming":
        links = engine.get_incoming_links(item_id)
    elif direction == "outgoing":
        links = engine.get_outgoing_links(item_id)
    else:
        links = engine.get_links_for_node(item_id)

    dumped = [link.model_dump(mode="json") for link in links]
    if items is not None:
        statuses = engine.get_link_statuses(items)
        for record in dumped:
            record["effectiveStatus"] = statuses[record["id"]].value
    return dumped


async def trace_get_link_statuses(
    ctx: Context,
    items: List[Dict[str, Any]]
) -> Dict[str, str]:
    """Get the effective status of every link.

    A pinned link whose recorded version no longer matches its item is
    reported as 'broken' regardless of its stored lifecycle status.

    Args:
        ctx: MCP context with traceability engine
        items: Current canvas items

    Returns:
        Mapping of link ID to status
    """
    engine = ctx.request_context.lifespan_context["engine"]
    statuses = engine.get_link_statuses(items)
    return {link_id: status.value for link_id, status in statuses.items()}


async def trace_get_link_types(ctx: Context) -> List[Dict[str, Any]]:
    """Get the available link types with labels and descriptions.

    Args:
        ctx: MCP context

    Returns:
        List of link type definitions
    """
    return [info.model_dump(mode="json") for info in LINK_TYPE_INFO.values()]


# ============================================================================
# Health checks
# ============================================================================

async def trace_run_health_checks(
    ctx: Context,
    items: List[Dict[str, Any]],
    edges: Optional[List[Dict[str, Any]]] = None
) -> Dict[str, Any]:
    """Run every health check and return one unified issue list.

    Args:
        ctx: MCP context with traceability engine
        items: Current canvas items
        edges: Current structural edges ({source, target, relationType})

    Returns:
        Dictionary with issues and a severity summary:
        {
            "issues": [{"severity", "type", "message", "relatedItemIds", "relatedLinkId", "details"}, ...],
            "summary": {"critical": int, "warning": int, "total": int}
        }
    """
    logger.info(f"Running health checks: items={len(items) if items else 0}, edges={len(edges) if edges else 0}")
    engine = ctx.request_context.lifespan_context["engine"]

    issues = engine.run_health_checks(items, edges)
    critical = sum(1 for issue in issues if issue.severity == Severity.CRITICAL)
    return {
        "issues": [issue.model_dump(mode="json") for issue in issues],
        "summary": {
            "critical": critical,
            "warning": len(issues) - critical,
            "total": len(issues)
        }
    }


async def trace_find_orphans(
    ctx: Context,
    items: List[Dict[str, Any]],
    edges: Optional[List[Dict[str, Any]]] = None
) -> List[str]:
    """Find items with no structural edges and no requirement links.

    Args:
        ctx: MCP context with traceability engine
        items: Current canvas items
        edges: Current structural edges

    Returns:
        Orphan item IDs in input order
    """
    engine = ctx.request_context.lifespan_context["engine"]
    return engine.find_orphans(items, edges)


async def trace_find_circular_deps(ctx: Context) -> List[List[str]]:
    """Find cycles among satisfies/derives/refines/verifies links.

    Args:
        ctx: MCP context with traceability engine

    Returns:
        List of cycles, each starting and ending with the same item ID
    """
    engine = ctx.request_context.lifespan_context["engine"]
    return engine.find_circular_deps()


async def trace_find_uncovered_requirements(
    ctx: Context,
    items: List[Dict[str, Any]]
) -> List[str]:
    """Find requirements without a verifies/satisfies link from a testcase, function, subsystem or system.

    Args:
        ctx: MCP context with traceability engine
        items: Current canvas items

    Returns:
        Uncovered requirement item IDs in input order
    """
    engine = ctx.request_context.lifespan_context["engine"]
    return engine.find_uncovered_requirements(items)


# ============================================================================
# Impact analysis
# ============================================================================

async def trace_get_impact_analysis(
    ctx: Context,
    item_id: str,
    items: List[Dict[str, Any]],
    proposed_new_version: Optional[str] = None
) -> Dict[str, Any]:
    """Analyze what a version change of an item would affect.

    Args:
        ctx: MCP context with traceability engine
        item_id: Item whose version would change
        items: Current canvas items
        proposed_new_version: Hypothetical new version (optional)

    Returns:
        Result whose value has the structure:
        {
            "itemId", "currentVersion", "proposedVersion", "versionRegression",
            "downstream": [item IDs], "upstream": [item IDs],
            "affectedLinks": [{"linkId", ..., "wouldBecomeStale"}, ...]
        }
        or an ItemNotFound failure
    """
    logger.info(f"Impact analysis: item_id={item_id}, proposed_version={proposed_new_version}")
    engine = ctx.request_context.lifespan_context["engine"]
    result = engine.get_impact_analysis(item_id, items, proposed_new_version)
    return result.model_dump(mode="json")
