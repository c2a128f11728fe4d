import json
import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from mcp.server.fastmcp import FastMCP, Context

from .config import ServerSettings
from .engine import TraceabilityEngine
from .tools import read_tools, write_tools

settings = ServerSettings.from_env()

# Configure basic logging FIRST
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - SERVER - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def restore_links(engine: TraceabilityEngine, links_file) -> None:
    """Load a saved link list into the engine.

    The file holds a JSON array of link records, or an object with a
    "links" array (a host project file).
    """
    logger.info(f"Restoring links from {links_file}")
    with open(links_file, encoding="utf-8") as f:
        data = json.load(f)

    records = data.get("links", []) if isinstance(data, dict) else data
    report = engine.load_links(records).value
    logger.info(f"Restored {report.succeeded}/{report.total} links from {links_file}")
    if report.failed:
        logger.warning(f"{report.failed} saved link record(s) could not be restored")


@asynccontextmanager
async def trace_lifespan(server: FastMCP) -> AsyncIterator[dict]:
    """
    Manages the TraceabilityEngine lifecycle, restoring a saved link list
    when TRACELINK_LINKS_FILE is configured.
    """
    engine = TraceabilityEngine()
    try:
        if settings.links_file:
            if not settings.links_file.exists():
                logger.error(f"TRACELINK_LINKS_FILE {settings.links_file} does not exist.")
                raise FileNotFoundError(f"Links file not found: {settings.links_file}")
            restore_links(engine, settings.links_file)
        else:
            logger.info("No links file configured; starting with an empty link set.")

        yield {"engine": engine, "settings": settings}

    except Exception as e:
        logger.error(f"Failed during engine initialization: {e}")
        raise
    finally:
        logger.info("Traceability lifespan context manager exiting.")


# Instantiate the FastMCP server with the lifespan manager
mcp = FastMCP(
    settings.server_name,
    lifespan=trace_lifespan,
)


# ============================================================================
# Link lookups and health checks
# ============================================================================

@mcp.tool()
async def trace_get_links_for_node(
    item_id: str,
    ctx: Context,
    direction: str = "both",
    items: list[dict] | None = None
) -> list[dict]:
    """Get the requirement links touching an item.

    Args:
        item_id: Item ID
        ctx: MCP context
        direction: 'both', 'incoming' or 'outgoing' (default: both)
        items: Current canvas items, to add each link's effectiveStatus

    Returns:
        List of links (empty for unknown or unlinked items)
    """
    return await read_tools.trace_get_links_for_node(ctx, item_id, direction, items)


@mcp.tool()
async def trace_get_link_statuses(items: list[dict], ctx: Context) -> dict:
    """Get the effective status of every link ('broken' when a pin is stale).

    Args:
        items: Current canvas items
        ctx: MCP context

    Returns:
        Mapping of link ID to status
    """
    return await read_tools.trace_get_link_statuses(ctx, items)


@mcp.tool()
async def trace_get_link_types(ctx: Context) -> list[dict]:
    """Get available link types with labels and descriptions.

    Args:
        ctx: MCP context

    Returns:
        List of link type definitions
    """
    return await read_tools.trace_get_link_types(ctx)


@mcp.tool()
async def trace_run_health_checks(items: list[dict], ctx: Context, edges: list[dict] | None = None) -> dict:
    """Run all health checks (stale pins, dangling links, orphans, cycles, coverage).

    Args:
        items: Current canvas items ({id, itemType, version, ...})
        ctx: MCP context
        edges: Current structural edges ({source, target, relationType})

    Returns:
        Issues and a severity summary
    """
    return await read_tools.trace_run_health_checks(ctx, items, edges)


@mcp.tool()
async def trace_find_orphans(items: list[dict], ctx: Context, edges: list[dict] | None = None) -> list[str]:
    """Find items with no structural edges and no requirement links.

    Args:
        items: Current canvas items
        ctx: MCP context
        edges: Current structural edges

    Returns:
        Orphan item IDs
    """
    return await read_tools.trace_find_orphans(ctx, items, edges)


@mcp.tool()
async def trace_find_circular_deps(ctx: Context) -> list[list[str]]:
    """Find circular dependencies among traceability links.

    Args:
        ctx: MCP context

    Returns:
        List of cycles
    """
    return await read_tools.trace_find_circular_deps(ctx)


@mcp.tool()
async def trace_find_uncovered_requirements(items: list[dict], ctx: Context) -> list[str]:
    """Find requirements without verifying or satisfying coverage.

    Args:
        items: Current canvas items
        ctx: MCP context

    Returns:
        Uncovered requirement IDs
    """
    return await read_tools.trace_find_uncovered_requirements(ctx, items)


@mcp.tool()
async def trace_get_impact_analysis(
    item_id: str,
    items: list[dict],
    ctx: Context,
    proposed_new_version: str | None = None
) -> dict:
    """Analyze what a version change of an item would affect.

    Args:
        item_id: Item whose version would change
        items: Current canvas items
        ctx: MCP context
        proposed_new_version: Hypothetical new version

    Returns:
        Impact analysis result
    """
    return await read_tools.trace_get_impact_analysis(ctx, item_id, items, proposed_new_version)


# ============================================================================
# Link mutations
# ============================================================================

@mcp.tool()
async def trace_add_link(
    source_item_id: str,
    target_item_id: str,
    link_type: str,
    ctx: Context,
    author: str | None = None,
    notes: str = ""
) -> dict:
    """Create a requirement link (starts 'proposed' and floating).

    Args:
        source_item_id: Source item ID
        target_item_id: Target item ID
        link_type: satisfies, verifies, derives, refines or conflicts
        ctx: MCP context
        author: Creator display name
        notes: Free-form notes

    Returns:
        Result with the created link
    """
    return await write_tools.trace_add_link(ctx, source_item_id, target_item_id, link_type, author, notes)


@mcp.tool()
async def trace_remove_link(link_id: str, ctx: Context) -> dict:
    """Delete a requirement link.

    Args:
        link_id: Link ID
        ctx: MCP context

    Returns:
        Result (always successful)
    """
    return await write_tools.trace_remove_link(ctx, link_id)


@mcp.tool()
async def trace_update_link(link_id: str, fields: dict, ctx: Context) -> dict:
    """Edit a link's notes and/or type.

    Args:
        link_id: Link ID
        fields: {"notes": ..., "type": ...}
        ctx: MCP context

    Returns:
        Result with the updated link
    """
    return await write_tools.trace_update_link(ctx, link_id, fields)


@mcp.tool()
async def trace_update_link_status(link_id: str, status: str, ctx: Context, actor: str | None = None) -> dict:
    """Change a link's lifecycle status.

    Args:
        link_id: Link ID
        status: proposed, agreed, implemented or verified
        ctx: MCP context
        actor: Who made the change

    Returns:
        Result with the updated link
    """
    return await write_tools.trace_update_link_status(ctx, link_id, status, actor)


@mcp.tool()
async def trace_pin_link(link_id: str, items: list[dict], ctx: Context) -> dict:
    """Pin a link to its items' current versions.

    Args:
        link_id: Link ID
        items: Current canvas items
        ctx: MCP context

    Returns:
        Result with the pinned link
    """
    return await write_tools.trace_pin_link(ctx, link_id, items)


@mcp.tool()
async def trace_unpin_link(link_id: str, ctx: Context) -> dict:
    """Unpin a link so both ends track the live versions.

    Args:
        link_id: Link ID
        ctx: MCP context

    Returns:
        Result with the unpinned link
    """
    return await write_tools.trace_unpin_link(ctx, link_id)


@mcp.tool()
async def trace_baseline_all_links(items: list[dict], ctx: Context) -> dict:
    """Pin every floating link to the current item versions.

    Args:
        items: Current canvas items
        ctx: MCP context

    Returns:
        Result with per-link outcomes
    """
    return await write_tools.trace_baseline_all_links(ctx, items)


@mcp.tool()
async def trace_load_links(links: list[dict], ctx: Context) -> dict:
    """Restore a saved link list, replacing the current one.

    Args:
        links: Saved link records
        ctx: MCP context

    Returns:
        Result with per-record outcomes
    """
    return await write_tools.trace_load_links(ctx, links)


@mcp.tool()
async def trace_export_links(ctx: Context) -> list[dict]:
    """Export the link list for saving.

    Args:
        ctx: MCP context

    Returns:
        List of link records
    """
    return await write_tools.trace_export_links(ctx)


def main():
    """Entry point for the tracelink-mcp-server script."""
    logger.info("Starting traceability MCP server...")

    if settings.links_file and not settings.links_file.exists():
        logger.error(f"TRACELINK_LINKS_FILE {settings.links_file} does not exist.")
        print(f"\nERROR: TRACELINK_LINKS_FILE points to a missing file: {settings.links_file}")
        print("Unset TRACELINK_LINKS_FILE to start with an empty link set.")
        exit(1)

    mcp.run()

if __name__ == "__main__":
    # This allows running the server directly with `python -m tracelink_mcp_server.server`
    main()
