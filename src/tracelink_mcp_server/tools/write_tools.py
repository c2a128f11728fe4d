"""Traceability MCP Server - Write Operations Tools

This module contains the link mutation MCP tools:
- Create, edit and delete links
- Lifecycle status changes
- Pin, unpin and baseline
- Restore and export of the saved link list

Every tool returns a serialized Result: {"ok": bool, "value": ..., "error": ...}.
"""
from typing import Optional, Dict, Any, List
import logging

from mcp.server.fastmcp import Context

logger = logging.getLogger(__name__)


def _dump(result) -> Dict[str, Any]:
    return result.model_dump(mode="json")


async def trace_add_link(
    ctx: Context,
    source_item_id: str,
    target_item_id: str,
    link_type: str,
    author: Optional[str] = None,
    notes: str = ""
) -> Dict[str, Any]:
    """Create a new floating, 'proposed' requirement link.

    Args:
        ctx: MCP context with traceability engine
        source_item_id: Source item ID
        target_item_id: Target item ID
        link_type: One of satisfies, verifies, derives, refines, conflicts
        author: Display name of the creator (default: configured default author)
        notes: Free-form notes

    Returns:
        Result with the created link, or an InvalidLink failure for a
        self-link or duplicate (type, source, target)
    """
    engine = ctx.request_context.lifespan_context["engine"]
    if author is None:
        settings = ctx.request_context.lifespan_context.get("settings")
        author = settings.default_author if settings is not None else "unknown"

    logger.info(f"Adding link: {source_item_id} --{link_type}--> {target_item_id}")
    result = engine.add_link(source_item_id, target_item_id, link_type, author=author, notes=notes)
    return _dump(result)


async def trace_remove_link(ctx: Context, link_id: str) -> Dict[str, Any]:
    """Delete a link. Deleting an unknown link succeeds.

    Args:
        ctx: MCP context with traceability engine
        link_id: Link ID to delete

    Returns:
        Successful Result
    """
    engine = ctx.request_context.lifespan_context["engine"]
    return _dump(engine.remove_link(link_id))


async def trace_update_link(
    ctx: Context,
    link_id: str,
    fields: Dict[str, Any]
) -> Dict[str, Any]:
    """Edit a link's notes and/or type.

    Args:
        ctx: MCP context with traceability engine
        link_id: Link ID to edit
        fields: {"notes": str} and/or {"type": str}; no other keys

    Returns:
        Result with the updated link; LinkNotFound or InvalidLink failure

    Raises:
        ValueError: If fields is empty or names a non-editable field
    """
    logger.info(f"Updating link: link_id={link_id}, fields={list(fields.keys()) if fields else []}")
    engine = ctx.request_context.lifespan_context["engine"]
    return _dump(engine.update_link(link_id, fields or {}))


async def trace_update_link_status(
    ctx: Context,
    link_id: str,
    status: str,
    actor: Optional[str] = None
) -> Dict[str, Any]:
    """Move a link along proposed -> agreed -> implemented -> verified.

    Args:
        ctx: MCP context with traceability engine
        link_id: Link ID
        status: Requested status; 'proposed' resets from any status
        actor: Display name recorded when the link reaches 'verified'

    Returns:
        Result with the updated link; LinkNotFound or InvalidTransition failure
    """
    engine = ctx.request_context.lifespan_context["engine"]
    return _dump(engine.update_link_status(link_id, status, actor=actor))


async def trace_pin_link(
    ctx: Context,
    link_id: str,
    items: List[Dict[str, Any]]
) -> Dict[str, Any]:
    """Pin both endpoints of a link to their items' current versions.

    Args:
        ctx: MCP context with traceability engine
        link_id: Link ID
        items: Current canvas items ({id, itemType, version, ...})

    Returns:
        Result with the pinned link; LinkNotFound or ItemNotFound failure
    """
    engine = ctx.request_context.lifespan_context["engine"]
    return _dump(engine.pin_link(link_id, items))


async def trace_unpin_link(ctx: Context, link_id: str) -> Dict[str, Any]:
    """Make both endpoints of a link floating again.

    Args:
        ctx: MCP context with traceability engine
        link_id: Link ID

    Returns:
        Result with the unpinned link; LinkNotFound failure
    """
    engine = ctx.request_context.lifespan_context["engine"]
    return _dump(engine.unpin_link(link_id))


async def trace_baseline_all_links(
    ctx: Context,
    items: List[Dict[str, Any]]
) -> Dict[str, Any]:
    """Pin every currently unpinned link (baseline).

    Links whose endpoint items are missing stay floating and are reported
    individually; the rest are pinned.

    Args:
        ctx: MCP context with traceability engine
        items: Current canvas items

    Returns:
        Result whose value has the structure:
        {
            "total": Number of unpinned links processed,
            "succeeded": Number pinned,
            "failed": Number left floating,
            "outcomes": [{"index", "linkId", "ok", "error"}, ...]
        }
    """
    logger.info(f"Baselining links against {len(items) if items else 0} items")
    engine = ctx.request_context.lifespan_context["engine"]
    result = engine.baseline_all_links(items)

    report = result.value
    if report.failed:
        logger.warning(f"Baseline left {report.failed}/{report.total} links floating")
    return _dump(result)


async def trace_load_links(
    ctx: Context,
    links: List[Dict[str, Any]]
) -> Dict[str, Any]:
    """Replace the link set with a previously exported link list.

    Records are restored as saved; only records that can never be valid
    are rejected and listed in the outcomes.

    Args:
        ctx: MCP context with traceability engine
        links: Saved link records (as returned by trace_export_links)

    Returns:
        Result with a per-record batch report
    """
    engine = ctx.request_context.lifespan_context["engine"]
    return _dump(engine.load_links(links or []))


async def trace_export_links(ctx: Context) -> List[Dict[str, Any]]:
    """Export the link set as plain records for the host to save.

    Args:
        ctx: MCP context with traceability engine

    Returns:
        List of link records
    """
    engine = ctx.request_context.lifespan_context["engine"]
    return engine.export_links()
