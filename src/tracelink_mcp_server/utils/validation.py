"""Link and Input Validation Utilities

Checks run before link mutations (duplicate pairs, lifecycle transitions)
and lenient coercion of host-supplied edge collections.
"""
import logging
from collections.abc import Mapping
from typing import Any, Iterable, List, Optional

from pydantic import ValidationError

from ..models.item import StructuralEdge
from ..models.link import LIFECYCLE_ORDER, LinkStatus, LinkType, RequirementLink
from .errors import InvalidTransitionError

logger = logging.getLogger(__name__)


def find_duplicate(
    links: Iterable[RequirementLink],
    link_type: LinkType,
    source_item_id: str,
    target_item_id: str,
    exclude_id: Optional[str] = None
) -> Optional[RequirementLink]:
    """Find an existing link with the same type and direction between two items.

    Args:
        links: Current link set
        link_type: Link type to match
        source_item_id: Source item ID
        target_item_id: Target item ID
        exclude_id: Link ID to ignore (the link being edited)

    Returns:
        The duplicate link, or None
    """
    for link in links:
        if link.id == exclude_id:
            continue
        if (
            link.type == link_type
            and link.source.itemId == source_item_id
            and link.target.itemId == target_item_id
        ):
            logger.debug(f"Duplicate {link_type.value} link found: {link.id}")
            return link
    return None


def check_transition(current: LinkStatus, requested: LinkStatus) -> None:
    """Validate a user-initiated status change.

    Lifecycle moves forward one step at a time
    (proposed -> agreed -> implemented -> verified). Any status may be
    reset to 'proposed'. 'broken' is derived and can never be requested.

    Raises:
        InvalidTransitionError: If the move is not allowed
    """
    details = {"from": current.value, "to": requested.value}

    if requested == LinkStatus.BROKEN:
        raise InvalidTransitionError(
            "Status 'broken' is derived from pinned versions; unpin or re-pin the link instead",
            details=details
        )
    if requested == LinkStatus.PROPOSED or requested == current:
        return

    position = LIFECYCLE_ORDER.index(current)
    if position + 1 < len(LIFECYCLE_ORDER) and LIFECYCLE_ORDER[position + 1] == requested:
        return

    if LIFECYCLE_ORDER.index(requested) < position:
        message = f"Cannot move link back from '{current.value}' to '{requested.value}'; reset to 'proposed' instead"
    else:
        message = f"Cannot skip from '{current.value}' to '{requested.value}'"
    raise InvalidTransitionError(message, details=details)


def coerce_edges(records: Any) -> List[StructuralEdge]:
    """Convert host-supplied edges to StructuralEdge models.

    Malformed records are skipped with a warning; health checks must stay
    runnable whatever state the canvas is in.
    """
    edges: List[StructuralEdge] = []
    if not records:
        return edges
    if isinstance(records, Mapping):
        records = list(records.values())
    try:
        iterator = iter(records)
    except TypeError:
        logger.warning(f"Ignoring non-iterable edge collection of type {type(records).__name__}")
        return edges

    for position, record in enumerate(iterator):
        if isinstance(record, StructuralEdge):
            edges.append(record)
            continue
        try:
            edges.append(StructuralEdge.model_validate(record))
        except ValidationError as e:
            logger.warning(f"Skipping malformed edge at position {position}: {e.error_count()} error(s)")
    return edges
