"""Requirement Link Store

Single source of truth for the requirement link set:
- Create, edit and delete links
- Lifecycle status transitions
- Pin/unpin and bulk baseline
- Restore from and export to plain host records

Every mutation builds a new link mapping and swaps it in with one
assignment, so readers always see a whole snapshot, never a half-applied
batch.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from .models.health import BatchOutcome, BatchReport
from .models.item import ItemIndex
from .models.link import (
    LinkCreate,
    LinkEndpoint,
    LinkStatus,
    LinkUpdate,
    RequirementLink,
)
from .utils.errors import (
    InvalidLinkError,
    ItemNotFoundError,
    LinkNotFoundError,
    Result,
    TraceError,
)
from .utils.validation import check_transition, find_duplicate

logger = logging.getLogger(__name__)


def _new_link_id() -> str:
    return f"rl-{uuid.uuid4().hex[:12]}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LinkStore:
    """Owns the RequirementLink records and their lifecycle.

    Mutation methods return a ``Result`` for expected failures (unknown
    link, duplicate pair, illegal transition, missing item). Malformed
    input shapes raise ``ValueError`` / pydantic ``ValidationError``.
    """

    def __init__(
        self,
        links: Optional[Iterable[RequirementLink]] = None,
        id_factory: Optional[Callable[[], str]] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """Initialize link store.

        Args:
            links: Initial links (already validated models)
            id_factory: Link ID generator (default: 'rl-' + random hex)
            clock: Timestamp source (default: current UTC time)
        """
        self._id_factory = id_factory or _new_link_id
        self._clock = clock or _utcnow
        self._links: Dict[str, RequirementLink] = {link.id: link for link in (links or [])}

    # Reads

    def links(self) -> List[RequirementLink]:
        """Snapshot of all links in insertion order."""
        return list(self._links.values())

    def get_link(self, link_id: str) -> Optional[RequirementLink]:
        return self._links.get(link_id)

    def __len__(self) -> int:
        return len(self._links)

    def __contains__(self, link_id: object) -> bool:
        return link_id in self._links

    # Internal helpers

    def _require(self, link_id: str) -> RequirementLink:
        link = self._links.get(link_id)
        if link is None:
            raise LinkNotFoundError(f"Link {link_id} not found", details={"link_id": link_id})
        return link

    def _revise(self, link: RequirementLink, **changes: Any) -> RequirementLink:
        """Return a validated copy of ``link`` with ``changes`` applied."""
        data = link.model_dump()
        data.update(changes)
        data["updatedAt"] = self._clock()
        return RequirementLink.model_validate(data)

    def _commit(self, link: RequirementLink) -> None:
        updated = dict(self._links)
        updated[link.id] = link
        self._links = updated

    def _pinned_copy(self, link: RequirementLink, index: ItemIndex) -> RequirementLink:
        source_item = index.get(link.source.itemId)
        target_item = index.get(link.target.itemId)
        missing = [
            endpoint.itemId
            for endpoint, item in ((link.source, source_item), (link.target, target_item))
            if item is None
        ]
        if missing:
            raise ItemNotFoundError(
                f"Cannot pin link {link.id}: item(s) {', '.join(missing)} not found",
                details={"link_id": link.id, "missing_item_ids": missing}
            )
        return self._revise(
            link,
            source=LinkEndpoint(itemId=link.source.itemId, pinnedVersion=source_item.version),
            target=LinkEndpoint(itemId=link.target.itemId, pinnedVersion=target_item.version),
            pinned=True,
        )

    # Mutations

    def add_link(self, data: Union[LinkCreate, Dict[str, Any]]) -> Result:
        """Create a new floating, 'proposed' link.

        Item existence is not checked here: items may load after links, so
        links to unknown items are reported by the health checks instead.

        Args:
            data: Link creation data (LinkCreate or equivalent dict)

        Returns:
            Result with the created RequirementLink, or InvalidLink failure
        """
        if not isinstance(data, LinkCreate):
            data = LinkCreate.model_validate(data)

        logger.info(
            f"Adding link: {data.sourceItemId} --{data.type.value}--> {data.targetItemId} "
            f"(author={data.author})"
        )

        try:
            if data.sourceItemId == data.targetItemId:
                raise InvalidLinkError(
                    f"Item {data.sourceItemId} cannot be linked to itself",
                    details={"item_id": data.sourceItemId}
                )

            duplicate = find_duplicate(
                self._links.values(), data.type, data.sourceItemId, data.targetItemId
            )
            if duplicate is not None:
                raise InvalidLinkError(
                    f"A '{data.type.value}' link from {data.sourceItemId} to {data.targetItemId} already exists",
                    details={"existing_link_id": duplicate.id}
                )
        except InvalidLinkError as e:
            logger.warning(f"Rejected link: {e}")
            return Result.failure(e)

        now = self._clock()
        link = RequirementLink(
            id=self._id_factory(),
            type=data.type,
            source=LinkEndpoint(itemId=data.sourceItemId),
            target=LinkEndpoint(itemId=data.targetItemId),
            status=LinkStatus.PROPOSED,
            pinned=False,
            notes=data.notes,
            author=data.author,
            createdAt=now,
            updatedAt=now,
        )
        self._commit(link)
        logger.info(f"Created link {link.id}")
        return Result.success(link)

    def remove_link(self, link_id: str) -> Result:
        """Delete a link. Removing an unknown link is a successful no-op."""
        if link_id not in self._links:
            logger.debug(f"Remove of unknown link {link_id} ignored")
            return Result.success(None)

        updated = dict(self._links)
        del updated[link_id]
        self._links = updated
        logger.info(f"Removed link {link_id}")
        return Result.success(None)

    def update_link(self, link_id: str, fields: Union[LinkUpdate, Dict[str, Any]]) -> Result:
        """Edit a link's notes and/or type.

        Args:
            link_id: Link to edit
            fields: LinkUpdate or dict with 'notes' and/or 'type' only

        Returns:
            Result with the updated link; LinkNotFound or InvalidLink failure

        Raises:
            ValueError: If no editable field is provided
            pydantic.ValidationError: If fields other than notes/type are given
        """
        if not isinstance(fields, LinkUpdate):
            fields = LinkUpdate.model_validate(fields)
        changes = fields.changes()
        if not changes:
            raise ValueError("At least one of 'notes' or 'type' must be provided for update")

        logger.info(f"Updating link {link_id}: fields={list(changes.keys())}")
        try:
            link = self._require(link_id)
            new_type = changes.get("type", link.type)
            if new_type != link.type:
                duplicate = find_duplicate(
                    self._links.values(), new_type, link.source.itemId, link.target.itemId,
                    exclude_id=link.id
                )
                if duplicate is not None:
                    raise InvalidLinkError(
                        f"A '{new_type.value}' link from {link.source.itemId} to {link.target.itemId} already exists",
                        details={"existing_link_id": duplicate.id, "link_id": link.id}
                    )
        except TraceError as e:
            logger.warning(f"Update of link {link_id} failed: {e}")
            return Result.failure(e)

        updated = self._revise(link, **changes)
        self._commit(updated)
        return Result.success(updated)

    def update_link_status(
        self,
        link_id: str,
        status: Union[LinkStatus, str],
        actor: Optional[str] = None
    ) -> Result:
        """Move a link along its lifecycle.

        Args:
            link_id: Link to transition
            status: Requested status
            actor: Display name recorded as verifier when reaching 'verified'

        Returns:
            Result with the updated link; LinkNotFound or InvalidTransition failure
        """
        status = LinkStatus(status)
        logger.info(f"Updating status of link {link_id} to '{status.value}'")

        try:
            link = self._require(link_id)
            check_transition(link.status, status)
        except TraceError as e:
            logger.warning(f"Status change of link {link_id} rejected: {e}")
            return Result.failure(e)

        if status == link.status:
            return Result.success(link)

        changes: Dict[str, Any] = {"status": status}
        if status == LinkStatus.VERIFIED:
            changes["verifiedAt"] = self._clock()
            changes["verifiedBy"] = actor
        elif status == LinkStatus.PROPOSED:
            changes["verifiedAt"] = None
            changes["verifiedBy"] = None

        updated = self._revise(link, **changes)
        self._commit(updated)
        logger.debug(f"Link {link_id}: {link.status.value} -> {status.value}")
        return Result.success(updated)

    def pin_link(self, link_id: str, items: Any) -> Result:
        """Pin both endpoints of a link to their items' current versions.

        Re-pinning an already pinned link refreshes both versions, which
        clears a stale pin.

        Args:
            link_id: Link to pin
            items: Current items (ItemIndex, Items or raw records)

        Returns:
            Result with the pinned link; LinkNotFound or ItemNotFound failure
        """
        logger.info(f"Pinning link {link_id}")
        index = ItemIndex.of(items)
        try:
            link = self._require(link_id)
            pinned = self._pinned_copy(link, index)
        except TraceError as e:
            logger.warning(f"Pin of link {link_id} failed: {e}")
            return Result.failure(e)

        self._commit(pinned)
        logger.debug(
            f"Link {link_id} pinned at source v{pinned.source.pinnedVersion}, "
            f"target v{pinned.target.pinnedVersion}"
        )
        return Result.success(pinned)

    def unpin_link(self, link_id: str) -> Result:
        """Make both endpoints of a link floating again."""
        logger.info(f"Unpinning link {link_id}")
        try:
            link = self._require(link_id)
        except TraceError as e:
            return Result.failure(e)

        unpinned = self._revise(
            link,
            source=LinkEndpoint(itemId=link.source.itemId),
            target=LinkEndpoint(itemId=link.target.itemId),
            pinned=False,
        )
        self._commit(unpinned)
        return Result.success(unpinned)

    def baseline_all_links(self, items: Any) -> Result:
        """Pin every currently unpinned link.

        A link that cannot be pinned (missing endpoint item) is reported in
        the outcome list and left floating; the others are still pinned.
        All successful pins become visible together.

        Args:
            items: Current items (ItemIndex, Items or raw records)

        Returns:
            Result with a BatchReport of per-link outcomes
        """
        index = ItemIndex.of(items)
        current = self._links
        updated = dict(current)
        outcomes: List[BatchOutcome] = []

        for link in current.values():
            if link.pinned:
                continue
            position = len(outcomes)
            try:
                updated[link.id] = self._pinned_copy(link, index)
                outcomes.append(BatchOutcome(index=position, linkId=link.id, ok=True))
            except ItemNotFoundError as e:
                logger.warning(f"Baseline skipped link {link.id}: {e.message}")
                outcomes.append(BatchOutcome(index=position, linkId=link.id, ok=False, error=e.to_detail()))

        self._links = updated
        report = BatchReport.from_outcomes(outcomes)
        logger.info(f"Baseline complete: {report.succeeded}/{report.total} links pinned")
        return Result.success(report)

    # Persistence boundary

    def load_links(self, records: Iterable[Any]) -> Result:
        """Replace the link set with records restored by the host.

        Records are taken as they were saved: duplicate pairs and links to
        items that no longer exist are accepted. Only records that can never
        be valid (self-link, half-pinned endpoints, malformed shape, repeated
        ID) are rejected and reported.

        Args:
            records: Serialized links (dicts or RequirementLink models)

        Returns:
            Result with a BatchReport of per-record outcomes
        """
        loaded: Dict[str, RequirementLink] = {}
        outcomes: List[BatchOutcome] = []

        for position, record in enumerate(records or []):
            record_id = None
            try:
                if isinstance(record, RequirementLink):
                    link = record
                else:
                    if not isinstance(record, dict):
                        raise InvalidLinkError(
                            f"Link record at position {position} is not an object",
                            details={"index": position}
                        )
                    record = dict(record)
                    record_id = record.get("id")
                    if record.get("status") == LinkStatus.BROKEN.value:
                        # Older saves stored the derived overlay; restart its lifecycle
                        logger.warning(f"Link {record_id} was saved as 'broken'; restoring as 'proposed'")
                        record["status"] = LinkStatus.PROPOSED.value
                    try:
                        link = RequirementLink.model_validate(record)
                    except ValidationError as e:
                        raise InvalidLinkError(
                            f"Link record at position {position} is invalid: {e.error_count()} error(s)",
                            details={"index": position, "link_id": record_id, "errors": [error["msg"] for error in e.errors()]}
                        )
                record_id = link.id
                if link.id in loaded:
                    raise InvalidLinkError(
                        f"Link ID {link.id} appears more than once",
                        details={"index": position, "link_id": link.id}
                    )
                loaded[link.id] = link
                outcomes.append(BatchOutcome(index=position, linkId=link.id, ok=True))
            except InvalidLinkError as e:
                logger.warning(f"Skipping link record {position}: {e.message}")
                outcomes.append(BatchOutcome(index=position, linkId=record_id, ok=False, error=e.to_detail()))

        self._links = loaded
        report = BatchReport.from_outcomes(outcomes)
        logger.info(f"Restored {report.succeeded}/{report.total} links")
        return Result.success(report)

    def export_links(self) -> List[Dict[str, Any]]:
        """Plain JSON-ready records for the host to save alongside its items."""
        return [link.model_dump(mode="json") for link in self._links.values()]
