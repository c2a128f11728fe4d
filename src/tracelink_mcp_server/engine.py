"""Traceability Engine Query Facade

Entry points used by the panel layer. Every query takes the host's
current items (and edges where relevant), builds fresh graph views and
recomputes; link mutations are forwarded to the owned LinkStore.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from . import health
from .graph import GraphViews
from .models.health import HealthIssue
from .models.item import ItemIndex
from .models.link import LinkCreate, LinkStatus, LinkType, LinkUpdate, RequirementLink
from .store import LinkStore
from .utils.errors import ItemNotFoundError, Result
from .utils.validation import coerce_edges

logger = logging.getLogger(__name__)


class TraceabilityEngine:
    """Requirement traceability graph and health engine.

    Items and structural edges belong to the host and are passed in on
    every call, as models or raw records; malformed records are skipped.
    The only state held here is the link set.
    """

    def __init__(self, store: Optional[LinkStore] = None):
        self.store = store or LinkStore()

    def _views(self, items: Any = None, edges: Any = None) -> GraphViews:
        return GraphViews(ItemIndex.of(items), coerce_edges(edges), self.store.links())

    # Link mutations

    def add_link(
        self,
        source_item_id: str,
        target_item_id: str,
        link_type: Union[LinkType, str],
        author: str = "unknown",
        notes: str = ""
    ) -> Result:
        data = LinkCreate(
            sourceItemId=source_item_id,
            targetItemId=target_item_id,
            type=link_type,
            author=author,
            notes=notes,
        )
        return self.store.add_link(data)

    def remove_link(self, link_id: str) -> Result:
        return self.store.remove_link(link_id)

    def update_link(self, link_id: str, fields: Union[LinkUpdate, Dict[str, Any]]) -> Result:
        return self.store.update_link(link_id, fields)

    def update_link_status(
        self,
        link_id: str,
        status: Union[LinkStatus, str],
        actor: Optional[str] = None
    ) -> Result:
        return self.store.update_link_status(link_id, status, actor=actor)

    def pin_link(self, link_id: str, items: Any) -> Result:
        return self.store.pin_link(link_id, items)

    def unpin_link(self, link_id: str) -> Result:
        return self.store.unpin_link(link_id)

    def baseline_all_links(self, items: Any) -> Result:
        return self.store.baseline_all_links(items)

    def load_links(self, records: Iterable[Any]) -> Result:
        return self.store.load_links(records)

    def export_links(self) -> List[Dict[str, Any]]:
        return self.store.export_links()

    # Queries

    def links(self) -> List[RequirementLink]:
        return self.store.links()

    def get_links_for_node(self, item_id: str) -> List[RequirementLink]:
        """Links with ``item_id`` at either end; [] for unknown or unlinked items."""
        return self._views().links_for(item_id)

    def get_incoming_links(self, item_id: str) -> List[RequirementLink]:
        return self._views().incoming_links(item_id)

    def get_outgoing_links(self, item_id: str) -> List[RequirementLink]:
        return self._views().outgoing_links(item_id)

    def run_health_checks(self, items: Any, edges: Any = None) -> List[HealthIssue]:
        return health.run_health_checks(self._views(items, edges))

    def find_orphans(self, items: Any, edges: Any = None) -> List[str]:
        return health.find_orphans(self._views(items, edges))

    def find_circular_deps(self, items: Any = None, edges: Any = None) -> List[List[str]]:
        return health.find_circular_deps(self._views(items, edges))

    def find_uncovered_requirements(self, items: Any, edges: Any = None) -> List[str]:
        return health.find_uncovered_requirements(self._views(items, edges))

    def get_impact_analysis(
        self,
        item_id: str,
        items: Any,
        proposed_new_version: Optional[str] = None,
        edges: Any = None
    ) -> Result:
        """Impact of a version change of ``item_id``.

        Returns:
            Result with an ImpactAnalysis, or ItemNotFound failure
        """
        try:
            analysis = health.get_impact_analysis(
                self._views(items, edges), item_id, proposed_new_version
            )
        except ItemNotFoundError as e:
            logger.warning(f"Impact analysis skipped: {e}")
            return Result.failure(e)
        return Result.success(analysis)

    def get_link_statuses(self, items: Any) -> Dict[str, LinkStatus]:
        """Effective status of every link, with the 'broken' overlay applied."""
        index = ItemIndex.of(items)
        return {link.id: health.effective_status(link, index) for link in self.store.links()}
