"""Graph Views

Read-only adjacency structures derived from the current items, structural
edges and links. A GraphViews instance is built for one query and thrown
away; nothing here is cached between calls.
"""

import logging
from collections import defaultdict
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Set

from .models.item import ItemIndex, StructuralEdge
from .models.link import DIRECTED_LINK_TYPES, LinkType, RequirementLink

logger = logging.getLogger(__name__)


def _by_source(link: RequirementLink):
    return (link.source.itemId, link.id)


def _by_target(link: RequirementLink):
    return (link.target.itemId, link.id)


class GraphViews:
    """Indices over one snapshot of items, structural edges and links.

    - Containment forest: parent/children from 'contains'/'provides' edges
    - Traceability digraph: satisfies/derives/refines/verifies, source -> target
    - Conflict adjacency: undirected, from 'conflicts' links
    - Link index: item ID -> links touching it in either position
    """

    def __init__(
        self,
        index: ItemIndex,
        edges: Sequence[StructuralEdge] = (),
        links: Sequence[RequirementLink] = ()
    ):
        self.index = index
        self.edges = list(edges)
        self.links = list(links)

        self._parent: Dict[str, str] = {}
        self._children: Dict[str, List[str]] = defaultdict(list)
        self._structural_degree: Dict[str, int] = defaultdict(int)
        for edge in self.edges:
            self._structural_degree[edge.source] += 1
            self._structural_degree[edge.target] += 1
            if not edge.is_containment:
                continue
            if edge.target in self._parent and self._parent[edge.target] != edge.source:
                logger.debug(
                    f"Item {edge.target} has several containment parents; "
                    f"keeping {self._parent[edge.target]}"
                )
            else:
                self._parent[edge.target] = edge.source
            self._children[edge.source].append(edge.target)

        self._outgoing: Dict[str, List[RequirementLink]] = defaultdict(list)
        self._incoming: Dict[str, List[RequirementLink]] = defaultdict(list)
        self._conflicts: Dict[str, Set[str]] = defaultdict(set)
        self._by_item: Dict[str, List[RequirementLink]] = defaultdict(list)
        for link in self.links:
            source_id = link.source.itemId
            target_id = link.target.itemId
            self._by_item[source_id].append(link)
            self._by_item[target_id].append(link)
            if link.type in DIRECTED_LINK_TYPES:
                self._outgoing[source_id].append(link)
                self._incoming[target_id].append(link)
            else:
                self._conflicts[source_id].add(target_id)
                self._conflicts[target_id].add(source_id)

        for bucket in self._outgoing.values():
            bucket.sort(key=_by_target)
        for bucket in self._incoming.values():
            bucket.sort(key=_by_source)

    # Containment forest

    def parent_of(self, item_id: str) -> Optional[str]:
        return self._parent.get(item_id)

    def children_of(self, item_id: str) -> List[str]:
        return list(self._children.get(item_id, []))

    def structural_degree(self, item_id: str) -> int:
        """Number of structural edges of any relation type touching the item."""
        return self._structural_degree.get(item_id, 0)

    # Traceability digraph

    def digraph_nodes(self) -> List[str]:
        """Every item ID that appears in the digraph, ascending."""
        nodes = set(self._outgoing) | set(self._incoming)
        return sorted(nodes)

    def successors(self, item_id: str) -> List[str]:
        """Distinct digraph targets of ``item_id``, ascending."""
        return sorted({link.target.itemId for link in self._outgoing.get(item_id, [])})

    def links_from(
        self,
        item_id: str,
        types: Optional[Iterable[LinkType]] = None
    ) -> List[RequirementLink]:
        """Directed links with ``item_id`` as source, ordered by target ID."""
        links = self._outgoing.get(item_id, [])
        if types is None:
            return list(links)
        wanted: FrozenSet[LinkType] = frozenset(types)
        return [link for link in links if link.type in wanted]

    def links_to(
        self,
        item_id: str,
        types: Optional[Iterable[LinkType]] = None
    ) -> List[RequirementLink]:
        """Directed links with ``item_id`` as target, ordered by source ID."""
        links = self._incoming.get(item_id, [])
        if types is None:
            return list(links)
        wanted: FrozenSet[LinkType] = frozenset(types)
        return [link for link in links if link.type in wanted]

    def conflicts_of(self, item_id: str) -> List[str]:
        """Items in a 'conflicts' relation with ``item_id``, ascending."""
        return sorted(self._conflicts.get(item_id, set()))

    # Link index

    def links_for(self, item_id: str) -> List[RequirementLink]:
        """All links touching ``item_id``; [] for unknown or unlinked items."""
        return list(self._by_item.get(item_id, []))

    def incoming_links(self, item_id: str) -> List[RequirementLink]:
        """Links of any type with ``item_id`` as target."""
        return [link for link in self._by_item.get(item_id, []) if link.target.itemId == item_id]

    def outgoing_links(self, item_id: str) -> List[RequirementLink]:
        """Links of any type with ``item_id`` as source."""
        return [link for link in self._by_item.get(item_id, []) if link.source.itemId == item_id]

    def link_count(self, item_id: str) -> int:
        return len(self._by_item.get(item_id, []))
