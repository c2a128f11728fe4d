"""Canvas Item and Structural Edge Data Models

Pydantic models for the items and structural edges owned by the diagram
canvas. The engine only reads them; they are supplied on every query.
"""

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .version import DEFAULT_VERSION

logger = logging.getLogger(__name__)


class ItemType(str, Enum):
    """Kinds of items the systems model knows about."""

    SYSTEM = "system"
    SUBSYSTEM = "subsystem"
    FUNCTION = "function"
    REQUIREMENT = "requirement"
    TESTCASE = "testcase"
    PARAMETER = "parameter"
    HARDWARE = "hardware"
    USECASE = "usecase"
    ACTOR = "actor"


# Edge relation types that build the parent/child hierarchy
CONTAINMENT_RELATIONS = frozenset({"contains", "provides"})


class Item(BaseModel):
    """Typed, versioned unit of the systems model (system, requirement, test case, etc.)."""

    id: str = Field(description="Stable item ID, unique within a project")
    itemType: str = Field(description="Item kind (e.g., 'requirement', 'testcase')")
    version: str = Field(
        default=DEFAULT_VERSION,
        description="Ordered version token, non-decreasing across edits"
    )
    label: Optional[str] = Field(default=None, description="Display label")
    reqId: Optional[str] = Field(default=None, description="Display requirement ID (e.g., REQ-001)")
    isFloatingConnector: bool = Field(
        default=False,
        description="Transient UI-only connector, ignored by orphan detection"
    )

    @field_validator("id", mode="before")
    @classmethod
    def coerce_to_string(cls, v: Any) -> Any:
        """Accept numeric IDs (e.g., 2) from the canvas."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("version", mode="before")
    @classmethod
    def coerce_version(cls, v: Any) -> Any:
        """Accept numeric versions (e.g., 1.1); a missing or blank version is the default."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_VERSION
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Item ID cannot be empty")
        return v

    @field_validator("itemType", mode="before")
    @classmethod
    def normalize_item_type(cls, v: Any) -> Any:
        if isinstance(v, ItemType):
            return v.value
        if isinstance(v, str):
            return v.strip().lower()
        return v

    # Canvas items carry position, styling and other panel data
    class Config:
        extra = "allow"
        json_schema_extra = {
            "example": {
                "id": "R1",
                "itemType": "requirement",
                "version": "1.0",
                "label": "Cabin temperature control",
                "reqId": "REQ-001"
            }
        }


class StructuralEdge(BaseModel):
    """Hierarchy or flow connection between two canvas items."""

    source: str = Field(description="Source item ID")
    target: str = Field(description="Target item ID")
    relationType: str = Field(
        default="related",
        description="Relation kind (e.g., 'contains', 'provides', 'flow', 'related')"
    )

    @field_validator("source", "target", mode="before")
    @classmethod
    def coerce_to_string(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @property
    def is_containment(self) -> bool:
        return self.relationType in CONTAINMENT_RELATIONS

    class Config:
        extra = "allow"
        json_schema_extra = {
            "example": {
                "source": "S1",
                "target": "R1",
                "relationType": "contains"
            }
        }


class ItemIndex(Mapping):
    """Read-only map from item ID to Item for a single query.

    Built fresh from whatever collection the host supplies and never kept
    past the call, so a wholesale replacement of the host's items (undo,
    reload) can never leave the engine holding stale references.
    """

    def __init__(self, items: Iterable[Item] = ()):
        self._items: Dict[str, Item] = {}
        for item in items:
            if item.id in self._items:
                logger.warning(f"Duplicate item id {item.id!r} in item set, keeping first occurrence")
                continue
            self._items[item.id] = item

    @classmethod
    def of(cls, items: Any) -> "ItemIndex":
        """Return ``items`` as an index, coercing raw canvas records if needed."""
        if isinstance(items, ItemIndex):
            return items
        return cls.from_raw(items)

    @classmethod
    def from_raw(cls, records: Any) -> "ItemIndex":
        """Build an index from Items or raw dicts, skipping malformed records."""
        items: List[Item] = []
        if not records:
            return cls(items)
        if isinstance(records, Mapping):
            records = list(records.values())
        try:
            iterator = iter(records)
        except TypeError:
            logger.warning(f"Ignoring non-iterable item collection of type {type(records).__name__}")
            return cls(items)

        for position, record in enumerate(iterator):
            if isinstance(record, Item):
                items.append(record)
                continue
            try:
                items.append(Item.model_validate(record))
            except ValidationError as e:
                logger.warning(f"Skipping malformed item at position {position}: {e.error_count()} error(s)")
        return cls(items)

    def __getitem__(self, item_id: str) -> Item:
        return self._items[item_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def ordered(self) -> List[Item]:
        """Items in the order the host supplied them."""
        return list(self._items.values())

    def version_of(self, item_id: str) -> Optional[str]:
        item = self._items.get(item_id)
        return item.version if item is not None else None
