"""Requirement Link Data Model

Pydantic models for requirement links (typed, versioned traceability links
between canvas items).
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator


class LinkType(str, Enum):
    """Traceability kind of a requirement link."""

    SATISFIES = "satisfies"
    VERIFIES = "verifies"
    DERIVES = "derives"
    REFINES = "refines"
    CONFLICTS = "conflicts"


# Link types that form a directed dependency source -> target.
# 'conflicts' is symmetric and stays out of the dependency digraph.
DIRECTED_LINK_TYPES = frozenset({
    LinkType.SATISFIES,
    LinkType.DERIVES,
    LinkType.REFINES,
    LinkType.VERIFIES,
})


class LinkStatus(str, Enum):
    """Status of a requirement link.

    PROPOSED through VERIFIED form the user-driven lifecycle. BROKEN is
    never stored on a link: it is the overlay reported for a pinned link
    whose recorded version no longer matches the live item.
    """

    PROPOSED = "proposed"
    AGREED = "agreed"
    IMPLEMENTED = "implemented"
    VERIFIED = "verified"
    BROKEN = "broken"


LIFECYCLE_ORDER: Tuple[LinkStatus, ...] = (
    LinkStatus.PROPOSED,
    LinkStatus.AGREED,
    LinkStatus.IMPLEMENTED,
    LinkStatus.VERIFIED,
)


class LinkTypeInfo(BaseModel):
    """Display metadata for a link type."""

    name: LinkType = Field(description="Link type value")
    label: str = Field(description="Human-readable label")
    description: str = Field(description="What the link asserts about source and target")
    directed: bool = Field(description="Whether the link is a directed dependency")


LINK_TYPE_INFO: Dict[LinkType, LinkTypeInfo] = {
    LinkType.SATISFIES: LinkTypeInfo(
        name=LinkType.SATISFIES,
        label="Satisfies",
        description="Source item satisfies the target requirement",
        directed=True,
    ),
    LinkType.VERIFIES: LinkTypeInfo(
        name=LinkType.VERIFIES,
        label="Verifies",
        description="Source item verifies the target",
        directed=True,
    ),
    LinkType.DERIVES: LinkTypeInfo(
        name=LinkType.DERIVES,
        label="Derives from",
        description="Source is derived from the target",
        directed=True,
    ),
    LinkType.REFINES: LinkTypeInfo(
        name=LinkType.REFINES,
        label="Refines",
        description="Source refines or details the target",
        directed=True,
    ),
    LinkType.CONFLICTS: LinkTypeInfo(
        name=LinkType.CONFLICTS,
        label="Conflicts with",
        description="Source and target make incompatible demands",
        directed=False,
    ),
}


class LinkEndpoint(BaseModel):
    """One end of a requirement link."""

    itemId: str = Field(description="Referenced item ID")
    pinnedVersion: Optional[str] = Field(
        default=None,
        description="Item version captured at pin time; None means floating (tracks the live version)"
    )

    @field_validator("itemId", "pinnedVersion", mode="before")
    @classmethod
    def coerce_to_string(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    class Config:
        frozen = True


class RequirementLink(BaseModel):
    """Traceability link between two items, owned by the link store.

    Instances are immutable; the store replaces a link with a revised copy
    on every mutation so the validators below run on every state a link
    can ever be in.
    """

    id: str = Field(description="Unique link ID (engine-generated)")
    type: LinkType = Field(description="Traceability kind")
    source: LinkEndpoint = Field(description="Source endpoint")
    target: LinkEndpoint = Field(description="Target endpoint")
    status: LinkStatus = Field(
        default=LinkStatus.PROPOSED,
        description="Lifecycle status (proposed, agreed, implemented, verified)"
    )
    pinned: bool = Field(default=False, description="Whether both endpoints are pinned")
    notes: str = Field(default="", description="Free-form notes")
    author: str = Field(default="unknown", description="Display name of the creator")

    createdAt: datetime = Field(description="Creation timestamp")
    updatedAt: datetime = Field(description="Last modification timestamp")
    verifiedAt: Optional[datetime] = Field(
        default=None,
        description="When the link reached 'verified'"
    )
    verifiedBy: Optional[str] = Field(default=None, description="Who moved the link to 'verified'")

    @field_validator("status")
    @classmethod
    def reject_derived_status(cls, v: LinkStatus) -> LinkStatus:
        """'broken' is computed from pinned versions and never stored."""
        if v == LinkStatus.BROKEN:
            raise ValueError("Status 'broken' is derived from pinned versions and cannot be stored")
        return v

    @model_validator(mode="after")
    def check_endpoints(self) -> "RequirementLink":
        if self.source.itemId == self.target.itemId:
            raise ValueError(f"Link {self.id} cannot connect item {self.source.itemId} to itself")

        source_pinned = self.source.pinnedVersion is not None
        target_pinned = self.target.pinnedVersion is not None
        if source_pinned != target_pinned:
            raise ValueError(
                f"Link {self.id} has one pinned and one floating endpoint; "
                f"both endpoints must be pinned or both floating"
            )
        if self.pinned != source_pinned:
            raise ValueError(
                f"Link {self.id} pinned={self.pinned} disagrees with its endpoint versions"
            )
        return self

    def endpoints(self) -> List[Tuple[str, LinkEndpoint]]:
        """(side, endpoint) pairs, source first."""
        return [("source", self.source), ("target", self.target)]

    def touches(self, item_id: str) -> bool:
        return self.source.itemId == item_id or self.target.itemId == item_id

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "id": "rl-5f1c2a9e0b7d",
                "type": "verifies",
                "source": {"itemId": "T1", "pinnedVersion": "1.0"},
                "target": {"itemId": "R1", "pinnedVersion": "1.0"},
                "status": "agreed",
                "pinned": True,
                "notes": "",
                "author": "alice",
                "createdAt": "2024-01-15T10:30:00Z",
                "updatedAt": "2024-01-16T08:00:00Z"
            }
        }


class LinkCreate(BaseModel):
    """Data required to create a new requirement link."""

    sourceItemId: str = Field(description="Source item ID")
    targetItemId: str = Field(description="Target item ID")
    type: LinkType = Field(description="Traceability kind")
    author: str = Field(default="unknown", description="Display name of the creator")
    notes: str = Field(default="", description="Free-form notes")

    @field_validator("sourceItemId", "targetItemId", mode="before")
    @classmethod
    def coerce_to_string(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "sourceItemId": "T1",
                "targetItemId": "R1",
                "type": "verifies",
                "author": "alice"
            }
        }


class LinkUpdate(BaseModel):
    """Editable fields of an existing link.

    Endpoints are never repointed; retargeting is delete + recreate.
    """

    notes: Optional[str] = Field(default=None, description="New notes")
    type: Optional[LinkType] = Field(default=None, description="New traceability kind")

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)

    class Config:
        extra = "forbid"
        json_schema_extra = {
            "example": {
                "notes": "Confirmed in design review",
                "type": "satisfies"
            }
        }
