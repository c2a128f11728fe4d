"""Health and Impact Result Models

Pydantic models for the outputs of the health analyzer and the link
store's batch operations.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..utils.errors import ErrorDetail
from .link import LinkType


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"


class IssueType(str, Enum):
    """Kinds of health issues."""

    STALE_PIN = "stale-pin"
    DANGLING_LINK = "dangling-link"
    ORPHAN = "orphan"
    CIRCULAR_DEPENDENCY = "circular-dependency"
    UNCOVERED_REQUIREMENT = "uncovered-requirement"


class HealthIssue(BaseModel):
    """Single finding rendered in the health panel."""

    severity: Severity = Field(description="'critical' or 'warning'")
    type: IssueType = Field(description="Issue kind")
    message: str = Field(description="Human-readable description")
    relatedItemIds: List[str] = Field(default_factory=list, description="Items involved")
    relatedLinkId: Optional[str] = Field(default=None, description="Link involved, if any")
    details: Dict[str, Any] = Field(
        default_factory=dict,
        description="Structured data (endpoint, pinned and live versions, cycle path)"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "severity": "critical",
                "type": "stale-pin",
                "message": "Link rl-5f1c2a9e0b7d: target R1 pinned to v1.0, current is v1.1",
                "relatedItemIds": ["R1"],
                "relatedLinkId": "rl-5f1c2a9e0b7d",
                "details": {
                    "endpoint": "target",
                    "itemId": "R1",
                    "pinnedVersion": "1.0",
                    "liveVersion": "1.1"
                }
            }
        }


class AffectedLink(BaseModel):
    """Pinned link met while tracing the downstream impact of a version change."""

    linkId: str = Field(description="Link ID")
    type: LinkType = Field(description="Traceability kind")
    sourceItemId: str = Field(description="Source item ID")
    targetItemId: str = Field(description="Target item ID")
    pinnedVersion: Optional[str] = Field(
        default=None,
        description="Version the link pins for the changed item, if it references it"
    )
    alreadyStale: bool = Field(description="Whether the pin is already stale against live versions")
    wouldBecomeStale: bool = Field(description="Whether the proposed change would make the pin stale")


class ImpactAnalysis(BaseModel):
    """Items and pinned links affected by changing one item's version."""

    itemId: str = Field(description="Item whose version would change")
    currentVersion: str = Field(description="Live version of the item")
    proposedVersion: Optional[str] = Field(default=None, description="Hypothetical new version")
    versionRegression: bool = Field(
        default=False,
        description="Whether the proposed version orders before the live one"
    )
    downstream: List[str] = Field(
        default_factory=list,
        description="Items depending on this one via derives/satisfies/refines (breadth-first order)"
    )
    upstream: List[str] = Field(
        default_factory=list,
        description="Items this one verifies, transitively (breadth-first order)"
    )
    affectedLinks: List[AffectedLink] = Field(
        default_factory=list,
        description="Pinned links on the downstream traversal"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "itemId": "R1",
                "currentVersion": "1.0",
                "proposedVersion": "2.0",
                "versionRegression": False,
                "downstream": ["R2", "R3"],
                "upstream": [],
                "affectedLinks": []
            }
        }


class BatchOutcome(BaseModel):
    """Per-link outcome of a batch operation."""

    index: int = Field(description="Position of the link in the batch")
    linkId: Optional[str] = Field(default=None, description="Link ID, when known")
    ok: bool = Field(description="Whether this link was processed successfully")
    error: Optional[ErrorDetail] = Field(default=None, description="Failure description")


class BatchReport(BaseModel):
    """Outcome of a batch operation (baseline, restore).

    Individual failures are reported here rather than failing the batch.
    """

    total: int = Field(description="Number of links in the batch")
    succeeded: int = Field(description="Number processed successfully")
    failed: int = Field(description="Number that failed")
    outcomes: List[BatchOutcome] = Field(default_factory=list, description="Per-link outcomes")

    @classmethod
    def from_outcomes(cls, outcomes: List[BatchOutcome]) -> "BatchReport":
        succeeded = sum(1 for outcome in outcomes if outcome.ok)
        return cls(
            total=len(outcomes),
            succeeded=succeeded,
            failed=len(outcomes) - succeeded,
            outcomes=outcomes,
        )
