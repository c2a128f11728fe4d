"""Traceability Error Handling Utilities

Exception classes for expected link-store failures, and the Result record
that public entry points return instead of raising them.
"""

from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Discriminator for expected failures."""

    INVALID_LINK = "InvalidLink"
    INVALID_TRANSITION = "InvalidTransition"
    ITEM_NOT_FOUND = "ItemNotFound"
    LINK_NOT_FOUND = "LinkNotFound"


class TraceError(Exception):
    """Base exception for all traceability errors."""

    kind: Optional[ErrorKind] = None

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize traceability error.

        Args:
            message: Human-readable error message
            details: Optional additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_detail(self) -> "ErrorDetail":
        return ErrorDetail(kind=self.kind, message=self.message, details=self.details)


class InvalidLinkError(TraceError):
    """Raised when a link would violate a link-set invariant.

    Examples:
    - Source and target are the same item
    - An identical (type, source, target) link already exists
    - A restored record has a half-pinned endpoint pair
    """

    kind = ErrorKind.INVALID_LINK


class InvalidTransitionError(TraceError):
    """Raised when a status change is not allowed from the current status.

    Examples:
    - Skipping a lifecycle step (proposed -> verified)
    - Moving backward other than by reset to 'proposed'
    - Setting 'broken' directly
    """

    kind = ErrorKind.INVALID_TRANSITION


class ItemNotFoundError(TraceError):
    """Raised when an operation references an item absent from the supplied item set."""

    kind = ErrorKind.ITEM_NOT_FOUND


class LinkNotFoundError(TraceError):
    """Raised when an update, status or pin operation names an unknown link."""

    kind = ErrorKind.LINK_NOT_FOUND


class ErrorDetail(BaseModel):
    """Serializable description of an expected failure."""

    kind: ErrorKind = Field(description="Failure discriminator")
    message: str = Field(description="Human-readable error message")
    details: Dict[str, Any] = Field(default_factory=dict, description="Additional error details")


class Result(BaseModel, Generic[T]):
    """Success/failure outcome of a mutation or lookup.

    Exactly one of ``value`` (on success, may be None) and ``error`` (on
    failure) is meaningful; ``ok`` tells which.
    """

    ok: bool = Field(description="Whether the operation succeeded")
    value: Optional[T] = Field(default=None, description="Operation output on success")
    error: Optional[ErrorDetail] = Field(default=None, description="Failure description")

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: TraceError) -> "Result":
        return cls(ok=False, error=error.to_detail())

    def unwrap(self) -> Any:
        """Return the value, raising the matching TraceError on failure."""
        if self.ok:
            return self.value
        raise error_for_detail(self.error)


def error_for_detail(detail: ErrorDetail) -> TraceError:
    """Convert a serialized failure back to the appropriate exception.

    Args:
        detail: Failure description from a Result

    Returns:
        Appropriate TraceError subclass instance
    """
    error_map = {
        ErrorKind.INVALID_LINK: InvalidLinkError,
        ErrorKind.INVALID_TRANSITION: InvalidTransitionError,
        ErrorKind.ITEM_NOT_FOUND: ItemNotFoundError,
        ErrorKind.LINK_NOT_FOUND: LinkNotFoundError,
    }

    error_class = error_map.get(detail.kind, TraceError)
    return error_class(detail.message, details=dict(detail.details))
