"""Traceability Data Models

This package contains Pydantic models for items, links and health results.
"""

__all__ = [
    "version",
    "item",
    "link",
    "health",
]
