"""Traceability Engine Utilities

This package contains error, result and validation helpers.
"""

__all__ = [
    "errors",
    "validation",
]
