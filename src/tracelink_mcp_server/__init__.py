"""Traceability Health MCP Server

Requirement traceability links between canvas items, plus the health
checks (orphans, circular dependencies, coverage gaps, stale pins) and
version-change impact analysis computed over them.
"""

from .engine import TraceabilityEngine
from .store import LinkStore

__all__ = [
    "TraceabilityEngine",
    "LinkStore",
]

__version__ = "0.1.0"
