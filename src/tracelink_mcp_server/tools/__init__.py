"""Traceability MCP Server Tools

This package contains the MCP tool implementations over the traceability engine.
"""

__all__ = [
    "read_tools",
    "write_tools",
]
