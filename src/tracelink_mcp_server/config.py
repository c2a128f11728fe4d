"""Traceability Server Configuration

Settings read from environment variables at server startup.
"""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ServerSettings(BaseModel):
    """Runtime settings for the traceability MCP server."""

    server_name: str = Field(
        default="Traceability Health Server",
        description="Name the MCP server advertises"
    )
    log_level: str = Field(default="INFO", description="Root logging level")
    links_file: Optional[Path] = Field(
        default=None,
        description="JSON file of saved links restored at startup"
    )
    default_author: str = Field(
        default="unknown",
        description="Author recorded on links created without one"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Invalid log level '{v}', must be one of {LOG_LEVELS}")
        return level

    @classmethod
    def from_env(cls) -> "ServerSettings":
        """Build settings from TRACELINK_* environment variables."""
        links_file = os.environ.get("TRACELINK_LINKS_FILE")
        return cls(
            server_name=os.environ.get("TRACELINK_SERVER_NAME", "Traceability Health Server"),
            log_level=os.environ.get("TRACELINK_LOG_LEVEL", "INFO"),
            links_file=Path(links_file) if links_file else None,
            default_author=os.environ.get("TRACELINK_DEFAULT_AUTHOR", "unknown"),
        )
