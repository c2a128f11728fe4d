"""Integration test fixtures - saved link files and server settings."""
import json

import pytest

from tracelink_mcp_server import server
from tracelink_mcp_server.config import ServerSettings


@pytest.fixture
def links_file(tmp_path, saved_links):
    """Saved link list written the way the host persists it."""
    path = tmp_path / "links.json"
    path.write_text(json.dumps(saved_links), encoding="utf-8")
    return path


@pytest.fixture
def configure_server(monkeypatch):
    """Swap the server's module-level settings for the duration of a test."""
    def _configure(**overrides):
        settings = ServerSettings(**overrides)
        monkeypatch.setattr(server, "settings", settings)
        return settings
    return _configure
