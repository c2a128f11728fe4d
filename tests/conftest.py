"""Root conftest for all tests - exposes the traceability fixtures.

Shared fixtures (deterministic link store, engine, sample canvas items and
edges, mock MCP context) live in fixtures/conftest.py.
"""
import sys
from pathlib import Path

# Add src directory to path
src_dir = Path(__file__).parent.parent / "src"
if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))

from fixtures.conftest import *  # noqa: F403, F401
