"""
Pytest configuration and fixtures for HITL node tests.

Puts the backend directory on sys.path so modules import the same way they
do at runtime (`from services.health_reporter import ...`), and points every
file path setting at a per-test temp directory.
"""

import os
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

BACKEND_PATH = PROJECT_ROOT / "backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))

# Never start the reporter loop from API tests
os.environ["RUN_REPORTER_IN_API"] = "false"


@pytest.fixture
def content_root(tmp_path, monkeypatch):
    """Temp content root with snapshot and marker settings pointed into it."""
    from config import settings

    monkeypatch.setattr(settings, "CONTENT_ROOT", str(tmp_path))
    monkeypatch.setattr(settings, "HEALTH_SNAPSHOT_PATH", str(tmp_path / "health-detailed"))
    monkeypatch.setattr(settings, "SYNC_MARKER_PATH", str(tmp_path / ".last-sync"))
    return tmp_path
