"""
Fixtures shared by unit tests.
"""

import pytest

from models.health import HealthSnapshot
from tests.fixtures.health_data import make_snapshot


@pytest.fixture
def snapshot() -> HealthSnapshot:
    """A healthy snapshot with a 45 second old content sync."""
    return make_snapshot()
