"""
Pytest configuration and shared fixtures.
"""

import pytest
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient

from fincalc.config import Settings, get_settings
from fincalc.main import app


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")


@pytest.fixture(autouse=True)
def reset_overrides():
    """Clear cached settings and dependency overrides around each test."""
    get_settings.cache_clear()
    yield
    app.dependency_overrides.clear()
    get_settings.cache_clear()


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def small_schedule_client(client):
    """Test client whose settings cap schedules at 12 periods."""
    app.dependency_overrides[get_settings] = lambda: Settings(max_schedule_periods=12)
    return client
