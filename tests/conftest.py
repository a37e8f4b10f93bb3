"""
Pytest configuration and shared fixtures for the test suite.
"""

import os
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

# Set environment variables before importing app modules
os.environ["NIGHTSCOUT_URL"] = "https://ns.example.com"
os.environ["NIGHTSCOUT_TOKEN"] = "test_token"


NOW = datetime(2024, 1, 15, 10, 35, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """Fixed reference time for elapsed-time text."""
    return NOW


@pytest.fixture
def mock_settings():
    """Create settings for testing."""
    from nightscout_monitor.config import Settings, get_settings

    # Clear the LRU cache
    get_settings.cache_clear()

    return Settings(
        nightscout_url="https://ns.example.com",
        nightscout_token="test_token",
    )


@pytest.fixture
def display_config():
    """Default display configuration snapshot."""
    from nightscout_monitor.models import DisplayConfig

    return DisplayConfig()


@pytest.fixture
def thresholds():
    """Thresholds used by the severity examples."""
    from nightscout_monitor.models import SeverityThresholds

    return SeverityThresholds(urgent_high=220, high=180, low=70, urgent_low=54)


@pytest.fixture
def make_reading(now):
    """Build a Reading taken a number of minutes before ``now``."""
    from nightscout_monitor.models import Reading

    def _make(value, minutes_ago=0.0):
        return Reading(value=value, timestamp=now - timedelta(minutes=minutes_ago))

    return _make


@pytest.fixture
def sample_entries():
    """Two raw Nightscout entries, newest first, five minutes apart."""
    return [
        {"sgv": 120, "dateString": "2024-01-15T10:30:00.000Z", "direction": "Flat"},
        {"sgv": 115, "dateString": "2024-01-15T10:25:00.000Z", "direction": "Flat"},
    ]


@pytest.fixture
def mock_nightscout_client(sample_entries):
    """Create a mock NightscoutClient."""
    from nightscout_monitor.nightscout_client import NightscoutClient, reset_nightscout_client

    reset_nightscout_client()

    mock_client = MagicMock(spec=NightscoutClient)
    mock_client.fetch_entries.return_value = sample_entries
    mock_client.get_statistics.return_value = {
        "total_requests": 10,
        "failed_requests": 0,
        "last_error": None,
        "last_error_time": None,
    }

    return mock_client


@pytest.fixture
def mock_renderer():
    """Create a mock Renderer."""
    from nightscout_monitor.renderers import Renderer

    return MagicMock(spec=Renderer)


@pytest.fixture
def monitor(mock_settings, mock_nightscout_client, mock_renderer, now):
    """Create a monitor wired to mocked collaborators."""
    from nightscout_monitor.monitor import GlucoseMonitor

    return GlucoseMonitor(
        settings_provider=lambda: mock_settings,
        renderer=mock_renderer,
        clock=lambda: now,
        client_factory=lambda settings: mock_nightscout_client,
    )


@pytest.fixture
def test_client(monitor, mock_nightscout_client):
    """Create a test client with mocked dependencies."""
    from nightscout_monitor.main import app
    from nightscout_monitor.monitor import get_monitor
    from nightscout_monitor.nightscout_client import get_nightscout_client

    def get_mock_monitor():
        return monitor

    def get_mock_client():
        return mock_nightscout_client

    app.dependency_overrides[get_monitor] = get_mock_monitor
    app.dependency_overrides[get_nightscout_client] = get_mock_client

    client = TestClient(app)

    yield client

    # Clean up
    app.dependency_overrides.clear()


@pytest.fixture
def glucose_values():
    """Provide test glucose values for the default thresholds."""
    return {
        "urgent_low": 50,
        "low": 65,
        "normal": 120,
        "high": 200,
        "urgent_high": 280,
    }
