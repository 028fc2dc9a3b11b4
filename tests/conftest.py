"""
Shared fixtures for the scanning core tests.
"""
import pytest

from anchorscan.core.config import Settings
from anchorscan.repositories.graph_registry import InMemoryGraphRegistry
from tests.fakes import FakeClock


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment, with a short idle window."""
    return Settings(_env_file=None, idle_timeout_ms=50, note_open_debounce_ms=1000)


@pytest.fixture
def registry() -> InMemoryGraphRegistry:
    return InMemoryGraphRegistry()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
