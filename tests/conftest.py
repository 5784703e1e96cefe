"""
Pytest configuration and fixtures for diploma registry tests.
"""

import tempfile
import threading

import pytest

from registry.activity import ActivityLogger
from registry.keys import category_key, credential_key
from registry.manager import RegistryManager
from registry.storage import MemoryStorage, RegistryStorage


ADMIN = "0x" + "a" * 40
UNIVERSITY_1 = "0x" + "1" * 40
UNIVERSITY_2 = "0x" + "2" * 40
OUTSIDER = "0x" + "9" * 40

ACME = "Acme"
GLOBEX = "Globex Institute"

START_TIME = 1_700_000_000


class FakeClock:
    """Controllable clock returning integer Unix seconds."""

    def __init__(self, now: int = START_TIME):
        self.now = now
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            return self.now

    def advance(self, seconds: int = 1) -> int:
        with self._lock:
            self.now += seconds
            return self.now


@pytest.fixture
def test_data_dir():
    """Create temporary test data directory."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def activity_logger():
    """In-memory activity logger."""
    return ActivityLogger({"log_directory": None})


@pytest.fixture
def registry_storage(test_data_dir):
    """Create registry storage for testing."""
    return RegistryStorage(storage_dir=test_data_dir)


@pytest.fixture
def registry_manager(test_data_dir, clock, activity_logger):
    """Uninitialized registry manager over file storage."""
    return RegistryManager(storage_dir=test_data_dir, clock=clock, activity_logger=activity_logger)


@pytest.fixture
def initialized_manager(registry_manager):
    """Registry manager with ADMIN bound as administrator."""
    registry_manager.initialize(ADMIN)
    return registry_manager


@pytest.fixture
def memory_manager(clock, activity_logger):
    """Initialized registry manager over in-memory storage."""
    manager = RegistryManager(storage=MemoryStorage(), clock=clock, activity_logger=activity_logger)
    manager.initialize(ADMIN)
    return manager


@pytest.fixture
def cert_key():
    return credential_key("cert-1")


@pytest.fixture
def bachelor():
    return category_key("BACHELOR")


@pytest.fixture
def populated_manager(initialized_manager, cert_key, bachelor, clock):
    """
    Registry with Acme bound to UNIVERSITY_1, Globex bound to UNIVERSITY_2,
    and cert-1 issued by Acme.
    """
    initialized_manager.authorize_issuer(ADMIN, ACME, UNIVERSITY_1)
    initialized_manager.authorize_issuer(ADMIN, GLOBEX, UNIVERSITY_2)
    clock.advance(60)
    initialized_manager.issue_credential(UNIVERSITY_1, cert_key, ACME, bachelor)
    return initialized_manager


# Test markers for different test categories
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "concurrency: mark test as a concurrency test"
    )


# Pytest collection hooks
def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on test paths and names."""
    for item in items:
        path = str(item.path)
        if "unit" in path:
            item.add_marker(pytest.mark.unit)
        elif "integration" in path:
            item.add_marker(pytest.mark.integration)

        if "concurrent" in item.name or "thread" in item.name:
            item.add_marker(pytest.mark.concurrency)
