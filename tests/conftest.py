"""The pytest configuration for Firestore batcher testing.

Resets the settings and store singletons around every test and keeps
metrics collection off.
"""

import os

import pytest

from firestore_batcher.config import reset_settings
from firestore_batcher.store.factory import reset_store


@pytest.fixture(scope="session", autouse=True)
def disable_metrics_for_tests():
    """Disable metrics collection for the whole session."""
    original_value = os.environ.get("BATCHER_METRICS_ENABLED")
    os.environ["BATCHER_METRICS_ENABLED"] = "false"
    yield
    if original_value is not None:
        os.environ["BATCHER_METRICS_ENABLED"] = original_value
    elif "BATCHER_METRICS_ENABLED" in os.environ:
        del os.environ["BATCHER_METRICS_ENABLED"]


@pytest.fixture(autouse=True)
def reset_singletons():
    """Give every test fresh settings and a fresh store."""
    reset_settings()
    reset_store()
    yield
    reset_settings()
    reset_store()


# Custom markers for pytest
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "integration: marks tests that run the batcher against a full store")
