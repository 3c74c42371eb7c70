import os
import sys
from pathlib import Path

import pytest

# Make the billcycle package and the tests.fixtures namespace importable
repo_root = Path(__file__).parent
sys.path.insert(0, str(repo_root / "src"))
sys.path.insert(0, str(repo_root))

ENV_PREFIX = "BILLCYCLE_"


def pytest_configure(config):
    """Register the markers used across the billcycle suites."""
    config.addinivalue_line(
        "markers", "integration: runs the RecurringEngine against a record store"
    )
    config.addinivalue_line(
        "markers", "unit: single component test"
    )


@pytest.fixture(autouse=True)
def isolated_billcycle_environment(monkeypatch):
    """Strip BILLCYCLE_* variables so configuration and table lookups start from defaults."""
    for name in list(os.environ):
        if name.startswith(ENV_PREFIX):
            monkeypatch.delenv(name)
    yield
