import os
import shutil
import sys
import tempfile
from pathlib import Path

import pytest


def pytest_configure() -> None:
    project_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(project_root))


@pytest.fixture
def memory_store():
    """Fresh in-memory key-value store."""
    from expiry_tracker.core.kv_store import InMemoryKVStore
    return InMemoryKVStore()


@pytest.fixture
def sqlite_path():
    """Temporary SQLite file path, removed after the test."""
    test_dir = tempfile.mkdtemp()
    yield os.path.join(test_dir, "tracker_test.db")
    shutil.rmtree(test_dir)
