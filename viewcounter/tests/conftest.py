"""Pytest config to ensure project root is on sys.path during test collection.

Also provides fixtures that point the app at throwaway data directories so
tests never touch the real counter store.
"""
import os
import sys

import pytest

_HERE = os.path.dirname(__file__)
_ROOT = os.path.abspath(os.path.join(_HERE, ".."))  # viewcounter/
PROJECT_ROOT = os.path.abspath(os.path.join(_ROOT, ".."))  # repo root

# Insert project root at front of sys.path if not already present
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from viewcounter import metrics  # noqa: E402
from viewcounter.config import ConfigManager  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset_all()
    yield
    metrics.reset_all()


@pytest.fixture
def data_dir(tmp_path):
    return str(tmp_path / "data")


@pytest.fixture
def config(data_dir):
    """ConfigManager using bundled resources and an isolated data dir."""
    return ConfigManager(environ={"VIEWCOUNTER_DATA_DIR": data_dir})
