from __future__ import annotations

import sys
from pathlib import Path

import pytest


def pytest_configure() -> None:
    project_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(project_root))


@pytest.fixture(autouse=True)
def fresh_singleton():
    """Reset the process-wide session registry around every test."""
    from runtime.session import SessionRegistry

    SessionRegistry.reset()
    yield
    SessionRegistry.reset()
