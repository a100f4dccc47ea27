"""
Shared fixtures.
"""
import pytest
from fastapi.testclient import TestClient

from aml_engine.history import FrameHistoryProvider
from aml_engine.main import app


@pytest.fixture
def empty_history():
    """A history provider with no transactions at all."""
    return FrameHistoryProvider([])


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c
