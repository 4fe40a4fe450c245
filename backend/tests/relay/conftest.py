"""Fixtures for relay tests."""

import pytest

from app.relay.cache import SnapshotCache
from app.relay.registry import ConnectionRegistry


@pytest.fixture
def cache():
    return SnapshotCache()


@pytest.fixture
def registry():
    return ConnectionRegistry(send_timeout=0.2)
