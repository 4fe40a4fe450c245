"""Pytest configuration and fixtures."""

import logging

import pytest


@pytest.fixture
def event_loop_policy():
    """Use the default event loop policy for all async tests."""
    import asyncio

    return asyncio.DefaultEventLoopPolicy()


@pytest.fixture(autouse=True)
def _relay_debug_logging(caplog):
    """Capture relay logs at DEBUG so failing tests show the full trail."""
    caplog.set_level(logging.DEBUG, logger="app")
    yield
