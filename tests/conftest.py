# tests/conftest.py

"""Shared pytest fixtures for all price analyzer tests."""

from collections.abc import Generator
from unittest.mock import patch

import pytest

from price_analyzer.config.settings import Settings


@pytest.fixture(autouse=True)
def no_request_delay() -> Generator[None, None, None]:
    """Zero the inter-request delay so batches run instantly."""
    with patch.object(Settings, "REQUEST_DELAY", 0.0):
        yield


@pytest.fixture(autouse=True)
def no_configured_relay() -> Generator[None, None, None]:
    """Keep a RELAY_URL from the environment out of gateway tests."""
    with patch.object(Settings, "RELAY_URL", ""):
        yield
