"""Shared fixtures for integration tests.

These tests run the assembled application (lifespan, real extractor,
cache and proxy) with upstream HTTP mocked via respx.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
import respx
from fastapi.testclient import TestClient

from streamgate.infrastructure.config import AppConfig
from streamgate.interfaces.app import create_app


@pytest.fixture()
def respx_mock() -> Iterator[respx.MockRouter]:
    """Explicit respx mock router for request interception."""
    with respx.mock(assert_all_called=False) as router:
        yield router


@pytest.fixture()
def app_client() -> Iterator[TestClient]:
    """Client for a fully wired app with default configuration."""
    with TestClient(create_app(AppConfig(environment="test"))) as client:
        yield client
