"""Fixtures for HTTP-level tests against the assembled FastAPI app."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from streamgate.infrastructure.config import AppConfig
from streamgate.interfaces.app import create_app


@pytest.fixture()
def app_config() -> AppConfig:
    return AppConfig(environment="test")


@pytest.fixture()
def app(app_config: AppConfig) -> FastAPI:
    return create_app(app_config)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    """TestClient with the lifespan (composition root) running."""
    with TestClient(app) as c:
        yield c
