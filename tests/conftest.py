# tests/conftest.py

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tasklist.cache.layer import cache_layer
from tasklist.core.config import Settings
from tasklist.main import create_app


@pytest.fixture()
def settings() -> Settings:
    """
    Settings for the in-process backend with no Redis.

    ``_env_file=None`` keeps a developer's local .env out of the tests.
    """
    return Settings(
        _env_file=None,
        mongodb_uri="memory://tasklist-test",
        redis_dsn=None,
        cache_enabled=True,
        log_level="WARNING",
    )


@pytest.fixture()
def app(settings: Settings):
    return create_app(settings)


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture(autouse=True)
def _reset_cache_layer():
    yield
    cache_layer.clear()
