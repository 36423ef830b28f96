"""
Test configuration and fixtures for the URL shortener.
Each test gets its own SQLite file and an in-memory cache.
"""

import time
from contextlib import asynccontextmanager

import pytest
from fastapi.testclient import TestClient

from main import create_app
from url_shortener.config import Settings
from url_shortener.database.connection import build_engine
from url_shortener.dependencies import build_services
from url_shortener.storage.strategies import SQLAlchemyURLStore


@pytest.fixture(scope="function")
def settings(tmp_path):
    """Isolated settings: per-test database file, no Redis, no .env."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        cache_backend="memory",
        base_url="http://test",
        log_json=False,
    )


@pytest.fixture(scope="function")
def store(settings):
    """A store on the test database with the schema created."""
    store = SQLAlchemyURLStore(build_engine(settings.database_url))
    store.create_schema()
    try:
        yield store
    finally:
        store.dispose()


@pytest.fixture(scope="function")
def services(settings):
    """
    Returns an async context manager that builds and starts every service
    (worker included) inside the caller's event loop.
    """
    @asynccontextmanager
    async def running(custom_settings=None, **overrides):
        container = await build_services(custom_settings or settings, **overrides)
        await container.start()
        try:
            yield container
        finally:
            await container.stop()

    return running


@pytest.fixture(scope="function")
def client(settings):
    """
    Test client on a fresh app. Entering the client runs the lifespan,
    so the analytics worker is live for the whole test.
    """
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


def wait_until(predicate, timeout: float = 2.0, interval: float = 0.02):
    """Poll predicate until it is truthy or timeout expires; return its last value."""
    deadline = time.monotonic() + timeout
    result = predicate()
    while not result and time.monotonic() < deadline:
        time.sleep(interval)
        result = predicate()
    return result
