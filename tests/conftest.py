"""
Pytest configuration and fixtures for tests.

This module provides:
- A manual millisecond clock for deterministic expiry
- Memory store and fast-polling service configuration
- A FastAPI test client wired to an injected store and a mocked HTTP client
"""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from onevoice.config import ServiceConfig
from onevoice.providers import HttpResponse
from onevoice.store import MemorySessionStore

START_MS = 1_700_000_000_000


class ManualClock:
    """Millisecond clock advanced explicitly by tests."""

    def __init__(self, start: int = START_MS) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class TickingClock(ManualClock):
    """Clock that moves forward by ``step`` ms every time it is read."""

    def __init__(self, step: int, start: int = START_MS) -> None:
        super().__init__(start)
        self.step = step

    def __call__(self) -> int:
        value = self.now
        self.now += self.step
        return value


def json_response(body: object, status_code: int = 200) -> HttpResponse:
    """Build a provider response carrying a JSON body."""
    import json

    return HttpResponse(
        status_code=status_code,
        text=json.dumps(body),
        headers={"content-type": "application/json"},
        json_body=body,
    )


def error_response(status_code: int, text: str = "upstream says no") -> HttpResponse:
    return HttpResponse(status_code=status_code, text=text)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store(clock: ManualClock) -> MemorySessionStore:
    return MemorySessionStore(ttl_sec=3600, clock=clock)


@pytest.fixture
def config() -> ServiceConfig:
    """Service configuration with a fast poll interval and fake provider keys."""
    return ServiceConfig(
        poll_interval_sec=0.01,
        openai_api_key="sk-test-openai",
        elevenlabs_api_key="el-test-key",
        min_chunk_bytes=100,
    )


@pytest.fixture
def http_client() -> AsyncMock:
    """Provider HTTP client double; set ``request.return_value``/``side_effect`` per test."""
    client = AsyncMock()
    client.request = AsyncMock(return_value=json_response({}))
    client.close = AsyncMock()
    return client


@pytest.fixture
def client(
    config: ServiceConfig, store: MemorySessionStore, http_client: AsyncMock
) -> Iterator[TestClient]:
    """Test client with lifespan started, sharing ``store`` with the test."""
    from onevoice.service import create_app

    app = create_app(config=config, store=store, http_client=http_client)
    with TestClient(app) as test_client:
        yield test_client
