"""Shared fixtures: a controllable clock and call-counting HTTP transports."""
from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from govcon_ingest.net import RateLimitConfig, RateLimiter


class FakeClock:
    """Monotonic clock that only moves when something sleeps on it."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it was handed."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def params(self, index: int = -1) -> dict[str, str]:
        return dict(self.requests[index].url.params)

    def body(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter() -> RateLimiter:
    """Limiter with no spacing, so tests never wait."""
    return RateLimiter(RateLimitConfig(min_interval=0.0))


@pytest.fixture
def outcomes() -> list:
    return []


def make_client(handler: Callable[[httpx.Request], httpx.Response]) -> tuple[httpx.AsyncClient, RecordingTransport]:
    transport = RecordingTransport(handler)
    return httpx.AsyncClient(transport=transport), transport


@pytest.fixture
def mock_client():
    """Factory: ``client, transport = mock_client(handler)``."""
    return make_client


@pytest.fixture
def recording_transport():
    """Factory: ``transport = recording_transport(handler)``."""
    return RecordingTransport
