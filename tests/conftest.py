"""
Shared fixtures for apic tests.
"""

import asyncio
from typing import Any, List, Optional, Union

import httpx
import pytest

from apic.cache import CacheStore
from apic.logging import get_request_id
from apic.metrics import MetricsCollector


class FakeClock:
    """Manually advanced clock for cache freshness tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeEndpoint:
    """Scripted remote endpoint served through httpx.MockTransport."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.request_ids: List[Optional[str]] = []
        self._script: List[Union[tuple, Exception]] = []
        self.default = (200, {"ok": True})
        self.latency = 0.0
        self.completed = 0

    def respond(self, status: int, payload: Any = None, content: Optional[bytes] = None):
        self._script.append((status, payload, content))
        return self

    def fail(self, error: Exception):
        self._script.append(error)
        return self

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.request_ids.append(get_request_id())
        if self.latency:
            await asyncio.sleep(self.latency)

        step = self._script.pop(0) if self._script else self.default
        if isinstance(step, Exception):
            raise step

        self.completed += 1
        if len(step) == 2:
            status, payload = step
            return httpx.Response(status, json=payload)
        status, payload, content = step
        if content is not None:
            return httpx.Response(status, content=content)
        if payload is None:
            return httpx.Response(status)
        return httpx.Response(status, json=payload)


@pytest.fixture
def endpoint():
    """Remote endpoint answering 200 {"ok": true} unless scripted."""
    return FakeEndpoint()


@pytest.fixture
def http_client(endpoint):
    """httpx client wired to the fake endpoint."""
    return httpx.AsyncClient(transport=httpx.MockTransport(endpoint.handler), timeout=None)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return CacheStore(clock=clock)


@pytest.fixture
def metrics():
    return MetricsCollector()
