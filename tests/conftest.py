"""Shared fixtures: fake clock, sweeper-less cache, recording HTTP transport."""
import json

import httpx
import pytest

from commonlog.cache.memory import InMemoryCache, close_global_cache, set_global_cache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class RecordingTransport:
    """httpx transport that records requests and answers from a handler."""

    def __init__(self, handler):
        self.requests: list[httpx.Request] = []
        self._handler = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))

    def json_bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.content]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_cache(clock):
    cache = InMemoryCache(start_sweeper=False, clock=clock)
    yield cache
    cache.close()


@pytest.fixture(autouse=True)
def isolated_global_cache():
    """Each test gets a fresh, sweeper-less global cache."""
    set_global_cache(InMemoryCache(start_sweeper=False))
    yield
    close_global_cache()


@pytest.fixture
def ok_transport():
    return RecordingTransport(lambda request: httpx.Response(200, json={"ok": True, "code": 0}))


@pytest.fixture
def recording_transport():
    """Factory: recording_transport(handler) -> RecordingTransport."""
    return RecordingTransport
