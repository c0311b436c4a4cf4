"""Shared fixtures: a scripted upstream, a fake clock and an app client factory."""

from collections.abc import Callable

import pytest

from httpx import ASGITransport, AsyncClient, MockTransport, Request, Response

from dmmcast_dav import make_application
from dmmcast_dav.cache import ResolutionCache
from dmmcast_dav.config import load_settings


DMM = "https://debridmediamanager.com"
TORBOX_API = "https://api.torbox.app/v1/api"


def without_query(url) -> str:
    return f"{url.scheme}://{url.host}{url.path}"


class FakeTimer:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class Upstream:
    """Routes requests by (method, url without query) and records every call."""

    def __init__(self):
        self.routes: dict[tuple[str, str], Response | Callable[[Request], Response]] = {}
        self.requests: list[Request] = []

    def add(self, method: str, url: str, reply: Response | Callable[[Request], Response]):
        self.routes[(method, url)] = reply

    def calls(self, url: str, method: None | str = None) -> list[Request]:
        return [
            r for r in self.requests
            if without_query(r.url) == url and (method is None or r.method == method)
        ]

    def __call__(self, request: Request) -> Response:
        self.requests.append(request)
        reply = self.routes.get((request.method, without_query(request.url)))
        if reply is None:
            return Response(404, json={"error": "not found"})
        if callable(reply):
            return reply(request)
        return Response(reply.status_code, headers=reply.headers, content=reply.content)


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()


@pytest.fixture
def timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture
def cache(timer) -> ResolutionCache:
    return ResolutionCache(timer=timer)


@pytest.fixture
async def session(upstream):
    async with AsyncClient(transport=MockTransport(upstream)) as client:
        yield client


@pytest.fixture
async def make_client(session, cache):
    """Build the application from an environment mapping and return a client bound to it."""
    started = []

    async def factory(env: None | dict[str, str] = None) -> AsyncClient:
        app = make_application(load_settings(env or {}), session=session, cache=cache)
        await app.start()
        client = AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver")
        started.append((app, client))
        return client

    yield factory

    for app, client in started:
        await client.aclose()
        await app.stop()
