import asyncio
import logging

import httpx
import pytest
import pytest_asyncio

from asran_offline.config import CacheConfig
from asran_offline.network import NetworkClient
from asran_offline.runtime import HostRuntime
from asran_offline.storage import MemoryCacheStorage

ORIGIN = "http://shop.test"


class FakeOrigin:
    """Scriptable storefront origin served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.routes: dict[str, tuple[int, bytes, str]] = {}
        self.online = True
        self.failing: set[str] = set()
        self.hang = False
        self.requests: list[httpx.Request] = []

    @classmethod
    def storefront(cls) -> "FakeOrigin":
        origin = cls()
        for path in ["/", "/categories", "/products", "/blog", "/about", "/reviews", "/support"]:
            origin.set(path, f"<html><body>page {path}</body></html>")
        origin.set("/manifest.json", '{"name": "ASRAN"}', content_type="application/json")
        origin.set("/api/products", '[{"id": 1, "name": "Pan"}]', content_type="application/json")
        origin.set("/api/recipes", '[{"id": 1, "title": "Bibimbap"}]', content_type="application/json")
        origin.set("/api/faq", '[{"q": "Shipping?"}]', content_type="application/json")
        return origin

    def set(self, path: str, body: str, status: int = 200, content_type: str = "text/html; charset=utf-8") -> None:
        self.routes[path] = (status, body.encode("utf-8"), content_type)

    def requests_for(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.hang:
            await asyncio.Event().wait()
        if not self.online or request.url.path in self.failing:
            raise httpx.ConnectError("origin unreachable", request=request)

        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, text="not found")
        status, body, content_type = route
        return httpx.Response(status, content=body, headers={"content-type": content_type})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture(autouse=True)
def setup_logging():
    """Set up logging for tests."""
    logging.basicConfig(level=logging.INFO)
    logging.getLogger("asran_offline").setLevel(logging.DEBUG)


@pytest.fixture
def origin():
    return FakeOrigin.storefront()


@pytest.fixture
def config():
    return CacheConfig.for_version("1.0.0", origin=ORIGIN)


@pytest.fixture
def storage():
    return MemoryCacheStorage()


@pytest.fixture
def runtime():
    return HostRuntime()


@pytest_asyncio.fixture
async def network(origin):
    client = NetworkClient(ORIGIN, timeout=5.0, transport=origin.transport())
    yield client
    await client.close()
