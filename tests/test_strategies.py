import asyncio

import httpx
import pytest
import pytest_asyncio

from asran_offline.errors import NetworkFetchError
from asran_offline.models import InterceptedRequest
from asran_offline.offline_page import OFFLINE_TITLE
from asran_offline.strategies import (
    CacheFirstStrategy,
    NetworkFirstStrategy,
    NetworkFirstWithFallbackStrategy,
)
from asran_offline.tasks import BackgroundTasks

from .conftest import ORIGIN


@pytest_asyncio.fixture
async def background():
    tasks = BackgroundTasks()
    yield tasks
    await tasks.close()


@pytest.fixture
def cache_first(storage, network, config, background):
    return CacheFirstStrategy(storage, network, config.static_cache_name, background)


@pytest.fixture
def network_first(storage, network, config):
    return NetworkFirstStrategy(storage, network, config.api_cache_name)


@pytest.fixture
def with_fallback(storage, network, config):
    return NetworkFirstWithFallbackStrategy(storage, network, config)


class TestCacheFirstStrategy:
    """Stale-while-revalidate for static assets."""

    @pytest.mark.asyncio
    async def test_second_call_served_from_single_cache_entry(self, cache_first, storage, origin, config, background):
        origin.set("/assets/app.js", "console.log('v1')", content_type="application/javascript")
        request = InterceptedRequest.get(f"{ORIGIN}/assets/app.js")

        first = await cache_first.execute(request)
        second = await cache_first.execute(request)
        await background.join()

        cache = await storage.open(config.static_cache_name)
        assert first.content == second.content == b"console.log('v1')"
        assert await cache.keys() == [f"{ORIGIN}/assets/app.js"]

    @pytest.mark.asyncio
    async def test_cached_response_does_not_wait_for_network(self, cache_first, storage, origin, config):
        cache = await storage.open(config.static_cache_name)
        await cache.put(f"{ORIGIN}/assets/logo.svg", httpx.Response(200, text="<svg/>"))
        origin.hang = True

        response = await asyncio.wait_for(
            cache_first.execute(InterceptedRequest.get(f"{ORIGIN}/assets/logo.svg")),
            timeout=1.0,
        )

        assert response.text == "<svg/>"

    @pytest.mark.asyncio
    async def test_hit_is_revalidated_in_background(self, cache_first, storage, origin, config, background):
        cache = await storage.open(config.static_cache_name)
        await cache.put(f"{ORIGIN}/assets/site.css", httpx.Response(200, text="body{color:red}"))
        origin.set("/assets/site.css", "body{color:blue}", content_type="text/css")

        response = await cache_first.execute(InterceptedRequest.get(f"{ORIGIN}/assets/site.css"))
        await background.join()

        assert response.text == "body{color:red}"
        assert (await cache.match(f"{ORIGIN}/assets/site.css")).text == "body{color:blue}"

    @pytest.mark.asyncio
    async def test_failed_revalidation_is_swallowed(self, cache_first, storage, origin, config, background):
        cache = await storage.open(config.static_cache_name)
        await cache.put(f"{ORIGIN}/fonts/ko.woff2", httpx.Response(200, content=b"font"))
        origin.online = False

        response = await cache_first.execute(InterceptedRequest.get(f"{ORIGIN}/fonts/ko.woff2"))
        await background.join()

        assert response.content == b"font"
        assert background.failed == 0
        assert (await cache.match(f"{ORIGIN}/fonts/ko.woff2")).content == b"font"

    @pytest.mark.asyncio
    async def test_miss_while_offline_propagates(self, cache_first, origin):
        origin.online = False

        with pytest.raises(NetworkFetchError):
            await cache_first.execute(InterceptedRequest.get(f"{ORIGIN}/assets/app.js"))

    @pytest.mark.asyncio
    async def test_error_status_returned_but_not_cached(self, cache_first, storage, config):
        response = await cache_first.execute(InterceptedRequest.get(f"{ORIGIN}/img/missing.png"))

        assert response.status_code == 404
        assert await (await storage.open(config.static_cache_name)).keys() == []


class TestNetworkFirstStrategy:
    """Fresh API data with cached fallback."""

    @pytest.mark.asyncio
    async def test_network_response_is_returned_and_stored(self, network_first, storage, config):
        request = InterceptedRequest.get(f"{ORIGIN}/api/recipes")

        response = await network_first.execute(request)

        cached = await (await storage.open(config.api_cache_name)).match(request)
        assert response.json() == [{"id": 1, "title": "Bibimbap"}]
        assert cached.content == response.content

    @pytest.mark.asyncio
    async def test_offline_returns_previous_cached_copy(self, network_first, origin):
        request = InterceptedRequest.get(f"{ORIGIN}/api/faq")
        previous = await network_first.execute(request)
        origin.online = False

        response = await network_first.execute(request)

        assert response.content == previous.content
        assert response.status_code == previous.status_code

    @pytest.mark.asyncio
    async def test_offline_without_cache_propagates(self, network_first, origin):
        origin.online = False

        with pytest.raises(NetworkFetchError):
            await network_first.execute(InterceptedRequest.get(f"{ORIGIN}/api/faq"))

    @pytest.mark.asyncio
    async def test_error_status_is_not_cached(self, network_first, storage, origin, config):
        origin.set("/api/products", "down", status=502)

        response = await network_first.execute(InterceptedRequest.get(f"{ORIGIN}/api/products"))

        assert response.status_code == 502
        assert await (await storage.open(config.api_cache_name)).keys() == []


class TestNetworkFirstWithFallbackStrategy:
    """Pages: network first, then any cache, then the offline page."""

    @pytest.mark.asyncio
    async def test_html_pages_are_cached_in_static_partition(self, with_fallback, storage, origin, config):
        origin.set("/recipes/42", "<html>recipe</html>")

        await with_fallback.execute(InterceptedRequest.get(f"{ORIGIN}/recipes/42", "document"))

        cache = await storage.open(config.static_cache_name)
        assert (await cache.match(f"{ORIGIN}/recipes/42")).text == "<html>recipe</html>"

    @pytest.mark.asyncio
    async def test_non_html_is_not_cached(self, with_fallback, storage, origin, config):
        origin.set("/sitemap.xml", "<urlset/>", content_type="application/xml")

        response = await with_fallback.execute(InterceptedRequest.get(f"{ORIGIN}/sitemap.xml"))

        assert response.text == "<urlset/>"
        assert await storage.match(f"{ORIGIN}/sitemap.xml") is None

    @pytest.mark.asyncio
    async def test_offline_serves_cached_page(self, with_fallback, origin):
        origin.set("/recipes/7", "<html>kimchi</html>")
        request = InterceptedRequest.get(f"{ORIGIN}/recipes/7", "document")
        await with_fallback.execute(request)
        origin.online = False

        response = await with_fallback.execute(request)

        assert response.text == "<html>kimchi</html>"

    @pytest.mark.asyncio
    async def test_offline_navigation_without_cache_gets_offline_page(self, with_fallback, origin):
        origin.online = False

        response = await with_fallback.execute(InterceptedRequest.get(f"{ORIGIN}/recipes/99", "document"))

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert OFFLINE_TITLE in response.text
        assert "인터넷 연결을 확인하고 다시 시도해주세요" in response.text
        assert "window.location.reload()" in response.text

    @pytest.mark.asyncio
    async def test_offline_navigation_prefers_cached_home_shell(self, with_fallback, storage, origin, config):
        cache = await storage.open(config.static_cache_name)
        await cache.put(f"{ORIGIN}/", httpx.Response(200, html="<html>home</html>"))
        origin.online = False

        response = await with_fallback.execute(InterceptedRequest.get(f"{ORIGIN}/recipes/99", "document"))

        assert response.text == "<html>home</html>"

    @pytest.mark.asyncio
    async def test_offline_subresource_without_cache_propagates(self, with_fallback, origin):
        origin.online = False

        with pytest.raises(NetworkFetchError):
            await with_fallback.execute(InterceptedRequest.get(f"{ORIGIN}/widgets/cart"))
