"""Caching strategies applied to intercepted requests."""

import httpx

from .config import CacheConfig
from .errors import NetworkFetchError
from .logging_config import get_logger
from .models import InterceptedRequest
from .network import NetworkClient
from .offline_page import render_offline_page
from .storage import CacheStorage
from .tasks import BackgroundTasks

logger = get_logger(__name__)


def is_html(response: httpx.Response) -> bool:
    return "text/html" in response.headers.get("content-type", "")


async def get_offline_page(config: CacheConfig, storage: CacheStorage) -> httpx.Response:
    """Serve the cached home shell if there is one, else the built-in offline page."""
    cache = await storage.open(config.static_cache_name)
    cached = await cache.match(config.resolve("/"))
    if cached is not None:
        return cached
    return render_offline_page()


class Strategy:
    """Base class for strategies."""

    name = "strategy"

    def __init__(self, storage: CacheStorage, network: NetworkClient) -> None:
        self.storage = storage
        self.network = network

    async def execute(self, request: InterceptedRequest) -> httpx.Response:
        raise NotImplementedError


class CacheFirstStrategy(Strategy):
    """Serve from cache and revalidate in the background (stale-while-revalidate)."""

    name = "cache-first"

    def __init__(
        self,
        storage: CacheStorage,
        network: NetworkClient,
        cache_name: str,
        background: BackgroundTasks,
    ) -> None:
        super().__init__(storage, network)
        self.cache_name = cache_name
        self.background = background

    async def _revalidate(self, request: InterceptedRequest) -> None:
        try:
            response = await self.network.fetch(request)
            if response.is_success:
                cache = await self.storage.open(self.cache_name)
                await cache.put(request, response)
        except Exception as e:
            # Ignore network errors when updating cache
            logger.debug(f"[SW] Background update of {request.url} failed: {e}")

    async def execute(self, request: InterceptedRequest) -> httpx.Response:
        cache = await self.storage.open(self.cache_name)
        cached = await cache.match(request)

        if cached is not None:
            self.background.spawn(self._revalidate(request), name=f"revalidate {request.url}")
            return cached

        response = await self.network.fetch(request)
        if response.is_success:
            await cache.put(request, response)
        return response


class NetworkFirstStrategy(Strategy):
    """Prefer fresh data, fall back to the last cached copy."""

    name = "network-first"

    def __init__(self, storage: CacheStorage, network: NetworkClient, cache_name: str) -> None:
        super().__init__(storage, network)
        self.cache_name = cache_name

    async def execute(self, request: InterceptedRequest) -> httpx.Response:
        cache = await self.storage.open(self.cache_name)

        try:
            response = await self.network.fetch(request)
        except NetworkFetchError:
            logger.info(f"[SW] Network request failed, trying cache: {request.url}")
            cached = await cache.match(request)
            if cached is not None:
                return cached
            raise

        if response.is_success:
            await cache.put(request, response)
        return response


class NetworkFirstWithFallbackStrategy(Strategy):
    """Network first for pages, with any cached copy or the offline page as fallback."""

    name = "network-first-with-fallback"

    def __init__(self, storage: CacheStorage, network: NetworkClient, config: CacheConfig) -> None:
        super().__init__(storage, network)
        self.config = config

    async def execute(self, request: InterceptedRequest) -> httpx.Response:
        try:
            response = await self.network.fetch(request)
        except NetworkFetchError:
            cached = await self.storage.match(request)
            if cached is not None:
                return cached

            if request.is_navigation:
                return await get_offline_page(self.config, self.storage)

            raise

        # Cache successful HTML responses
        if response.is_success and is_html(response):
            cache = await self.storage.open(self.config.static_cache_name)
            await cache.put(request, response)

        return response
