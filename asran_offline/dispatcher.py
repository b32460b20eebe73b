"""Routes intercepted requests to a caching strategy."""

import re

import httpx

from .config import CacheConfig
from .logging_config import get_logger
from .models import InterceptedRequest
from .network import NetworkClient
from .offline_page import render_offline_page
from .storage import CacheStorage
from .strategies import (
    CacheFirstStrategy,
    NetworkFirstStrategy,
    NetworkFirstWithFallbackStrategy,
    Strategy,
    get_offline_page,
)
from .tasks import BackgroundTasks

logger = get_logger(__name__)

NETWORK_ERROR_STATUS = 408


def network_error_response() -> httpx.Response:
    """Last-resort response when neither the network nor a cache can answer."""
    return httpx.Response(NETWORK_ERROR_STATUS, text="Network error")


class StrategyDispatcher:
    """Picks exactly one strategy per request and never lets an error escape."""

    def __init__(
        self,
        config: CacheConfig,
        storage: CacheStorage,
        network: NetworkClient,
        background: BackgroundTasks,
    ) -> None:
        self.config = config
        self.storage = storage

        extensions = "|".join(re.escape(ext) for ext in config.static_extensions)
        self.static_asset_pattern = re.compile(rf"\.({extensions})$")
        self.shell_paths = frozenset(config.shell_urls)

        self.cache_first = CacheFirstStrategy(storage, network, config.static_cache_name, background)
        self.network_first = NetworkFirstStrategy(storage, network, config.api_cache_name)
        self.network_first_with_fallback = NetworkFirstWithFallbackStrategy(storage, network, config)

    def should_intercept(self, request: InterceptedRequest) -> bool:
        """Non-GET and non-http(s) requests go straight to the network."""
        if request.method != "GET":
            return False
        return request.scheme in ("http", "https")

    def is_static_asset(self, path: str) -> bool:
        return bool(self.static_asset_pattern.search(path)) or path in self.shell_paths

    def select(self, request: InterceptedRequest) -> Strategy | None:
        """Pick the strategy for a request, or None to pass it through."""
        if not self.should_intercept(request):
            return None

        path = request.path

        # API requests win over extension matching
        if path.startswith(self.config.api_prefix):
            return self.network_first

        if self.is_static_asset(path):
            return self.cache_first

        return self.network_first_with_fallback

    async def dispatch(self, request: InterceptedRequest) -> httpx.Response | None:
        """Handle a request; None means it was not intercepted."""
        strategy = self.select(request)
        if strategy is None:
            return None

        logger.debug(f"[SW] {strategy.name} -> {request.url}")
        try:
            return await strategy.execute(request)
        except Exception as e:
            logger.warning(f"[SW] Fetch error: {e}")
            return await self._recover(request)

    async def _recover(self, request: InterceptedRequest) -> httpx.Response:
        try:
            # Return offline page for navigation requests
            if request.is_navigation:
                return await get_offline_page(self.config, self.storage)

            # For other requests, try cache or return error
            cached = await self.storage.match(request)
        except Exception as e:
            logger.error(f"[SW] Cache lookup failed for {request.url}: {e}")
            if request.is_navigation:
                return render_offline_page()
            return network_error_response()

        if cached is not None:
            return cached
        return network_error_response()
