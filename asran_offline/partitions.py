"""Lifecycle of the static and API cache partitions."""

import asyncio
from collections.abc import Iterable

from .config import CacheConfig
from .errors import BulkCacheInitError, NetworkFetchError, SingleEndpointCacheError
from .logging_config import get_logger
from .network import NetworkClient
from .storage import CachePartition, CacheStorage

logger = get_logger(__name__)


class PartitionManager:
    """Creates, fills, refreshes and prunes the versioned cache partitions."""

    def __init__(self, config: CacheConfig, storage: CacheStorage, network: NetworkClient) -> None:
        self.config = config
        self.storage = storage
        self.network = network

    async def open_static(self) -> CachePartition:
        return await self.storage.open(self.config.static_cache_name)

    async def open_api(self) -> CachePartition:
        return await self.storage.open(self.config.api_cache_name)

    async def initialize_static_partition(self) -> None:
        """Pre-cache every shell URL, or nothing at all."""
        cache = await self.open_static()
        logger.info("[SW] Caching static resources")

        urls = [self.config.resolve(url) for url in self.config.shell_urls]
        results = await asyncio.gather(
            *(self.network.fetch(url) for url in urls),
            return_exceptions=True,
        )

        failed_urls = []
        fetched = []
        for url, result in zip(urls, results):
            if isinstance(result, NetworkFetchError):
                failed_urls.append(url)
            elif isinstance(result, BaseException):
                raise result
            elif not result.is_success:
                failed_urls.append(url)
            else:
                fetched.append((url, result))

        if failed_urls:
            raise BulkCacheInitError(failed_urls)

        await cache.put_all(fetched)
        logger.info(f"[SW] Cached {len(fetched)} static resources in {cache.name}")

    async def _cache_endpoint(self, cache: CachePartition, url: str) -> bool:
        """Fetch one endpoint and store it if the response is ok."""
        try:
            response = await self.network.fetch(url)
        except NetworkFetchError as e:
            raise SingleEndpointCacheError(url, str(e)) from e

        if not response.is_success:
            logger.debug(f"[SW] Not caching {url}: status {response.status_code}")
            return False

        await cache.put(url, response)
        return True

    async def initialize_api_partition(self) -> None:
        """Pre-cache the API endpoints on a best-effort basis."""
        cache = await self.open_api()
        logger.info("[SW] Caching API endpoints")

        async def cache_one(url: str) -> None:
            try:
                await self._cache_endpoint(cache, url)
            except SingleEndpointCacheError as e:
                logger.info(f"[SW] {e}")

        await asyncio.gather(*(cache_one(self.config.resolve(url)) for url in self.config.api_urls))

    async def prune_stale_partitions(self, current_names: Iterable[str]) -> list[str]:
        """Delete every partition whose name is not current."""
        keep = set(current_names)
        deleted = []
        for name in await self.storage.keys():
            if name not in keep:
                logger.info(f"[SW] Deleting old cache: {name}")
                await self.storage.delete(name)
                deleted.append(name)
        return deleted

    async def refresh_api_partition(self) -> int:
        """Re-fetch every API endpoint; returns how many entries were refreshed."""
        logger.info("[SW] Syncing fresh content")
        refreshed = 0

        try:
            cache = await self.open_api()
        except Exception as e:
            logger.error(f"[SW] Content sync failed: {e}")
            return refreshed

        for url in self.config.api_urls:
            url = self.config.resolve(url)
            try:
                if await self._cache_endpoint(cache, url):
                    refreshed += 1
            except SingleEndpointCacheError as e:
                logger.info(f"[SW] Failed to sync {url}: {e}")
            except Exception as e:
                logger.error(f"[SW] Failed to sync {url}: {e}")

        return refreshed

    async def get_stats(self) -> dict:
        """Get partition statistics."""
        partitions = {}
        for name in await self.storage.keys():
            cache = await self.storage.open(name)
            partitions[name] = len(await cache.keys())
        return {
            "version": self.config.version,
            "expected": sorted(self.config.expected_cache_names),
            "partitions": partitions,
        }
