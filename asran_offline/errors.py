"""Error taxonomy for the offline cache controller."""


class OfflineCacheError(Exception):
    """Base class for offline cache errors."""


class BulkCacheInitError(OfflineCacheError):
    """One or more shell URLs could not be fetched while installing."""

    def __init__(self, failed_urls: list[str]) -> None:
        self.failed_urls = list(failed_urls)
        super().__init__(f"Failed to pre-cache shell URLs: {', '.join(self.failed_urls)}")


class SingleEndpointCacheError(OfflineCacheError):
    """An API endpoint could not be pre-cached or refreshed."""

    def __init__(self, url: str, reason: str = "") -> None:
        self.url = url
        message = f"Failed to cache {url}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class NetworkFetchError(OfflineCacheError):
    """A network fetch failed before a response was received."""

    def __init__(self, url: str, reason: str = "") -> None:
        self.url = url
        message = f"Network request failed: {url}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class UnsupportedRequestError(OfflineCacheError):
    """A request that cannot be stored in a cache partition."""
