"""Offline caching and network fallback layer for the ASRAN storefront."""

from .config import CacheConfig
from .controller import OfflineCacheController, Registration

__version__ = "1.0.0"

__all__ = ["CacheConfig", "OfflineCacheController", "Registration", "__version__"]
