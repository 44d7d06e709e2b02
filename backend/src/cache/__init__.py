"""In-process caching helpers."""

from src.cache.ttl_cache import TTLCache

__all__ = ["TTLCache"]
