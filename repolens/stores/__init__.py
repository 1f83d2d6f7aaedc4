"""Persistence helpers for repolens."""

from .result_cache import CacheStore, JsonFileCacheStore, MemoryCacheStore, ResultCache

__all__ = ["CacheStore", "JsonFileCacheStore", "MemoryCacheStore", "ResultCache"]
