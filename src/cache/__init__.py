"""
Local pool cache: ORM model and CacheStore.
"""

from src.cache.models import Base, PoolCacheRow
from src.cache.store import CACHE_FIELDS, WIDE_FIELDS, CacheStore

__all__ = [
    "Base",
    "CACHE_FIELDS",
    "CacheStore",
    "PoolCacheRow",
    "WIDE_FIELDS",
]
