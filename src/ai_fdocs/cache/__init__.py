from __future__ import annotations

from ai_fdocs.cache.models import META_FILENAME, SchemaVersion, CacheMetadata
from ai_fdocs.cache.store import CacheStore

__all__ = ["META_FILENAME", "CacheMetadata", "CacheStore", "SchemaVersion"]
