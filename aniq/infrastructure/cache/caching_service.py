"""Concrete implementation of the KeyValueCache interface.

Two levels: L1 is an in-memory LRU dictionary, L2 is a `diskcache` directory
that survives restarts. Entries never expire; shape changes are handled by
bumping the version tag in the namespace, so old keys are simply never read.
"""

import logging
import threading
from collections import OrderedDict
from pathlib import Path
from typing import Any, Optional, Union

import diskcache as dc

from aniq.domain.interfaces.cache import KeyValueCache
from aniq.domain.models.common import CacheKey, CacheNamespace

logger = logging.getLogger(__name__)

DEFAULT_L1_MAX_ITEMS = 512


class CachingService(KeyValueCache):
    """Thread-safe L1 (memory) + L2 (disk) cache.

    Pass `cache_dir=None` for a memory-only cache (tests, --no-cache runs).
    """

    def __init__(
        self,
        cache_dir: Optional[Union[str, Path]] = None,
        l1_max_items: int = DEFAULT_L1_MAX_ITEMS,
    ):
        self._l1: "OrderedDict[str, Any]" = OrderedDict()
        self._l1_max_items = l1_max_items
        self._lock = threading.Lock()

        self.disk_cache: Optional[dc.Cache] = None
        if cache_dir is not None:
            try:
                self.disk_cache = dc.Cache(str(cache_dir), timeout=1)
                logger.info(f"Initialized L2 disk cache at: {self.disk_cache.directory}")
            except OSError as e:
                # The game still works without persistence.
                logger.error(f"Failed to initialize L2 disk cache at {cache_dir}: {e}", exc_info=True)
        logger.debug(f"Initialized L1 in-memory cache with size: {l1_max_items}")

    @staticmethod
    def _make_key(namespace: CacheNamespace, key: CacheKey) -> str:
        return f"{namespace}|{key}"

    # --- L1 Cache Operations ---

    def _get_from_memory(self, full_key: str) -> Optional[Any]:
        if full_key in self._l1:
            self._l1.move_to_end(full_key)
            return self._l1[full_key]
        return None

    def _put_in_memory(self, full_key: str, value: Any) -> None:
        self._l1[full_key] = value
        self._l1.move_to_end(full_key)
        while len(self._l1) > self._l1_max_items:
            evicted, _ = self._l1.popitem(last=False)
            logger.debug(f"L1 Cache EVICTED key (LRU): {evicted}")

    # --- KeyValueCache Interface Implementation ---

    def get(self, namespace: CacheNamespace, key: CacheKey) -> Optional[Any]:
        full_key = self._make_key(namespace, key)
        with self._lock:
            value = self._get_from_memory(full_key)
            if value is not None:
                logger.debug(f"L1 Cache HIT for key: {full_key}")
                return value

            if self.disk_cache is not None:
                try:
                    value = self.disk_cache.get(full_key, default=None)
                except Exception as e:
                    logger.error(f"Error getting from L2 cache (key: {full_key}): {e}", exc_info=True)
                    value = None
                if value is not None:
                    logger.debug(f"L2 Cache HIT for key: {full_key}")
                    self._put_in_memory(full_key, value)
                    return value

        logger.debug(f"Cache MISS for key: {full_key}")
        return None

    def set(self, namespace: CacheNamespace, key: CacheKey, value: Any) -> None:
        full_key = self._make_key(namespace, key)
        with self._lock:
            self._put_in_memory(full_key, value)
            if self.disk_cache is not None:
                try:
                    self.disk_cache.set(full_key, value)
                except Exception as e:
                    logger.error(f"Error putting into L2 cache (key: {full_key}): {e}", exc_info=True)
        logger.debug(f"Cache PUT key: {full_key}")

    def clear(self) -> int:
        with self._lock:
            count = len(self._l1)
            self._l1.clear()
            if self.disk_cache is not None:
                count = max(count, self.disk_cache.clear())
        logger.info(f"Cleared cache. Removed {count} items.")
        return count

    def close(self) -> None:
        with self._lock:
            if self.disk_cache is not None:
                self.disk_cache.close()
                logger.debug("Closed L2 disk cache.")
