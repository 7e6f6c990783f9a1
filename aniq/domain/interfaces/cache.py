"""Interface for the persistent key-value cache.

The quiz core only needs two operations. Entries are immutable once written;
invalidation happens by bumping the version tag embedded in the namespace.
"""

import abc
from typing import Any, Optional

from ..models.common import CacheKey, CacheNamespace


class KeyValueCache(abc.ABC):
    """Abstract Base Class for namespaced cache storage.

    Implementations must be safe under concurrent access by several
    in-flight fetchers.
    """

    @abc.abstractmethod
    def get(self, namespace: CacheNamespace, key: CacheKey) -> Optional[Any]:
        """Retrieves a value.

        Args:
            namespace: Versioned namespace, e.g. 'aniq_topAnimeIds_v1'.
            key: Key within the namespace.

        Returns:
            The stored value, or None when absent.
        """
        pass

    @abc.abstractmethod
    def set(self, namespace: CacheNamespace, key: CacheKey, value: Any) -> None:
        """Stores a value. The value must be serializable (plain data)."""
        pass

    def clear(self) -> int:
        """Removes every entry. Returns the number of entries removed, if known."""
        return 0

    def close(self) -> None:
        """Releases any backing resources (files, connections)."""
        pass
