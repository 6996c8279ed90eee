"""Abstract base class for the similar-artists result cache.

The pipeline caches the enriched list it returns for an artist under
``similar-artists:<artist_id>`` and serves later requests for the same
artist from it until the entry expires.  A forced recomputation deletes
the entry first, and a failed run never writes one, so the cache only
ever holds lists produced from fresh similarity records.

The bundled adapter is an in-process ``cachetools.TTLCache``.  A shared
backend (e.g. Redis) for multi-worker deployments implements this same
contract; the pipeline only ever sees the interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ICacheProvider(ABC):
    """Contract for the pipeline's key-value result cache.

    All operations are async so network-backed stores do not block the
    event loop.  Values are whatever the pipeline stores (a list of
    frozen ``SimilarArtist`` models); in-process adapters keep the objects
    as they are, remote ones must serialise them.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the cached value for *key*.

        Parameters
        ----------
        key:
            Cache key, ``similar-artists:<artist_id>`` for pipeline results.

        Returns
        -------
        Any or None
            The stored value, or ``None`` when the key is absent or has
            expired.  An empty result list is a valid hit and is returned
            as ``[]``, not ``None``.
        """

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* under *key*, replacing any previous entry.

        Parameters
        ----------
        key:
            Cache key.
        value:
            The value to store.
        ttl:
            Time-to-live in seconds.  ``None`` uses the adapter's default
            (``cache.ttl`` in config); adapters may cap a longer value at
            that default.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Evict *key*; a no-op if it is not cached.

        The pipeline calls this before a forced recomputation.
        """
