"""Abstract base class for embedding-store providers.

Defines the contract for reading article embeddings, running a
nearest-neighbour search over them and batch-reading artist attributes.
Implementations may wrap a hosted Postgres with pgvector (through its
PostgREST HTTP API and an RPC function), a local SQLite file, or a
dedicated vector index service.  Business logic depends only on this
interface, never on a concrete backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.similarity import WIKIPEDIA_SOURCE, ArticleEmbedding, Artist, Neighbor


# Concrete implementations (src/providers/store/):
#   PostgRESTStore - hosted Postgres + pgvector via PostgREST / RPC
#   SQLiteStore    - local aiosqlite file, brute-force cosine search
class IEmbeddingStore(ABC):
    """Contract for the store holding embeddings and artist records.

    All methods are async so network-backed stores never block the event
    loop.  Transport or query failures surface as
    :class:`~src.utils.errors.BackendError`.
    """

    @abstractmethod
    async def get_embeddings(
        self,
        artist_id: str,
        source: str = WIKIPEDIA_SOURCE,
    ) -> list[ArticleEmbedding]:
        """Return every embedding stored for ``(artist_id, source)``.

        The caller decides what zero or several rows mean; the store only
        reports what it holds.

        Raises
        ------
        src.utils.errors.BackendError
            If the store cannot be queried.
        """

    @abstractmethod
    async def find_nearest(
        self,
        embedding: list[float],
        threshold: float,
        limit: int,
    ) -> list[Neighbor]:
        """Return up to *limit* neighbours with similarity >= *threshold*.

        Parameters
        ----------
        embedding:
            Query vector.
        threshold:
            Minimum similarity (0-1) a neighbour must reach.
        limit:
            Maximum number of rows to return.

        Returns
        -------
        list[Neighbor]
            Rows in store order.  The query artist itself may be included;
            callers filter it out.

        Raises
        ------
        src.utils.errors.BackendError
            If the search fails.
        """

    @abstractmethod
    async def get_attributes(self, artist_ids: list[str]) -> dict[str, Artist]:
        """Batch-read artist records for *artist_ids* in a single request.

        Returns
        -------
        dict[str, Artist]
            Mapping of id to record.  Unknown ids are simply absent.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"postgrest"`` or ``"sqlite"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store is configured well enough to be used."""
