"""Nearest-neighbour lookup of similar artists.

Reads the artist's Wikipedia-article embedding and asks the embedding
store for its nearest neighbours.  The store's raw rows are then cleaned
up here so every backend produces the same shape of answer:

    1. drop the query artist itself
    2. drop rows below the threshold
    3. keep one row per artist (its best score)
    4. sort by score descending, then artist id ascending
    5. cap at ``match_count``
"""

from __future__ import annotations

import structlog

from src.interfaces.embedding_store import IEmbeddingStore
from src.models.similarity import WIKIPEDIA_SOURCE, Neighbor
from src.utils.errors import NotFoundError

logger = structlog.get_logger(logger_name=__name__)

_OVERFETCH_FACTOR = 2

DEFAULT_MATCH_THRESHOLD = 0.7
DEFAULT_MATCH_COUNT = 10


class SimilarityLookup:
    """Find the K most similar artists by article-embedding distance.

    Parameters
    ----------
    store:
        Embedding store to read vectors from and search.
    match_threshold:
        Default minimum similarity (0-1).
    match_count:
        Default maximum number of results.
    """

    def __init__(
        self,
        store: IEmbeddingStore,
        match_threshold: float = DEFAULT_MATCH_THRESHOLD,
        match_count: int = DEFAULT_MATCH_COUNT,
    ) -> None:
        self._store = store
        self._match_threshold = match_threshold
        self._match_count = match_count

    async def find_similar(
        self,
        artist_id: str,
        match_threshold: float | None = None,
        match_count: int | None = None,
    ) -> list[Neighbor]:
        """Return up to *match_count* neighbours of *artist_id*.

        Raises
        ------
        NotFoundError
            If the artist has no Wikipedia embedding, or more than one.
        BackendError
            If the store query fails (propagated unchanged).
        """
        threshold = self._match_threshold if match_threshold is None else match_threshold
        count = self._match_count if match_count is None else match_count
        if count <= 0:
            return []

        embeddings = await self._store.get_embeddings(artist_id, WIKIPEDIA_SOURCE)
        if not embeddings:
            raise NotFoundError(
                message=f"No Wikipedia article embedding found for artist {artist_id}",
                provider_name=self._store.get_provider_name(),
            )
        if len(embeddings) > 1:
            raise NotFoundError(
                message=(
                    f"Expected one Wikipedia article embedding for artist {artist_id}, "
                    f"found {len(embeddings)}"
                ),
                provider_name=self._store.get_provider_name(),
            )

        # Over-fetch: the RPC ranks article rows, not artists, so self-hits
        # and repeated artists would otherwise shorten the page.
        fetch = count * _OVERFETCH_FACTOR + 1
        rows = await self._store.find_nearest(embeddings[0].embedding, threshold, fetch)

        best: dict[str, float] = {}
        for row in rows:
            if row.artist_id == artist_id or row.similarity_score < threshold:
                continue
            if row.similarity_score > best.get(row.artist_id, -1.0):
                best[row.artist_id] = row.similarity_score

        ranked = sorted(best.items(), key=lambda item: (-item[1], item[0]))[:count]
        neighbors = [Neighbor(artist_id=a, similarity_score=s) for a, s in ranked]

        logger.info(
            "similarity_lookup_complete",
            artist_id=artist_id,
            candidates=len(rows),
            returned=len(neighbors),
            threshold=threshold,
        )
        return neighbors
