"""PostgREST store provider implementing IEmbeddingStore and ISimilarityRecordStore.

Talks to the hosted Postgres instance (pgvector + RPC functions) through
its PostgREST HTTP API using a shared ``httpx.AsyncClient``.  The
nearest-neighbour search itself runs inside the database via the
``match_articles`` RPC; this adapter only shapes requests and responses.

Tables and functions used:
    artist_articles   - ``artist_id``, ``embedding`` (vector), ``metadata->>source``
    artists           - identity and display attributes
    similar_artists   - directional similarity records (configurable name)
    rpc/match_articles(query_embedding, match_threshold, match_count)
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import datetime
from typing import Any

import httpx
import structlog
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from src.interfaces.embedding_store import IEmbeddingStore
from src.interfaces.similarity_record_store import ISimilarityRecordStore
from src.models.similarity import (
    WIKIPEDIA_SOURCE,
    ArticleEmbedding,
    Artist,
    Neighbor,
    SimilarityFactors,
    SimilarityRecord,
    as_utc,
)
from src.utils.errors import BackendError

logger = structlog.get_logger(logger_name=__name__)

_DATETIME = TypeAdapter(datetime)

# Rows per upsert request; larger payloads hit the hosted API's body limit.
_UPSERT_BATCH_SIZE = 50


def _quote_in(values: Iterable[str]) -> str:
    """Build a PostgREST ``in.(...)`` filter with double-quoted values."""
    quoted = ",".join('"' + v.replace('"', '\\"') + '"' for v in values)
    return f"in.({quoted})"


def _parse_vector(raw: Any) -> list[float]:
    """pgvector columns come back either as JSON arrays or as ``"[1,2,3]"`` text."""
    if isinstance(raw, str):
        raw = json.loads(raw)
    return [float(x) for x in raw]


def _clamp_score(value: Any) -> float:
    return max(0.0, min(1.0, float(value)))


class PostgRESTStore(IEmbeddingStore, ISimilarityRecordStore):
    """Hosted Postgres store accessed over PostgREST.

    Parameters
    ----------
    http_client:
        Shared async client; its lifecycle belongs to the application.
    rest_url:
        Base URL such as ``https://<project>.supabase.co/rest/v1``.
    api_key:
        Service key sent as ``apikey`` and bearer token.
    match_function:
        Name of the nearest-neighbour RPC function.
    similarity_table:
        Table holding similarity records.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        rest_url: str,
        api_key: str,
        match_function: str = "match_articles",
        similarity_table: str = "similar_artists",
    ) -> None:
        self._http = http_client
        self._rest_url = rest_url.rstrip("/")
        self._api_key = api_key
        self._match_function = match_function
        self._table = similarity_table

    # ------------------------------------------------------------------
    # HTTP helper
    # ------------------------------------------------------------------

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json_body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Send one request and return the decoded JSON body.

        Transport failures and non-2xx responses become ``BackendError``.
        """
        url = f"{self._rest_url}/{path.lstrip('/')}"
        try:
            response = await self._http.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=self._headers(headers),
            )
        except httpx.HTTPError as exc:
            logger.error("postgrest_request_failed", path=path, error=str(exc))
            raise BackendError(
                message=f"Store request to {path} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not response.is_success:
            detail = response.text[:300]
            try:
                body = response.json()
                if isinstance(body, dict):
                    detail = body.get("message") or body.get("error") or detail
            except ValueError:
                pass
            logger.error(
                "postgrest_http_error",
                path=path,
                status=response.status_code,
                detail=detail,
            )
            raise BackendError(
                message=f"Store returned HTTP {response.status_code} for {path}: {detail}",
                provider_name=self.get_provider_name(),
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise BackendError(
                message=f"Store returned invalid JSON for {path}",
                provider_name=self.get_provider_name(),
            ) from exc

    # ------------------------------------------------------------------
    # IEmbeddingStore implementation
    # ------------------------------------------------------------------

    async def get_embeddings(
        self,
        artist_id: str,
        source: str = WIKIPEDIA_SOURCE,
    ) -> list[ArticleEmbedding]:
        rows = await self._request(
            "GET",
            "artist_articles",
            params={
                "select": "artist_id,embedding",
                "artist_id": f"eq.{artist_id}",
                "metadata->>source": f"eq.{source}",
            },
        )
        embeddings: list[ArticleEmbedding] = []
        for row in rows or []:
            if row.get("embedding") is None:
                continue
            try:
                vector = _parse_vector(row["embedding"])
            except (ValueError, TypeError) as exc:
                raise BackendError(
                    message=f"Unreadable embedding for artist {artist_id}",
                    provider_name=self.get_provider_name(),
                ) from exc
            embeddings.append(
                ArticleEmbedding(artist_id=artist_id, source=source, embedding=vector)
            )
        return embeddings

    async def find_nearest(
        self,
        embedding: list[float],
        threshold: float,
        limit: int,
    ) -> list[Neighbor]:
        rows = await self._request(
            "POST",
            f"rpc/{self._match_function}",
            json_body={
                "query_embedding": embedding,
                "match_threshold": threshold,
                "match_count": limit,
            },
        )
        neighbors = [
            Neighbor(artist_id=str(row["artist_id"]), similarity_score=_clamp_score(row["similarity"]))
            for row in rows or []
            if row.get("artist_id") is not None and row.get("similarity") is not None
        ]
        logger.debug("postgrest_match_complete", rows=len(neighbors), threshold=threshold)
        return neighbors

    async def get_attributes(self, artist_ids: list[str]) -> dict[str, Artist]:
        if not artist_ids:
            return {}
        rows = await self._request(
            "GET",
            "artists",
            params={"select": "*", "id": _quote_in(dict.fromkeys(artist_ids))},
        )
        artists: dict[str, Artist] = {}
        for row in rows or []:
            artist_id = str(row["id"])
            artists[artist_id] = Artist(
                id=artist_id,
                name=row.get("name") or "",
                genre=row.get("genre"),
                popularity=row.get("popularity"),
                # Older rows only carry image_url.
                image=row.get("image") or row.get("image_url"),
                genres=row.get("genres") or [],
            )
        return artists

    # ------------------------------------------------------------------
    # ISimilarityRecordStore implementation
    # ------------------------------------------------------------------

    async def latest_computed_at(self, artist_id: str) -> datetime | None:
        rows = await self._request(
            "GET",
            self._table,
            params={
                "select": "last_updated",
                "artist1_id": f"eq.{artist_id}",
                "order": "last_updated.desc",
                "limit": "1",
            },
        )
        if not rows or rows[0].get("last_updated") is None:
            return None
        return as_utc(_DATETIME.validate_python(rows[0]["last_updated"]))

    async def get_records(self, artist_id: str, limit: int = 10) -> list[SimilarityRecord]:
        rows = await self._request(
            "GET",
            self._table,
            params={
                "select": "artist1_id,artist2_id,similarity_score,metadata,last_updated",
                "artist1_id": f"eq.{artist_id}",
                "order": "similarity_score.desc",
                "limit": str(limit),
            },
        )
        records: list[SimilarityRecord] = []
        for row in rows or []:
            try:
                records.append(self._row_to_record(row))
            except (PydanticValidationError, KeyError) as exc:
                logger.warning(
                    "postgrest_record_skipped",
                    artist1_id=row.get("artist1_id"),
                    artist2_id=row.get("artist2_id"),
                    error=str(exc),
                )
        return records

    async def list_stale_artist_ids(
        self,
        older_than: datetime,
        limit: int | None = None,
    ) -> list[str]:
        cutoff = as_utc(older_than).isoformat()
        stale_rows = await self._request(
            "GET",
            self._table,
            params={
                "select": "artist1_id",
                "last_updated": f"lt.{cutoff}",
                "order": "artist1_id",
            },
        )
        candidates = list(dict.fromkeys(str(r["artist1_id"]) for r in stale_rows or []))
        if not candidates:
            return []

        # An artist with any record at or after the cutoff is fresh.
        fresh_rows = await self._request(
            "GET",
            self._table,
            params={
                "select": "artist1_id",
                "artist1_id": _quote_in(candidates),
                "last_updated": f"gte.{cutoff}",
            },
        )
        fresh = {str(r["artist1_id"]) for r in fresh_rows or []}
        stale = [a for a in candidates if a not in fresh]
        return stale[:limit] if limit is not None else stale

    async def upsert_records(self, records: list[SimilarityRecord]) -> int:
        written = 0
        for start in range(0, len(records), _UPSERT_BATCH_SIZE):
            batch = records[start : start + _UPSERT_BATCH_SIZE]
            await self._request(
                "POST",
                self._table,
                params={"on_conflict": "artist1_id,artist2_id"},
                json_body=[
                    {
                        "artist1_id": r.artist1_id,
                        "artist2_id": r.artist2_id,
                        "similarity_score": r.similarity_score,
                        "metadata": r.to_metadata(),
                        "last_updated": r.computed_at.isoformat(),
                    }
                    for r in batch
                ],
                headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
            )
            written += len(batch)
        logger.info("postgrest_records_upserted", count=written)
        return written

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_record(row: dict[str, Any]) -> SimilarityRecord:
        metadata = row.get("metadata") or {}
        raw_factors = metadata.get("factors") if isinstance(metadata, dict) else None
        factors = None
        if isinstance(raw_factors, dict):
            factors = SimilarityFactors(
                genre_similarity=_clamp_score(raw_factors.get("genre_similarity", 0.0)),
                name_similarity=_clamp_score(raw_factors.get("name_similarity", 0.0)),
                content_similarity=_clamp_score(raw_factors.get("content_similarity", 0.0)),
            )
        return SimilarityRecord(
            artist1_id=str(row["artist1_id"]),
            artist2_id=str(row["artist2_id"]),
            similarity_score=_clamp_score(row["similarity_score"]),
            factors=factors,
            computed_at=row["last_updated"],
        )

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def get_provider_name(self) -> str:
        return "postgrest"

    def is_available(self) -> bool:
        return bool(self._rest_url and self._api_key)
