"""SQLite-backed store implementing IEmbeddingStore and ISimilarityRecordStore.

Local stand-in for the hosted database, used for development, the CLI
and tests.  Persists artists, article embeddings and similarity records
to ``data/similarity.db`` using ``aiosqlite`` for async I/O.  Embeddings
are stored as JSON arrays and searched by brute-force cosine similarity
with numpy, which is fine for a few thousand artists.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite
import numpy as np
import structlog

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
    utcnow,
)
from src.utils.errors import BackendError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/similarity.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS artists (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL DEFAULT '',
    genre       TEXT,
    popularity  INTEGER,
    image       TEXT,
    genres      TEXT NOT NULL DEFAULT '[]',
    created_at  TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS artist_articles (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    artist_id   TEXT NOT NULL,
    source      TEXT NOT NULL,
    embedding   TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS similar_artists (
    artist1_id        TEXT NOT NULL,
    artist2_id        TEXT NOT NULL,
    similarity_score  REAL NOT NULL,
    metadata          TEXT,
    last_updated      TEXT NOT NULL,
    UNIQUE(artist1_id, artist2_id)
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_articles_artist_source ON artist_articles(artist_id, source);",
    "CREATE INDEX IF NOT EXISTS idx_similar_artist1 ON similar_artists(artist1_id);",
    "CREATE INDEX IF NOT EXISTS idx_artists_created ON artists(created_at);",
]

_UPSERT_ARTIST_SQL = """\
INSERT INTO artists (id, name, genre, popularity, image, genres, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(id)
DO UPDATE SET name       = excluded.name,
              genre      = excluded.genre,
              popularity = excluded.popularity,
              image      = excluded.image,
              genres     = excluded.genres;
"""

_UPSERT_RECORD_SQL = """\
INSERT INTO similar_artists (artist1_id, artist2_id, similarity_score, metadata, last_updated)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT(artist1_id, artist2_id)
DO UPDATE SET similarity_score = excluded.similarity_score,
              metadata         = excluded.metadata,
              last_updated     = excluded.last_updated;
"""

_SELECT_ARTIST_COLUMNS = "id, name, genre, popularity, image, genres"


def _timestamp(value: datetime) -> str:
    # Fixed-width ISO text so lexical order matches chronological order.
    return as_utc(value).isoformat(timespec="microseconds")


def _row_to_artist(row: aiosqlite.Row) -> Artist:
    return Artist(
        id=row["id"],
        name=row["name"] or "",
        genre=row["genre"],
        popularity=row["popularity"],
        image=row["image"],
        genres=json.loads(row["genres"] or "[]"),
    )


class SQLiteStore(IEmbeddingStore, ISimilarityRecordStore):
    """SQLite persistence for artists, embeddings and similarity records."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        """Open a connection for one operation, mapping driver errors."""
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                yield db
        except aiosqlite.Error as exc:
            logger.error("sqlite_operation_failed", path=str(self._db_path), error=str(exc))
            raise BackendError(
                message=f"SQLite store error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def initialize(self) -> None:
        """Create the tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            for table_sql in _CREATE_TABLES_SQL:
                await db.execute(table_sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("similarity_db_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Write helpers (import CLI, local calculator, tests)
    # ------------------------------------------------------------------

    async def upsert_artist(self, artist: Artist, created_at: datetime | None = None) -> None:
        """Insert or update an artist record."""
        async with self._connect() as db:
            await db.execute(
                _UPSERT_ARTIST_SQL,
                (
                    artist.id,
                    artist.name,
                    artist.genre,
                    artist.popularity,
                    artist.image,
                    json.dumps(artist.genres),
                    _timestamp(created_at or utcnow()),
                ),
            )
            await db.commit()

    async def add_embedding(self, embedding: ArticleEmbedding) -> None:
        """Store an article embedding for an artist.

        Several rows for the same ``(artist_id, source)`` are allowed, as
        in the hosted table; lookups treat that case as ambiguous.
        """
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO artist_articles (artist_id, source, embedding) VALUES (?, ?, ?)",
                (embedding.artist_id, embedding.source, json.dumps(embedding.embedding)),
            )
            await db.commit()

    async def replace_embedding(self, embedding: ArticleEmbedding) -> None:
        """Store *embedding* as the only vector for its ``(artist_id, source)``."""
        async with self._connect() as db:
            await db.execute(
                "DELETE FROM artist_articles WHERE artist_id = ? AND source = ?",
                (embedding.artist_id, embedding.source),
            )
            await db.execute(
                "INSERT INTO artist_articles (artist_id, source, embedding) VALUES (?, ?, ?)",
                (embedding.artist_id, embedding.source, json.dumps(embedding.embedding)),
            )
            await db.commit()

    # ------------------------------------------------------------------
    # Read helpers for the local calculator
    # ------------------------------------------------------------------

    async def get_artist(self, artist_id: str) -> Artist | None:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_SELECT_ARTIST_COLUMNS} FROM artists WHERE id = ?",
                (artist_id,),
            )
            row = await cursor.fetchone()
        return _row_to_artist(row) if row is not None else None

    async def list_artists(self, limit: int | None = None) -> list[Artist]:
        """Return artists, most recently added first."""
        sql = f"SELECT {_SELECT_ARTIST_COLUMNS} FROM artists ORDER BY created_at DESC, id"
        params: tuple[Any, ...] = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (limit,)
        async with self._connect() as db:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        return [_row_to_artist(r) for r in rows]

    async def all_embeddings(self, source: str = WIKIPEDIA_SOURCE) -> dict[str, list[float]]:
        """Return one embedding per artist for *source* (first stored row wins)."""
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT artist_id, embedding FROM artist_articles WHERE source = ? ORDER BY id",
                (source,),
            )
            rows = await cursor.fetchall()
        vectors: dict[str, list[float]] = {}
        for row in rows:
            vectors.setdefault(row["artist_id"], json.loads(row["embedding"]))
        return vectors

    # ------------------------------------------------------------------
    # IEmbeddingStore implementation
    # ------------------------------------------------------------------

    async def get_embeddings(
        self,
        artist_id: str,
        source: str = WIKIPEDIA_SOURCE,
    ) -> list[ArticleEmbedding]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT embedding FROM artist_articles WHERE artist_id = ? AND source = ? ORDER BY id",
                (artist_id, source),
            )
            rows = await cursor.fetchall()
        return [
            ArticleEmbedding(artist_id=artist_id, source=source, embedding=json.loads(r["embedding"]))
            for r in rows
        ]

    async def find_nearest(
        self,
        embedding: list[float],
        threshold: float,
        limit: int,
    ) -> list[Neighbor]:
        vectors = await self.all_embeddings(WIKIPEDIA_SOURCE)
        if not vectors or limit <= 0:
            return []

        ids = list(vectors)
        try:
            matrix = np.asarray([vectors[i] for i in ids], dtype=np.float64)
            query = np.asarray(embedding, dtype=np.float64)
            norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
            with np.errstate(divide="ignore", invalid="ignore"):
                scores = np.where(norms > 0, matrix @ query / norms, 0.0)
        except ValueError as exc:
            raise BackendError(
                message=f"Embedding dimension mismatch: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        scores = np.clip(scores, 0.0, 1.0)
        # Ties ranked by artist id so the page cut is deterministic.
        order = sorted(range(len(ids)), key=lambda i: (-scores[i], ids[i]))
        neighbors: list[Neighbor] = []
        for idx in order:
            score = float(scores[idx])
            if score < threshold:
                break
            neighbors.append(Neighbor(artist_id=ids[idx], similarity_score=score))
            if len(neighbors) >= limit:
                break
        logger.debug("sqlite_match_complete", rows=len(neighbors), threshold=threshold)
        return neighbors

    async def get_attributes(self, artist_ids: list[str]) -> dict[str, Artist]:
        unique_ids = list(dict.fromkeys(artist_ids))
        if not unique_ids:
            return {}
        placeholders = ",".join("?" for _ in unique_ids)
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_SELECT_ARTIST_COLUMNS} FROM artists WHERE id IN ({placeholders})",
                tuple(unique_ids),
            )
            rows = await cursor.fetchall()
        return {r["id"]: _row_to_artist(r) for r in rows}

    # ------------------------------------------------------------------
    # ISimilarityRecordStore implementation
    # ------------------------------------------------------------------

    async def latest_computed_at(self, artist_id: str) -> datetime | None:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT MAX(last_updated) AS latest FROM similar_artists WHERE artist1_id = ?",
                (artist_id,),
            )
            row = await cursor.fetchone()
        if row is None or row["latest"] is None:
            return None
        return as_utc(datetime.fromisoformat(row["latest"]))

    async def get_records(self, artist_id: str, limit: int = 10) -> list[SimilarityRecord]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT artist1_id, artist2_id, similarity_score, metadata, last_updated "
                "FROM similar_artists WHERE artist1_id = ? "
                "ORDER BY similarity_score DESC, artist2_id LIMIT ?",
                (artist_id, limit),
            )
            rows = await cursor.fetchall()

        records: list[SimilarityRecord] = []
        for row in rows:
            metadata = json.loads(row["metadata"]) if row["metadata"] else {}
            raw_factors = metadata.get("factors")
            records.append(
                SimilarityRecord(
                    artist1_id=row["artist1_id"],
                    artist2_id=row["artist2_id"],
                    similarity_score=row["similarity_score"],
                    factors=SimilarityFactors(**raw_factors) if raw_factors else None,
                    computed_at=datetime.fromisoformat(row["last_updated"]),
                )
            )
        return records

    async def list_stale_artist_ids(
        self,
        older_than: datetime,
        limit: int | None = None,
    ) -> list[str]:
        sql = (
            "SELECT artist1_id FROM similar_artists "
            "GROUP BY artist1_id HAVING MAX(last_updated) < ? "
            "ORDER BY MAX(last_updated), artist1_id"
        )
        params: tuple[Any, ...] = (_timestamp(older_than),)
        if limit is not None:
            sql += " LIMIT ?"
            params = (*params, limit)
        async with self._connect() as db:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        return [r["artist1_id"] for r in rows]

    async def upsert_records(self, records: list[SimilarityRecord]) -> int:
        if not records:
            return 0
        async with self._connect() as db:
            await db.executemany(
                _UPSERT_RECORD_SQL,
                [
                    (
                        r.artist1_id,
                        r.artist2_id,
                        r.similarity_score,
                        json.dumps(r.to_metadata()),
                        _timestamp(r.computed_at),
                    )
                    for r in records
                ],
            )
            await db.commit()
        logger.info("sqlite_records_upserted", count=len(records))
        return len(records)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def get_provider_name(self) -> str:
        return "sqlite"

    def is_available(self) -> bool:
        return True
