"""Store providers for embeddings, artist attributes and similarity records."""

from src.providers.store.postgrest_store import PostgRESTStore
from src.providers.store.sqlite_store import SQLiteStore

__all__ = ["PostgRESTStore", "SQLiteStore"]
