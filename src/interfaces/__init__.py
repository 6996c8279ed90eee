"""Public interface definitions for all external collaborators.

Every backend the similarity service talks to is accessed through the
abstract base classes in this package.  Concrete adapters implement them
and are injected at startup in ``src/main.py``, so business logic never
imports httpx or aiosqlite directly and tests can pass fakes.

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementations (src/providers/)
    ─────────────────────────────────────────────────────────────────────
    IEmbeddingStore            →  PostgRESTStore, SQLiteStore
    ISimilarityRecordStore     →  PostgRESTStore, SQLiteStore
    ICalculationTrigger        →  EdgeFunctionTrigger,
                                  LocalSimilarityCalculator
    ICacheProvider             →  MemoryCacheProvider
"""

from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.calculation_trigger import ICalculationTrigger
from src.interfaces.embedding_store import IEmbeddingStore
from src.interfaces.similarity_record_store import ISimilarityRecordStore

__all__ = [
    "ICacheProvider",
    "ICalculationTrigger",
    "IEmbeddingStore",
    "ISimilarityRecordStore",
]
