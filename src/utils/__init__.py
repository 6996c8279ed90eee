"""Utility modules for the artist-similarity service.

Available utility modules (re-exported here for convenience):

- **errors** -- Domain exception hierarchy rooted at MusicboardError; each
  class carries the HTTP status it maps to.
- **concurrency** -- SingleFlight per-key deduplication and poll_until
  exponential-backoff polling.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text_normalizer** -- artist name / genre normalization, edit
  similarity, and artist id validation.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    BackendError,
    CalculationError,
    ConfigurationError,
    MusicboardError,
    NotFoundError,
    ValidationError,
)

# -- Async concurrency helpers ---------------------------------------------
from src.utils.concurrency import SingleFlight, poll_until

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import configure_logging, get_logger

# -- Text normalization ----------------------------------------------------
from src.utils.text_normalizer import (
    edit_similarity,
    name_tokens,
    normalize_artist_name,
    normalize_genres,
    validate_artist_id,
)

__all__ = [
    "BackendError",
    "CalculationError",
    "ConfigurationError",
    "MusicboardError",
    "NotFoundError",
    "SingleFlight",
    "ValidationError",
    "configure_logging",
    "edit_similarity",
    "get_logger",
    "name_tokens",
    "normalize_artist_name",
    "normalize_genres",
    "poll_until",
    "validate_artist_id",
]
