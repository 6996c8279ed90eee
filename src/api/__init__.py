"""Artist-similarity API layer: routes, schemas, and middleware."""

from src.api.middleware import (
    RequestLoggingMiddleware,
    configure_cors,
    musicboard_error_handler,
    register_error_handlers,
)
from src.api.routes import router
from src.api.schemas import (
    ErrorResponse,
    HealthResponse,
    PairwiseSimilarityRequest,
    PairwiseSimilarityResponse,
    RefreshStaleResponse,
    SimilarArtistsResponse,
    StoredSimilaritiesResponse,
)

__all__ = [
    "RequestLoggingMiddleware",
    "configure_cors",
    "musicboard_error_handler",
    "register_error_handlers",
    "router",
    "ErrorResponse",
    "HealthResponse",
    "PairwiseSimilarityRequest",
    "PairwiseSimilarityResponse",
    "RefreshStaleResponse",
    "SimilarArtistsResponse",
    "StoredSimilaritiesResponse",
]
