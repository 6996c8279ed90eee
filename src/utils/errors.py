"""Custom exception hierarchy for the artist-similarity service.

All application exceptions inherit from :class:`MusicboardError`, which
carries an optional ``provider_name`` so error handlers can identify which
backend (e.g. "postgrest", "sqlite", "edge_function") caused the failure.

The hierarchy mirrors the similarity request lifecycle:

    MusicboardError  (base -- catch-all for any application error)
    +-- ValidationError      (malformed or missing artist id)       -> 400
    +-- NotFoundError        (no artist / no wikipedia embedding)   -> 404
    +-- BackendError         (store or network failure)             -> 500
    +-- CalculationError     (calculation trigger failed/reported)  -> 500
    +-- ConfigurationError   (startup / missing config)

Each class declares the HTTP ``status_code`` it maps to so the API layer
can render it without a lookup table.  Callers must keep "no similar
artists" (an empty list) distinct from "could not determine similar
artists" (one of these errors).
"""


class MusicboardError(Exception):
    """Base exception for all application errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which backend triggered the error.  The
    ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[postgrest] connection refused``.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Request errors
# ---------------------------------------------------------------------------

class ValidationError(MusicboardError):
    """Raised when a request carries a missing or malformed artist id."""

    status_code = 400

    def __init__(
        self,
        message: str = "Invalid request",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class NotFoundError(MusicboardError):
    """Raised when an artist or its Wikipedia embedding does not exist."""

    status_code = 404

    def __init__(
        self,
        message: str = "Resource not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External service errors
# ---------------------------------------------------------------------------

class BackendError(MusicboardError):
    """Raised when the embedding/record store is unreachable or rejects a call."""

    def __init__(
        self,
        message: str = "Backend store request failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class CalculationError(MusicboardError):
    """Raised when the similarity calculation could not be run or completed.

    Covers three cases: the trigger could not be invoked, the trigger
    reported ``success: false``, or completion was not observed before the
    polling timeout.
    """

    def __init__(
        self,
        message: str = "Similarity calculation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------

class ConfigurationError(MusicboardError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
