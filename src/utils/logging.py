"""Structured logging setup using structlog.

Uses a dual-renderer setup: the same shared processor chain (context vars,
log level, UTC timestamps, stack info) feeds either a coloured
ConsoleRenderer for local development or a JSONRenderer for production.
The renderer is selected from the ``APP_ENV`` environment variable
(default ``"development"``) or forced via the ``json_output`` flag.

Request-scoped fields live in structlog's contextvars.  The request
middleware binds ``request_id``/``method``/``path`` once per HTTP request
and the similarity pipeline binds ``run_id``/``artist_id`` for the span
of one run, so every log line emitted underneath (store queries, trigger
polls, enrichment) carries them without threading them through call
signatures.  Concurrent requests each run in their own asyncio task and
therefore see their own copy of the context.

Standard-library ``logging`` is routed through the same formatter so that
httpx, aiosqlite and uvicorn output matches the application's own lines.
"""

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

# Keys owned by the HTTP layer; cleared at the end of each request.
REQUEST_CONTEXT_KEYS = ("request_id", "method", "path")


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Configure structlog with environment-appropriate rendering.

    Args:
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR).
        json_output: Force JSON output. When False, uses console rendering in
                     development and JSON in production (detected via APP_ENV).

    Returns:
        A configured structlog BoundLogger.
    """
    # "production" => JSON lines for the log shipper; anything else => console.
    app_env = os.environ.get("APP_ENV", "development")
    use_json = json_output or app_env == "production"

    # Shared processor chain, identical for both renderers.  Order matters:
    # contextvars first so request/run bindings are merged before the level
    # and timestamp keys, then exception formatting.
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,  # request_id, run_id, artist_id
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        # computed_at values in the store are UTC; log stamps match them.
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if use_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            renderer,
        ],
        # Records below log_level are dropped before any processor runs.
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Bridge stdlib logging through the same pipeline.
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *shared_processors,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()  # uvicorn installs its own; avoid duplicates
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a named structlog logger, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(logger_name=name)


def bind_request_context(request_id: str, method: str, path: str) -> None:
    """Bind the HTTP request fields for every log line of this request.

    Any context left over from a previous request handled by the same
    task is dropped first.
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, method=method, path=path)


def clear_request_context() -> None:
    """Drop the request fields bound by :func:`bind_request_context`."""
    structlog.contextvars.unbind_contextvars(*REQUEST_CONTEXT_KEYS)


@contextmanager
def run_context(run_id: str, artist_id: str) -> Iterator[None]:
    """Bind ``run_id``/``artist_id`` for the duration of a similarity run.

    Values bound before entry are restored on exit.
    """
    with structlog.contextvars.bound_contextvars(run_id=run_id, artist_id=artist_id):
        yield
