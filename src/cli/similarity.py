# =============================================================================
# src/cli/similarity.py - Artist Similarity CLI
# =============================================================================
#
# Operator tool for the similarity service outside the HTTP API.  Uses the
# same component wiring as the web app (src/main.py::_build_all), so the
# backend is selected the same way (STORE_BACKEND=postgrest|sqlite).
#
# Supported subcommands:
#
#   similar        - Print the similar artists of one artist
#   calculate      - Run a calculation for one artist or a batch of recent ones
#   refresh-stale  - Recompute every artist whose records are older than 7 days
#   import         - Load artists and embeddings from JSON into the SQLite store
#
# Import file format:
#   {
#     "artists":    [{"id": "a1", "name": "...", "genres": ["techno"], ...}],
#     "embeddings": [{"artist_id": "a1", "embedding": [0.1, 0.2, ...]}]
#   }
#
# Usage examples:
#   python -m src.cli.similarity similar 6f1c2a --force
#   python -m src.cli.similarity calculate --limit 25
#   python -m src.cli.similarity refresh-stale
#   python -m src.cli.similarity import data/seed.json --db data/similarity.db
# =============================================================================

"""Standalone CLI for the artist-similarity service.

Usage::

    python -m src.cli.similarity similar <artist_id> [--force] [--json]
    python -m src.cli.similarity calculate [--artist ID | --limit N]
    python -m src.cli.similarity refresh-stale [--limit N]
    python -m src.cli.similarity import <file.json> [--db PATH]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from src.config.settings import Settings
from src.models.similarity import ArticleEmbedding, Artist
from src.providers.store.sqlite_store import SQLiteStore
from src.utils.errors import MusicboardError
from src.utils.text_normalizer import validate_artist_id


async def _with_components(app_settings: Settings, handler: Any, args: argparse.Namespace) -> int:
    """Build the app components, run *handler*, and close the HTTP client."""
    # Deferred: src.main configures logging and builds the app on import.
    from src.main import _build_all

    components = _build_all(app_settings)
    try:
        store = components["store"]
        if isinstance(store, SQLiteStore):
            await store.initialize()
        return await handler(args, components)
    finally:
        await components["http_client"].aclose()


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_similar(args: argparse.Namespace, components: dict[str, Any]) -> int:
    artist_id = validate_artist_id(args.artist_id)
    run = await components["pipeline"].run(artist_id, force=args.force)

    if args.json:
        print(json.dumps([r.model_dump() for r in run.results], indent=2))
        return 0

    status = "recomputed" if run.recomputed else "cached" if run.from_cache else "fresh"
    print(f"Similar artists for {artist_id} ({status}):")
    if not run.results:
        print("  (none above the match threshold)")
    for rank, artist in enumerate(run.results, start=1):
        name = artist.name or "<unknown>"
        genre = f"  [{artist.genre}]" if artist.genre else ""
        print(f"  {rank:>2}. {artist.similarity_score:.3f}  {name} ({artist.artist_id}){genre}")
    return 0


async def _handle_calculate(args: argparse.Namespace, components: dict[str, Any]) -> int:
    artist_id = validate_artist_id(args.artist) if args.artist else None
    result = await components["trigger"].calculate(artist_id=artist_id, limit=args.limit)

    if not result.success:
        print(f"Calculation failed: {result.error}", file=sys.stderr)
        return 1

    if result.message:
        print(result.message)
    for processed in result.processed or []:
        name = processed.artist_name or processed.artist_id
        print(f"  {name}: {processed.similarities_calculated} similarities")
    if result.total_artists_processed is not None:
        print(f"Artists processed: {result.total_artists_processed}")
    return 0


async def _handle_refresh_stale(args: argparse.Namespace, components: dict[str, Any]) -> int:
    summary = await components["stale_refresher"].refresh(limit=args.limit)
    print(f"Stale artists checked: {summary.checked}")
    print(f"  Refreshed: {len(summary.refreshed)}")
    for artist_id, error in summary.failed.items():
        print(f"  Failed {artist_id}: {error}", file=sys.stderr)
    return 1 if summary.failed else 0


async def _handle_import(args: argparse.Namespace, app_settings: Settings) -> int:
    path = Path(args.file)
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1

    with open(path, encoding="utf-8") as f:
        payload = json.load(f)

    store = SQLiteStore(db_path=args.db or app_settings.sqlite_db_path)
    await store.initialize()

    artists = [Artist.model_validate(a) for a in payload.get("artists", [])]
    embeddings = [ArticleEmbedding.model_validate(e) for e in payload.get("embeddings", [])]
    for artist in artists:
        await store.upsert_artist(artist)
    for embedding in embeddings:
        await store.replace_embedding(embedding)

    print(f"Imported {len(artists)} artists and {len(embeddings)} embeddings into {args.db or app_settings.sqlite_db_path}")
    return 0


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the similarity CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m src.cli.similarity",
        description="Look up, calculate and refresh artist similarities.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Similarity commands")

    # -- similar --
    similar_parser = subparsers.add_parser("similar", help="Show similar artists")
    similar_parser.add_argument("artist_id", help="Artist ID")
    similar_parser.add_argument("--force", action="store_true", help="Recompute before lookup")
    similar_parser.add_argument("--json", action="store_true", help="Print results as JSON")

    # -- calculate --
    calc_parser = subparsers.add_parser("calculate", help="Run a similarity calculation")
    calc_parser.add_argument("--artist", default=None, help="Calculate for this artist only")
    calc_parser.add_argument(
        "--limit", type=int, default=None, help="Number of recently added artists (default: 10)"
    )

    # -- refresh-stale --
    refresh_parser = subparsers.add_parser("refresh-stale", help="Recompute stale similarities")
    refresh_parser.add_argument("--limit", type=int, default=None, help="Maximum artists to refresh")

    # -- import --
    import_parser = subparsers.add_parser("import", help="Import artists/embeddings JSON into SQLite")
    import_parser.add_argument("file", help="Path to the JSON file")
    import_parser.add_argument("--db", default=None, help="SQLite database path")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.  Returns the process exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    app_settings = Settings()

    handlers = {
        "similar": _handle_similar,
        "calculate": _handle_calculate,
        "refresh-stale": _handle_refresh_stale,
    }

    try:
        if args.command == "import":
            return asyncio.run(_handle_import(args, app_settings))
        return asyncio.run(_with_components(app_settings, handlers[args.command], args))
    except MusicboardError as exc:
        print(f"Error ({type(exc).__name__}): {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
