# =============================================================================
# src/cli/__init__.py - CLI Module Overview
# =============================================================================
#
# Command-line tools for operators who need to work with the similarity
# service outside the HTTP API:
#
#   similarity.py
#      Look up similar artists, run calculations, refresh stale records
#      and seed the local SQLite store from JSON.
#
# Architecture Notes:
#   - argparse only (no Click/Typer).
#   - The heavy wiring in src/main.py is imported lazily inside the
#     handlers so `--help` stays fast.
# =============================================================================

"""CLI tools for the artist-similarity service.

- ``python -m src.cli.similarity`` - similar / calculate / refresh-stale / import
"""
