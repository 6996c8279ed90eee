# =============================================================================
# src/cli/__main__.py - Package Entry Point
# =============================================================================
#
# Enables running the CLI package itself as a module:
#     python -m src.cli similar <artist_id>
#
# Delegates to the similarity CLI, the only tool in this package.
# =============================================================================

"""Allow ``python -m src.cli`` execution."""

import sys

from src.cli.similarity import main

sys.exit(main())
