"""
sqlshift/__main__.py

Package entry point for running sqlshift as a module:

    python -m sqlshift [-s SOURCE] [-t TARGET] [FILE]

The installed `sqlshift` console script points at the same function.
"""

from __future__ import annotations

from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
