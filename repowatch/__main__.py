"""Entry point for repowatch: python -m repowatch."""

from __future__ import annotations

import sys

from repowatch.cli import main

if __name__ == "__main__":
    sys.exit(main())
