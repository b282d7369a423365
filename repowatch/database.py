"""JSON document store for watches and seen items."""

from __future__ import annotations

import copy
import json
import logging
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable, TypeVar

from repowatch.exceptions import StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

WATCHES = "watches"
SEEN_REPOS = "seenRepos"
SEEN_RELEASES = "seenReleases"
SEEN_COMMITS = "seenCommits"

SEEN_KINDS = (SEEN_REPOS, SEEN_RELEASES, SEEN_COMMITS)


def empty_document() -> dict[str, Any]:
    return {WATCHES: [], SEEN_REPOS: {}, SEEN_RELEASES: {}, SEEN_COMMITS: {}}


class Database:
    """Reads and writes the repowatch state document.

    The whole state lives in one JSON file::

        {"watches": [...], "seenRepos": {...},
         "seenReleases": {...}, "seenCommits": {...}}

    Writes go to a temp file in the same directory and are moved into place,
    so a crash mid-write never leaves a truncated document behind. All access
    within a process is serialised by a re-entrant lock; use ``update()`` for
    read-modify-write so that registry edits and seen-set saves never
    overwrite each other. The lock does not reach other processes: a CLI edit
    that lands between another process's read and write is lost.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._lock = threading.RLock()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        if not self.db_path.exists():
            self.write(empty_document())

    def read(self) -> dict[str, Any]:
        """Return a fresh copy of the document with missing sections filled in."""
        with self._lock:
            try:
                raw = self.db_path.read_text(encoding="utf-8").strip()
            except FileNotFoundError:
                return empty_document()
            except UnicodeDecodeError as e:
                raise StoreError(f"Corrupt state document {self.db_path}: {e}") from e
            except OSError as e:
                raise StoreError(f"Cannot read {self.db_path}: {e}") from e

            if not raw:
                return empty_document()

            try:
                data = json.loads(raw)
            except json.JSONDecodeError as e:
                raise StoreError(f"Corrupt state document {self.db_path}: {e}") from e

            if not isinstance(data, dict):
                raise StoreError(f"State document {self.db_path} is not an object")

            doc = empty_document()
            for key, value in data.items():
                if key not in doc:
                    doc[key] = value
                elif value is None:
                    # null section reads as empty
                    continue
                elif not isinstance(value, type(doc[key])):
                    raise StoreError(
                        f"Section {key!r} of {self.db_path} must be a "
                        f"{type(doc[key]).__name__}, got {type(value).__name__}"
                    )
                else:
                    doc[key] = value
            return doc

    def write(self, data: dict[str, Any]) -> None:
        """Atomically replace the document."""
        with self._lock:
            payload = json.dumps(data, ensure_ascii=False, indent=2)
            try:
                with tempfile.NamedTemporaryFile(
                    "w",
                    dir=str(self.db_path.parent),
                    prefix=f".{self.db_path.name}.",
                    suffix=".tmp",
                    encoding="utf-8",
                    delete=False,
                ) as tmp:
                    tmp.write(payload + "\n")
                    tmp_path = Path(tmp.name)
                tmp_path.replace(self.db_path)
            except OSError as e:
                raise StoreError(f"Cannot write {self.db_path}: {e}") from e

    def update(self, mutate: Callable[[dict[str, Any]], T]) -> T:
        """Read the document, apply ``mutate`` in place, write it back.

        Returns whatever ``mutate`` returns. If ``mutate`` raises, nothing is
        written.
        """
        with self._lock:
            doc = self.read()
            before = copy.deepcopy(doc)
            result = mutate(doc)
            if doc != before:
                self.write(doc)
            return result
