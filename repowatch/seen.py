"""Append-only ledger of identifiers that have already been announced."""

from __future__ import annotations

import logging
import threading
from typing import Any, Hashable

from repowatch.database import SEEN_KINDS, Database

logger = logging.getLogger(__name__)


class SeenStore:
    """Per-kind, per-target seen sets backed by the state document.

    Kinds are the document sections ``seenRepos`` (keyed by username, holding
    repository full names), ``seenReleases`` and ``seenCommits`` (keyed by
    ``owner/repo``, holding release ids and commit SHAs).

    Entries are never removed. ``load()`` merges the on-disk sets into memory
    rather than replacing them, and ``save()`` merges memory back into the
    document, so a set can only grow. Insertion order is kept so the file
    reads chronologically.
    """

    def __init__(self, db: Database) -> None:
        self.db = db
        self._lock = threading.Lock()
        # kind -> target -> ordered set (dict keys)
        self._seen: dict[str, dict[str, dict[Hashable, None]]] = {
            kind: {} for kind in SEEN_KINDS
        }
        self.load()

    def load(self) -> None:
        """Merge seen sets from disk into memory."""
        doc = self.db.read()
        with self._lock:
            for kind in SEEN_KINDS:
                section = doc.get(kind) or {}
                for target, ids in section.items():
                    bucket = self._seen[kind].setdefault(target, {})
                    for ident in ids or []:
                        bucket.setdefault(ident, None)

    def save(self) -> None:
        """Persist all seen sets in one document write."""
        with self._lock:
            snapshot = {
                kind: {target: list(ids) for target, ids in targets.items()}
                for kind, targets in self._seen.items()
            }

        def _merge(doc: dict[str, Any]) -> None:
            for kind, targets in snapshot.items():
                section = doc.setdefault(kind, {})
                for target, ids in targets.items():
                    existing = section.get(target) or []
                    merged = dict.fromkeys(existing)
                    merged.update(dict.fromkeys(ids))
                    section[target] = list(merged)

        self.db.update(_merge)
        logger.debug("Saved seen sets")

    def has(self, kind: str, target: str, ident: Hashable) -> bool:
        with self._lock:
            return ident in self._seen[kind].get(target, {})

    def add(self, kind: str, target: str, ident: Hashable) -> bool:
        """Record ``ident``. Returns False if it was already present."""
        with self._lock:
            bucket = self._seen[kind].setdefault(target, {})
            if ident in bucket:
                return False
            bucket[ident] = None
            return True

    def items(self, kind: str, target: str) -> list[Hashable]:
        """Identifiers for ``target`` in the order they were first seen."""
        with self._lock:
            return list(self._seen[kind].get(target, {}))

    def count(self, kind: str, target: str) -> int:
        with self._lock:
            return len(self._seen[kind].get(target, {}))
