"""Watch definitions and the registry that stores them."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any

from repowatch.database import WATCHES, Database
from repowatch.exceptions import InvalidWatchError, WatchConflictError, WatchNotFoundError

logger = logging.getLogger(__name__)

USER = "user"
REPO = "repo"
WATCH_TYPES = (USER, REPO)


def make_watch_id(watch_type: str, target: str) -> str:
    """Build the registry id, e.g. ``repo:acme/widget``."""
    return f"{watch_type}:{target.lower()}"


@dataclass(frozen=True)
class Watch:
    """A subscription: what to monitor on GitHub and where to announce it."""

    id: str
    type: str               # 'user' or 'repo'
    target: str             # username or 'owner/repo', as entered
    channel: str | None = None  # overrides the default announce channel

    @classmethod
    def create(cls, watch_type: str, target: str, channel: str | None = None) -> Watch:
        target = (target or "").strip()
        if watch_type not in WATCH_TYPES:
            raise InvalidWatchError(f"Unknown watch type: {watch_type!r}")
        if not target:
            raise InvalidWatchError("Watch target must not be empty")
        if watch_type == REPO:
            owner, sep, name = target.partition("/")
            if not sep or not owner or not name or "/" in name:
                raise InvalidWatchError(f"Repository must be owner/repo, got {target!r}")
        return cls(
            id=make_watch_id(watch_type, target),
            type=watch_type,
            target=target,
            channel=(channel or None),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Watch:
        return cls(
            id=data["id"],
            type=data["type"],
            target=data["target"],
            channel=data.get("channel") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class WatchRegistry:
    """CRUD over the ``watches`` section of the state document."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def list(self) -> list[Watch]:
        """All watches, in the order they were added."""
        watches = []
        for raw in self.db.read()[WATCHES]:
            try:
                watches.append(Watch.from_dict(raw))
            except (KeyError, TypeError) as e:
                logger.warning("Skipping malformed watch entry %r: %s", raw, e)
        return watches

    def get(self, watch_id: str) -> Watch | None:
        for watch in self.list():
            if watch.id == watch_id:
                return watch
        return None

    def add(self, watch_type: str, target: str, channel: str | None = None) -> Watch:
        """Add a watch. Raises WatchConflictError if the id is taken."""
        watch = Watch.create(watch_type, target, channel)

        def _add(doc: dict[str, Any]) -> None:
            if any(w.get("id") == watch.id for w in doc[WATCHES]):
                raise WatchConflictError(watch.id)
            doc[WATCHES].append(watch.to_dict())

        self.db.update(_add)
        logger.info("Added watch %s", watch.id)
        return watch

    def add_user(self, username: str, channel: str | None = None) -> Watch:
        return self.add(USER, username, channel)

    def add_repo(self, full_name: str, channel: str | None = None) -> Watch:
        return self.add(REPO, full_name, channel)

    def remove(self, watch_id: str) -> Watch:
        """Remove a watch by id. Seen items for its target are kept."""

        def _remove(doc: dict[str, Any]) -> Watch:
            for index, raw in enumerate(doc[WATCHES]):
                if raw.get("id") == watch_id:
                    del doc[WATCHES][index]
                    return Watch.from_dict(raw)
            raise WatchNotFoundError(watch_id)

        removed = self.db.update(_remove)
        logger.info("Removed watch %s", watch_id)
        return removed
