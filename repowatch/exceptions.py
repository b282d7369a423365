"""Exception hierarchy for repowatch."""

from __future__ import annotations


class RepoWatchError(Exception):
    """Base class for all repowatch errors."""


class ConfigError(RepoWatchError):
    """Required configuration is missing or invalid."""


class StoreError(RepoWatchError):
    """The persisted document could not be read or written."""


class GitHubError(RepoWatchError):
    """A GitHub API call could not be used this tick."""


class FetchFailure(GitHubError):
    """Non-2xx response or network error from GitHub."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ShapeFailure(GitHubError):
    """GitHub returned a payload that is not the expected list or object."""


class WatchError(RepoWatchError):
    """Base class for watch registry errors."""


class WatchConflictError(WatchError):
    """A watch with the same id already exists."""

    def __init__(self, watch_id: str) -> None:
        super().__init__(f"Already watching {watch_id}")
        self.watch_id = watch_id


class WatchNotFoundError(WatchError):
    """No watch with the given id exists."""

    def __init__(self, watch_id: str) -> None:
        super().__init__(f"Watch ID not found: {watch_id}")
        self.watch_id = watch_id


class InvalidWatchError(WatchError):
    """The watch type or target is malformed."""
