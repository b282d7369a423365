"""Base checker interface shared by the resource checkers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Protocol

from repowatch.exceptions import GitHubError
from repowatch.github_client import GitHubClient
from repowatch.models import CommitEntry, ReleaseInfo, RepoInfo
from repowatch.registry import Watch
from repowatch.seen import SeenStore


class Notifier(Protocol):
    """Anything that can announce detected items.

    Implementations resolve the destination themselves and handle their own
    delivery failures; callers never retry.
    """

    def announce_new_repository(self, watch: Watch, repo: RepoInfo) -> bool: ...

    def announce_release(self, watch: Watch, release: ReleaseInfo) -> bool: ...

    def announce_commit_batch(
        self, watch: Watch, repo: RepoInfo, entries: list[CommitEntry]
    ) -> bool: ...


class BaseChecker(ABC):
    """Abstract base class for one kind of GitHub resource."""

    #: Watch type this checker applies to ('user' or 'repo').
    watch_type: str = ""

    def __init__(self, github: GitHubClient, seen: SeenStore) -> None:
        self.github = github
        self.seen = seen
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def applies_to(self, watch: Watch) -> bool:
        return watch.type == self.watch_type

    def run(self, watch: Watch) -> int:
        """Check one watch, returning the number of new items found.

        Fetch and shape failures abandon this check until the next tick and
        leave the seen sets untouched. Anything else propagates to the
        scheduler.
        """
        try:
            found = self.check(watch)
        except GitHubError as e:
            self.logger.warning("%s skipped for %s: %s", self.name, watch.target, e)
            return 0
        if found:
            self.logger.info("%s found %d new item(s) for %s", self.name, found, watch.target)
        return found

    @abstractmethod
    def check(self, watch: Watch) -> int:
        """Fetch current state, announce unseen items oldest-first, record them.

        Implementations should:
        1. Fetch the most recent items from GitHub
        2. Walk them oldest-first, skipping anything in the seen set
        3. Announce (or enqueue) each new item and record it as seen
        """
        ...
