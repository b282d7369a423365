"""Release checker for repo watches."""

from __future__ import annotations

from repowatch.database import SEEN_RELEASES
from repowatch.github_client import RELEASE_LIMIT, GitHubClient
from repowatch.registry import REPO, Watch
from repowatch.seen import SeenStore
from repowatch.watchers.base import BaseChecker, Notifier


class ReleaseChecker(BaseChecker):
    """Announces releases published since the last poll."""

    watch_type = REPO

    def __init__(self, github: GitHubClient, seen: SeenStore, notifier: Notifier) -> None:
        super().__init__(github, seen)
        self.notifier = notifier

    def check(self, watch: Watch) -> int:
        full_name = watch.target
        releases = self.github.list_releases(full_name, limit=RELEASE_LIMIT)

        found = 0
        for release in reversed(releases):
            if self.seen.has(SEEN_RELEASES, full_name, release.id):
                continue
            self.notifier.announce_release(watch, release)
            self.seen.add(SEEN_RELEASES, full_name, release.id)
            found += 1
        return found
