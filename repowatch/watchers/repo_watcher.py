"""New repository checker for user watches."""

from __future__ import annotations

from repowatch.database import SEEN_REPOS
from repowatch.github_client import USER_REPO_LIMIT, GitHubClient
from repowatch.registry import USER, Watch
from repowatch.seen import SeenStore
from repowatch.watchers.base import BaseChecker, Notifier


class NewRepositoryChecker(BaseChecker):
    """Announces repositories an account has created since the last poll.

    The first poll after a user watch is added announces every repository
    returned (up to 50), since nothing has been seen for that account yet.
    """

    watch_type = USER

    def __init__(self, github: GitHubClient, seen: SeenStore, notifier: Notifier) -> None:
        super().__init__(github, seen)
        self.notifier = notifier

    def check(self, watch: Watch) -> int:
        username = watch.target
        repos = self.github.list_user_repos(username, limit=USER_REPO_LIMIT)

        found = 0
        # API order is newest first; announce in creation order
        for repo in reversed(repos):
            if self.seen.has(SEEN_REPOS, username, repo.full_name):
                continue
            self.notifier.announce_new_repository(watch, repo)
            self.seen.add(SEEN_REPOS, username, repo.full_name)
            found += 1
        return found
