"""Commit checker for repo watches: feeds new commits into the grouper."""

from __future__ import annotations

from repowatch.database import SEEN_COMMITS
from repowatch.exceptions import GitHubError
from repowatch.github_client import COMMIT_LIMIT, GitHubClient
from repowatch.grouping import CommitGrouper
from repowatch.registry import REPO, Watch
from repowatch.seen import SeenStore
from repowatch.watchers.base import BaseChecker


class CommitChecker(BaseChecker):
    """Detects new commits on a repository's default branch.

    New commits are not announced here. They are queued on the CommitGrouper,
    which sends one batch per repository once its window closes.

    A SHA is recorded as seen as soon as it is queued, before the batch is
    delivered, so a failed delivery is never retried. A SHA whose detail
    cannot be fetched is recorded too, so an unreachable commit does not
    cost a detail request on every tick forever.
    """

    watch_type = REPO

    def __init__(self, github: GitHubClient, seen: SeenStore, grouper: CommitGrouper) -> None:
        super().__init__(github, seen)
        self.grouper = grouper

    def check(self, watch: Watch) -> int:
        full_name = watch.target
        repo = self.github.get_repo(full_name)
        shas = self.github.list_commit_shas(full_name, repo.default_branch, limit=COMMIT_LIMIT)

        found = 0
        for sha in reversed(shas):
            if self.seen.has(SEEN_COMMITS, full_name, sha):
                continue

            try:
                entry = self.github.get_commit(repo, sha)
            except GitHubError as e:
                self.logger.warning(
                    "Failed fetching commit details %s@%s: %s", full_name, sha, e
                )
                self.seen.add(SEEN_COMMITS, full_name, sha)
                continue

            self.grouper.enqueue(watch, repo, entry)
            self.seen.add(SEEN_COMMITS, full_name, sha)
            found += 1
        return found
