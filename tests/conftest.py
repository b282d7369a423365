"""Shared fixtures and fakes for repowatch tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest

from repowatch.config import DiscordConfig, GitHubConfig, PollingConfig, RepoWatchConfig
from repowatch.database import Database
from repowatch.exceptions import FetchFailure
from repowatch.models import CommitEntry, ReleaseInfo, RepoInfo
from repowatch.registry import Watch
from repowatch.seen import SeenStore


def make_repo(full_name: str, **overrides: Any) -> RepoInfo:
    owner, _, name = full_name.partition("/")
    fields: dict[str, Any] = {
        "full_name": full_name,
        "name": name,
        "html_url": f"https://github.com/{full_name}",
        "owner_login": owner,
        "owner_avatar_url": f"https://avatars.example/{owner}.png",
        "owner_html_url": f"https://github.com/{owner}",
        "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
        "updated_at": datetime(2024, 1, 2, tzinfo=timezone.utc),
    }
    fields.update(overrides)
    return RepoInfo(**fields)


def make_release(release_id: int, tag: str | None = None, **overrides: Any) -> ReleaseInfo:
    fields: dict[str, Any] = {
        "id": release_id,
        "tag_name": tag or f"v{release_id}",
        "name": None,
        "html_url": f"https://github.com/acme/widget/releases/{release_id}",
    }
    fields.update(overrides)
    return ReleaseInfo(**fields)


def make_commit(sha: str, repo: RepoInfo, message: str | None = None, author: str = "Ada") -> CommitEntry:
    return CommitEntry(
        sha=sha,
        short_message=message or f"change {sha}",
        author_name=author,
        repo_full_name=repo.full_name,
        default_branch=repo.default_branch,
    )


class FakeGitHub:
    """Stands in for GitHubClient with canned, newest-first responses."""

    def __init__(self) -> None:
        self.user_repos: dict[str, list[RepoInfo] | Exception] = {}
        self.repos: dict[str, RepoInfo | Exception] = {}
        self.releases: dict[str, list[ReleaseInfo] | Exception] = {}
        self.commits: dict[str, list[str] | Exception] = {}
        self.commit_details: dict[str, CommitEntry | Exception] = {}
        self.detail_calls: list[str] = []

    @staticmethod
    def _answer(value: Any, missing: str) -> Any:
        if value is None:
            raise FetchFailure(f"{missing} not found", status=404)
        if isinstance(value, Exception):
            raise value
        return value

    def list_user_repos(self, username: str, limit: int = 50) -> list[RepoInfo]:
        return list(self._answer(self.user_repos.get(username), username))[:limit]

    def get_repo(self, full_name: str) -> RepoInfo:
        return self._answer(self.repos.get(full_name), full_name)

    def list_releases(self, full_name: str, limit: int = 10) -> list[ReleaseInfo]:
        return list(self._answer(self.releases.get(full_name, []), full_name))[:limit]

    def list_commit_shas(self, full_name: str, branch: str, limit: int = 10) -> list[str]:
        return list(self._answer(self.commits.get(full_name, []), full_name))[:limit]

    def get_commit(self, repo: RepoInfo, sha: str) -> CommitEntry:
        self.detail_calls.append(sha)
        detail = self.commit_details.get(sha)
        if detail is None:
            return make_commit(sha, repo)
        return self._answer(detail, sha)

    def rate_limit_remaining(self) -> int | None:
        return 4999


@dataclass
class RecordingNotifier:
    """Records every announcement instead of sending it."""

    calls: list[tuple[str, Any]] = field(default_factory=list)
    fail_commit_batches: bool = False

    def announce_new_repository(self, watch: Watch, repo: RepoInfo) -> bool:
        self.calls.append(("repo", repo.full_name))
        return True

    def announce_release(self, watch: Watch, release: ReleaseInfo) -> bool:
        self.calls.append(("release", release.id))
        return True

    def announce_commit_batch(self, watch: Watch, repo: RepoInfo, entries: list[CommitEntry]) -> bool:
        if self.fail_commit_batches:
            raise RuntimeError("channel unavailable")
        self.calls.append(("commits", [e.sha for e in entries]))
        return True

    def of_kind(self, kind: str) -> list[Any]:
        return [payload for k, payload in self.calls if k == kind]


class _FakeTimer:
    def __init__(self, timers: FakeTimers, due: float, callback: Callable[[], None]) -> None:
        self.timers = timers
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeTimers:
    """Virtual clock: callbacks only run when the test advances time."""

    def __init__(self) -> None:
        self.now = 0.0
        self.scheduled: list[_FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> _FakeTimer:
        timer = _FakeTimer(self, self.now + delay, callback)
        self.scheduled.append(timer)
        return timer

    def active(self) -> list[_FakeTimer]:
        return [t for t in self.scheduled if not t.cancelled and t.due > self.now]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = sorted(
                (t for t in self.scheduled if not t.cancelled and t.due <= target),
                key=lambda t: t.due,
            )
            if not due:
                break
            timer = due[0]
            self.scheduled.remove(timer)
            self.now = timer.due
            timer.callback()
        self.now = target


@pytest.fixture
def db(tmp_path) -> Database:
    return Database(tmp_path / "storage" / "db.json")


@pytest.fixture
def seen(db) -> SeenStore:
    return SeenStore(db)


@pytest.fixture
def github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def timers() -> FakeTimers:
    return FakeTimers()


@pytest.fixture
def config(tmp_path) -> RepoWatchConfig:
    return RepoWatchConfig(
        github=GitHubConfig(),
        discord=DiscordConfig(token="bot-token", default_channel="100"),
        polling=PollingConfig(interval_seconds=120, grouping_window_ms=10_000),
        database_path=str(tmp_path / "storage" / "db.json"),
    )


@pytest.fixture
def apscheduler() -> MagicMock:
    scheduler = MagicMock()
    scheduler.running = False
    return scheduler
