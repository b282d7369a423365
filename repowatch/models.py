"""Typed views of the GitHub payloads repowatch consumes.

Each ``from_payload`` validates the fields the checkers and formatter rely on
and raises ShapeFailure instead of letting half-filled objects through.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from repowatch.exceptions import ShapeFailure

DEFAULT_BRANCH = "main"


def _require_object(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ShapeFailure(f"Expected {what} object, got {type(data).__name__}")
    return data


def _require_str(data: dict[str, Any], key: str, what: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ShapeFailure(f"{what} payload missing '{key}'")
    return value


def _optional_str(data: dict[str, Any] | None, key: str) -> str | None:
    if not isinstance(data, dict):
        return None
    value = data.get(key)
    return value if isinstance(value, str) and value else None


def parse_timestamp(value: Any) -> datetime | None:
    """Parse GitHub's ISO 8601 timestamps ('2024-05-01T12:00:00Z')."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass(frozen=True)
class RepoInfo:
    """A repository as returned by /repos/{full} or /users/{name}/repos."""

    full_name: str
    name: str
    html_url: str
    owner_login: str
    owner_avatar_url: str | None = None
    owner_html_url: str | None = None
    description: str | None = None
    language: str | None = None
    stargazers_count: int = 0
    topics: tuple[str, ...] = ()
    default_branch: str = DEFAULT_BRANCH
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_payload(cls, data: Any) -> RepoInfo:
        data = _require_object(data, "repository")
        full_name = _require_str(data, "full_name", "repository")
        owner = data.get("owner") if isinstance(data.get("owner"), dict) else {}
        topics = data.get("topics")
        stars = data.get("stargazers_count")
        return cls(
            full_name=full_name,
            name=_optional_str(data, "name") or full_name.split("/")[-1],
            html_url=_optional_str(data, "html_url") or f"https://github.com/{full_name}",
            owner_login=_optional_str(owner, "login") or full_name.split("/")[0],
            owner_avatar_url=_optional_str(owner, "avatar_url"),
            owner_html_url=_optional_str(owner, "html_url"),
            description=_optional_str(data, "description"),
            language=_optional_str(data, "language"),
            stargazers_count=stars if isinstance(stars, int) else 0,
            topics=tuple(t for t in topics if isinstance(t, str)) if isinstance(topics, list) else (),
            default_branch=_optional_str(data, "default_branch") or DEFAULT_BRANCH,
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
        )


@dataclass(frozen=True)
class ReleaseInfo:
    """A release from /repos/{full}/releases."""

    id: int
    tag_name: str | None
    name: str | None
    html_url: str | None
    body: str | None = None
    prerelease: bool = False
    published_at: datetime | None = None

    @classmethod
    def from_payload(cls, data: Any) -> ReleaseInfo:
        data = _require_object(data, "release")
        release_id = data.get("id")
        if not isinstance(release_id, int) or isinstance(release_id, bool):
            raise ShapeFailure("release payload missing numeric 'id'")
        return cls(
            id=release_id,
            tag_name=_optional_str(data, "tag_name"),
            name=_optional_str(data, "name"),
            html_url=_optional_str(data, "html_url"),
            body=_optional_str(data, "body"),
            prerelease=bool(data.get("prerelease")),
            published_at=parse_timestamp(data.get("published_at")),
        )


@dataclass(frozen=True)
class CommitEntry:
    """A detected commit waiting to be announced in a batch."""

    sha: str
    short_message: str
    author_name: str
    repo_full_name: str
    default_branch: str = DEFAULT_BRANCH

    @property
    def short_sha(self) -> str:
        return self.sha[:7]

    @classmethod
    def from_payload(cls, data: Any, repo: RepoInfo) -> CommitEntry:
        """Build from a /repos/{full}/commits/{sha} detail payload."""
        data = _require_object(data, "commit")
        sha = _require_str(data, "sha", "commit")
        git_commit = data.get("commit")
        if not isinstance(git_commit, dict):
            raise ShapeFailure(f"commit {sha} payload missing 'commit' object")

        message = git_commit.get("message") if isinstance(git_commit.get("message"), str) else ""
        first_line = message.split("\n", 1)[0].strip()

        author_name = (
            _optional_str(git_commit.get("author"), "name")
            or _optional_str(data.get("author"), "login")
            or "Unknown"
        )
        return cls(
            sha=sha,
            short_message=first_line or "(no message)",
            author_name=author_name,
            repo_full_name=repo.full_name,
            default_branch=repo.default_branch,
        )
