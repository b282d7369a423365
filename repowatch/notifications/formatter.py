"""Discord message formatting for repository, release and commit announcements."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from repowatch.models import CommitEntry, ReleaseInfo, RepoInfo
from repowatch.registry import Watch

BASE_EMBED_COLOR = 0x2F3136

FOOTER_TEXT = "repowatch · GitHub Watcher"

DESCRIPTION_LIMIT = 300
COMMIT_MESSAGE_LIMIT = 80

# Discord component constants
ACTION_ROW = 1
BUTTON = 2
LINK_STYLE = 5


@dataclass
class FormattedNotification:
    """A fully formatted Discord message ready to send."""

    content: str | None = None
    embeds: list[dict[str, Any]] = field(default_factory=list)
    components: list[dict[str, Any]] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "embeds": self.embeds,
            "components": self.components,
        }
        if self.content:
            payload["content"] = self.content
            payload["allowed_mentions"] = {"parse": ["roles"]}
        return payload


def truncate(text: str, limit: int, keep: int | None = None) -> str:
    """Return ``text`` unchanged up to ``limit`` chars, else its first ``keep`` chars and an ellipsis."""
    if len(text) <= limit:
        return text
    return text[: limit if keep is None else keep] + "…"


def discord_timestamp(value: datetime | None, style: str = "f") -> str:
    """Render a Discord dynamic timestamp like ``<t:1700000000:f>``."""
    if value is None:
        return "Unknown"
    return f"<t:{int(value.timestamp())}:{style}>"


def _link_buttons(*buttons: tuple[str, str]) -> list[dict[str, Any]]:
    return [{
        "type": ACTION_ROW,
        "components": [
            {"type": BUTTON, "style": LINK_STYLE, "label": label, "url": url}
            for label, url in buttons
        ],
    }]


def _footer() -> dict[str, str]:
    return {"text": FOOTER_TEXT}


def _iso(value: datetime | None) -> str:
    return (value or datetime.now(timezone.utc)).isoformat()


def format_new_repository(repo: RepoInfo) -> FormattedNotification:
    """Format the announcement for a newly created repository."""
    if repo.description:
        description = truncate(repo.description, DESCRIPTION_LIMIT)
    else:
        description = "*No description provided.*"

    tags = " ".join(f"`{t}`" for t in repo.topics) if repo.topics else "*No tags*"

    info = "\n".join([
        f"**Owner:** {repo.owner_login}",
        f"**Language:** {repo.language or 'Unknown'}",
        f"**Stars:** {repo.stargazers_count}",
        f"**Created:** {discord_timestamp(repo.created_at, 'f')}",
        f"**Updated:** {discord_timestamp(repo.updated_at, 'R')}",
    ])

    author: dict[str, Any] = {"name": f"{repo.owner_login} • New Repository"}
    if repo.owner_avatar_url:
        author["icon_url"] = repo.owner_avatar_url
    if repo.owner_html_url:
        author["url"] = repo.owner_html_url

    embed: dict[str, Any] = {
        "color": BASE_EMBED_COLOR,
        "author": author,
        "title": f"🆕 {repo.name}",
        "url": repo.html_url,
        "description": description,
        "fields": [
            {"name": "📘 Repository Info", "value": info, "inline": False},
            {"name": "🏷️ Tags", "value": tags, "inline": False},
        ],
        "footer": _footer(),
        "timestamp": _iso(repo.created_at),
    }
    if repo.owner_avatar_url:
        embed["thumbnail"] = {"url": repo.owner_avatar_url}

    return FormattedNotification(
        embeds=[embed],
        components=_link_buttons(
            ("Open on GitHub", repo.html_url),
            ("Download ZIP", f"{repo.html_url}/archive/refs/heads/{repo.default_branch}.zip"),
            ("Clone Repo", f"https://github.com/{repo.full_name}.git"),
        ),
    )


def format_release(watch: Watch, release: ReleaseInfo) -> FormattedNotification:
    """Format the announcement for a new release of ``watch.target``."""
    if release.body:
        description = truncate(release.body, DESCRIPTION_LIMIT)
    else:
        description = "*No release notes provided.*"

    info = "\n".join([
        f"**Repository:** {watch.target}",
        f"**Tag:** {release.tag_name or 'N/A'}",
        f"**Pre-release:** {'Yes' if release.prerelease else 'No'}",
        f"**Published:** {discord_timestamp(release.published_at, 'f')}",
    ])

    embed: dict[str, Any] = {
        "color": BASE_EMBED_COLOR,
        "author": {"name": f"{watch.target} • New Release"},
        "title": f"🚀 {release.name or release.tag_name or release.id}",
        "description": description,
        "fields": [{"name": "📦 Release Info", "value": info, "inline": False}],
        "footer": _footer(),
        "timestamp": _iso(release.published_at),
    }
    if release.html_url:
        embed["url"] = release.html_url

    return FormattedNotification(embeds=[embed])


def format_commit_line(entry: CommitEntry) -> str:
    message = truncate(entry.short_message, COMMIT_MESSAGE_LIMIT, keep=COMMIT_MESSAGE_LIMIT - 3)
    return f"• **{entry.short_sha}** — {message} _(by {entry.author_name})_"


def format_commit_batch(
    repo: RepoInfo,
    entries: list[CommitEntry],
    mention_role_id: str | None = None,
) -> FormattedNotification:
    """Format one message listing ``entries`` in the order given."""
    count = len(entries)
    plural = "s" if count != 1 else ""
    branch = repo.default_branch
    commits_url = f"{repo.html_url}/commits/{branch}"

    author: dict[str, Any] = {
        "name": f"{repo.full_name} • {count} New Commit{plural}",
        "url": repo.html_url,
    }
    if repo.owner_avatar_url:
        author["icon_url"] = repo.owner_avatar_url

    embed = {
        "color": BASE_EMBED_COLOR,
        "author": author,
        "title": f"📝 {count} Commit{plural} on {branch}",
        "url": commits_url,
        "description": "\n".join(format_commit_line(e) for e in entries),
        "fields": [
            {"name": "Repository", "value": repo.full_name, "inline": True},
            {"name": "Branch", "value": branch, "inline": True},
        ],
        "footer": _footer(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    return FormattedNotification(
        content=f"<@&{mention_role_id}>" if mention_role_id else None,
        embeds=[embed],
        components=_link_buttons(
            ("View Commits", commits_url),
            ("Open Repo", repo.html_url),
            ("Clone Repo", f"https://github.com/{repo.full_name}.git"),
        ),
    )
