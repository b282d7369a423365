"""Discord notification sender via the bot REST API."""

from __future__ import annotations

import logging

import requests

from repowatch.config import DiscordConfig
from repowatch.models import CommitEntry, ReleaseInfo, RepoInfo
from repowatch.notifications.formatter import (
    FormattedNotification,
    format_commit_batch,
    format_new_repository,
    format_release,
)
from repowatch.registry import Watch

logger = logging.getLogger(__name__)

DISCORD_API_BASE = "https://discord.com/api/v10"


class DiscordNotifier:
    """Posts announcements to Discord channels as a bot.

    The destination is the watch's own channel, else the configured default.
    With neither, announcements are skipped. Delivery errors are logged and
    dropped; nothing is retried.
    """

    def __init__(
        self,
        config: DiscordConfig,
        session: requests.Session | None = None,
        timeout: float = 15,
    ) -> None:
        self.default_channel = config.default_channel
        self.commit_role_id = config.commit_role_id
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({
            "Authorization": f"Bot {config.token}",
            "User-Agent": "DiscordBot (https://github.com, 1.0) repowatch",
        })

    def resolve_channel(self, watch: Watch) -> str | None:
        return watch.channel or self.default_channel

    def announce_new_repository(self, watch: Watch, repo: RepoInfo) -> bool:
        return self._send(watch, format_new_repository(repo), f"new repo {repo.full_name}")

    def announce_release(self, watch: Watch, release: ReleaseInfo) -> bool:
        label = f"release {watch.target}@{release.tag_name or release.id}"
        return self._send(watch, format_release(watch, release), label)

    def announce_commit_batch(
        self, watch: Watch, repo: RepoInfo, entries: list[CommitEntry]
    ) -> bool:
        if not entries:
            return False
        notification = format_commit_batch(repo, entries, self.commit_role_id)
        return self._send(watch, notification, f"{len(entries)} commit(s) for {repo.full_name}")

    def _send(self, watch: Watch, notification: FormattedNotification, label: str) -> bool:
        """Post a message. Returns True on success."""
        channel_id = self.resolve_channel(watch)
        if not channel_id:
            logger.debug("No channel configured for %s, skipping %s", watch.id, label)
            return False

        url = f"{DISCORD_API_BASE}/channels/{channel_id}/messages"
        try:
            resp = self._session.post(url, json=notification.to_payload(), timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Failed to send %s to channel %s: %s", label, channel_id, e)
            return False

        if not resp.ok:
            logger.error(
                "Failed to send %s to channel %s (%d): %s",
                label, channel_id, resp.status_code, resp.text[:500],
            )
            return False

        logger.info("Announced %s in channel %s", label, channel_id)
        return True
