"""Configuration loading from config.toml + .env."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from repowatch.exceptions import ConfigError


@dataclass(frozen=True)
class GitHubConfig:
    token: str = ""
    user_agent: str = "repowatch"
    timeout_seconds: int = 15


@dataclass(frozen=True)
class DiscordConfig:
    token: str = ""
    default_channel: str | None = None
    commit_role_id: str | None = None


@dataclass(frozen=True)
class PollingConfig:
    interval_seconds: int = 120
    grouping_window_ms: int = 10_000

    @property
    def grouping_window_seconds(self) -> float:
        return self.grouping_window_ms / 1000


@dataclass(frozen=True)
class RepoWatchConfig:
    github: GitHubConfig
    discord: DiscordConfig
    polling: PollingConfig
    database_path: str = "storage/db.json"
    log_level: str = "INFO"

    def require_discord_token(self) -> str:
        """Return the Discord bot token or raise if it is not configured."""
        if not self.discord.token:
            raise ConfigError("Missing DISCORD_TOKEN in .env")
        return self.discord.token


def _env(key: str, default: str = "") -> str:
    """Get an environment variable, returning default if not set."""
    return os.environ.get(key, default)


def _optional(value: object) -> str | None:
    """Normalise blank config values to None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def load_config(config_path: str | Path | None = None) -> RepoWatchConfig:
    """Load configuration from config.toml and .env files.

    Args:
        config_path: Path to config.toml. Defaults to config.toml in the
                     project root (next to the repowatch package). A missing
                     file means all defaults.
    """
    project_root = Path(__file__).resolve().parent.parent

    # Load .env from project root
    load_dotenv(project_root / ".env")

    if config_path is None:
        config_path = project_root / "config.toml"
    else:
        config_path = Path(config_path)

    toml: dict = {}
    if config_path.exists():
        with open(config_path, "rb") as f:
            toml = tomllib.load(f)

    general = toml.get("general", {})
    gh = toml.get("github", {})
    discord = toml.get("discord", {})
    polling = toml.get("polling", {})

    try:
        interval = int(_env("POLL_INTERVAL_SECONDS") or polling.get("interval_seconds", 120))
        window_ms = int(polling.get("grouping_window_ms", 10_000))
    except ValueError as e:
        raise ConfigError(f"Invalid polling configuration: {e}") from e
    if interval <= 0 or window_ms < 0:
        raise ConfigError("Poll interval must be positive and grouping window non-negative")

    return RepoWatchConfig(
        database_path=general.get("database_path", "storage/db.json"),
        log_level=general.get("log_level", "INFO"),
        github=GitHubConfig(
            token=_env("GITHUB_TOKEN"),
            user_agent=gh.get("user_agent", "repowatch"),
            timeout_seconds=gh.get("timeout_seconds", 15),
        ),
        discord=DiscordConfig(
            token=_env("DISCORD_TOKEN"),
            default_channel=_optional(
                _env("DEFAULT_ANNOUNCE_CHANNEL_ID") or discord.get("default_channel")
            ),
            commit_role_id=_optional(
                _env("COMMIT_ROLE_ID") or discord.get("commit_role_id")
            ),
        ),
        polling=PollingConfig(
            interval_seconds=interval,
            grouping_window_ms=window_ms,
        ),
    )
