"""GitHub REST access via PyGithub's requester."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import requests
from github import Auth, Github, GithubException

from repowatch.config import GitHubConfig
from repowatch.exceptions import FetchFailure, ShapeFailure
from repowatch.models import CommitEntry, ReleaseInfo, RepoInfo

logger = logging.getLogger(__name__)

USER_REPO_LIMIT = 50
RELEASE_LIMIT = 10
COMMIT_LIMIT = 10


class GitHubClient:
    """Read-only calls against the GitHub REST API.

    Requests go through PyGithub's ``Requester`` so authentication, the user
    agent and status checking are shared with the rest of PyGithub, while the
    JSON comes back raw and is validated into repowatch's own types. Any
    non-2xx status or network error becomes FetchFailure; a payload of the
    wrong shape becomes ShapeFailure.
    """

    def __init__(self, config: GitHubConfig, github: Github | None = None) -> None:
        self.config = config
        if github is None:
            auth = Auth.Token(config.token) if config.token else None
            github = Github(
                auth=auth,
                user_agent=config.user_agent,
                timeout=config.timeout_seconds,
            )
        self._github = github

    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        try:
            _, data = self._github.requester.requestJsonAndCheck(
                "GET", path, parameters=params
            )
        except GithubException as e:
            raise FetchFailure(f"GET {path} failed: {e.status}", status=e.status) from e
        except requests.RequestException as e:
            raise FetchFailure(f"GET {path} failed: {e}") from e
        return data

    def _get_list(self, path: str, params: dict[str, Any] | None = None) -> list[Any]:
        data = self._get(path, params)
        if not isinstance(data, list):
            raise ShapeFailure(f"GET {path} returned {type(data).__name__}, expected list")
        return data

    def list_user_repos(self, username: str, limit: int = USER_REPO_LIMIT) -> list[RepoInfo]:
        """Most recently created repositories for an account, newest first."""
        payload = self._get_list(
            f"/users/{quote(username, safe='')}/repos",
            {"sort": "created", "direction": "desc", "per_page": limit},
        )
        return [RepoInfo.from_payload(item) for item in payload[:limit]]

    def get_repo(self, full_name: str) -> RepoInfo:
        return RepoInfo.from_payload(self._get(f"/repos/{full_name}"))

    def list_releases(self, full_name: str, limit: int = RELEASE_LIMIT) -> list[ReleaseInfo]:
        """Most recent releases, newest first."""
        payload = self._get_list(f"/repos/{full_name}/releases", {"per_page": limit})
        return [ReleaseInfo.from_payload(item) for item in payload[:limit]]

    def list_commit_shas(
        self, full_name: str, branch: str, limit: int = COMMIT_LIMIT
    ) -> list[str]:
        """SHAs of the most recent commits on ``branch``, newest first."""
        payload = self._get_list(
            f"/repos/{full_name}/commits", {"sha": branch, "per_page": limit}
        )
        shas = []
        for item in payload[:limit]:
            sha = item.get("sha") if isinstance(item, dict) else None
            if not isinstance(sha, str) or not sha:
                raise ShapeFailure(f"commit list for {full_name} has an entry without 'sha'")
            shas.append(sha)
        return shas

    def get_commit(self, repo: RepoInfo, sha: str) -> CommitEntry:
        """Fetch commit detail and reduce it to a CommitEntry."""
        data = self._get(f"/repos/{repo.full_name}/commits/{sha}")
        return CommitEntry.from_payload(data, repo)

    def rate_limit_remaining(self) -> int | None:
        """Remaining core API quota, or None if it cannot be determined."""
        try:
            return self._github.rate_limiting[0]
        except (GithubException, requests.RequestException) as e:
            logger.debug("Could not read GitHub rate limit: %s", e)
            return None
