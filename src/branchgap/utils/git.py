"""Git and GitHub API utilities for branchgap.

Repository search goes through the GitHub REST API; cloning shells out to
the ``git`` executable.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import requests

from branchgap.utils.subprocess_runner import SubprocessError, run_subprocess

logger = logging.getLogger(__name__)

# GitHub API constants
GITHUB_API_BASE = "https://api.github.com"
GITHUB_CLONE_BASE = "https://github.com"

_REQUEST_TIMEOUT = 30
_MAX_PER_PAGE = 100


def _git_executable() -> str:
    """Resolve the full path to the ``git`` executable."""
    return shutil.which("git") or "git"


class FetchError(Exception):
    """Raised when a repository cannot be searched for or cloned."""


class GitHubAPIError(FetchError):
    """Exception raised when GitHub API operations fail."""


@dataclass
class Repository:
    """A repository returned by search."""

    owner: str
    """Repository owner (username or organization)."""

    name: str
    """Repository name."""

    url: str = ""
    """HTML URL of the repository."""

    language: str = ""
    """Primary language reported by GitHub."""

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class GitHubAPI:
    """Minimal client for the GitHub search API.

    A token is optional; unauthenticated requests work at a lower rate limit.
    """

    def __init__(self, token: str | None = None) -> None:
        self._session_headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            self._session_headers["Authorization"] = f"Bearer {token}"

    def search_repositories(
        self, language: str, min_stars: int = 100, limit: int = 10
    ) -> list[Repository]:
        """Search repositories by language, most-starred first.

        Args:
            language: Primary language filter (e.g. ``javascript``).
            min_stars: Minimum number of stars.
            limit: Maximum number of repositories to return.

        Returns:
            Up to *limit* repositories.

        Raises:
            GitHubAPIError: If the API request fails.
        """
        logger.info("Searching repositories: language=%s, min stars=%d", language, min_stars)
        params: dict[str, Any] = {
            "q": f"language:{language} stars:>={min_stars}",
            "sort": "stars",
            "order": "desc",
            "per_page": max(1, min(limit, _MAX_PER_PAGE)),
        }
        data = self._get(f"{GITHUB_API_BASE}/search/repositories", params)

        repositories = []
        for item in data.get("items", [])[:limit]:
            owner = item.get("owner") or {}
            repositories.append(
                Repository(
                    owner=owner.get("login") or "unknown",
                    name=item.get("name", ""),
                    url=item.get("html_url", ""),
                    language=item.get("language") or language,
                )
            )

        logger.info("%d repositories found", len(repositories))
        return repositories

    def _get(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """Make a GET request to the GitHub API.

        Raises:
            GitHubAPIError: If the request fails.
        """
        try:
            response = requests.get(
                url, params=params, headers=self._session_headers, timeout=_REQUEST_TIMEOUT
            )
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as exc:
            raise GitHubAPIError(f"GET request failed: {exc}") from exc


async def clone_repository(owner: str, repo: str, dest_dir: Path) -> Path:
    """Clone ``owner/repo`` into ``dest_dir/repo`` and return the clone path.

    An existing directory at the destination is removed first.

    Raises:
        FetchError: The clone failed.
    """
    target = dest_dir / repo
    if target.exists():
        logger.info("Directory already exists, removing: %s", target)
        shutil.rmtree(target)
    dest_dir.mkdir(parents=True, exist_ok=True)

    url = f"{GITHUB_CLONE_BASE}/{owner}/{repo}.git"
    logger.info("Cloning repository: %s", url)
    try:
        await run_subprocess(
            [_git_executable(), "clone", url, str(target)], cwd=dest_dir, check=True
        )
    except SubprocessError as exc:
        logger.error("Failed to clone %s/%s: %s", owner, repo, exc.result.output_tail)
        raise FetchError(f"Failed to clone {owner}/{repo}: {exc}") from exc

    logger.info("Repository cloned into: %s", target)
    return target
