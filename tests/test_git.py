"""Tests for GitHub search and repository cloning (utils/git.py).

HTTP calls are intercepted with ``responses``; ``git`` itself is mocked.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, patch

import pytest
import responses
from responses import matchers

from branchgap.utils.git import (
    FetchError,
    GitHubAPI,
    GitHubAPIError,
    Repository,
    clone_repository,
)
from branchgap.utils.subprocess_runner import SubprocessError, SubprocessResult

if TYPE_CHECKING:
    from pathlib import Path

_SEARCH_URL = "https://api.github.com/search/repositories"

_SEARCH_PAYLOAD = {
    "total_count": 2,
    "items": [
        {
            "name": "lodash",
            "owner": {"login": "lodash"},
            "html_url": "https://github.com/lodash/lodash",
            "language": "JavaScript",
        },
        {
            "name": "orphan",
            "owner": None,
            "html_url": "https://github.com/ghost/orphan",
            "language": None,
        },
    ],
}


# ── Search ───────────────────────────────────────────────────────


@responses.activate
def test_search_repositories_builds_query() -> None:
    responses.get(
        _SEARCH_URL,
        json=_SEARCH_PAYLOAD,
        match=[
            matchers.query_param_matcher(
                {
                    "q": "language:javascript stars:>=500",
                    "sort": "stars",
                    "order": "desc",
                    "per_page": "2",
                }
            ),
            matchers.header_matcher({"Authorization": "Bearer ghp_test"}),
        ],
    )

    repos = GitHubAPI("ghp_test").search_repositories("javascript", min_stars=500, limit=2)

    assert repos == [
        Repository(
            owner="lodash",
            name="lodash",
            url="https://github.com/lodash/lodash",
            language="JavaScript",
        ),
        Repository(
            owner="unknown",
            name="orphan",
            url="https://github.com/ghost/orphan",
            language="javascript",
        ),
    ]
    assert repos[0].full_name == "lodash/lodash"


@responses.activate
def test_search_without_token_sends_no_authorization() -> None:
    responses.get(_SEARCH_URL, json={"items": []})

    assert GitHubAPI().search_repositories("typescript") == []
    assert "Authorization" not in responses.calls[0].request.headers


@responses.activate
def test_search_truncates_to_limit() -> None:
    responses.get(_SEARCH_URL, json=_SEARCH_PAYLOAD)

    repos = GitHubAPI().search_repositories("javascript", limit=1)

    assert [r.name for r in repos] == ["lodash"]


@responses.activate
def test_search_http_error_raises() -> None:
    responses.get(_SEARCH_URL, json={"message": "rate limited"}, status=403)

    with pytest.raises(GitHubAPIError):
        GitHubAPI().search_repositories("javascript")


def test_github_api_error_is_fetch_error() -> None:
    assert issubclass(GitHubAPIError, FetchError)


# ── Clone ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_clone_repository_runs_git(tmp_path: Path) -> None:
    mock_run = AsyncMock(return_value=SubprocessResult(returncode=0, stdout="", stderr=""))

    with patch("branchgap.utils.git.run_subprocess", mock_run):
        target = await clone_repository("lodash", "lodash", tmp_path / "repos")

    assert target == tmp_path / "repos" / "lodash"
    command = mock_run.call_args.args[0]
    assert command[1:] == ["clone", "https://github.com/lodash/lodash.git", str(target)]
    assert mock_run.call_args.kwargs["check"] is True


@pytest.mark.asyncio
async def test_clone_repository_removes_existing_directory(tmp_path: Path) -> None:
    stale = tmp_path / "lodash"
    stale.mkdir()
    (stale / "old.txt").write_text("stale", encoding="utf-8")
    mock_run = AsyncMock(return_value=SubprocessResult(returncode=0, stdout="", stderr=""))

    with patch("branchgap.utils.git.run_subprocess", mock_run):
        await clone_repository("lodash", "lodash", tmp_path)

    assert not stale.exists()


@pytest.mark.asyncio
async def test_clone_failure_raises_fetch_error(tmp_path: Path) -> None:
    failure = SubprocessError(
        "Command failed with exit code 128",
        result=SubprocessResult(returncode=128, stdout="", stderr="repository not found"),
    )

    with (
        patch("branchgap.utils.git.run_subprocess", AsyncMock(side_effect=failure)),
        pytest.raises(FetchError, match="lodash/missing"),
    ):
        await clone_repository("lodash", "missing", tmp_path)
