"""GitHub API client for read-only PR operations."""

import functools
import itertools
import logging
import os
from dataclasses import dataclass

import requests
import requests.exceptions
from github import Auth, Github
from github.GithubException import GithubException

from config import GITHUB_TIMEOUT, PR_LIST_LIMIT, validate_name, with_retry
from errors import AuthError, FatalFetchError, NetworkError, NotFoundError
from models import PullRequestRef

logger = logging.getLogger(__name__)

API_URL = "https://api.github.com"
USER_AGENT = "rubber"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class PRSummary:
    """One row of the PR list."""

    number: int
    title: str
    author: str
    created_at: str  # YYYY-MM-DD
    html_url: str
    comments: int | None  # None when the count could not be fetched


@dataclass(frozen=True)
class PRMetadata:
    """Pull Request metadata."""

    number: int
    title: str
    author: str
    draft: bool
    state: str
    base_branch: str
    head_branch: str
    description: str | None
    html_url: str


@dataclass(frozen=True)
class PRComment:
    """A conversation comment on a Pull Request."""

    author: str
    created_at: str
    body: str


# ---------------------------------------------------------------------------
# Cached GitHub client
# ---------------------------------------------------------------------------
@functools.lru_cache(maxsize=1)
def get_github_client() -> Github:
    """Create or return a cached GitHub client.

    Without GITHUB_TOKEN the client is anonymous: public repositories
    still work, at a much lower rate limit.
    """
    token = os.getenv("GITHUB_TOKEN")
    if not token:
        logger.warning(
            "GITHUB_TOKEN not set; using anonymous access (public repos only, "
            "60 requests/hour)"
        )
        return Github(timeout=GITHUB_TIMEOUT, user_agent=USER_AGENT)
    return Github(
        auth=Auth.Token(token), timeout=GITHUB_TIMEOUT, user_agent=USER_AGENT
    )


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------
def _describe(ref: PullRequestRef) -> str:
    if ref.number is None:
        return f"repository {ref.slug}"
    return f"PR #{ref.number} in {ref.slug}"


def _error_for_status(
    status: int | None, message: str, ref: PullRequestRef
) -> FatalFetchError:
    """Map an HTTP status from GitHub onto the fatal error taxonomy."""
    target = _describe(ref)
    if status == 404:
        return NotFoundError(f"{target} not found (or not visible)", ref)
    if status == 401:
        return AuthError(
            f"GitHub authentication failed for {target}: {message}. "
            f"Check GITHUB_TOKEN.",
            ref,
        )
    if status == 403:
        return AuthError(
            f"GitHub denied access to {target}: {message}. "
            f"The token may lack permission or the rate limit was exceeded.",
            ref,
        )
    return NetworkError(f"GitHub API error for {target}: {message}", ref)


def _translate_github_error(e: GithubException, ref: PullRequestRef) -> FatalFetchError:
    message = e.data.get("message", str(e)) if isinstance(e.data, dict) else str(e)
    return _error_for_status(e.status, message, ref)


def _translate_request_error(
    e: requests.exceptions.RequestException, ref: PullRequestRef
) -> FatalFetchError:
    if isinstance(e, requests.exceptions.Timeout):
        return NetworkError(
            f"GitHub did not answer within {GITHUB_TIMEOUT}s for {_describe(ref)}",
            ref,
        )
    return NetworkError(f"Could not reach GitHub for {_describe(ref)}: {e}", ref)


def _require_number(ref: PullRequestRef) -> int:
    if ref.number is None:
        raise ValueError(f"{ref.slug}: a PR number is required")
    return ref.number


# ---------------------------------------------------------------------------
# Read operations
# ---------------------------------------------------------------------------
def list_pull_requests(
    ref: PullRequestRef, limit: int = PR_LIST_LIMIT
) -> list[PRSummary]:
    """
    Fetch the most recent PRs (any state) for a repository.

    Args:
        ref: Repository reference (number is ignored)
        limit: Maximum number of PRs to return

    Returns:
        List of PRSummary, newest first

    Raises:
        NotFoundError, AuthError, NetworkError
    """
    validate_name(ref.owner, "owner")
    validate_name(ref.repo, "repository")
    client = get_github_client()

    try:
        repository = client.get_repo(ref.slug)
        pulls = repository.get_pulls(state="all", sort="created", direction="desc")

        summaries = []
        for pr in itertools.islice(pulls, limit):
            try:
                comments = pr.comments
            except GithubException as e:
                logger.warning("Could not count comments on PR #%d: %s", pr.number, e)
                comments = None

            summaries.append(
                PRSummary(
                    number=pr.number,
                    title=pr.title,
                    author=pr.user.login,
                    created_at=pr.created_at.strftime("%Y-%m-%d"),
                    html_url=pr.html_url,
                    comments=comments,
                )
            )
        return summaries

    except GithubException as e:
        raise _translate_github_error(e, ref) from e
    except requests.exceptions.RequestException as e:
        raise _translate_request_error(e, ref) from e


def fetch_pr_metadata(ref: PullRequestRef) -> PRMetadata:
    """
    Fetch PR metadata from GitHub.

    Args:
        ref: Pull request reference (number required)

    Returns:
        PRMetadata object with PR details

    Raises:
        NotFoundError, AuthError, NetworkError
    """
    number = _require_number(ref)
    validate_name(ref.owner, "owner")
    validate_name(ref.repo, "repository")
    client = get_github_client()

    try:
        repository = client.get_repo(ref.slug)
        pr = repository.get_pull(number)

        return PRMetadata(
            number=pr.number,
            title=pr.title,
            author=pr.user.login,
            draft=pr.draft,
            state=pr.state,
            base_branch=pr.base.ref,
            head_branch=pr.head.ref,
            description=pr.body,
            html_url=pr.html_url,
        )
    except GithubException as e:
        raise _translate_github_error(e, ref) from e
    except requests.exceptions.RequestException as e:
        raise _translate_request_error(e, ref) from e


@with_retry(
    max_retries=2,
    base_delay=1.0,
    retryable=(
        requests.exceptions.ConnectionError,
        requests.exceptions.Timeout,
    ),
)
def _download_diff(url: str, headers: dict[str, str]) -> requests.Response:
    return requests.get(url, headers=headers, timeout=GITHUB_TIMEOUT)


def fetch_raw_diff(ref: PullRequestRef) -> str:
    """
    Fetch the raw unified diff for the entire PR.

    This uses the REST API directly because PyGithub doesn't expose
    the raw diff format. The diff includes all files in one string.

    Raises:
        NotFoundError, AuthError, NetworkError
    """
    number = _require_number(ref)
    validate_name(ref.owner, "owner")
    validate_name(ref.repo, "repository")

    url = f"{API_URL}/repos/{ref.slug}/pulls/{number}"
    headers = {
        "Accept": "application/vnd.github.v3.diff",
        "User-Agent": USER_AGENT,
    }
    token = os.getenv("GITHUB_TOKEN")
    if token:
        headers["Authorization"] = f"token {token}"

    try:
        response = _download_diff(url, headers)
    except requests.exceptions.RequestException as e:
        raise _translate_request_error(e, ref) from e

    if response.status_code >= 400:
        try:
            message = response.json().get("message", response.reason)
        except (ValueError, AttributeError):
            message = response.reason
        raise _error_for_status(response.status_code, message, ref)

    logger.info("Fetched diff for %s (%d characters)", ref, len(response.text))
    return response.text


def fetch_pr_comments(ref: PullRequestRef) -> list[PRComment]:
    """
    Fetch the conversation comments of a PR, oldest first.

    Raises:
        NotFoundError, AuthError, NetworkError
    """
    number = _require_number(ref)
    validate_name(ref.owner, "owner")
    validate_name(ref.repo, "repository")
    client = get_github_client()

    try:
        pr = client.get_repo(ref.slug).get_pull(number)
        return [
            PRComment(
                author=comment.user.login,
                created_at=comment.created_at.strftime("%Y-%m-%d %H:%M"),
                body=comment.body or "",
            )
            for comment in pr.get_issue_comments()
        ]
    except GithubException as e:
        raise _translate_github_error(e, ref) from e
    except requests.exceptions.RequestException as e:
        raise _translate_request_error(e, ref) from e
