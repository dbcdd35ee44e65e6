"""Unit tests for the GitHub client (PyGithub and requests mocked)."""

from datetime import datetime
from unittest.mock import MagicMock, PropertyMock, patch

import pytest
import requests
from github.GithubException import GithubException

import github_client
from errors import AuthError, NetworkError, NotFoundError
from github_client import (
    fetch_pr_comments,
    fetch_pr_metadata,
    fetch_raw_diff,
    list_pull_requests,
)
from models import PullRequestRef

REPO_REF = PullRequestRef(owner="octo", repo="widgets")


def _mock_pr(number=7, title="Add widget cache", comments=2):
    pr = MagicMock()
    pr.number = number
    pr.title = title
    pr.user.login = "octocat"
    pr.created_at = datetime(2026, 10, 1, 12, 30)
    pr.html_url = f"https://github.com/octo/widgets/pull/{number}"
    pr.comments = comments
    pr.draft = False
    pr.state = "open"
    pr.base.ref = "main"
    pr.head.ref = "feature/cache"
    pr.body = "Caches widgets."
    return pr


def _response(status_code, text="", json_data=None, reason="Error"):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.reason = reason
    if json_data is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = json_data
    return response


@pytest.fixture
def gh():
    """Patched PyGithub client returned by get_github_client()."""
    client = MagicMock()
    with patch("github_client.get_github_client", return_value=client):
        yield client


class TestFetchPrMetadata:
    def test_success(self, gh, pr_ref):
        gh.get_repo.return_value.get_pull.return_value = _mock_pr()

        metadata = fetch_pr_metadata(pr_ref)

        gh.get_repo.assert_called_once_with("octo/widgets")
        gh.get_repo.return_value.get_pull.assert_called_once_with(7)
        assert metadata.title == "Add widget cache"
        assert metadata.author == "octocat"
        assert metadata.head_branch == "feature/cache"
        assert metadata.description == "Caches widgets."

    @pytest.mark.parametrize(
        "status,expected",
        [(404, NotFoundError), (401, AuthError), (403, AuthError), (500, NetworkError)],
    )
    def test_status_mapping(self, gh, pr_ref, status, expected):
        gh.get_repo.side_effect = GithubException(status, {"message": "nope"}, None)

        with pytest.raises(expected) as excinfo:
            fetch_pr_metadata(pr_ref)

        assert excinfo.value.ref == pr_ref

    def test_unauthorized_mentions_token(self, gh, pr_ref):
        gh.get_repo.side_effect = GithubException(
            401, {"message": "Bad credentials"}, None
        )

        with pytest.raises(AuthError, match="GITHUB_TOKEN"):
            fetch_pr_metadata(pr_ref)

    def test_connection_failure(self, gh, pr_ref):
        gh.get_repo.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(NetworkError):
            fetch_pr_metadata(pr_ref)

    def test_requires_number(self):
        with pytest.raises(ValueError):
            fetch_pr_metadata(REPO_REF)


class TestListPullRequests:
    def test_newest_first_with_limit(self, gh):
        pulls = [_mock_pr(number=n) for n in (12, 11, 10)]
        gh.get_repo.return_value.get_pulls.return_value = iter(pulls)

        summaries = list_pull_requests(REPO_REF, limit=2)

        gh.get_repo.return_value.get_pulls.assert_called_once_with(
            state="all", sort="created", direction="desc"
        )
        assert [s.number for s in summaries] == [12, 11]
        assert summaries[0].created_at == "2026-10-01"
        assert summaries[0].comments == 2

    def test_comment_count_failure_is_per_row(self, gh):
        broken = _mock_pr(number=5)
        type(broken).comments = PropertyMock(
            side_effect=GithubException(500, {}, None)
        )
        gh.get_repo.return_value.get_pulls.return_value = iter([broken])

        summaries = list_pull_requests(REPO_REF)

        assert summaries[0].comments is None

    def test_missing_repository(self, gh):
        gh.get_repo.side_effect = GithubException(404, {"message": "Not Found"}, None)

        with pytest.raises(NotFoundError, match="repository octo/widgets"):
            list_pull_requests(REPO_REF)


class TestFetchRawDiff:
    def test_success(self, pr_ref, rust_diff, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "t0ken")
        with patch(
            "github_client.requests.get", return_value=_response(200, rust_diff)
        ) as get:
            assert fetch_raw_diff(pr_ref) == rust_diff

        url = get.call_args.args[0]
        headers = get.call_args.kwargs["headers"]
        assert url == "https://api.github.com/repos/octo/widgets/pulls/7"
        assert headers["Accept"] == "application/vnd.github.v3.diff"
        assert headers["Authorization"] == "token t0ken"

    def test_anonymous_has_no_auth_header(self, pr_ref, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch(
            "github_client.requests.get", return_value=_response(200, "")
        ) as get:
            assert fetch_raw_diff(pr_ref) == ""

        assert "Authorization" not in get.call_args.kwargs["headers"]

    @pytest.mark.parametrize(
        "status,expected",
        [(404, NotFoundError), (401, AuthError), (403, AuthError), (502, NetworkError)],
    )
    def test_status_mapping(self, pr_ref, status, expected):
        response = _response(status, json_data={"message": "denied"})
        with patch("github_client.requests.get", return_value=response):
            with pytest.raises(expected):
                fetch_raw_diff(pr_ref)

    def test_non_json_error_body(self, pr_ref):
        response = _response(500, text="<html>", reason="Internal Server Error")
        with patch("github_client.requests.get", return_value=response):
            with pytest.raises(NetworkError, match="Internal Server Error"):
                fetch_raw_diff(pr_ref)

    def test_connection_error_retried_then_fatal(self, pr_ref, no_sleep):
        with patch(
            "github_client.requests.get",
            side_effect=requests.exceptions.ConnectionError("reset"),
        ) as get:
            with pytest.raises(NetworkError):
                fetch_raw_diff(pr_ref)

        assert get.call_count == 2

    def test_timeout_then_success(self, pr_ref, no_sleep):
        with patch(
            "github_client.requests.get",
            side_effect=[requests.exceptions.Timeout("slow"), _response(200, "diff")],
        ):
            assert fetch_raw_diff(pr_ref) == "diff"


class TestFetchPrComments:
    def test_comments_in_order(self, gh, pr_ref):
        first = MagicMock(body="First!", created_at=datetime(2026, 10, 1, 9, 0))
        first.user.login = "alice"
        second = MagicMock(body=None, created_at=datetime(2026, 10, 2, 10, 5))
        second.user.login = "bob"
        gh.get_repo.return_value.get_pull.return_value.get_issue_comments.return_value = [
            first,
            second,
        ]

        comments = fetch_pr_comments(pr_ref)

        assert [(c.author, c.created_at, c.body) for c in comments] == [
            ("alice", "2026-10-01 09:00", "First!"),
            ("bob", "2026-10-02 10:05", ""),
        ]

    def test_invalid_names_rejected_before_any_request(self, gh):
        ref = PullRequestRef(owner="octo", repo="bad/name", number=7)

        with pytest.raises(ValueError, match="repository"):
            fetch_pr_comments(ref)

        gh.get_repo.assert_not_called()

    def test_error_is_translated(self, gh, pr_ref):
        gh.get_repo.side_effect = GithubException(403, {"message": "rate limit"}, None)

        with pytest.raises(AuthError, match="rate limit"):
            fetch_pr_comments(pr_ref)


class TestClient:
    def test_anonymous_client(self, monkeypatch, caplog):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        github_client.get_github_client.cache_clear()
        try:
            with patch("github_client.Github") as github_cls:
                github_client.get_github_client()
        finally:
            github_client.get_github_client.cache_clear()

        assert "auth" not in github_cls.call_args.kwargs
        assert any("anonymous" in r.getMessage() for r in caplog.records)

    def test_token_client(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "t0ken")
        github_client.get_github_client.cache_clear()
        try:
            with patch("github_client.Github") as github_cls:
                github_client.get_github_client()
        finally:
            github_client.get_github_client.cache_clear()

        assert "auth" in github_cls.call_args.kwargs
