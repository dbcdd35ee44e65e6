"""Shared fixtures: sample diffs, PR metadata and fake collaborators."""

from unittest.mock import patch

import pytest

from agent import PipelineServices
from detector import DetectorConfig
from errors import AITimeoutError
from github_client import PRComment, PRMetadata, PRSummary
from models import PullRequestRef


def build_diff(path: str, new_start: int, body: list[str], new_file: bool = False) -> str:
    """Build a single-file, single-hunk git diff from prefixed body lines."""
    old_count = sum(1 for line in body if line[:1] in (" ", "-"))
    new_count = sum(1 for line in body if line[:1] in (" ", "+"))
    old_start = 0 if new_file else new_start

    header = [f"diff --git a/{path} b/{path}"]
    if new_file:
        header += ["new file mode 100644", "index 0000000..1111111"]
        header += ["--- /dev/null", f"+++ b/{path}"]
    else:
        header += ["index 1111111..2222222 100644"]
        header += [f"--- a/{path}", f"+++ b/{path}"]
    header.append(f"@@ -{old_start},{old_count} +{new_start},{new_count} @@")
    return "\n".join(header + body) + "\n"


RUST_BODY = [
    "     let a = 0; // TODO context",
    "     let b = 1;",
    "+    let x = 42; // TODO fix this",
    "+    unwrap_result()",
    "-    old_line(); // TODO removed",
    " }",
]

PYTHON_BODY = [
    "+LIMIT = 500",
    "+print(LIMIT * 3)",
    "+# fixme later",
]

RENAME_ONLY = (
    "diff --git a/old.txt b/new.txt\n"
    "similarity index 100%\n"
    "rename from old.txt\n"
    "rename to new.txt\n"
)


@pytest.fixture
def rust_diff() -> str:
    return build_diff("a.rs", 8, RUST_BODY)


@pytest.fixture
def multi_file_diff() -> str:
    """Files out of path order, plus a rename with no hunk."""
    return (
        build_diff("b.py", 1, PYTHON_BODY, new_file=True)
        + RENAME_ONLY
        + build_diff("a.rs", 8, RUST_BODY)
    )


@pytest.fixture
def example_config() -> DetectorConfig:
    """Markers that make the worked a.rs example fire unwrap-usage."""
    return DetectorConfig(
        debug_markers=("println!", "print("),
        unwrap_markers=("unwrap_result()",),
        panic_markers=("panic!",),
    )


@pytest.fixture
def pr_ref() -> PullRequestRef:
    return PullRequestRef(owner="octo", repo="widgets", number=7)


@pytest.fixture
def pr_metadata() -> PRMetadata:
    return PRMetadata(
        number=7,
        title="Add widget cache",
        author="octocat",
        draft=False,
        state="open",
        base_branch="main",
        head_branch="feature/cache",
        description="Caches widgets between requests.",
        html_url="https://github.com/octo/widgets/pull/7",
    )


@pytest.fixture
def pr_comments() -> list[PRComment]:
    return [PRComment(author="hubot", created_at="2026-10-01 12:00", body="LGTM")]


@pytest.fixture
def pr_summaries() -> list[PRSummary]:
    return [
        PRSummary(
            number=8,
            title="A very long pull request title that certainly needs truncating",
            author="octocat",
            created_at="2026-10-02",
            html_url="https://github.com/octo/widgets/pull/8",
            comments=3,
        ),
        PRSummary(
            number=7,
            title="Add widget cache",
            author="hubot",
            created_at="2026-10-01",
            html_url="https://github.com/octo/widgets/pull/7",
            comments=None,
        ),
    ]


@pytest.fixture
def no_sleep():
    """Skip retry back-off delays."""
    with patch("config.time.sleep") as sleep:
        yield sleep


@pytest.fixture(autouse=True)
def no_mock_mode():
    """Tests exercise the real composer path regardless of USE_MOCK."""
    with patch("reviewer.USE_MOCK", False):
        yield


@pytest.fixture
def services(rust_diff, pr_metadata, pr_comments, pr_summaries, no_sleep):
    """Fake collaborators for a healthy run; tests override single fields."""
    return PipelineServices(
        list_pull_requests=lambda ref: pr_summaries,
        fetch_pr_metadata=lambda ref: pr_metadata,
        fetch_raw_diff=lambda ref: rust_diff,
        fetch_pr_comments=lambda ref: pr_comments,
        complete=lambda prompt: "Looks fine overall.",
    )


def failing_completion(calls: list[str]):
    """Completion that always times out, recording each prompt."""

    def complete(prompt: str) -> str:
        calls.append(prompt)
        raise AITimeoutError("timed out")

    return complete
