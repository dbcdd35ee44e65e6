"""Report assembly and plain-text rendering."""

import itertools
from dataclasses import dataclass

from diff_parser import FileStat
from github_client import PRComment, PRMetadata, PRSummary
from models import Finding, PullRequestRef, ReviewPersona
from prompts import REPORT_WIDTH, persona_style

AI_UNAVAILABLE_NOTICE = "AI review unavailable"
COMMENTS_UNAVAILABLE_NOTICE = "Comments unavailable"

_RULE = "-" * REPORT_WIDTH
_DOUBLE_RULE = "=" * REPORT_WIDTH


@dataclass(frozen=True)
class ReviewReport:
    """Everything the final report shows. Built once, never mutated."""

    ref: PullRequestRef
    persona: ReviewPersona
    metadata: PRMetadata | None
    findings: tuple[Finding, ...]
    narrative: str | None = None
    files: tuple[FileStat, ...] = ()
    comments: tuple[PRComment, ...] | None = None

    @property
    def has_narrative(self) -> bool:
        return self.narrative is not None


def build_report(
    ref: PullRequestRef,
    persona: ReviewPersona,
    metadata: PRMetadata | None,
    findings: list[Finding],
    narrative: str | None,
    files: list[FileStat] | None = None,
    comments: list[PRComment] | None = None,
) -> ReviewReport:
    """Freeze the pipeline results into a ReviewReport."""
    return ReviewReport(
        ref=ref,
        persona=persona,
        metadata=metadata,
        findings=tuple(sorted(findings, key=lambda f: f.path)),
        narrative=narrative,
        files=tuple(files or ()),
        comments=tuple(comments) if comments is not None else None,
    )


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------
def _header_lines(report: ReviewReport) -> list[str]:
    ref = report.ref
    meta = report.metadata
    title = meta.title if meta else "(title unavailable)"

    lines = [_DOUBLE_RULE, f"PR #{ref.number}: {title}", _DOUBLE_RULE]
    lines.append(f"Repository: {ref.slug}")
    if meta:
        state = f"{meta.state} (draft)" if meta.draft else meta.state
        lines.append(f"Author: {meta.author}    State: {state}")
        lines.append(f"Branches: {meta.head_branch} -> {meta.base_branch}")
        lines.append(f"URL: {meta.html_url}")

    description = (meta.description or "").strip() if meta else ""
    lines += ["", "Description:", _RULE]
    lines.append(description or "No description provided.")
    lines.append(_RULE)
    return lines


def _files_lines(report: ReviewReport) -> list[str]:
    lines = ["", "Modified Files:", _RULE]
    if not report.files:
        lines += ["No textual changes in this PR.", _RULE]
        return lines

    lines.append(
        f"{'Filename':<50} {'Status':<10} {'Additions':<10} {'Deletions':<10}"
    )
    for stat in report.files:
        lines.append(
            f"{stat.path:<50} {stat.status.value:<10} "
            f"{stat.additions:<10} {stat.deletions:<10}"
        )

    additions = sum(stat.additions for stat in report.files)
    deletions = sum(stat.deletions for stat in report.files)
    lines.append(_RULE)
    lines.append(
        f"Changed {additions + deletions} lines "
        f"({additions} additions, {deletions} deletions)"
    )
    return lines


def _findings_lines(report: ReviewReport) -> list[str]:
    lines = ["", f"Local Findings ({len(report.findings)}):", _RULE]
    if not report.findings:
        lines += ["No issues detected by local checks.", _RULE]
        return lines

    for path, group in itertools.groupby(report.findings, key=lambda f: f.path):
        lines.append(path)
        for finding in group:
            lines.append(
                f"  L{finding.line:<5} [{finding.severity.value:<7}] "
                f"{finding.rule_id.value:<16} {finding.message}"
            )
    lines.append(_RULE)
    return lines


def _narrative_lines(report: ReviewReport) -> list[str]:
    if report.narrative is None:
        return ["", AI_UNAVAILABLE_NOTICE]
    return [""] + persona_style(report.persona).decorate(report.narrative)


def _comments_lines(report: ReviewReport) -> list[str]:
    lines = ["", f"Comments for PR #{report.ref.number}:"]
    if report.comments is None:
        lines.append(COMMENTS_UNAVAILABLE_NOTICE)
        return lines
    if not report.comments:
        lines.append("No comments found for this PR.")
        return lines

    lines.append(_RULE)
    for comment in report.comments:
        lines.append(f"Author: {comment.author} (at {comment.created_at})")
        lines.append(_RULE)
        lines.append(comment.body.rstrip())
        lines.append(_RULE)
    return lines


# ---------------------------------------------------------------------------
# Public renderers
# ---------------------------------------------------------------------------
def render_report(report: ReviewReport) -> str:
    """
    Render a ReviewReport as plain text.

    Order: PR header, modified files, local findings grouped by file,
    AI narrative (or a one-line notice when absent), PR comments.
    """
    lines = (
        _header_lines(report)
        + _files_lines(report)
        + _findings_lines(report)
        + _narrative_lines(report)
        + _comments_lines(report)
    )
    return "\n".join(lines) + "\n"


def _shorten(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    return text[: width - 3] + "..."


def render_pull_request_list(ref: PullRequestRef, prs: list[PRSummary]) -> str:
    """Render the list-mode table of recent PRs."""
    lines = [f"Most recent PRs for {ref.slug}:"]
    if not prs:
        lines.append("No pull requests found.")
        return "\n".join(lines) + "\n"

    lines.append(
        f"{'PR#':<6} {'Title':<50} {'Author':<20} {'Created At':<15} {'Comments':<15}"
    )
    lines.append("-" * 106)
    for pr in prs:
        comments = str(pr.comments) if pr.comments is not None else "Error"
        lines.append(
            f"{pr.number:<6} {_shorten(pr.title, 47):<50} {pr.author:<20} "
            f"{pr.created_at:<15} {comments:<15}"
        )
        lines.append(f"       URL: {pr.html_url}")
    return "\n".join(lines) + "\n"
