"""AI review composition - builds the prompt and calls the completion client."""

import logging
from collections.abc import Callable

from config import (
    AI_MAX_ATTEMPTS,
    AI_RETRY_DELAY,
    MAX_DIFF_CHARS,
    USE_MOCK,
    call_gemini,
    with_retry,
)
from diff_parser import split_file_sections
from errors import TRANSIENT_AI_ERRORS, AIServiceError
from github_client import PRMetadata
from mock_data import MOCK_NARRATIVE
from models import Finding, PullRequestRef, ReviewPersona
from prompts import NO_DESCRIPTION, NO_FINDINGS, REVIEW_PROMPT, persona_style

logger = logging.getLogger(__name__)

Complete = Callable[[str], str]


# ---------------------------------------------------------------------------
# Diff truncation
# ---------------------------------------------------------------------------
def truncate_diff(
    diff_text: str,
    max_chars: int = MAX_DIFF_CHARS,
) -> tuple[str, list[str]]:
    """
    Fit a diff into the prompt budget, file by file.

    Files are ranked by number of changed lines (most first, ties in
    appearance order) and kept while they fit. Files that do not fit are
    dropped whole; if not even the largest file fits, it is cut at the
    budget.

    Args:
        diff_text: Full unified diff
        max_chars: Character budget for the diff portion of the prompt

    Returns:
        (diff text to send, paths of omitted or cut files)
    """
    if len(diff_text) <= max_chars:
        return diff_text, []

    sections = split_file_sections(diff_text)
    ranked = sorted(
        enumerate(sections), key=lambda item: (-item[1].changes, item[0])
    )

    kept: list[str] = []
    omitted: list[str] = []
    used = 0

    for _, section in ranked:
        if used + len(section.text) <= max_chars:
            kept.append(section.text)
            used += len(section.text)
        else:
            omitted.append(section.path)

    if not kept and ranked:
        largest = ranked[0][1]
        kept.append(largest.text[:max_chars])
        logger.warning(
            "Largest file %s alone exceeds the %d-char budget; sending it cut",
            largest.path,
            max_chars,
        )

    logger.warning(
        "Diff truncated from %d to %d chars; %d file(s) omitted: %s",
        len(diff_text),
        sum(len(text) for text in kept),
        len(omitted),
        ", ".join(omitted),
    )
    return "".join(kept), omitted


# ---------------------------------------------------------------------------
# Prompt construction
# ---------------------------------------------------------------------------
def format_findings(findings: list[Finding]) -> str:
    """Compact one-line-per-finding list for the prompt."""
    if not findings:
        return NO_FINDINGS
    return "\n".join(
        f"- {f.path}:{f.line} [{f.severity.value}] {f.rule_id.value}: {f.message}"
        for f in findings
    )


def build_prompt(
    ref: PullRequestRef,
    metadata: PRMetadata | None,
    diff_text: str,
    findings: list[Finding],
    persona: ReviewPersona = ReviewPersona.DEFAULT,
    max_chars: int = MAX_DIFF_CHARS,
) -> str:
    """Assemble the full prompt: persona, PR text, (truncated) diff, findings."""
    diff, omitted = truncate_diff(diff_text, max_chars)

    truncation_note = ""
    if omitted:
        truncation_note = (
            f" (truncated; {len(omitted)} file(s) omitted: {', '.join(omitted)})"
        )

    title = metadata.title if metadata else "(unknown)"
    description = (metadata.description or "").strip() if metadata else ""

    return REVIEW_PROMPT.format(
        system=persona_style(persona).system_prompt,
        pr=str(ref),
        title=title,
        description=description or NO_DESCRIPTION,
        truncation_note=truncation_note,
        diff=diff.rstrip("\n"),
        findings=format_findings(findings),
    )


# ---------------------------------------------------------------------------
# AI call
# ---------------------------------------------------------------------------
def compose_review(
    ref: PullRequestRef,
    metadata: PRMetadata | None,
    diff_text: str,
    findings: list[Finding],
    persona: ReviewPersona = ReviewPersona.DEFAULT,
    complete: Complete | None = None,
    max_chars: int = MAX_DIFF_CHARS,
) -> str | None:
    """
    Ask the AI client for a narrative review.

    The client is called once; a transient failure (timeout, network,
    5xx) gets exactly one retry. Any remaining failure yields None so the
    report can still be produced from local findings.

    Args:
        ref: Pull request reference
        metadata: PR metadata (title / description), if available
        diff_text: Full unified diff
        findings: Local findings, already ordered
        persona: Review voice
        complete: Completion callable (defaults to Gemini)
        max_chars: Diff budget for the prompt

    Returns:
        Narrative text, or None when the AI review is unavailable
    """
    if USE_MOCK:
        logger.info("[MOCK MODE - No API call made]")
        return MOCK_NARRATIVE

    prompt = build_prompt(ref, metadata, diff_text, findings, persona, max_chars)
    logger.info(
        "Requesting %s review for %s (%d chars)", persona.value, ref, len(prompt)
    )

    complete_with_retry = with_retry(
        max_retries=AI_MAX_ATTEMPTS,
        base_delay=AI_RETRY_DELAY,
        retryable=TRANSIENT_AI_ERRORS,
    )(complete or call_gemini)

    try:
        narrative = complete_with_retry(prompt)
    except AIServiceError as e:
        logger.warning("AI review unavailable for %s: %s", ref, e)
        return None
    except Exception as e:
        logger.error("Unexpected error during AI review of %s: %s", ref, e)
        return None

    narrative = (narrative or "").strip()
    if not narrative:
        logger.warning("AI review for %s came back empty", ref)
        return None
    return narrative
