"""Prompt templates and persona styles for the AI review."""

import textwrap
from collections.abc import Callable
from dataclasses import dataclass

from models import ReviewPersona

# =============================================================================
# SHARED PREAMBLE (appended to every persona system instruction)
# =============================================================================

_DIFF_CONTEXT = (
    "You are reviewing a GitHub pull request. "
    "The diff is in unified format: lines starting with '+' were added, "
    "lines starting with '-' were removed.\n"
    "Focus on newly added/changed lines. "
    "Do NOT flag pre-existing patterns unless the change makes them worse.\n"
)

_GROUNDING = (
    "A set of local static checks has already run over the added lines. "
    "Their findings are listed below the diff. Confirm the ones that matter, "
    "dismiss the false positives, and add what the checks cannot see "
    "(logic errors, API misuse, concurrency, security, missing tests).\n"
)

_OUTPUT_RULES = (
    "Answer in plain text, no JSON. Reference files as path:line. "
    "Keep it under 400 words and end with a one-line verdict.\n"
)


# =============================================================================
# PERSONA SYSTEM INSTRUCTIONS
# =============================================================================

DEFAULT_SYSTEM_PROMPT = (
    "You are a senior software engineer doing a careful, neutral code review. "
    "Give specific, actionable feedback about potential issues, improvements "
    "and best practices. Consider correctness, performance, security and "
    "maintainability.\n"
    "\n" + _DIFF_CONTEXT + _GROUNDING + _OUTPUT_RULES
)

LINUS_SYSTEM_PROMPT = (
    "You are Linus Torvalds reviewing a patch on a mailing list. "
    "Be blunt, direct and technically grounded. Call bad code bad and say "
    "exactly why. Keep profanity light; the criticism must come from the "
    "technical substance, never from insults aimed at the author. "
    "Every claim must stay technically accurate: do not exaggerate problems "
    "to sound harsh, and acknowledge code that is actually good.\n"
    "\n" + _DIFF_CONTEXT + _GROUNDING + _OUTPUT_RULES
)


# =============================================================================
# USER PROMPT
# =============================================================================

REVIEW_PROMPT = (
    "{system}\n"
    "Pull request: {pr}\n"
    "Title: {title}\n"
    "Description:\n"
    "{description}\n"
    "\n"
    "Diff{truncation_note}:\n"
    "```diff\n"
    "{diff}\n"
    "```\n"
    "\n"
    "Local findings:\n"
    "{findings}\n"
)

NO_DESCRIPTION = "(no description provided)"
NO_FINDINGS = "(none)"


# =============================================================================
# PERSONA STYLES
# =============================================================================

REPORT_WIDTH = 80


def _plain_frame(heading: str, narrative: str) -> list[str]:
    return [heading + ":", "-" * REPORT_WIDTH, narrative.rstrip(), "-" * REPORT_WIDTH]


def _boxed_frame(heading: str, narrative: str) -> list[str]:
    inner = REPORT_WIDTH - 4
    border = "+" + "=" * (REPORT_WIDTH - 2) + "+"
    lines = [border, f"| {heading.center(inner)} |", border]
    for paragraph in narrative.rstrip().splitlines() or [""]:
        for chunk in textwrap.wrap(paragraph, inner) or [""]:
            lines.append(f"| {chunk.ljust(inner)} |")
    lines.append(border)
    return lines


@dataclass(frozen=True)
class PersonaStyle:
    """How one persona prompts the model and decorates its answer."""

    system_prompt: str
    heading: str
    frame: Callable[[str, str], list[str]]

    def decorate(self, narrative: str) -> list[str]:
        return self.frame(self.heading, narrative)


PERSONA_STYLES: dict[ReviewPersona, PersonaStyle] = {
    ReviewPersona.DEFAULT: PersonaStyle(
        system_prompt=DEFAULT_SYSTEM_PROMPT,
        heading="AI Review",
        frame=_plain_frame,
    ),
    ReviewPersona.LINUS_TORVALDS: PersonaStyle(
        system_prompt=LINUS_SYSTEM_PROMPT,
        heading="Linus Says",
        frame=_boxed_frame,
    ),
}


def persona_style(persona: ReviewPersona) -> PersonaStyle:
    return PERSONA_STYLES[persona]
