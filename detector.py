"""Local pattern checks over the added lines of a diff.

Rules live in an ordered registry. Each rule looks at a single added line
and returns a message when it fires. Registry order doubles as the tie-break
when several rules fire on the same line, so new rules are added by appending
an entry, never by touching the detection loop.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

import config
from diff_parser import DiffHunk
from models import Finding, RuleId, Severity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectorConfig:
    """Marker substrings for the language-dependent rules."""

    debug_markers: tuple[str, ...] = config.DEBUG_MARKERS
    unwrap_markers: tuple[str, ...] = config.UNWRAP_MARKERS
    panic_markers: tuple[str, ...] = config.PANIC_MARKERS


# A check returns the finding message, or None when the line is clean
Check = Callable[[str, DetectorConfig], str | None]


@dataclass(frozen=True)
class Rule:
    severity: Severity
    check: Check


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------
def _first_marker(content: str, markers: tuple[str, ...]) -> str | None:
    for marker in markers:
        if marker and marker in content:
            return marker
    return None


def check_debug_statement(content: str, cfg: DetectorConfig) -> str | None:
    marker = _first_marker(content, cfg.debug_markers)
    if marker is None:
        return None
    return f"Debug statement `{marker}` found - is this intended for production?"


def check_unwrap_usage(content: str, cfg: DetectorConfig) -> str | None:
    marker = _first_marker(content, cfg.unwrap_markers)
    if marker is None:
        return None
    return f"Consider handling errors explicitly instead of using `{marker}`"


def check_panic_statement(content: str, cfg: DetectorConfig) -> str | None:
    marker = _first_marker(content, cfg.panic_markers)
    if marker is None:
        return None
    return (
        f"Consider if `{marker}` is appropriate here or if errors "
        f"should be handled gracefully"
    )


_NUMBER = re.compile(r"(?<![\w.])-?\d+(?:_\d+)*(?:\.\d+)?(?![\w.])")

# FOO = 3, const FOO: u32 = 3, export const MAX_SIZE = 3, #define LIMIT 3
_NAMED_CONSTANT = re.compile(
    r"^\s*"
    r"(?:(?:pub(?:\([\w:]+\))?|export|public|private|protected|static|final"
    r"|const|let|var|val|readonly)\s+)*"
    r"[A-Z][A-Z0-9_]*\s*(?::[^=]+)?=(?!=)"
)
_CONST_DECLARATION = re.compile(
    r"^\s*(?:pub(?:\([\w:]+\))?\s+)?(?:const|static)\s|^\s*#define\s"
)

_TRIVIAL_NUMBERS = {0.0, 1.0, -1.0}


def check_magic_constant(content: str, cfg: DetectorConfig) -> str | None:
    if _NAMED_CONSTANT.match(content) or _CONST_DECLARATION.match(content):
        return None

    for match in _NUMBER.finditer(content):
        literal = match.group()
        if float(literal.replace("_", "")) in _TRIVIAL_NUMBERS:
            continue
        return f"Magic number {literal} - consider extracting a named constant"
    return None


_TODO = re.compile(r"\b(?:TODO|FIXME)\b", re.IGNORECASE)


def check_todo_fixme(content: str, cfg: DetectorConfig) -> str | None:
    match = _TODO.search(content)
    if match is None:
        return None
    return (
        f"{match.group().upper()} left in code - "
        f"should this be addressed before merging?"
    )


# ---------------------------------------------------------------------------
# Registry (declaration order = same-line ordering)
# ---------------------------------------------------------------------------
RULES: dict[RuleId, Rule] = {
    RuleId.DEBUG_STATEMENT: Rule(Severity.WARNING, check_debug_statement),
    RuleId.UNWRAP_USAGE: Rule(Severity.WARNING, check_unwrap_usage),
    RuleId.PANIC_STATEMENT: Rule(Severity.WARNING, check_panic_statement),
    RuleId.MAGIC_CONSTANT: Rule(Severity.INFO, check_magic_constant),
    RuleId.TODO_FIXME: Rule(Severity.INFO, check_todo_fixme),
}


def detect(
    hunks: list[DiffHunk],
    cfg: DetectorConfig | None = None,
    rules: dict[RuleId, Rule] | None = None,
) -> list[Finding]:
    """
    Run every rule over every added line.

    Args:
        hunks: Parsed diff hunks
        cfg: Marker configuration (defaults from config.py)
        rules: Rule registry (defaults to RULES)

    Returns:
        Findings sorted by path, line, then rule declaration order
    """
    cfg = cfg or DetectorConfig()
    rules = RULES if rules is None else rules

    ranked: list[tuple[str, int, int, Finding]] = []

    for hunk in hunks:
        for line in hunk.added_lines:
            for index, (rule_id, rule) in enumerate(rules.items()):
                try:
                    message = rule.check(line.content, cfg)
                except Exception as e:
                    logger.debug(
                        "Rule %s failed on %s:%s: %s",
                        rule_id.value,
                        hunk.file_path,
                        line.new_line_number,
                        e,
                    )
                    continue

                if message is None:
                    continue

                finding = Finding(
                    path=hunk.file_path,
                    line=line.new_line_number,
                    rule_id=rule_id,
                    severity=rule.severity,
                    message=message,
                )
                ranked.append((hunk.file_path, line.new_line_number, index, finding))

    ranked.sort(key=lambda item: item[:3])
    findings = [item[3] for item in ranked]

    logger.info("Pattern detector produced %d finding(s)", len(findings))
    return findings
