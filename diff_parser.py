"""Parser for unified diff format using unidiff library."""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from unidiff import PatchSet
from unidiff.constants import DEV_NULL
from unidiff.errors import UnidiffParseError

logger = logging.getLogger(__name__)

_GIT_HEADER = "diff --git "
_GIT_HEADER_PATHS = re.compile(r"^diff --git a/(?P<source>.+?) b/(?P<target>.+?)\s*$")
_BODY_PREFIXES = ("+", "-", " ")


class LineKind(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    CONTEXT = "context"


class FileStatus(str, Enum):
    """Change status of a file, as GitHub reports it."""

    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"
    RENAMED = "renamed"


@dataclass(frozen=True)
class DiffLine:
    """One line of a hunk body."""

    kind: LineKind
    content: str
    new_line_number: int | None = None  # only for added / context lines


@dataclass
class DiffHunk:
    """A contiguous block of changes in one file."""

    file_path: str
    new_start: int
    lines: list[DiffLine] = field(default_factory=list)

    @property
    def added_lines(self) -> list[DiffLine]:
        return [line for line in self.lines if line.kind is LineKind.ADDED]

    @property
    def additions(self) -> int:
        return len(self.added_lines)

    @property
    def deletions(self) -> int:
        return sum(1 for line in self.lines if line.kind is LineKind.REMOVED)


@dataclass(frozen=True)
class FileStat:
    """Per-file change totals."""

    path: str
    status: FileStatus
    additions: int
    deletions: int


@dataclass(frozen=True)
class FileSection:
    """Raw diff text for a single file, as it appeared in the full diff."""

    path: str
    text: str
    changes: int  # added + removed lines


# ---------------------------------------------------------------------------
# Splitting
# ---------------------------------------------------------------------------
def _split_sections(diff_text: str) -> list[list[str]]:
    """Split raw diff lines into per-file groups.

    Git diffs split on ``diff --git`` headers. Plain unified diffs have no
    such header, so there a ``---``/``+++`` pair seen after a hunk starts
    the next file.
    """
    sections: list[list[str]] = []
    current: list[str] = []
    seen_hunk = False
    lines = diff_text.splitlines(keepends=True)

    for index, line in enumerate(lines):
        starts_file = line.startswith(_GIT_HEADER) or (
            seen_hunk
            and not current[0].startswith(_GIT_HEADER)
            and line.startswith("--- ")
            and index + 1 < len(lines)
            and lines[index + 1].startswith("+++ ")
        )
        if starts_file and current:
            sections.append(current)
            current = []
            seen_hunk = False

        current.append(line)
        if line.startswith("@@"):
            seen_hunk = True

    if current:
        sections.append(current)
    return sections


def _split_hunks(section: list[str]) -> tuple[list[str], list[list[str]]]:
    """Split one file section into (header lines, hunk blocks)."""
    header: list[str] = []
    blocks: list[list[str]] = []

    for line in section:
        if line.startswith("@@"):
            blocks.append([line])
        elif blocks:
            blocks[-1].append(line)
        else:
            header.append(line)

    return header, blocks


def _section_path(section: list[str]) -> str:
    """Best-effort file path for a raw section (new path preferred)."""
    source = target = None
    for line in section:
        if line.startswith("@@"):
            break
        if line.startswith("+++ "):
            target = line[4:].split("\t")[0].strip()
        elif line.startswith("--- "):
            source = line[4:].split("\t")[0].strip()

    for candidate in (target, source):
        if candidate and candidate != DEV_NULL:
            return candidate[2:] if candidate[:2] in ("a/", "b/") else candidate

    match = _GIT_HEADER_PATHS.match(section[0]) if section else None
    if match:
        return match.group("target")
    return "<unknown>"


def split_file_sections(diff_text: str) -> list[FileSection]:
    """
    Split a unified diff into per-file raw sections.

    Used to truncate large diffs file-by-file without re-serialising
    parsed hunks.
    """
    result = []
    for section in _split_sections(diff_text):
        _, blocks = _split_hunks(section)
        changes = sum(
            1
            for block in blocks
            for line in block[1:]
            if line.startswith(("+", "-"))
        )
        result.append(
            FileSection(
                path=_section_path(section),
                text="".join(section),
                changes=changes,
            )
        )
    return result


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------
def _file_path(patched_file) -> str:
    """New-side path of a parsed file (old path for deletions)."""
    target = patched_file.target_file
    if target and target != DEV_NULL:
        return target[2:] if target.startswith("b/") else target
    return patched_file.path


def _convert_hunk(path: str, hunk) -> DiffHunk:
    lines = []
    for line in hunk:
        content = line.value.rstrip("\n")
        if line.is_added:
            lines.append(DiffLine(LineKind.ADDED, content, line.target_line_no))
        elif line.is_removed:
            lines.append(DiffLine(LineKind.REMOVED, content))
        elif line.is_context:
            lines.append(DiffLine(LineKind.CONTEXT, content, line.target_line_no))
        # "\ No newline at end of file" markers carry no content

    return DiffHunk(file_path=path, new_start=hunk.target_start, lines=lines)


def _body_line_count(block: list[str]) -> int:
    """Diff body lines in a hunk block, not counting trailing blank separators."""
    body = [
        line for line in block[1:] if line.startswith(_BODY_PREFIXES) or line == "\n"
    ]
    while body and body[-1] == "\n":
        body.pop()
    return len(body)


def _parse_block(header: list[str], block: list[str]) -> list[DiffHunk]:
    """Parse one hunk (with its file header) using unidiff."""
    patch_set = PatchSet("".join(header + block))
    return [
        _convert_hunk(_file_path(patched_file), hunk)
        for patched_file in patch_set
        for hunk in patched_file
    ]


def parse_diff(diff_text: str) -> list[DiffHunk]:
    """
    Parse a unified diff into structured DiffHunk objects.

    Each hunk is parsed on its own so that a malformed hunk only drops
    itself. Sections without hunks (renames, mode changes, binary files)
    yield nothing.

    Args:
        diff_text: Raw unified diff string (may be empty)

    Returns:
        List of DiffHunk in file-appearance order
    """
    hunks: list[DiffHunk] = []

    for section in _split_sections(diff_text):
        header, blocks = _split_hunks(section)

        for block in blocks:
            hunk_header = block[0].rstrip("\n")
            try:
                parsed = _parse_block(header, block)
            except UnidiffParseError as e:
                logger.warning(
                    "Skipping unparsable hunk %r in %s: %s",
                    hunk_header,
                    _section_path(section),
                    e,
                )
                continue

            if not parsed:
                logger.warning(
                    "Skipping malformed hunk header %r in %s",
                    hunk_header,
                    _section_path(section),
                )
                continue

            # unidiff stops at the counts in the @@ header and drops the rest
            expected = _body_line_count(block)
            received = sum(len(hunk.lines) for hunk in parsed)
            if expected > received:
                logger.warning(
                    "Skipping hunk %r in %s: %d body line(s) beyond its header counts",
                    hunk_header,
                    _section_path(section),
                    expected - received,
                )
                continue

            hunks.extend(parsed)

    return hunks


def _file_status(header: list[str]) -> tuple[str, FileStatus]:
    """Path and status of a file from its section header alone."""
    try:
        patch_set = PatchSet("".join(header))
    except UnidiffParseError as e:
        logger.debug("Could not read file header %s: %s", _section_path(header), e)
        return _section_path(header), FileStatus.MODIFIED

    if not patch_set:
        return _section_path(header), FileStatus.MODIFIED

    patched_file = patch_set[0]
    if patched_file.source_file == DEV_NULL:
        status = FileStatus.ADDED
    elif patched_file.target_file == DEV_NULL:
        status = FileStatus.REMOVED
    elif patched_file.is_rename:
        status = FileStatus.RENAMED
    else:
        status = FileStatus.MODIFIED
    return _file_path(patched_file), status


def summarize_files(diff_text: str, hunks: list[DiffHunk]) -> list[FileStat]:
    """
    One row per changed file, in appearance order.

    Status comes from each file's header and counts from the parsed hunks,
    so renames, mode changes and binary files show up with zero counts.

    Args:
        diff_text: Raw unified diff string
        hunks: Hunks parsed from *diff_text*

    Returns:
        List of FileStat
    """
    totals: dict[str, list[int]] = {}
    for hunk in hunks:
        counts = totals.setdefault(hunk.file_path, [0, 0])
        counts[0] += hunk.additions
        counts[1] += hunk.deletions

    stats: dict[str, FileStat] = {}
    for section in _split_sections(diff_text):
        header, _ = _split_hunks(section)
        path, status = _file_status(header)
        if path not in stats:
            added, removed = totals.pop(path, (0, 0))
            stats[path] = FileStat(path, status, added, removed)

    for path, (added, removed) in totals.items():
        stats[path] = FileStat(path, FileStatus.MODIFIED, added, removed)

    return list(stats.values())
