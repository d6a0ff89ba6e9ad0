"""Conversion between raw text lines and typed journal lines."""

from __future__ import annotations

import re
from typing import Optional

from .models import (
    DONE_PREFIX,
    EVENT_PREFIX,
    NOTE_PREFIX,
    TASK_PREFIX,
    EntryType,
    Line,
    RawEntry,
    RawLine,
)

TAG_REGEX = re.compile(r"#([a-zA-Z][a-zA-Z0-9_-]*)")

# Order matters: "- " is a prefix of both task forms.
_PREFIXES = (
    (TASK_PREFIX, EntryType.TASK, False),
    (DONE_PREFIX, EntryType.TASK, True),
    (EVENT_PREFIX, EntryType.EVENT, False),
    (NOTE_PREFIX, EntryType.NOTE, False),
)


def _match_entry(line: str) -> Optional[RawEntry]:
    trimmed = line.lstrip()
    for prefix, entry_type, completed in _PREFIXES:
        if trimmed.startswith(prefix):
            return RawEntry(entry_type, trimmed[len(prefix):], completed)
    return None


def parse_to_raw_entry(line: str) -> RawEntry:
    """Parse one line as an entry, treating unprefixed text as a note."""
    entry = _match_entry(line)
    if entry is not None:
        return entry
    return RawEntry(EntryType.NOTE, line.strip())


def parse_line(line: str) -> Line:
    entry = _match_entry(line)
    if entry is None:
        return RawLine(line)
    return entry


def parse_lines(text: str) -> list[Line]:
    """Split text into typed lines, keeping blank and raw lines verbatim."""
    if not text:
        return []
    return [parse_line(line) for line in text.split("\n")]


def serialize_line(line: Line) -> str:
    if isinstance(line, RawEntry):
        return line.to_line()
    return line.text


def serialize_lines(lines: list[Line]) -> str:
    """Inverse of :func:`parse_lines`."""
    return "\n".join(serialize_line(line) for line in lines)


def entry_positions(lines: list[Line]) -> list[int]:
    """Indices of the lines that hold entries."""
    return [i for i, line in enumerate(lines) if isinstance(line, RawEntry)]


def extract_tags(content: str) -> list[str]:
    return [match.group(1) for match in TAG_REGEX.finditer(content)]


_LAST_TRAILING_TAG_REGEX = re.compile(r"\s*#[a-zA-Z][a-zA-Z0-9_-]*\s*$")
_TRAILING_TAGS_REGEX = re.compile(r"(?:\s*#[a-zA-Z][a-zA-Z0-9_-]*)+\s*$")


def _strip_trailing(regex: re.Pattern, content: str) -> Optional[str]:
    match = regex.search(content)
    if match is None:
        return None
    before = content[:match.start()]
    # An entry that is nothing but tags keeps them
    if not before.strip():
        return None
    return before


def remove_last_trailing_tag(content: str) -> Optional[str]:
    """Content without its final trailing ``#tag``, or ``None`` if there is none."""
    return _strip_trailing(_LAST_TRAILING_TAG_REGEX, content)


def remove_all_trailing_tags(content: str) -> Optional[str]:
    """Content without the run of ``#tags`` at its end, or ``None``."""
    return _strip_trailing(_TRAILING_TAGS_REGEX, content)


# -- document-wide tag rewrites ----------------------------------------------

_EMPTY_ENTRY_REGEX = re.compile(r"^\s*(?:- \[[ x]\]|[-*])\s*$")


def _tag_regex(tag: str, with_leading_space: bool) -> re.Pattern:
    lead = r"[ \t]*" if with_leading_space else ""
    return re.compile(lead + "#" + re.escape(tag) + r"(?![A-Za-z0-9_-])", re.IGNORECASE)


def _is_completed_line(line: str) -> bool:
    return line.lstrip().startswith(DONE_PREFIX)


def count_tag_occurrences(text: str, tag: str, completed_only: bool = False) -> int:
    """How many ``#tag`` occurrences ``text`` holds, ignoring case."""
    wanted = tag.lower()
    count = 0
    for line in text.split("\n"):
        if completed_only and not _is_completed_line(line):
            continue
        count += sum(1 for m in TAG_REGEX.finditer(line) if m.group(1).lower() == wanted)
    return count


def replace_tag(
    text: str,
    tag: str,
    replacement: Optional[str] = None,
    completed_only: bool = False,
) -> str:
    """Rename every ``#tag`` to ``#replacement``, or delete it when none is given.

    A deleted tag takes the whitespace before it along.
    """
    regex = _tag_regex(tag, with_leading_space=replacement is None)
    new = "" if replacement is None else f"#{replacement}"
    lines = []
    for line in text.split("\n"):
        if completed_only and not _is_completed_line(line):
            lines.append(line)
        else:
            lines.append(regex.sub(lambda _: new, line))
    return "\n".join(lines)


def remove_empty_entries(text: str) -> str:
    """Drop entry lines with nothing left after their prefix."""
    return "\n".join(line for line in text.split("\n") if not _EMPTY_ENTRY_REGEX.match(line))
