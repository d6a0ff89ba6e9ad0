"""Day-sectioned document storage.

A journal document is a sequence of day sections, each introduced by a
``# YYYY/MM/DD`` header and running until the next header or the end of the
document. Functions here locate and rewrite one day's block while leaving
every other section byte-for-byte intact.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Generator, Iterator, Optional

from loguru import logger

from .codec import TAG_REGEX, parse_line, parse_lines, serialize_lines
from .dates import extract_recurring_pattern
from .models import CalendarEvent, DayInfo, EntryType, Line, RawEntry


def day_header(day: date) -> str:
    return f"# {day:%Y/%m/%d}"


def parse_day_header(line: str) -> Optional[date]:
    """Date of a ``# YYYY/MM/DD`` header line, or ``None``."""
    if not line.startswith("# ") or len(line) < 12:
        return None
    try:
        return datetime.strptime(line[2:12], "%Y/%m/%d").date()
    except ValueError:
        return None


@dataclass
class DaySpan:
    """Offsets of one day section inside a document."""
    day: date
    header_start: int
    content_start: int
    end: int


def _iter_lines_with_offsets(document: str) -> Iterator[tuple[int, str]]:
    offset = 0
    for raw in document.split("\n"):
        yield offset, raw.rstrip("\r")
        offset += len(raw) + 1


def iter_day_spans(document: str) -> list[DaySpan]:
    """All day sections of a document, in document order."""
    spans: list[DaySpan] = []
    for offset, line in _iter_lines_with_offsets(document):
        day = parse_day_header(line)
        if day is None:
            continue
        if spans:
            spans[-1].end = offset
        newline_end = document.find("\n", offset)
        content_start = len(document) if newline_end == -1 else newline_end + 1
        spans.append(DaySpan(day, offset, content_start, len(document)))
    return spans


def _find_span(document: str, day: date) -> Optional[DaySpan]:
    for span in iter_day_spans(document):
        if span.day == day:
            return span
    return None


def extract_day_content(document: str, day: date) -> str:
    """Text strictly between ``day``'s header and the next header (or EOF)."""
    span = _find_span(document, day)
    if span is None:
        return ""
    return document[span.content_start:span.end].rstrip()


def _remove_day(before: str, after: str) -> str:
    result = before.rstrip()
    if result and after:
        result += "\n\n"
    result += after.lstrip()
    if not result:
        return result
    return result.rstrip() + "\n"


def _insert_new_day(document: str, day: date, content: str) -> str:
    new_day = f"{day_header(day)}\n{content.rstrip()}"
    for span in iter_day_spans(document):
        if span.day > day:
            before = document[:span.header_start].rstrip()
            after = document[span.header_start:]
            if before:
                return f"{before}\n\n{new_day}\n\n{after}".rstrip() + "\n"
            return f"{new_day}\n\n{after}".rstrip() + "\n"
    result = document.rstrip()
    if result:
        result += "\n\n"
    return result + new_day + "\n"


def update_day_content(document: str, day: date, new_content: str) -> str:
    """Replace ``day``'s block, creating or removing its section as needed.

    Blank content removes the section. A missing section is inserted before
    the first section with a later date, or appended at the end.
    """
    span = _find_span(document, day)
    is_empty = not new_content.strip()

    if span is None:
        if is_empty:
            return document
        return _insert_new_day(document, day, new_content)

    before = document[:span.header_start]
    after = document[span.end:]
    if is_empty:
        return _remove_day(before, after)

    header_line = document[span.header_start:span.content_start].rstrip("\r\n")
    return f"{before}{header_line}\n{new_content.rstrip()}\n\n{after}".rstrip() + "\n"


def collect_recurring_sources(document: str) -> list[tuple[date, Any]]:
    """(home day, pattern) for every entry carrying an @every-* pattern."""
    sources = []
    current: Optional[date] = None
    for _, line in _iter_lines_with_offsets(document):
        header = parse_day_header(line)
        if header is not None:
            current = header
            continue
        if current is None:
            continue
        parsed = parse_line(line)
        if isinstance(parsed, RawEntry):
            pattern = extract_recurring_pattern(parsed.content)
            if pattern is not None:
                sources.append((current, pattern))
    return sources


def scan_days_in_range(
    document: str,
    start: date,
    end: date,
    calendar_events: Optional[dict[date, list[CalendarEvent]]] = None,
) -> dict[date, DayInfo]:
    """Per-day decoration flags for every day in ``[start, end]`` that has any."""
    result: dict[date, DayInfo] = {}

    for span in iter_day_spans(document):
        if not start <= span.day <= end:
            continue
        info = result.setdefault(span.day, DayInfo())
        for line in parse_lines(document[span.content_start:span.end]):
            if not isinstance(line, RawEntry):
                continue
            info.has_entries = True
            if line.entry_type == EntryType.TASK and not line.completed:
                info.has_incomplete_tasks = True
            elif line.entry_type == EntryType.EVENT:
                info.has_events = True

    recurring = collect_recurring_sources(document)
    if recurring:
        day = start
        while day <= end:
            if any(home != day and pattern.matches(day) for home, pattern in recurring):
                result.setdefault(day, DayInfo()).has_recurring = True
            day += timedelta(days=1)

    for day, events in (calendar_events or {}).items():
        if events and start <= day <= end:
            result.setdefault(day, DayInfo()).has_calendar_events = True

    return {day: info for day, info in result.items() if not info.is_empty()}


def collect_tags(document: str) -> list[str]:
    """Unique tags, deduplicated case-insensitively, sorted case-insensitively."""
    seen: set[str] = set()
    tags: list[str] = []
    for match in TAG_REGEX.finditer(document):
        tag = match.group(1)
        if tag.lower() not in seen:
            seen.add(tag.lower())
            tags.append(tag)
    return sorted(tags, key=str.lower)


@contextmanager
def atomic_write(path: Path, encoding: str = "utf-8") -> Generator:
    """Write to a temporary sibling, then rename over the target."""
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(tmp_path, "w", encoding=encoding, newline="") as f:
            yield f
        if os.name == "nt" and path.exists():
            path.unlink()
        tmp_path.rename(path)
    except Exception:
        if tmp_path.exists():
            tmp_path.unlink()
        raise


class DayStore:
    """Read-modify-write access to one journal file, a day at a time.

    Every call reads the current file; nothing is cached. I/O errors
    propagate to the caller.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def load_journal(self) -> str:
        if not self.path.exists():
            return ""
        with open(self.path, "r", encoding="utf-8", newline="") as f:
            return f.read()

    def save_journal(self, content: str) -> None:
        with atomic_write(self.path) as f:
            f.write(content)

    def load_day(self, day: date) -> str:
        return extract_day_content(self.load_journal(), day)

    def save_day(self, day: date, content: str) -> None:
        journal = self.load_journal()
        self.save_journal(update_day_content(journal, day, content))
        logger.debug(f"Saved {day_header(day)} to {self.path}")

    def load_day_lines(self, day: date) -> list[Line]:
        return parse_lines(self.load_day(day))

    def save_day_lines(self, day: date, lines: list[Line]) -> None:
        self.save_day(day, serialize_lines(lines))

    def mutate_entry(self, day: date, line_index: int, fn: Callable[[RawEntry], Any]) -> Optional[Any]:
        """Apply ``fn`` to the entry at ``line_index`` and save.

        Returns ``fn``'s result, or ``None`` without saving when the
        position does not hold an entry.
        """
        lines = self.load_day_lines(day)
        if not 0 <= line_index < len(lines) or not isinstance(lines[line_index], RawEntry):
            logger.warning(f"No entry at {day_header(day)}[{line_index}]; skipped")
            return None
        result = fn(lines[line_index])
        self.save_day_lines(day, lines)
        return result

    def update_entry_content(self, day: date, line_index: int, content: str) -> bool:
        def _set(entry: RawEntry) -> bool:
            entry.content = content
            return True
        return self.mutate_entry(day, line_index, _set) is not None

    def toggle_entry_complete(self, day: date, line_index: int) -> Optional[bool]:
        """Flip a task's completion; returns the new state."""
        def _toggle(entry: RawEntry) -> bool:
            entry.toggle_complete()
            return entry.completed
        return self.mutate_entry(day, line_index, _toggle)

    def cycle_entry_type(self, day: date, line_index: int) -> Optional[EntryType]:
        def _cycle(entry: RawEntry) -> EntryType:
            entry.cycle()
            return entry.entry_type
        return self.mutate_entry(day, line_index, _cycle)

    def get_entry(self, day: date, line_index: int) -> Optional[RawEntry]:
        lines = self.load_day_lines(day)
        if 0 <= line_index < len(lines) and isinstance(lines[line_index], RawEntry):
            return lines[line_index]
        return None

    def get_entry_content(self, day: date, line_index: int) -> Optional[str]:
        entry = self.get_entry(day, line_index)
        return entry.content if entry is not None else None

    def delete_entry(self, day: date, line_index: int) -> None:
        """Remove the line at ``line_index``; later positions shift down by one."""
        lines = self.load_day_lines(day)
        if 0 <= line_index < len(lines):
            del lines[line_index]
        self.save_day_lines(day, lines)

    def insert_entries(self, day: date, line_index: int, entries: list[RawEntry]) -> list[int]:
        """Insert entries in ascending order, clamping each position.

        Returns the positions the entries ended up at.
        """
        lines = self.load_day_lines(day)
        positions = []
        for offset, entry in enumerate(entries):
            pos = min(line_index + offset, len(lines))
            lines.insert(pos, entry)
            positions.append(pos)
        self.save_day_lines(day, lines)
        return positions

    def append_entries(self, day: date, entries: list[RawEntry]) -> int:
        """Append entries at the end of the day; returns the first new position."""
        lines = self.load_day_lines(day)
        start = len(lines)
        lines.extend(entries)
        self.save_day_lines(day, lines)
        return start

    def scan_days_in_range(
        self,
        start: date,
        end: date,
        calendar_events: Optional[dict[date, list[CalendarEvent]]] = None,
    ) -> dict[date, DayInfo]:
        return scan_days_in_range(self.load_journal(), start, end, calendar_events)

    def collect_journal_tags(self) -> list[str]:
        return collect_tags(self.load_journal())
