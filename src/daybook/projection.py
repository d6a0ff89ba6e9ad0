"""Entries that live on one day but show up on another.

A viewed day ``D`` is overlaid with:

- *later* entries: an explicit ``@MM/DD[/YY]`` annotation resolving to ``D``
  on an entry whose home day is not ``D``;
- *recurring* entries: an ``@every-*`` pattern matching ``D``;
- *calendar* entries: pre-resolved events from an external source.

Projected entries keep pointing at their home day and position, so the
few changes allowed on them (completion toggle) are written back there.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

from .codec import parse_lines
from .dates import extract_recurring_pattern, extract_target_date
from .models import (
    CalendarEvent,
    CalendarRef,
    DayView,
    Entry,
    EntryType,
    RawEntry,
    ReadOnlyEntryError,
    SourceType,
)
from .store import extract_day_content, iter_day_spans


def collect_projected_entries_for_date(document: str, target: date) -> list[Entry]:
    """Later and recurring entries visible on ``target``, oldest home day first.

    An entry with both an explicit date and a recurrence pattern shows as
    later on its date and as recurring on the other days its pattern
    matches.
    """
    entries: list[Entry] = []
    for span in iter_day_spans(document):
        if span.day == target:
            continue
        lines = parse_lines(document[span.content_start:span.end])
        for index, line in enumerate(lines):
            if not isinstance(line, RawEntry):
                continue
            if extract_target_date(line.content, span.day) == target:
                entries.append(Entry.from_raw(line, span.day, index, SourceType.LATER))
                continue
            pattern = extract_recurring_pattern(line.content)
            if pattern is not None and pattern.matches(target):
                entries.append(Entry.from_raw(line, span.day, index, SourceType.RECURRING))

    entries.sort(key=lambda e: (e.source_date, e.line_index))
    return entries


def collect_later_entries_for_date(document: str, target: date) -> list[Entry]:
    return [
        e for e in collect_projected_entries_for_date(document, target)
        if e.source_type == SourceType.LATER
    ]


def collect_recurring_entries_for_date(document: str, target: date) -> list[Entry]:
    return [
        e for e in collect_projected_entries_for_date(document, target)
        if e.source_type == SourceType.RECURRING
    ]


def calendar_entries_for_date(
    events: Optional[dict[date, list[CalendarEvent]]],
    target: date,
) -> list[Entry]:
    """Collaborator-supplied events for ``target`` as read-only entries."""
    entries = []
    for index, event in enumerate((events or {}).get(target, [])):
        entries.append(Entry(
            entry_type=EntryType.EVENT,
            content=event.display_content(),
            source_date=target,
            line_index=index,
            source_type=SourceType.CALENDAR,
            calendar=CalendarRef(event.calendar_id, event.calendar_name),
        ))
    return entries


def local_entries(lines: Iterable, day: date) -> list[Entry]:
    return [
        Entry.from_raw(line, day, index)
        for index, line in enumerate(lines)
        if isinstance(line, RawEntry)
    ]


def build_day_view(
    document: str,
    day: date,
    calendar_events: Optional[dict[date, list[CalendarEvent]]] = None,
) -> DayView:
    """Overlay projected and calendar entries on ``day``'s own entries."""
    lines = parse_lines(extract_day_content(document, day))
    return DayView(
        date=day,
        local=local_entries(lines, day),
        projected=collect_projected_entries_for_date(document, day),
        calendar=calendar_entries_for_date(calendar_events, day),
    )


def _go_to_source(entry: Entry) -> str:
    return f"Entry lives on {entry.source_date:%Y/%m/%d}; go to source to change it"


def ensure_editable(entry: Entry) -> None:
    """Edit and delete are only allowed on the entry's home day."""
    if entry.source_type == SourceType.CALENDAR:
        raise ReadOnlyEntryError("Calendar events are read-only")
    if not entry.is_editable():
        raise ReadOnlyEntryError(_go_to_source(entry), entry.source_date)


def ensure_toggleable(entry: Entry) -> None:
    if entry.source_type == SourceType.CALENDAR:
        raise ReadOnlyEntryError("Calendar events are read-only")
    if entry.entry_type != EntryType.TASK:
        raise ReadOnlyEntryError("Only tasks can be completed", entry.source_date)


def ensure_date_operable(entry: Entry) -> None:
    """Defer, remove-date and bring-to-today need a concrete date to act on."""
    if entry.source_type == SourceType.CALENDAR:
        raise ReadOnlyEntryError("Calendar events are read-only")
    if entry.source_type == SourceType.RECURRING:
        raise ReadOnlyEntryError(
            "Recurring entries follow their pattern, not a date", entry.source_date
        )
    if entry.source_type == SourceType.LATER:
        raise ReadOnlyEntryError(_go_to_source(entry), entry.source_date)
