"""Data models for journal lines, entries, recurrence, and calendar overlays."""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional, Union


class JournalError(Exception):
    """Base exception for journal operations."""
    pass


class ReadOnlyEntryError(JournalError):
    """Raised when a projected or calendar entry is asked to change in place."""

    def __init__(self, message: str, source_date: Optional[date] = None):
        super().__init__(message)
        self.source_date = source_date


class EntryType(Enum):
    """Kind of journal entry."""
    TASK = "task"
    NOTE = "note"
    EVENT = "event"


class SourceType(Enum):
    """Where an entry comes from relative to the viewed day."""
    LOCAL = "local"
    LATER = "later"
    RECURRING = "recurring"
    CALENDAR = "calendar"


TASK_PREFIX = "- [ ] "
DONE_PREFIX = "- [x] "
EVENT_PREFIX = "* "
NOTE_PREFIX = "- "


def entry_prefix(entry_type: EntryType, completed: bool = False) -> str:
    """Line prefix for an entry kind."""
    if entry_type == EntryType.TASK:
        return DONE_PREFIX if completed else TASK_PREFIX
    if entry_type == EntryType.EVENT:
        return EVENT_PREFIX
    return NOTE_PREFIX


def next_entry_type(entry_type: EntryType) -> EntryType:
    """Task -> Note -> Event -> Task."""
    if entry_type == EntryType.TASK:
        return EntryType.NOTE
    if entry_type == EntryType.NOTE:
        return EntryType.EVENT
    return EntryType.TASK


@dataclass
class RawEntry:
    """An entry's kind and content, without location."""
    entry_type: EntryType
    content: str
    completed: bool = False

    @classmethod
    def task(cls, content: str) -> "RawEntry":
        return cls(EntryType.TASK, content)

    @property
    def prefix(self) -> str:
        return entry_prefix(self.entry_type, self.completed)

    def toggle_complete(self) -> None:
        if self.entry_type == EntryType.TASK:
            self.completed = not self.completed

    def cycle(self) -> None:
        """Advance to the next entry type; new tasks start incomplete."""
        self.entry_type = next_entry_type(self.entry_type)
        self.completed = False

    def to_line(self) -> str:
        return f"{self.prefix}{self.content}"


@dataclass
class RawLine:
    """Any line that is not an entry: headers, blank lines, free text."""
    text: str


Line = Union[RawEntry, RawLine]


@dataclass(frozen=True)
class CalendarRef:
    """Identity of the external calendar an entry came from."""
    calendar_id: str
    calendar_name: str


@dataclass
class Entry:
    """An entry with its home day, position, and provenance."""
    entry_type: EntryType
    content: str
    source_date: date
    line_index: int
    source_type: SourceType = SourceType.LOCAL
    completed: bool = False
    calendar: Optional[CalendarRef] = None

    @classmethod
    def from_raw(
        cls,
        raw: RawEntry,
        source_date: date,
        line_index: int,
        source_type: SourceType = SourceType.LOCAL,
    ) -> "Entry":
        return cls(
            entry_type=raw.entry_type,
            content=raw.content,
            source_date=source_date,
            line_index=line_index,
            source_type=source_type,
            completed=raw.completed,
        )

    def to_raw(self) -> RawEntry:
        return RawEntry(self.entry_type, self.content, self.completed)

    @property
    def prefix(self) -> str:
        return entry_prefix(self.entry_type, self.completed)

    def is_editable(self) -> bool:
        """Only entries living on the viewed day can be edited or deleted."""
        return self.source_type == SourceType.LOCAL


class RecurrenceKind(Enum):
    """Shape of an @every-* pattern."""
    DAILY = "day"
    WEEKDAY = "weekday"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


@dataclass(frozen=True)
class RecurringPattern:
    """A recurrence rule.

    ``value`` is the weekday (0 = Monday) for WEEKLY and the day of month
    (1-31) for MONTHLY; it is unused otherwise.
    """
    kind: RecurrenceKind
    value: int = 0

    @classmethod
    def daily(cls) -> "RecurringPattern":
        return cls(RecurrenceKind.DAILY)

    @classmethod
    def weekdays(cls) -> "RecurringPattern":
        return cls(RecurrenceKind.WEEKDAY)

    @classmethod
    def weekly(cls, weekday: int) -> "RecurringPattern":
        return cls(RecurrenceKind.WEEKLY, weekday)

    @classmethod
    def monthly(cls, day: int) -> "RecurringPattern":
        if not 1 <= day <= 31:
            raise ValueError(f"Day of month out of range: {day}")
        return cls(RecurrenceKind.MONTHLY, day)

    def matches(self, when: date) -> bool:
        if self.kind == RecurrenceKind.DAILY:
            return True
        if self.kind == RecurrenceKind.WEEKDAY:
            return when.weekday() < 5
        if self.kind == RecurrenceKind.WEEKLY:
            return when.weekday() == self.value
        # Monthly: clamp to the month's last day
        last_day = days_in_month(when.year, when.month)
        return when.day == min(self.value, last_day)


@dataclass
class DayInfo:
    """What a calendar cell should show for one day."""
    has_entries: bool = False
    has_incomplete_tasks: bool = False
    has_events: bool = False
    has_recurring: bool = False
    has_calendar_events: bool = False

    def is_empty(self) -> bool:
        return not (
            self.has_entries
            or self.has_recurring
            or self.has_calendar_events
        )


@dataclass
class CalendarEvent:
    """A pre-resolved event delivered by an external calendar source."""
    calendar_id: str
    calendar_name: str
    title: str
    date: date
    all_day: bool = True
    start_time: Optional[str] = None

    def display_content(self) -> str:
        if self.start_time and not self.all_day:
            return f"{self.start_time} {self.title}"
        return self.title


@dataclass
class DayView:
    """A viewed day: its own entries overlaid with projected and calendar ones."""
    date: date
    local: list[Entry] = field(default_factory=list)
    projected: list[Entry] = field(default_factory=list)
    calendar: list[Entry] = field(default_factory=list)

    def all_entries(self) -> list[Entry]:
        return [*self.calendar, *self.projected, *self.local]
