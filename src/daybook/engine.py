"""Journal engine - the facade front ends drive.

One :class:`JournalEngine` owns a :class:`JournalContext` and an
:class:`ActionExecutor`. Every user-visible mutation is performed as an
action so it can be undone, and every call returns the status text a
front end should show (or ``None``).
"""

from __future__ import annotations

from datetime import date
from typing import Optional, Sequence, Union

from loguru import logger

from .actions import (
    Action,
    ActionExecutor,
    AppendTag,
    BringToToday,
    CreateEntry,
    CreateTarget,
    CycleEntryType,
    DeferDate,
    DeleteEntries,
    DocumentTagOperation,
    EditEntry,
    EditTarget,
    MoveEntry,
    PasteEntries,
    PasteTarget,
    RemoveAllTags,
    RemoveDate,
    RemoveLastTag,
    RewriteTag,
    TagRewrite,
    ToggleComplete,
)
from .codec import TAG_REGEX, count_tag_occurrences, parse_to_raw_entry
from .config import DaybookConfig
from .context import (
    DailyLocation,
    EntryAddress,
    EntryLocation,
    FilterLocation,
    FilterView,
    JournalContext,
    ProjectedLocation,
)
from .models import CalendarEvent, DayInfo, DayView, Entry, EntryType, JournalError, RawEntry
from .projection import ensure_date_operable, ensure_editable, ensure_toggleable
from .store import DayStore

Locations = Union[EntryLocation, Sequence[EntryLocation]]


class JournalEngine:
    """Reads and mutates one journal document with undo/redo."""

    def __init__(self, config: DaybookConfig, today: Optional[date] = None):
        self.config = config
        self.store = DayStore(config.get_journal_path())
        self.ctx = JournalContext(
            self.store,
            config,
            current_date=today or date.today(),
            today=today,
        )
        self.executor = ActionExecutor()
        self._status: Optional[str] = None

    @property
    def status(self) -> Optional[str]:
        """Message from the last action, undo or redo."""
        return self._status

    @property
    def current_date(self) -> date:
        return self.ctx.current_date

    # -- views ------------------------------------------------------------

    def view_day(self, day: Optional[date] = None) -> DayView:
        """Switch to ``day`` (or refresh the current one) and return its view."""
        if day is not None and (day != self.ctx.current_date or isinstance(self.ctx.view, FilterView)):
            self.ctx.set_date(day)
        view = self.ctx.day_view()
        if self.config.hide_completed:
            view.local = [e for e in view.local if not e.completed]
            view.projected = [e for e in view.projected if not e.completed]
        return view

    def view_filter(self, query: str = "") -> FilterView:
        """Open a filter view; an empty query uses the configured default."""
        query = query.strip() or self.config.default_filter
        state = self.ctx.open_filter(query)
        self._status = state.filter.warning()
        return state

    def exit_filter(self) -> None:
        self.ctx.close_filter()

    def day_info(self, start: date, end: date) -> dict[date, DayInfo]:
        return self.store.scan_days_in_range(start, end, self.ctx.calendar_events)

    def set_calendar_events(self, events: dict[date, list[CalendarEvent]]) -> None:
        """Replace the calendar overlay delivered by an external source."""
        self.ctx.calendar_events = dict(events)

    def tags(self) -> list[str]:
        return self.store.collect_journal_tags()

    # -- mutations --------------------------------------------------------

    def add_entry(
        self,
        content: str,
        entry_type: EntryType = EntryType.TASK,
        day: Optional[date] = None,
    ) -> Optional[str]:
        """Append a new entry to ``day`` (the displayed day by default)."""
        day = day or self.ctx.current_date
        entry = RawEntry(entry_type, self.ctx.normalize_content(content))
        index = self.ctx.append_entries(day, [entry])
        return self._execute(CreateEntry(CreateTarget(EntryAddress(day, index), entry)))

    def edit_entry(self, location: EntryLocation, content: str) -> Optional[str]:
        self._guard(location, ensure_editable)
        address = self.ctx.resolve(location)
        original = self.ctx.get_entry_content(address)
        new_content = self.ctx.save_entry_content(address, content)
        return self._execute(EditEntry(EditTarget(address, original, new_content)))

    def paste_entries(
        self,
        text: str,
        day: Optional[date] = None,
        line_index: Optional[int] = None,
    ) -> Optional[str]:
        """Insert one entry per non-blank line of ``text``.

        Unprefixed lines become notes. Entries go at ``line_index`` or the
        end of the day.
        """
        day = day or self.ctx.current_date
        entries = [
            RawEntry(e.entry_type, self.ctx.normalize_content(e.content), e.completed)
            for e in (parse_to_raw_entry(line) for line in text.splitlines() if line.strip())
        ]
        if not entries:
            return None
        if line_index is None:
            start = self.ctx.append_entries(day, entries)
        else:
            start = self.ctx.insert_entries(day, line_index, entries)[0]
        return self._execute(PasteEntries(PasteTarget(day, start, entries)))

    def delete_entries(self, locations: Locations) -> Optional[str]:
        addresses = self._addresses(locations, ensure_editable)
        return self._execute(DeleteEntries(addresses)) if addresses else None

    def toggle_entry(self, locations: Locations) -> Optional[str]:
        """Complete or reopen tasks; projected tasks change on their home day."""
        addresses = self._addresses(locations, ensure_toggleable)
        return self._execute(ToggleComplete(addresses)) if addresses else None

    def cycle_entry_type(self, locations: Locations) -> Optional[str]:
        addresses = self._addresses(locations, ensure_editable)
        return self._execute(CycleEntryType(addresses)) if addresses else None

    def append_tag(self, locations: Locations, tag: str) -> Optional[str]:
        tag = self.config.get_favorite_tag(tag.lstrip("#")) or tag.lstrip("#")
        addresses = self._addresses(locations, ensure_editable)
        return self._execute(AppendTag(addresses, tag)) if addresses else None

    def remove_last_tag(self, locations: Locations) -> Optional[str]:
        addresses = self._addresses(locations, ensure_editable)
        return self._execute(RemoveLastTag(addresses)) if addresses else None

    def remove_all_tags(self, locations: Locations) -> Optional[str]:
        addresses = self._addresses(locations, ensure_editable)
        return self._execute(RemoveAllTags(addresses)) if addresses else None

    def defer_date(self, locations: Locations) -> Optional[str]:
        addresses = self._addresses(locations, ensure_date_operable)
        return self._execute(DeferDate(addresses)) if addresses else None

    def remove_date(self, locations: Locations) -> Optional[str]:
        addresses = self._addresses(locations, ensure_date_operable)
        return self._execute(RemoveDate(addresses)) if addresses else None

    def bring_to_today(self, locations: Locations) -> Optional[str]:
        addresses = self._addresses(locations, ensure_date_operable)
        return self._execute(BringToToday(addresses)) if addresses else None

    def move_entry(self, location: EntryLocation, day: date) -> Optional[str]:
        """Move one entry to the end of ``day``."""
        self._guard(location, ensure_editable)
        address = self.ctx.resolve(location)
        if address.day == day:
            self._status = "Entry already on target date"
            return self._status
        return self._execute(MoveEntry(address, day))

    def move_entry_to_today(self, location: EntryLocation) -> Optional[str]:
        return self.move_entry(location, self.ctx.today())

    # -- document-wide tags -------------------------------------------------

    def delete_tag(self, tag: str) -> Optional[str]:
        """Remove ``#tag`` everywhere, dropping entries left empty."""
        return self._rewrite_tag(DocumentTagOperation.DELETE, tag)

    def delete_tag_from_completed(self, tag: str) -> Optional[str]:
        return self._rewrite_tag(DocumentTagOperation.DELETE_FROM_COMPLETED, tag)

    def rename_tag(self, tag: str, new_tag: str) -> Optional[str]:
        new_tag = new_tag.lstrip("#")
        if not TAG_REGEX.fullmatch(f"#{new_tag}"):
            raise JournalError(f"Invalid tag name: {new_tag!r}")
        return self._rewrite_tag(DocumentTagOperation.RENAME, tag, new_tag)

    # -- history ----------------------------------------------------------

    def undo(self) -> Optional[str]:
        self._status = self.executor.undo(self.ctx)
        self._after_action("undo")
        return self._status

    def redo(self) -> Optional[str]:
        self._status = self.executor.redo(self.ctx)
        self._after_action("redo")
        return self._status

    def can_undo(self) -> bool:
        return self.executor.can_undo()

    def can_redo(self) -> bool:
        return self.executor.can_redo()

    # -- internals --------------------------------------------------------

    def _execute(self, action: Action) -> Optional[str]:
        self._status = self.executor.execute(action, self.ctx)
        self._after_action("execute")
        return self._status

    def _rewrite_tag(
        self,
        operation: DocumentTagOperation,
        tag: str,
        new_tag: Optional[str] = None,
    ) -> Optional[str]:
        tag = tag.lstrip("#")
        completed_only = operation == DocumentTagOperation.DELETE_FROM_COMPLETED
        count = count_tag_occurrences(self.ctx.document(), tag, completed_only)
        if count == 0:
            self._status = f"No #{tag} tags found"
            return self._status
        return self._execute(RewriteTag(TagRewrite(operation, tag, count, new_tag)))

    def _after_action(self, kind: str) -> None:
        hook = self.config.hooks.get("after_action")
        if hook is not None:
            hook(self, kind, self._status)

    def _guard(self, location: EntryLocation, check) -> None:
        entry = self._entry_for(location)
        if entry is not None:
            check(entry)

    def _entry_for(self, location: EntryLocation) -> Optional[Entry]:
        if isinstance(location, (ProjectedLocation, FilterLocation)):
            return location.entry
        if isinstance(location, DailyLocation):
            address = self.ctx.resolve(location)
            raw = self.store.get_entry(address.day, address.line_index)
            if raw is None:
                return None
            return Entry.from_raw(raw, address.day, address.line_index)
        raise JournalError(f"Unknown entry location: {location!r}")

    def _addresses(self, locations: Locations, check) -> list[EntryAddress]:
        if isinstance(locations, (DailyLocation, ProjectedLocation, FilterLocation)):
            locations = [locations]
        addresses = []
        for location in locations:
            self._guard(location, check)
            addresses.append(self.ctx.resolve(location))
        if not addresses:
            logger.debug("No entries selected; nothing to do")
        return addresses
