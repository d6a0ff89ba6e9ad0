"""Mutable view state that actions read and write through.

A :class:`JournalContext` is handed to every action call; actions never
keep a reference to it. It holds the displayed day's line buffer, the
active view (daily or filter), and the collaborator-supplied calendar
events, and knows how to bring them back in sync with the document after
a mutation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Union

from loguru import logger

from .codec import entry_positions
from .config import DaybookConfig
from .dates import normalize_relative_dates
from .filter import Filter, collect_filtered_entries, expand_favorite_tags, parse_filter_query
from .models import CalendarEvent, DayView, Entry, Line, RawEntry
from .projection import build_day_view, collect_projected_entries_for_date
from .store import DayStore


@dataclass(frozen=True)
class EntryAddress:
    """Absolute position of an entry: its home day and index in that day."""
    day: date
    line_index: int


@dataclass
class DailyLocation:
    """An entry of the displayed day, by index into the day buffer."""
    line_index: int


@dataclass
class ProjectedLocation:
    """A later or recurring entry shown on a day it does not live on."""
    entry: Entry


@dataclass
class FilterLocation:
    """A row of the active filter's result list."""
    index: int
    entry: Entry


EntryLocation = Union[DailyLocation, ProjectedLocation, FilterLocation]

Target = Union[EntryLocation, EntryAddress]


@dataclass
class DailyView:
    selected: int = 0


@dataclass
class FilterView:
    query: str
    filter: Filter
    entries: list[Entry] = field(default_factory=list)
    selected: int = 0


View = Union[DailyView, FilterView]


class JournalContext:
    """Document access plus the state a front end displays.

    Every mutation goes through :class:`DayStore` (read-modify-write of the
    affected day) and is followed by :meth:`refresh_affected_views`.
    """

    def __init__(
        self,
        store: DayStore,
        config: DaybookConfig,
        current_date: date,
        today: Optional[date] = None,
        calendar_events: Optional[dict[date, list[CalendarEvent]]] = None,
    ):
        self.store = store
        self.config = config
        self.current_date = current_date
        self.calendar_events = calendar_events or {}
        self.view: View = DailyView()
        self.lines: list[Line] = []
        self.projected: list[Entry] = []
        self._today = today
        self.reload_current_day()
        self.refresh_projected_entries()

    def today(self) -> date:
        return self._today or date.today()

    def document(self) -> str:
        return self.store.load_journal()

    # -- addressing -------------------------------------------------------

    def resolve(self, target: Target) -> EntryAddress:
        """Absolute address of a location, pinned to the day it names now."""
        if isinstance(target, EntryAddress):
            return target
        if isinstance(target, DailyLocation):
            return EntryAddress(self.current_date, target.line_index)
        return EntryAddress(target.entry.source_date, target.entry.line_index)

    # -- view maintenance -------------------------------------------------

    def set_date(self, day: date) -> None:
        self.current_date = day
        self.view = DailyView()
        self.reload_current_day()
        self.refresh_projected_entries()

    def reload_current_day(self) -> None:
        self.lines = self.store.load_day_lines(self.current_date)
        if isinstance(self.view, DailyView):
            self.view.selected = _clamp(self.view.selected, len(entry_positions(self.lines)))

    def refresh_projected_entries(self) -> None:
        self.projected = collect_projected_entries_for_date(self.document(), self.current_date)

    def open_filter(self, query: str) -> FilterView:
        query_filter = parse_filter_query(
            query,
            today=self.today(),
            saved_filters=self.config.saved_filters,
            favorite_tags=self.config.favorite_tags,
        )
        self.view = FilterView(query=query, filter=query_filter)
        self.refresh_filter()
        return self.view

    def close_filter(self) -> None:
        self.view = DailyView()
        self.reload_current_day()

    def refresh_filter(self) -> None:
        """Re-run the active query and keep the selection in range."""
        if not isinstance(self.view, FilterView):
            return
        state = self.view
        state.entries = collect_filtered_entries(state.filter, self.document(), self.today())
        state.selected = _clamp(state.selected, len(state.entries))

    def refresh_affected_views(self, day: date) -> None:
        if day == self.current_date:
            self.reload_current_day()
        self.refresh_projected_entries()
        self.refresh_filter()

    def refresh_all_views(self) -> None:
        """After a change that may touch any day."""
        self.reload_current_day()
        self.refresh_projected_entries()
        self.refresh_filter()

    def day_view(self) -> DayView:
        return build_day_view(self.document(), self.current_date, self.calendar_events)

    # -- entry content ----------------------------------------------------

    def get_entry(self, target: Target) -> Optional[RawEntry]:
        address = self.resolve(target)
        return self.store.get_entry(address.day, address.line_index)

    def get_entry_content(self, target: Target) -> str:
        """Current content at ``target``; empty when nothing is there any more."""
        entry = self.get_entry(target)
        return entry.content if entry is not None else ""

    def normalize_content(self, content: str) -> str:
        content = expand_favorite_tags(content, self.config.favorite_tags)
        content = normalize_relative_dates(content, self.today())
        return content.rstrip()

    def persist_entry_content(self, target: Target, content: str) -> None:
        """Write ``content`` exactly as given."""
        address = self.resolve(target)
        self.store.update_entry_content(address.day, address.line_index, content)
        self.refresh_affected_views(address.day)

    def save_entry_content(self, target: Target, content: str) -> str:
        """Normalise then persist; returns what was written."""
        normalized = self.normalize_content(content)
        self.persist_entry_content(target, normalized)
        return normalized

    # -- structural changes ----------------------------------------------

    def insert_entries(self, day: date, line_index: int, entries: list[RawEntry]) -> list[int]:
        positions = self.store.insert_entries(day, line_index, entries)
        self.refresh_affected_views(day)
        return positions

    def append_entries(self, day: date, entries: list[RawEntry]) -> int:
        start = self.store.append_entries(day, entries)
        self.refresh_affected_views(day)
        return start

    def delete_entry(self, address: EntryAddress) -> Optional[RawEntry]:
        """Remove the entry at ``address``; returns it, or ``None`` if the position is stale."""
        entry = self.store.get_entry(address.day, address.line_index)
        if entry is None:
            logger.warning(f"No entry to delete at {address.day}[{address.line_index}]")
            return None
        self.store.delete_entry(address.day, address.line_index)
        self.refresh_affected_views(address.day)
        return entry

    def toggle_complete(self, address: EntryAddress) -> Optional[bool]:
        completed = self.store.toggle_entry_complete(address.day, address.line_index)
        self.refresh_affected_views(address.day)
        return completed

    def set_entry_type(self, address: EntryAddress, entry: RawEntry) -> None:
        def _restore(raw: RawEntry) -> None:
            raw.entry_type = entry.entry_type
            raw.completed = entry.completed

        self.store.mutate_entry(address.day, address.line_index, _restore)
        self.refresh_affected_views(address.day)

    def cycle_entry_type(self, address: EntryAddress) -> None:
        self.store.cycle_entry_type(address.day, address.line_index)
        self.refresh_affected_views(address.day)

    # -- snapshots --------------------------------------------------------

    def day_content(self, day: date) -> str:
        return self.store.load_day(day)

    def restore_day_content(self, day: date, content: str) -> None:
        """Put back a day block captured with :meth:`day_content`."""
        self.store.save_day(day, content)
        self.refresh_affected_views(day)

    def replace_document(self, document: str) -> None:
        self.store.save_journal(document)
        self.refresh_all_views()


def _clamp(selected: int, count: int) -> int:
    if count == 0:
        return 0
    return max(0, min(selected, count - 1))
