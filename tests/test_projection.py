"""Tests for later/recurring/calendar projection onto a viewed day."""

from datetime import date

import pytest

from daybook.models import CalendarEvent, Entry, EntryType, ReadOnlyEntryError, SourceType
from daybook.projection import (
    build_day_view,
    calendar_entries_for_date,
    collect_later_entries_for_date,
    collect_projected_entries_for_date,
    collect_recurring_entries_for_date,
    ensure_date_operable,
    ensure_editable,
    ensure_toggleable,
)

DOC = """\
# 2026/01/02
- [ ] Call plumber @01/07
- [ ] Water plants @every-wed
* Rent due @every-31

# 2026/01/07
- [ ] Local task
"""


class TestCollectProjected:
    """Tests for later and recurring projection."""

    def test_later_entry_points_home(self):
        later = collect_later_entries_for_date(DOC, date(2026, 1, 7))
        assert len(later) == 1
        entry = later[0]
        assert entry.content == "Call plumber @01/07"
        assert entry.source_type == SourceType.LATER
        assert entry.source_date == date(2026, 1, 2)
        assert entry.line_index == 0

    def test_recurring_entry_on_matching_day(self):
        recurring = collect_recurring_entries_for_date(DOC, date(2026, 1, 7))
        assert [e.content for e in recurring] == ["Water plants @every-wed"]
        assert recurring[0].source_type == SourceType.RECURRING
        assert recurring[0].line_index == 1

    def test_nothing_on_non_matching_day(self):
        assert collect_projected_entries_for_date(DOC, date(2026, 1, 8)) == []

    def test_home_day_does_not_project_onto_itself(self):
        doc = "# 2026/01/07\n- [ ] x @every-wed\n"
        assert collect_projected_entries_for_date(doc, date(2026, 1, 7)) == []

    def test_monthly_31_shows_on_short_month_end(self):
        projected = collect_projected_entries_for_date(DOC, date(2026, 2, 28))
        assert [e.content for e in projected] == ["Rent due @every-31"]
        assert projected[0].entry_type == EntryType.EVENT

    def test_explicit_date_shows_once_on_its_day(self):
        doc = "# 2026/01/01\n- [ ] Both @01/09 @every-day\n"
        projected = collect_projected_entries_for_date(doc, date(2026, 1, 9))
        assert [e.source_type for e in projected] == [SourceType.LATER]

    def test_pattern_still_applies_off_the_explicit_date(self):
        doc = "# 2026/01/01\n- [ ] Both @01/09 @every-day\n"
        projected = collect_projected_entries_for_date(doc, date(2026, 1, 8))
        assert [e.source_type for e in projected] == [SourceType.RECURRING]

    def test_weekly_entry_with_unrelated_date(self):
        doc = "# 2026/01/02\n- [ ] Standup @every-mon @01/20\n"
        # Monday
        recurring = collect_recurring_entries_for_date(doc, date(2026, 1, 12))
        assert [e.content for e in recurring] == ["Standup @every-mon @01/20"]
        assert collect_later_entries_for_date(doc, date(2026, 1, 20))[0].line_index == 0

    def test_sorted_by_home_day_then_position(self):
        doc = (
            "# 2026/01/03\n- [ ] b @every-day\n\n"
            "# 2026/01/01\n- [ ] a2 @every-day\n- [ ] a1 @01/05\n"
        )
        projected = collect_projected_entries_for_date(doc, date(2026, 1, 5))
        assert [(e.source_date.day, e.line_index) for e in projected] == [(1, 0), (1, 1), (3, 0)]


class TestDayView:
    """Tests for overlaying all sources on a day."""

    def test_build_day_view(self):
        events = {date(2026, 1, 7): [CalendarEvent("cal", "Work", "Sync", date(2026, 1, 7))]}
        view = build_day_view(DOC, date(2026, 1, 7), events)
        assert [e.content for e in view.local] == ["Local task"]
        assert len(view.projected) == 2
        assert [e.content for e in view.calendar] == ["Sync"]
        assert len(view.all_entries()) == 4

    def test_calendar_entries_are_read_only_events(self):
        events = {
            date(2026, 1, 7): [
                CalendarEvent("cal", "Work", "Sync", date(2026, 1, 7), all_day=False, start_time="09:30")
            ]
        }
        entries = calendar_entries_for_date(events, date(2026, 1, 7))
        assert entries[0].content == "09:30 Sync"
        assert entries[0].source_type == SourceType.CALENDAR
        assert entries[0].calendar.calendar_name == "Work"

    def test_no_calendar_source(self):
        assert calendar_entries_for_date(None, date(2026, 1, 7)) == []


def _entry(source_type, entry_type=EntryType.TASK):
    return Entry(entry_type, "x", date(2026, 1, 2), 0, source_type)


class TestGuards:
    """Tests for read-only enforcement on projected entries."""

    def test_local_entry_is_editable(self):
        ensure_editable(_entry(SourceType.LOCAL))

    @pytest.mark.parametrize("source_type", [SourceType.LATER, SourceType.RECURRING, SourceType.CALENDAR])
    def test_projected_entries_not_editable(self, source_type):
        with pytest.raises(ReadOnlyEntryError):
            ensure_editable(_entry(source_type))

    def test_later_edit_error_names_home_day(self):
        with pytest.raises(ReadOnlyEntryError) as exc:
            ensure_editable(_entry(SourceType.LATER))
        assert exc.value.source_date == date(2026, 1, 2)

    @pytest.mark.parametrize("source_type", [SourceType.LOCAL, SourceType.LATER, SourceType.RECURRING])
    def test_tasks_toggleable(self, source_type):
        ensure_toggleable(_entry(source_type))

    def test_calendar_not_toggleable(self):
        with pytest.raises(ReadOnlyEntryError):
            ensure_toggleable(_entry(SourceType.CALENDAR, EntryType.EVENT))

    def test_notes_not_toggleable(self):
        with pytest.raises(ReadOnlyEntryError):
            ensure_toggleable(_entry(SourceType.LOCAL, EntryType.NOTE))

    def test_recurring_rejects_date_operations(self):
        with pytest.raises(ReadOnlyEntryError):
            ensure_date_operable(_entry(SourceType.RECURRING))

    def test_local_accepts_date_operations(self):
        ensure_date_operable(_entry(SourceType.LOCAL))
