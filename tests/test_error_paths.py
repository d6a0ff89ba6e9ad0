"""Error path tests.

Tests error conditions surfaced through the engine facade.
"""

from datetime import date

import pytest

from daybook.config import load_config
from daybook.context import DailyLocation, ProjectedLocation
from daybook.models import CalendarEvent, JournalError, ReadOnlyEntryError, SourceType

TODAY = date(2026, 1, 5)


class TestReadOnlyErrors:
    """Tests for ReadOnlyEntryError."""

    def test_calendar_entry_cannot_be_deleted(self, sample_engine):
        sample_engine.set_calendar_events({TODAY: [CalendarEvent("c", "Work", "Sync", TODAY)]})
        entry = sample_engine.view_day().calendar[0]
        with pytest.raises(ReadOnlyEntryError, match="read-only"):
            sample_engine.delete_entries(ProjectedLocation(entry))

    def test_error_names_home_day(self, sample_engine):
        entry = sample_engine.view_day(date(2026, 1, 10)).projected[0]
        assert entry.source_type == SourceType.LATER
        with pytest.raises(ReadOnlyEntryError) as exc:
            sample_engine.append_tag(ProjectedLocation(entry), "x")
        assert exc.value.source_date == date(2026, 1, 6)

    def test_read_only_error_is_journal_error(self):
        assert issubclass(ReadOnlyEntryError, JournalError)

    def test_one_bad_location_rejects_whole_batch(self, sample_engine):
        before = sample_engine.store.load_journal()
        projected = sample_engine.view_day().projected[0]
        with pytest.raises(ReadOnlyEntryError):
            sample_engine.delete_entries([DailyLocation(0), ProjectedLocation(projected)])
        assert sample_engine.store.load_journal() == before
        assert not sample_engine.can_undo()

    def test_unknown_location_type(self, sample_engine):
        with pytest.raises(JournalError, match="Unknown entry location"):
            sample_engine.delete_entries([object()])


class TestIOErrors:
    """Tests that file errors propagate and leave history alone."""

    def test_write_failure_propagates(self, sample_engine, monkeypatch):
        def fail(content):
            raise PermissionError("read-only file system")

        monkeypatch.setattr(sample_engine.store, "save_journal", fail)
        with pytest.raises(PermissionError):
            sample_engine.toggle_entry(DailyLocation(0))
        assert not sample_engine.can_undo()

    def test_broken_python_config_propagates(self, temp_project):
        (temp_project / "daybook_config.py").write_text("CONFIG = {\n")
        with pytest.raises(SyntaxError):
            load_config(temp_project)

    def test_malformed_json_config_propagates(self, temp_project):
        (temp_project / "daybook_config.json").write_text("{not json")
        with pytest.raises(ValueError):
            load_config(temp_project)


class TestStalePositions:
    """Tests for positions that no longer hold an entry."""

    def test_stale_daily_location_does_not_raise(self, sample_engine):
        assert sample_engine.delete_entries(DailyLocation(42)) == "Deleted entry"
        assert "Review PR" in sample_engine.store.load_day(TODAY)

    def test_edit_stale_location_writes_nothing(self, sample_engine):
        before = sample_engine.store.load_journal()
        sample_engine.edit_entry(DailyLocation(42), "ghost")
        assert sample_engine.store.load_journal() == before
