"""Tests for the filter query language."""

from datetime import date

from daybook.filter import (
    FilterType,
    collect_filtered_entries,
    expand_favorite_tags,
    expand_saved_filters,
    parse_filter_query,
)
from daybook.models import EntryType

TODAY = date(2026, 2, 10)

DOC = """\
# 2026/01/03
- [ ] Draft plan #work @01/15
- [ ] Old chore #home @12/20/25
- [x] Done thing #work @01/10
- Meeting notes #work
* Launch party #Work

# 2026/02/01
- [ ] Next month #work @02/25

# 2026/01/10
- [ ] Weekly review @every-fri
- [ ] Untagged task
"""


def _contents(entries):
    return [e.content for e in entries]


class TestParseFilterQuery:
    """Tests for parse_filter_query."""

    def test_type_tokens(self):
        f = parse_filter_query("!tasks !notes", today=TODAY)
        assert f.entry_types == [FilterType.TASK, FilterType.NOTE]
        assert f.completed is False

    def test_completed_token(self):
        f = parse_filter_query("!c", today=TODAY)
        assert f.entry_types == [FilterType.TASK]
        assert f.completed is True

    def test_open_and_completed_means_all_tasks(self):
        f = parse_filter_query("!tasks !completed", today=TODAY)
        assert f.completed is None

    def test_misspelled_type_is_invalid_not_error(self):
        f = parse_filter_query("!tas", today=TODAY)
        assert f.invalid_tokens == ["!tas"]
        assert not f.has_predicates()

    def test_tags_and_dates(self):
        f = parse_filter_query("#work @after:1/1 @before:1/31", today=TODAY)
        assert f.tags == ["work"]
        assert f.after_date == date(2026, 1, 1)
        assert f.before_date == date(2026, 1, 31)

    def test_filter_dates_look_backward(self):
        f = parse_filter_query("@after:d7", today=TODAY)
        assert f.after_date == date(2026, 2, 3)

    def test_duplicate_bound_first_wins(self):
        f = parse_filter_query("@before:1/10 @before:1/12", today=TODAY)
        assert f.before_date == date(2026, 1, 10)
        assert f.invalid_tokens == ["@before:1/12"]

    def test_unparseable_bound_is_invalid(self):
        f = parse_filter_query("@after:someday", today=TODAY)
        assert f.after_date is None
        assert f.invalid_tokens == ["@after:someday"]

    def test_unknown_at_token_is_invalid(self):
        f = parse_filter_query("@soon", today=TODAY)
        assert f.invalid_tokens == ["@soon"]

    def test_shorthands(self):
        f = parse_filter_query("@overdue @later @recurring", today=TODAY)
        assert f.overdue and f.later and f.recurring

    def test_exclusions_and_search(self):
        f = parse_filter_query("plan not:#home not:!notes not:draft", today=TODAY)
        assert f.search_terms == ["plan"]
        assert f.exclude_tags == ["home"]
        assert f.exclude_types == [FilterType.NOTE]
        assert f.exclude_terms == ["draft"]

    def test_bad_excluded_type_is_invalid(self):
        f = parse_filter_query("not:!bogus", today=TODAY)
        assert f.invalid_tokens == ["not:!bogus"]

    def test_saved_filter_expansion(self):
        f = parse_filter_query("$work #urgent", today=TODAY, saved_filters={"work": "!tasks #work"})
        assert f.entry_types == [FilterType.TASK]
        assert f.tags == ["work", "urgent"]

    def test_unknown_saved_filter_is_invalid(self):
        f = parse_filter_query("$nope !tasks", today=TODAY, saved_filters={})
        assert f.invalid_tokens == ["$nope"]
        assert f.entry_types == [FilterType.TASK]

    def test_favorite_tag_shortcut(self):
        f = parse_filter_query("#1", today=TODAY, favorite_tags={"1": "work"})
        assert f.tags == ["work"]

    def test_warning_lists_invalid_tokens(self):
        assert parse_filter_query("!x @y", today=TODAY).warning() == "Unknown filter: !x, @y"
        assert parse_filter_query("!tasks", today=TODAY).warning() is None


class TestExpansion:
    """Tests for $name and #N expansion helpers."""

    def test_expand_saved_filters(self):
        expanded, unknown = expand_saved_filters("$a and $b", {"a": "#x"})
        assert expanded == "#x and $b"
        assert unknown == ["$b"]

    def test_expand_favorite_tags(self):
        assert expand_favorite_tags("Do it #1 #9", {"1": "work"}) == "Do it #work #9"

    def test_longer_numbers_are_not_favorites(self):
        assert expand_favorite_tags("Issue #12", {"1": "work"}) == "Issue #12"


class TestCollectFilteredEntries:
    """Tests for evaluating a filter over the document."""

    def test_tasks_tagged_work_in_january(self):
        f = parse_filter_query("!tasks #work @after:1/1 @before:1/31", today=TODAY)
        entries = collect_filtered_entries(f, DOC, TODAY)
        assert _contents(entries) == ["Draft plan #work @01/15"]
        assert all(e.entry_type == EntryType.TASK for e in entries)

    def test_entries_without_annotation_bounded_by_home_day(self):
        f = parse_filter_query("@after:1/5 @before:1/31", today=TODAY)
        entries = collect_filtered_entries(f, DOC, TODAY)
        assert "Untagged task" in _contents(entries)
        assert "Meeting notes #work" not in _contents(entries)

    def test_tag_match_is_case_insensitive(self):
        f = parse_filter_query("!events #work", today=TODAY)
        assert _contents(collect_filtered_entries(f, DOC, TODAY)) == ["Launch party #Work"]

    def test_completed_only(self):
        f = parse_filter_query("!completed", today=TODAY)
        assert _contents(collect_filtered_entries(f, DOC, TODAY)) == ["Done thing #work @01/10"]

    def test_overdue(self):
        f = parse_filter_query("@overdue", today=TODAY)
        assert _contents(collect_filtered_entries(f, DOC, TODAY)) == [
            "Draft plan #work @01/15",
            "Old chore #home @12/20/25",
        ]

    def test_later(self):
        f = parse_filter_query("@later !tasks", today=TODAY)
        contents = _contents(collect_filtered_entries(f, DOC, TODAY))
        assert "Weekly review @every-fri" not in contents
        assert "Next month #work @02/25" in contents
        assert "Draft plan #work @01/15" not in contents

    def test_later_excludes_dates_already_past(self):
        doc = "# 2025/12/20\n- [ ] Old @12/28\n- [ ] New @01/20\n"
        today = date(2026, 1, 5)
        f = parse_filter_query("@later", today=today)
        assert _contents(collect_filtered_entries(f, doc, today)) == ["New @01/20"]

    def test_recurring(self):
        f = parse_filter_query("@recurring", today=TODAY)
        assert _contents(collect_filtered_entries(f, DOC, TODAY)) == ["Weekly review @every-fri"]

    def test_results_sorted_by_home_day(self):
        f = parse_filter_query("!tasks", today=TODAY)
        entries = collect_filtered_entries(f, DOC, TODAY)
        assert [e.source_date for e in entries] == sorted(e.source_date for e in entries)
        assert entries[-1].content == "Next month #work @02/25"

    def test_invalid_tokens_do_not_stop_evaluation(self):
        f = parse_filter_query("!tas #home", today=TODAY)
        assert _contents(collect_filtered_entries(f, DOC, TODAY)) == ["Old chore #home @12/20/25"]

    def test_exclusions(self):
        f = parse_filter_query("#work not:!events not:draft", today=TODAY)
        assert _contents(collect_filtered_entries(f, DOC, TODAY)) == [
            "Done thing #work @01/10",
            "Meeting notes #work",
            "Next month #work @02/25",
        ]

    def test_line_index_points_into_home_day(self):
        f = parse_filter_query("untagged", today=TODAY)
        [entry] = collect_filtered_entries(f, DOC, TODAY)
        assert entry.source_date == date(2026, 1, 10)
        assert entry.line_index == 1
