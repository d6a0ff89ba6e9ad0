"""Filter query language and evaluation over the whole document.

Tokens are whitespace separated:

    !tasks !completed !notes !events   entry kinds (OR)
    #tag                               required tag (AND, case-insensitive)
    @after:DATE @before:DATE           inclusive bounds on the entry's date
    @overdue @later @recurring         date shorthands
    not:#tag not:!kind not:word        exclusions
    $name                              saved filter, expanded before parsing
    word                               content search term

Dates use filter-context parsing: ``d7`` is seven days ago, ``d7+`` seven
days ahead. Tokens that match no rule are collected in
``Filter.invalid_tokens``; parsing never raises.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional

from loguru import logger

from .codec import TAG_REGEX, extract_tags, parse_lines
from .dates import (
    RECURRING_REGEX,
    extract_target_date,
    parse_filter_date,
)
from .models import Entry, EntryType, RawEntry, SourceType
from .store import iter_day_spans

__all__ = [
    "FAVORITE_TAG_REGEX",
    "SAVED_FILTER_REGEX",
    "TAG_REGEX",
    "Filter",
    "FilterType",
    "collect_filtered_entries",
    "entry_matches_filter",
    "expand_favorite_tags",
    "expand_saved_filters",
    "parse_filter_query",
]

FAVORITE_TAG_REGEX = re.compile(r"#([0-9])\b")

SAVED_FILTER_REGEX = re.compile(r"\$(\w+)\b")


class FilterType(Enum):
    TASK = "task"
    NOTE = "note"
    EVENT = "event"


_TYPE_KEYWORDS = {
    "tasks": FilterType.TASK, "task": FilterType.TASK, "t": FilterType.TASK,
    "notes": FilterType.NOTE, "note": FilterType.NOTE, "n": FilterType.NOTE,
    "events": FilterType.EVENT, "event": FilterType.EVENT, "e": FilterType.EVENT,
}

# keyword -> (type, completed state it asks for)
_KIND_TOKENS = {
    "tasks": (FilterType.TASK, False),
    "task": (FilterType.TASK, False),
    "t": (FilterType.TASK, False),
    "completed": (FilterType.TASK, True),
    "c": (FilterType.TASK, True),
    "notes": (FilterType.NOTE, None),
    "note": (FilterType.NOTE, None),
    "n": (FilterType.NOTE, None),
    "events": (FilterType.EVENT, None),
    "event": (FilterType.EVENT, None),
    "e": (FilterType.EVENT, None),
}


@dataclass
class Filter:
    """Parsed filter query."""
    entry_types: list[FilterType] = field(default_factory=list)
    completed: Optional[bool] = None
    tags: list[str] = field(default_factory=list)
    exclude_tags: list[str] = field(default_factory=list)
    search_terms: list[str] = field(default_factory=list)
    exclude_terms: list[str] = field(default_factory=list)
    exclude_types: list[FilterType] = field(default_factory=list)
    before_date: Optional[date] = None
    after_date: Optional[date] = None
    overdue: bool = False
    later: bool = False
    recurring: bool = False
    invalid_tokens: list[str] = field(default_factory=list)

    def has_predicates(self) -> bool:
        return any((
            self.entry_types, self.tags, self.exclude_tags, self.search_terms,
            self.exclude_terms, self.exclude_types, self.before_date, self.after_date,
            self.overdue, self.later, self.recurring,
        ))

    def warning(self) -> Optional[str]:
        """Status text for tokens that were ignored."""
        if not self.invalid_tokens:
            return None
        return f"Unknown filter: {', '.join(self.invalid_tokens)}"


def expand_favorite_tags(content: str, favorite_tags: dict[str, str]) -> str:
    """Replace ``#0``..``#9`` shortcuts with configured tags; unknown ones stay."""
    def _replace(match: re.Match) -> str:
        tag = favorite_tags.get(match.group(1))
        return f"#{tag}" if tag else match.group(0)

    return FAVORITE_TAG_REGEX.sub(_replace, content)


def expand_saved_filters(query: str, filters: dict[str, str]) -> tuple[str, list[str]]:
    """Expand ``$name`` from the saved-filter registry.

    Returns the expanded query and the ``$name`` tokens that had no
    definition (left in place).
    """
    unknown: list[str] = []

    def _replace(match: re.Match) -> str:
        expansion = filters.get(match.group(1))
        if expansion is None:
            unknown.append(match.group(0))
            return match.group(0)
        return expansion

    return SAVED_FILTER_REGEX.sub(_replace, query), unknown


def _parse_bound(query_filter: Filter, token: str, value: str, attr: str, today: date) -> None:
    if getattr(query_filter, attr) is not None:
        query_filter.invalid_tokens.append(token)
        return
    parsed = parse_filter_date(value, today)
    if parsed is None:
        query_filter.invalid_tokens.append(token)
    else:
        setattr(query_filter, attr, parsed)


def parse_filter_query(
    query: str,
    today: Optional[date] = None,
    saved_filters: Optional[dict[str, str]] = None,
    favorite_tags: Optional[dict[str, str]] = None,
) -> Filter:
    """Parse a filter query.

    A repeated ``@after:``/``@before:`` is recorded as invalid and the first
    one is kept.
    """
    query_filter = Filter()
    today = today or date.today()

    unknown_saved: list[str] = []
    if saved_filters is not None:
        query, unknown_saved = expand_saved_filters(query, saved_filters)
    if favorite_tags:
        query = expand_favorite_tags(query, favorite_tags)

    completed_states: set[bool] = set()

    for token in query.split():
        if token in unknown_saved or SAVED_FILTER_REGEX.fullmatch(token):
            query_filter.invalid_tokens.append(token)
            continue

        if token.startswith("@before:"):
            _parse_bound(query_filter, token, token[len("@before:"):], "before_date", today)
            continue
        if token.startswith("@after:"):
            _parse_bound(query_filter, token, token[len("@after:"):], "after_date", today)
            continue
        if token == "@overdue":
            query_filter.overdue = True
            continue
        if token == "@later":
            query_filter.later = True
            continue
        if token == "@recurring":
            query_filter.recurring = True
            continue
        if token.startswith("@"):
            query_filter.invalid_tokens.append(token)
            continue

        if token.startswith("not:"):
            negated = token[len("not:"):]
            if negated.startswith("#"):
                query_filter.exclude_tags.append(negated[1:])
            elif negated.startswith("!"):
                filter_type = _TYPE_KEYWORDS.get(negated[1:])
                if filter_type is None:
                    query_filter.invalid_tokens.append(token)
                else:
                    query_filter.exclude_types.append(filter_type)
            elif negated:
                query_filter.exclude_terms.append(negated)
            else:
                query_filter.invalid_tokens.append(token)
            continue

        if token.startswith("!"):
            kind = _KIND_TOKENS.get(token[1:])
            if kind is None:
                query_filter.invalid_tokens.append(token)
                continue
            filter_type, wants_completed = kind
            if filter_type not in query_filter.entry_types:
                query_filter.entry_types.append(filter_type)
            if wants_completed is not None:
                completed_states.add(wants_completed)
            continue

        if token.startswith("#"):
            tag = token[1:]
            if TAG_REGEX.fullmatch(token):
                query_filter.tags.append(tag)
            else:
                query_filter.invalid_tokens.append(token)
            continue

        query_filter.search_terms.append(token)

    # Asking for both open and completed tasks means all tasks
    if len(completed_states) == 1:
        query_filter.completed = completed_states.pop()

    if query_filter.invalid_tokens:
        logger.warning(f"Ignoring filter tokens: {query_filter.invalid_tokens}")
    return query_filter


def _filter_type(entry_type: EntryType) -> FilterType:
    if entry_type == EntryType.TASK:
        return FilterType.TASK
    if entry_type == EntryType.EVENT:
        return FilterType.EVENT
    return FilterType.NOTE


def entry_date(entry: RawEntry, source_date: date) -> date:
    """The entry's own date: its annotation if it has one, else its home day."""
    return extract_target_date(entry.content, source_date) or source_date


def entry_matches_filter(entry: RawEntry, source_date: date, query_filter: Filter, today: date) -> bool:
    """Whether one entry passes every active predicate."""
    kind = _filter_type(entry.entry_type)

    if query_filter.entry_types and kind not in query_filter.entry_types:
        return False
    if kind in query_filter.exclude_types:
        return False
    if (
        query_filter.completed is not None
        and entry.entry_type == EntryType.TASK
        and entry.completed != query_filter.completed
    ):
        return False

    if query_filter.before_date or query_filter.after_date:
        when = entry_date(entry, source_date)
        if query_filter.before_date and when > query_filter.before_date:
            return False
        if query_filter.after_date and when < query_filter.after_date:
            return False

    if query_filter.overdue:
        # Annotations resolve from the home day, the same date projection uses
        target = extract_target_date(entry.content, source_date)
        if target is None or target >= today:
            return False
        if entry.entry_type == EntryType.TASK and entry.completed:
            return False

    if query_filter.later:
        # Only an explicit date still ahead; a bare @every-* pattern is not one
        target = extract_target_date(entry.content, source_date)
        if target is None or target <= today:
            return False

    if query_filter.recurring and not RECURRING_REGEX.search(entry.content):
        return False

    entry_tags = [t.lower() for t in extract_tags(entry.content)]
    for tag in query_filter.tags:
        if tag.lower() not in entry_tags:
            return False
    for tag in query_filter.exclude_tags:
        if tag.lower() in entry_tags:
            return False

    content = entry.content.lower()
    if any(term.lower() not in content for term in query_filter.search_terms):
        return False
    if any(term.lower() in content for term in query_filter.exclude_terms):
        return False

    return True


def collect_filtered_entries(query_filter: Filter, document: str, today: Optional[date] = None) -> list[Entry]:
    """Entries from every day section that pass the filter.

    Ordered by home day, then position within the day. Invalid tokens do
    not stop evaluation; the predicates that did parse still apply.
    """
    today = today or date.today()
    entries: list[Entry] = []
    for span in iter_day_spans(document):
        lines = parse_lines(document[span.content_start:span.end])
        for index, line in enumerate(lines):
            if isinstance(line, RawEntry) and entry_matches_filter(line, span.day, query_filter, today):
                entries.append(Entry.from_raw(line, span.day, index, SourceType.LOCAL))

    entries.sort(key=lambda e: (e.source_date, e.line_index))
    return entries
