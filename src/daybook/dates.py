"""Date token parsing, annotation normalisation, and recurrence patterns.

One token vocabulary is shared by two contexts that differ only in their
default direction:

- entry context looks forward (``d3`` is three days from now, ``mon`` is
  the next Monday), an explicit ``-`` suffix flips it backward;
- filter context looks backward (``d3`` is three days ago, ``mon`` is the
  last Monday), an explicit ``+`` suffix flips it forward.

``today``, ``tomorrow`` and ``yesterday`` are never affected by direction.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional

from .models import RecurringPattern


class ParseContext(Enum):
    """Default direction for relative date tokens."""
    ENTRY = "entry"
    FILTER = "filter"


_WEEKDAYS = {
    "monday": 0, "mon": 0,
    "tuesday": 1, "tue": 1,
    "wednesday": 2, "wed": 2,
    "thursday": 3, "thu": 3,
    "friday": 4, "fri": 4,
    "saturday": 5, "sat": 5,
    "sunday": 6, "sun": 6,
}

_WEEKDAY_ALTERNATION = (
    "monday|tuesday|wednesday|thursday|friday|saturday|sunday|"
    "mon|tue|wed|thu|fri|sat|sun"
)

# @MM/DD, @MM/DD/YY, @MM/DD/YYYY, @YYYY/MM/DD
LATER_DATE_REGEX = re.compile(
    r"@(\d{4}/\d{1,2}/\d{1,2}|\d{1,2}/\d{1,2}(?:/\d{2,4})?)(?![\d/])"
)

RELATIVE_DATE_REGEX = re.compile(
    r"(?<!\S)@(today|tomorrow|yesterday|d[1-9]\d{0,2}|" + _WEEKDAY_ALTERNATION + r")\b",
    re.IGNORECASE,
)

RECURRING_REGEX = re.compile(
    r"@every-(day|weekday|" + _WEEKDAY_ALTERNATION + r"|[12]\d|3[01]|[1-9])(?=\s|$)",
    re.IGNORECASE,
)


def parse_weekday(token: str) -> Optional[int]:
    """Weekday number (0 = Monday) for a full or abbreviated name."""
    return _WEEKDAYS.get(token.lower())


def next_weekday_from(today: date, target: int) -> date:
    """Next occurrence of ``target`` after today; never today itself."""
    days_ahead = (target - today.weekday()) % 7 or 7
    return today + timedelta(days=days_ahead)


def prev_weekday_from(today: date, target: int) -> date:
    """Most recent occurrence of ``target`` before today; never today itself."""
    days_back = (today.weekday() - target) % 7 or 7
    return today - timedelta(days=days_back)


def _shift(today: date, days: int) -> Optional[date]:
    try:
        return today + timedelta(days=days)
    except OverflowError:
        return None


def parse_relative_date(token: str, today: date, ctx: ParseContext) -> Optional[date]:
    """Resolve today/tomorrow/yesterday, ``dN`` and weekday names."""
    lower = token.lower()

    if lower == "today":
        return today
    if lower == "tomorrow":
        return _shift(today, 1)
    if lower == "yesterday":
        return _shift(today, -1)

    explicit_future = explicit_past = False
    base = lower
    if lower.endswith("+"):
        base, explicit_future = lower[:-1], True
    elif lower.endswith("-"):
        base, explicit_past = lower[:-1], True

    if ctx == ParseContext.FILTER:
        is_future = explicit_future
    else:
        is_future = not explicit_past

    if base.startswith("d"):
        digits = base[1:]
        if 0 < len(digits) <= 3 and digits.isdecimal() and int(digits) > 0:
            days = int(digits)
            return _shift(today, days if is_future else -days)

    weekday = parse_weekday(base)
    if weekday is not None:
        if is_future:
            return next_weekday_from(today, weekday)
        return prev_weekday_from(today, weekday)

    return None


def _make_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except (ValueError, OverflowError):
        return None


def parse_absolute_date(token: str, today: date, ctx: ParseContext) -> Optional[date]:
    """Resolve ``YYYY/M/D``, ``M/D/YY``, ``M/D/YYYY`` and ``M/D``.

    A bare ``M/D`` takes this year, moved to next year in entry context
    when it has already passed, or to last year in filter context when it
    is still ahead.
    """
    parts = token.split("/")
    if not all(p.isdecimal() for p in parts):
        return None

    if len(parts) == 3 and len(parts[0]) == 4:
        try:
            return datetime.strptime(token, "%Y/%m/%d").date()
        except ValueError:
            return None

    if len(parts) == 3:
        month, day, year = (int(p) for p in parts)
        if year < 100:
            year += 2000
        return _make_date(year, month, day)

    if len(parts) == 2:
        month, day = int(parts[0]), int(parts[1])
        resolved = _make_date(today.year, month, day)
        if resolved is None:
            return None
        if ctx == ParseContext.FILTER:
            if resolved > today:
                return _make_date(today.year - 1, month, day)
        elif resolved < today:
            return _make_date(today.year + 1, month, day)
        return resolved

    return None


def parse_date(token: str, ctx: ParseContext, today: date) -> Optional[date]:
    """Parse a date token, relative forms first."""
    resolved = parse_relative_date(token, today, ctx)
    if resolved is not None:
        return resolved
    return parse_absolute_date(token, today, ctx)


def parse_natural_date(token: str, today: date) -> Optional[date]:
    return parse_date(token, ParseContext.ENTRY, today)


def parse_filter_date(token: str, today: date) -> Optional[date]:
    return parse_date(token, ParseContext.FILTER, today)


def format_short(target: date) -> str:
    return f"@{target:%m/%d}"


def format_long(target: date) -> str:
    return f"@{target:%m/%d/%y}"


def format_annotation(target: date, today: date) -> str:
    """Shortest annotation that resolves back to ``target`` from ``today``."""
    short = format_short(target)
    if parse_natural_date(short[1:], today) == target:
        return short
    return format_long(target)


def normalize_relative_dates(content: str, today: date) -> str:
    """Rewrite ``@today``, ``@d3``, ``@fri`` ... into ``@MM/DD``.

    ``@today`` keeps its year (``@MM/DD/YY``) so it is not read as next
    year once the day has passed. Canonical annotations are left alone.
    """
    def _replace(match: re.Match) -> str:
        token = match.group(1)
        resolved = parse_natural_date(token, today)
        if resolved is None:
            return match.group(0)
        if token.lower() == "today":
            return format_long(resolved)
        return format_short(resolved)

    return RELATIVE_DATE_REGEX.sub(_replace, content)


def extract_target_date(content: str, reference: date) -> Optional[date]:
    """Date named by the first ``@date`` annotation, resolved forward from ``reference``."""
    match = LATER_DATE_REGEX.search(content)
    if match is None:
        return None
    return parse_date(match.group(1), ParseContext.ENTRY, reference)


def parse_recurring_pattern(token: str) -> Optional[RecurringPattern]:
    """Parse the part after ``@every-``."""
    lower = token.lower()
    if lower == "day":
        return RecurringPattern.daily()
    if lower == "weekday":
        return RecurringPattern.weekdays()
    weekday = parse_weekday(lower)
    if weekday is not None:
        return RecurringPattern.weekly(weekday)
    if lower.isdecimal() and 1 <= int(lower) <= 31:
        return RecurringPattern.monthly(int(lower))
    return None


def extract_recurring_pattern(content: str) -> Optional[RecurringPattern]:
    match = RECURRING_REGEX.search(content)
    if match is None:
        return None
    return parse_recurring_pattern(match.group(1))


def _splice(content: str, start: int, end: int, replacement: str) -> str:
    before = content[:start].rstrip()
    after = content[end:].lstrip()
    parts = [p for p in (before, replacement, after) if p]
    return " ".join(parts)


def defer_date(content: str, today: date) -> str:
    """Move the annotated date one day later, or annotate with tomorrow."""
    match = LATER_DATE_REGEX.search(content)
    if match is None:
        return f"{content.rstrip()} {format_short(today + timedelta(days=1))}".lstrip()
    current = parse_natural_date(match.group(1), today) or today
    deferred = current + timedelta(days=1)
    return _splice(content, match.start(), match.end(), format_annotation(deferred, today))


def remove_date(content: str) -> Optional[str]:
    """Drop the date annotation; ``None`` when there is none."""
    match = LATER_DATE_REGEX.search(content)
    if match is None:
        return None
    return _splice(content, match.start(), match.end(), "")


def bring_to_today(content: str, today: date) -> str:
    """Point the date annotation at today, adding one if missing."""
    annotation = format_short(today)
    match = LATER_DATE_REGEX.search(content)
    if match is None:
        return f"{content.rstrip()} {annotation}".lstrip()
    return _splice(content, match.start(), match.end(), annotation)
