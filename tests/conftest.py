"""Shared pytest fixtures for daybook tests."""

import tempfile
from datetime import date
from pathlib import Path

import pytest

from daybook.config import DaybookConfig
from daybook.engine import JournalEngine
from daybook.store import DayStore

# Monday
TODAY = date(2026, 1, 5)

SAMPLE_JOURNAL = """\
# 2026/01/02
- [ ] Call plumber #home
- [x] Send invoice #work
* Standup @every-weekday

# 2026/01/05
- [ ] Review PR #work
- Note about lunch
- [ ] Pay rent @every-1

# 2026/01/06
- [ ] Ship release #work @01/10
"""


@pytest.fixture
def temp_project():
    """Create a temporary project directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config(temp_project):
    """Create a test configuration."""
    return DaybookConfig(
        project_root=temp_project,
        journal_file="journal.md",
        favorite_tags={"1": "work", "2": "home"},
        saved_filters={"work": "!tasks #work"},
    )


@pytest.fixture
def journal_path(config):
    return config.get_journal_path()


@pytest.fixture
def store(journal_path):
    return DayStore(journal_path)


@pytest.fixture
def sample_journal(journal_path):
    """Write the sample journal and return its path."""
    journal_path.write_text(SAMPLE_JOURNAL, encoding="utf-8")
    return journal_path


@pytest.fixture
def engine(config):
    """Engine over an empty journal, pinned to TODAY."""
    return JournalEngine(config, today=TODAY)


@pytest.fixture
def sample_engine(config, sample_journal):
    """Engine over the sample journal, pinned to TODAY."""
    return JournalEngine(config, today=TODAY)
