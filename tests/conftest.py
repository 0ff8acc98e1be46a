from __future__ import annotations

from datetime import date, timedelta

import pytest

from cadence.notes import NoteRef


class InMemoryFileSystem:
    """Vault files keyed by relative path; an exception value fails the read."""

    def __init__(self) -> None:
        self.files: dict[str, object] = {}
        self.writes: list[str] = []

    def exists(self, path: str) -> bool:
        return path in self.files

    def read_text(self, path: str) -> str:
        value = self.files[path]
        if isinstance(value, Exception):
            raise value
        return value  # type: ignore[return-value]

    def write_text(self, path: str, content: str) -> None:
        self.files[path] = content
        self.writes.append(path)


class DailyLocator:
    """One ``daily/YYYY-MM-DD.md`` note per day, whatever the note type."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, date, date]] = []

    def notes_in_range(self, note_type: str, start: date, end: date) -> list[NoteRef]:
        self.calls.append((note_type, start, end))
        refs = []
        day = start
        while day <= end:
            refs.append(NoteRef(date=day, path=daily_path(day)))
            day += timedelta(days=1)
        return refs


def daily_path(day: date) -> str:
    return f"daily/{day.isoformat()}.md"


@pytest.fixture
def memory_fs() -> InMemoryFileSystem:
    return InMemoryFileSystem()


@pytest.fixture
def daily_locator() -> DailyLocator:
    return DailyLocator()
