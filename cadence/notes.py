"""Periodic note enumeration."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Mapping, Protocol

NOTE_TYPES: tuple[str, ...] = ("daily", "weekly", "monthly", "quarterly", "yearly")


@dataclass(frozen=True)
class NoteRef:
    """A periodic note that should exist for ``date`` at vault-relative ``path``."""

    date: date
    path: str


class NoteLocator(Protocol):
    def notes_in_range(self, note_type: str, start: date, end: date) -> list[NoteRef]:
        """Return one note per period of ``note_type`` touching ``start``..``end``."""
        ...


class PathPatternLocator:
    """Locate notes by substituting date variables into per-type path patterns.

    Supported variables: ``{year}``, ``{month}`` (2 digits), ``{date}`` (day
    of month, 2 digits), ``{week}`` (ISO week, 2 digits), ``{quarter}`` and
    ``{day}`` (weekday name).
    """

    def __init__(self, patterns: Mapping[str, str]) -> None:
        self._patterns = dict(patterns)

    def note_path(self, note_type: str, day: date) -> str:
        try:
            pattern = self._patterns[note_type]
        except KeyError:
            raise ValueError(f"No path pattern configured for {note_type!r} notes.") from None
        return render_path(pattern, day)

    def notes_in_range(self, note_type: str, start: date, end: date) -> list[NoteRef]:
        refs: list[NoteRef] = []
        seen: set[str] = set()
        for day in period_starts(note_type, start, end):
            path = self.note_path(note_type, day)
            if path in seen:
                continue
            seen.add(path)
            refs.append(NoteRef(date=day, path=path))
        return refs


def render_path(pattern: str, day: date) -> str:
    iso_week = day.isocalendar()[1]
    replacements = {
        "{year}": f"{day.year:04d}",
        "{month}": f"{day.month:02d}",
        "{date}": f"{day.day:02d}",
        "{week}": f"{iso_week:02d}",
        "{quarter}": str((day.month - 1) // 3 + 1),
        "{day}": day.strftime("%A"),
    }
    result = pattern
    for variable, value in replacements.items():
        result = result.replace(variable, value)
    return result


def period_start(note_type: str, day: date) -> date:
    if note_type == "daily":
        return day
    if note_type == "weekly":
        return day - timedelta(days=day.weekday())
    if note_type == "monthly":
        return day.replace(day=1)
    if note_type == "quarterly":
        return date(day.year, (day.month - 1) // 3 * 3 + 1, 1)
    if note_type == "yearly":
        return date(day.year, 1, 1)
    raise ValueError(f"Unknown note type: {note_type!r}")


def next_period(note_type: str, day: date) -> date:
    if note_type == "daily":
        return day + timedelta(days=1)
    if note_type == "weekly":
        return day + timedelta(days=7)
    if note_type == "monthly":
        return _add_months(day, 1)
    if note_type == "quarterly":
        return _add_months(day, 3)
    if note_type == "yearly":
        return date(day.year + 1, 1, 1)
    raise ValueError(f"Unknown note type: {note_type!r}")


def period_starts(note_type: str, start: date, end: date) -> list[date]:
    """Period start dates, oldest first, for every period overlapping the range."""
    if end < start:
        return []
    days: list[date] = []
    current = period_start(note_type, start)
    while current <= end:
        days.append(current)
        current = next_period(note_type, current)
    return days


def _add_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    return date(day.year + month_index // 12, month_index % 12 + 1, 1)
