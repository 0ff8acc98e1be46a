"""Aggregate tasks across periodic notes into status and priority views."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Sequence

from cadence.fs import NoteFileSystem
from cadence.notes import NoteLocator, NoteRef
from cadence.task_models import (
    PRIORITY_ORDER,
    AggregatedTasks,
    TasksByPriority,
    TaskWithSource,
    with_source,
)
from cadence.task_parser import TaskParser

logger = logging.getLogger(__name__)

DEFAULT_DAYS_BACK = 7
DEFAULT_STALE_AFTER_DAYS = 14
DEFAULT_READ_WORKERS = 8


@dataclass(frozen=True)
class AggregateOptions:
    """Window and filters for :meth:`TaskAggregator.aggregate`.

    ``start``/``end`` override ``days_back`` when given; ``today`` pins "now"
    for overdue and stale checks.
    """

    days_back: int = DEFAULT_DAYS_BACK
    start: date | None = None
    end: date | None = None
    note_types: tuple[str, ...] = ("daily",)
    include_completed: bool = True
    today: date | None = None


class TaskAggregator:
    def __init__(
        self,
        locator: NoteLocator,
        fs: NoteFileSystem,
        parser: TaskParser | None = None,
        *,
        stale_after_days: int = DEFAULT_STALE_AFTER_DAYS,
        max_workers: int = DEFAULT_READ_WORKERS,
    ) -> None:
        self.locator = locator
        self.fs = fs
        self.parser = parser or TaskParser()
        self.stale_after_days = stale_after_days
        self.max_workers = max_workers

    def aggregate(self, options: AggregateOptions | None = None) -> AggregatedTasks:
        options = options or AggregateOptions()
        today = options.today or date.today()
        end = options.end or today
        start = options.start or (today - timedelta(days=options.days_back))

        notes: list[NoteRef] = []
        for note_type in options.note_types:
            notes.extend(self.locator.notes_in_range(note_type, start, end))

        tasks = collect_tasks(
            notes, self.fs, self.parser, newest_first=True, max_workers=self.max_workers
        )
        return self.categorize(tasks, today, include_completed=options.include_completed)

    def categorize(
        self,
        tasks: Iterable[TaskWithSource],
        today: date,
        *,
        include_completed: bool = True,
    ) -> AggregatedTasks:
        open_tasks: list[TaskWithSource] = []
        completed: list[TaskWithSource] = []
        overdue: list[TaskWithSource] = []
        stale: list[TaskWithSource] = []
        by_priority: dict[str, list[TaskWithSource]] = {
            bucket: [] for bucket in PRIORITY_ORDER
        }

        for task in tasks:
            if task.completed:
                if include_completed:
                    completed.append(task)
                continue

            open_tasks.append(task)
            due = task.metadata.due
            if due is not None and due < today:
                overdue.append(task)
            if task_age(task, today) > self.stale_after_days:
                stale.append(task)
            by_priority[task.metadata.priority or "none"].append(task)

        return AggregatedTasks(
            open=sort_tasks(open_tasks),
            completed=sort_tasks(completed),
            overdue=sort_tasks(overdue),
            stale=sort_tasks(stale),
            by_priority=TasksByPriority(
                **{bucket: sort_tasks(items) for bucket, items in by_priority.items()}
            ),
        )


def collect_tasks(
    notes: Sequence[NoteRef],
    fs: NoteFileSystem,
    parser: TaskParser,
    *,
    newest_first: bool = True,
    max_workers: int = DEFAULT_READ_WORKERS,
) -> list[TaskWithSource]:
    """Read and parse ``notes`` concurrently, merging in note-date order.

    Missing notes contribute nothing; unreadable notes are logged and skipped.
    The result order depends only on note dates, paths and line numbers.
    """
    if not notes:
        return []

    per_note: dict[int, list[TaskWithSource]] = {}
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        futures = {
            executor.submit(_read_note_tasks, fs, parser, ref): index
            for index, ref in enumerate(notes)
        }
        for future in as_completed(futures):
            per_note[futures[future]] = future.result()

    direction = -1 if newest_first else 1
    order = sorted(
        range(len(notes)),
        key=lambda index: (direction * notes[index].date.toordinal(), notes[index].path),
    )

    merged: list[TaskWithSource] = []
    for index in order:
        merged.extend(per_note[index])
    return merged


def _read_note_tasks(
    fs: NoteFileSystem, parser: TaskParser, ref: NoteRef
) -> list[TaskWithSource]:
    try:
        if not fs.exists(ref.path):
            return []
        content = fs.read_text(ref.path)
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Skipping unreadable note %s: %s", ref.path, exc)
        return []
    return [with_source(task, ref.path, ref.date) for task in parser.parse(content)]


def task_age(task: TaskWithSource, today: date) -> int:
    if task.metadata.age is not None:
        return task.metadata.age
    if task.metadata.created is not None:
        return (today - task.metadata.created).days
    return (today - task.source_date).days


def sort_tasks(tasks: Iterable[TaskWithSource]) -> tuple[TaskWithSource, ...]:
    """Order by priority (high first) then due date (earliest first, undated last)."""
    return tuple(
        sorted(
            tasks,
            key=lambda task: (
                PRIORITY_ORDER[task.metadata.priority or "none"],
                task.metadata.due or date.max,
            ),
        )
    )
