"""Carry incomplete tasks from recent daily notes into a target daily note."""

from __future__ import annotations

import logging
from datetime import date, timedelta

from cadence.fs import NoteFileSystem
from cadence.mcp_utils import _join_keep_breaks, _split_keep_breaks
from cadence.notes import NoteLocator
from cadence.task_aggregator import DEFAULT_DAYS_BACK, DEFAULT_READ_WORKERS, collect_tasks
from cadence.task_models import (
    RolloverOptions,
    RolledOverTask,
    RolloverResult,
    SkippedTask,
    TaskWithSource,
)
from cadence.task_modifier import DEFAULT_TASKS_SECTION, insert_into_section
from cadence.task_parser import AGE_PATTERN, CHECKBOX_PATTERN, CREATED_PATTERN, TaskParser, split_lines

logger = logging.getLogger(__name__)

ALREADY_ROLLED_OVER = "already rolled over"
DUPLICATE_IN_SOURCES = "duplicate of a task already rolled over"
SOURCE_NOTE_MISSING = "source note no longer exists"
SOURCE_LINE_CHANGED = "source line moved or changed since it was scanned"


class TaskRollover:
    """Migrate open tasks from the days before ``target_date`` into its note.

    Running twice over an unchanged vault migrates nothing the second time:
    tasks already present in the target (verbatim or by normalized text) are
    reported as skipped. Migrated source lines are marked ``[x]`` in place.
    Each rolled-over task keeps its source address; ``target_line`` says
    where its rewritten line landed.
    """

    def __init__(
        self,
        locator: NoteLocator,
        fs: NoteFileSystem,
        parser: TaskParser | None = None,
        *,
        tasks_section: str = DEFAULT_TASKS_SECTION,
        scan_days_back: int = DEFAULT_DAYS_BACK,
        max_workers: int = DEFAULT_READ_WORKERS,
    ) -> None:
        self.locator = locator
        self.fs = fs
        self.parser = parser or TaskParser()
        self.tasks_section = tasks_section
        self.scan_days_back = scan_days_back
        self.max_workers = max_workers

    def rollover(self, options: RolloverOptions | None = None) -> RolloverResult:
        options = options or RolloverOptions()
        target_date = options.target_date or date.today()
        days_back = (
            self.scan_days_back
            if options.source_days_back is None
            else options.source_days_back
        )

        target_path = self.target_note_path(target_date)
        sources = []
        if days_back > 0:
            sources = [
                ref
                for ref in self.locator.notes_in_range(
                    "daily",
                    target_date - timedelta(days=days_back),
                    target_date - timedelta(days=1),
                )
                if ref.path != target_path
            ]
        scanned = collect_tasks(
            sources,
            self.fs,
            self.parser,
            newest_first=False,
            max_workers=self.max_workers,
        )

        target_content = (
            self.fs.read_text(target_path) if self.fs.exists(target_path) else ""
        )
        target_raws = {line.strip() for line in split_lines(target_content) if line.strip()}
        target_tasks = self.parser.parse(target_content)
        target_texts = {normalize_text(task.text) for task in target_tasks}
        target_bodies = {_body(task.raw) for task in target_tasks}

        current_sources: dict[str, tuple[list[str], list[str]] | None] = {}
        to_migrate: list[TaskWithSource] = []
        to_complete: dict[str, list[TaskWithSource]] = {}
        skipped: list[SkippedTask] = []
        migrated_texts: set[str] = set()

        for task in scanned:
            if task.completed:
                # Report only lines an earlier rollover closed.
                if _body(migrate_line(task)) in target_bodies:
                    skipped.append(SkippedTask(task, ALREADY_ROLLED_OVER))
                continue
            key = normalize_text(task.text)
            in_target = task.raw.strip() in target_raws or key in target_texts
            problem = self._relocate(task, current_sources)
            if in_target or key in migrated_texts:
                reason = ALREADY_ROLLED_OVER if in_target else DUPLICATE_IN_SOURCES
                skipped.append(SkippedTask(task, reason))
                if problem is None:
                    to_complete.setdefault(task.source_path, []).append(task)
                continue
            if problem is not None:
                logger.debug("Not rolling over %s: %s", task.address, problem)
                skipped.append(SkippedTask(task, problem))
                continue

            migrated_texts.add(key)
            to_migrate.append(task)
            to_complete.setdefault(task.source_path, []).append(task)

        rolled_over: list[RolledOverTask] = []
        changed_paths: list[str] = []
        if to_migrate:
            new_lines = [migrate_line(task) for task in to_migrate]
            updated, first_line = insert_into_section(
                target_content, self.tasks_section, new_lines
            )
            for offset, (task, raw) in enumerate(zip(to_migrate, new_lines)):
                rolled_over.append(
                    RolledOverTask(
                        line=task.line,
                        text=task.text,
                        completed=False,
                        metadata=self.parser.parse_metadata(_body(raw)),
                        raw=raw,
                        source_path=task.source_path,
                        source_date=task.source_date,
                        target_path=target_path,
                        target_line=first_line + offset,
                    )
                )
            if not options.dry_run:
                self.fs.write_text(target_path, updated)
                changed_paths.append(target_path)

        if not options.dry_run:
            for path, tasks in to_complete.items():
                source = current_sources.get(path)
                if source is None:
                    continue
                lines, breaks = source
                for task in tasks:
                    lines[task.line - 1] = mark_completed(lines[task.line - 1])
                self.fs.write_text(path, _join_keep_breaks(lines, breaks))
                changed_paths.append(path)

        return RolloverResult(
            rolled_over=tuple(rolled_over),
            target_note_path=target_path,
            skipped=tuple(skipped),
            dry_run=options.dry_run,
            changed_paths=tuple(changed_paths),
        )

    def target_note_path(self, target_date: date) -> str:
        refs = self.locator.notes_in_range("daily", target_date, target_date)
        if not refs:
            raise ValueError(f"No daily note path for {target_date.isoformat()}.")
        return refs[0].path

    def _relocate(
        self,
        task: TaskWithSource,
        current_sources: dict[str, tuple[list[str], list[str]] | None],
    ) -> str | None:
        if task.source_path not in current_sources:
            if self.fs.exists(task.source_path):
                current_sources[task.source_path] = _split_keep_breaks(
                    self.fs.read_text(task.source_path)
                )
            else:
                current_sources[task.source_path] = None

        source = current_sources[task.source_path]
        if source is None:
            return SOURCE_NOTE_MISSING
        lines = source[0]
        if task.line > len(lines) or lines[task.line - 1] != task.raw:
            return SOURCE_LINE_CHANGED
        return None


def normalize_text(text: str) -> str:
    return text.strip().lower()


def migrate_line(task: TaskWithSource) -> str:
    """Rewrite a source line for the target note: age + 1, created kept or added."""
    line = task.raw.strip()
    age_match = AGE_PATTERN.search(line)
    if age_match:
        next_age = int(age_match.group(1)) + 1
        line = line[: age_match.start()] + f"age:{next_age}" + line[age_match.end() :]
    else:
        line = f"{line} age:1"
    if not CREATED_PATTERN.search(line):
        line = f"{line} created:{task.source_date.isoformat()}"
    return line


def _body(line: str) -> str:
    match = CHECKBOX_PATTERN.match(line)
    return match.group(3).strip() if match else line.strip()


def mark_completed(line: str) -> str:
    match = CHECKBOX_PATTERN.match(line)
    if match is None:
        return line
    box = match.start(2)
    return line[:box] + "x" + line[box + 1 :]
