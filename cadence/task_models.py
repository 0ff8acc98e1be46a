"""Value objects shared by the task parser, aggregator, rollover and modifier."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Literal

Priority = Literal["high", "medium", "low"]
PriorityBucket = Literal["high", "medium", "low", "none"]

PRIORITIES: tuple[str, ...] = ("high", "medium", "low")
PRIORITY_ORDER: dict[str, int] = {"high": 0, "medium": 1, "low": 2, "none": 3}
METADATA_FIELDS = frozenset({"due", "scheduled", "created", "age", "priority", "tags"})


@dataclass(frozen=True)
class TaskMetadata:
    due: date | None = None
    scheduled: date | None = None
    created: date | None = None
    priority: Priority | None = None
    tags: tuple[str, ...] = ()
    age: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "due": _iso(self.due),
            "scheduled": _iso(self.scheduled),
            "created": _iso(self.created),
            "priority": self.priority,
            "tags": list(self.tags),
            "age": self.age,
        }


@dataclass(frozen=True)
class Task:
    """One checkbox line as it was read.

    ``line`` is only meaningful against the exact content that was parsed;
    ``fingerprint`` lets a caller detect that the line changed since.
    """

    line: int
    text: str
    completed: bool
    metadata: TaskMetadata
    raw: str

    @property
    def fingerprint(self) -> str:
        return task_fingerprint(self.raw)

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "completed": self.completed,
            "line": self.line,
            "raw": self.raw,
            "fingerprint": self.fingerprint,
            "metadata": self.metadata.to_dict(),
        }


@dataclass(frozen=True)
class TaskWithSource(Task):
    source_path: str = ""
    source_date: date = date.min

    @property
    def address(self) -> str:
        return f"{self.source_path}:{self.line}"

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["address"] = self.address
        payload["sourcePath"] = self.source_path
        payload["sourceDate"] = self.source_date.isoformat()
        return payload


@dataclass(frozen=True)
class TasksByPriority:
    high: tuple[TaskWithSource, ...] = ()
    medium: tuple[TaskWithSource, ...] = ()
    low: tuple[TaskWithSource, ...] = ()
    none: tuple[TaskWithSource, ...] = ()

    def get(self, bucket: str) -> tuple[TaskWithSource, ...]:
        return getattr(self, bucket)


@dataclass(frozen=True)
class AggregatedTasks:
    open: tuple[TaskWithSource, ...] = ()
    completed: tuple[TaskWithSource, ...] = ()
    overdue: tuple[TaskWithSource, ...] = ()
    stale: tuple[TaskWithSource, ...] = ()
    by_priority: TasksByPriority = field(default_factory=TasksByPriority)

    def summary(self) -> dict[str, Any]:
        return {
            "open": len(self.open),
            "completed": len(self.completed),
            "overdue": len(self.overdue),
            "stale": len(self.stale),
            "byPriority": {
                bucket: len(self.by_priority.get(bucket)) for bucket in PRIORITY_ORDER
            },
        }


@dataclass(frozen=True)
class RolledOverTask(TaskWithSource):
    """A migrated task: source identity kept, ``raw`` as written to the target."""

    target_path: str = ""
    target_line: int = 0

    @property
    def target_address(self) -> str:
        return f"{self.target_path}:{self.target_line}"

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["targetPath"] = self.target_path
        payload["targetLine"] = self.target_line
        payload["targetAddress"] = self.target_address
        return payload


@dataclass(frozen=True)
class RolloverOptions:
    target_date: date | None = None
    source_days_back: int | None = None
    dry_run: bool = False


@dataclass(frozen=True)
class SkippedTask:
    task: Task
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {"task": self.task.to_dict(), "reason": self.reason}


@dataclass(frozen=True)
class RolloverResult:
    rolled_over: tuple[RolledOverTask, ...]
    target_note_path: str
    skipped: tuple[SkippedTask, ...]
    dry_run: bool = False
    changed_paths: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "rolledOver": [task.to_dict() for task in self.rolled_over],
            "targetNotePath": self.target_note_path,
            "skipped": [item.to_dict() for item in self.skipped],
            "dryRun": self.dry_run,
            "changedPaths": list(self.changed_paths),
        }


@dataclass(frozen=True)
class NewTask:
    text: str
    completed: bool = False
    due: date | None = None
    scheduled: date | None = None
    created: date | None = None
    priority: Priority | None = None
    age: int | None = None
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class TaskAddress:
    path: str
    line: int

    def __str__(self) -> str:
        return f"{self.path}:{self.line}"


def task_fingerprint(raw: str) -> str:
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()[:12]


def with_source(task: Task, source_path: str, source_date: date) -> TaskWithSource:
    return TaskWithSource(
        line=task.line,
        text=task.text,
        completed=task.completed,
        metadata=task.metadata,
        raw=task.raw,
        source_path=source_path,
        source_date=source_date,
    )


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None
