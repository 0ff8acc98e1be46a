"""Task-related tool endpoints."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any, Callable, Iterable, TypeVar

from dulwich.repo import Repo
from fastapi import Request

from cadence.errors import McpError, success_response
from cadence.fs import LocalFileSystem, TrackingFileSystem
from cadence.mcp_activity import _append_activity_log, _build_activity_entry
from cadence.mcp_git import (
    _commit_note_changes,
    _ensure_git_repo,
    _read_head_state,
    _restore_git_head,
    _rollback_note_changes,
)
from cadence.mcp_payload import (
    _ensure_payload_dict,
    _read_bool_field,
    _read_date,
    _read_non_negative_int,
    _read_note_types,
    _read_optional_str,
    _read_priority,
    _read_tags,
    _reject_unknown_fields,
    _require_fields,
)
from cadence.mcp_router import mcp_router
from cadence.paths import parse_task_address, validate_note_path
from cadence.task_aggregator import AggregateOptions, TaskAggregator
from cadence.task_models import METADATA_FIELDS, NewTask, RolloverOptions, TaskWithSource
from cadence.task_modifier import TaskModifier
from cadence.task_rollover import TaskRollover
from cadence.vault_scope import VaultContext, get_vault_context

T = TypeVar("T")

_DATE_FIELDS = ("due", "scheduled", "created")
_PRIORITY_FILTERS = {"high", "medium", "low", "none"}

GitState = tuple[Repo | None, Path | None, str | None]


@mcp_router.post("/tool:get_open_tasks")
def get_open_tasks(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """List open tasks from recent notes, optionally filtered by priority or tag."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"days_back", "priority", "tag", "note_types"})

    days_back = _read_non_negative_int(payload, "days_back", 7)
    note_types = _read_note_types(payload)
    priority = payload.get("priority")
    if priority is not None and (
        not isinstance(priority, str) or priority not in _PRIORITY_FILTERS
    ):
        raise McpError(
            "INVALID_PRIORITY",
            "priority must be one of high, medium, low, or none.",
            {"priority": str(priority)},
        )
    tag = _read_optional_str(payload, "tag")

    context = get_vault_context(request)
    today = date.today()
    aggregated = _aggregator(context).aggregate(
        AggregateOptions(
            days_back=days_back,
            note_types=note_types,
            include_completed=False,
            today=today,
        )
    )

    tasks: Iterable[TaskWithSource] = (
        aggregated.by_priority.get(priority) if priority else aggregated.open
    )
    if tag:
        wanted = tag.strip().lstrip("#").lower()
        tasks = [
            task
            for task in tasks
            if wanted in {value.lower() for value in task.metadata.tags}
        ]
    tasks = list(tasks)
    addresses = {task.address for task in tasks}

    return success_response(
        {
            "tasks": [task.to_dict() for task in tasks],
            "summary": {
                "total": len(tasks),
                "overdue": sum(1 for task in aggregated.overdue if task.address in addresses),
                "stale": sum(1 for task in aggregated.stale if task.address in addresses),
            },
            "window": _window(today, days_back),
        }
    )


@mcp_router.post("/tool:get_overdue_tasks")
def get_overdue_tasks(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """List open tasks whose due date is before today."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"days_back"})

    context = get_vault_context(request)
    days_back = _read_non_negative_int(
        payload, "days_back", context.settings.scan_days_back
    )
    today = date.today()
    aggregated = _aggregator(context).aggregate(
        AggregateOptions(days_back=days_back, include_completed=False, today=today)
    )
    return success_response(
        {
            "tasks": [task.to_dict() for task in aggregated.overdue],
            "count": len(aggregated.overdue),
            "window": _window(today, days_back),
        }
    )


@mcp_router.post("/tool:aggregate_tasks")
def aggregate_tasks(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Return every task view (open, completed, overdue, stale, by priority)."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(
        payload, {"days_back", "start", "end", "note_types", "include_completed"}
    )

    today = date.today()
    days_back = _read_non_negative_int(payload, "days_back", 7)
    start = _read_date(payload, "start", today)
    end = _read_date(payload, "end", today)
    if end is not None and start is None:
        raise McpError(
            "MISSING_FIELDS",
            "start is required when end is given.",
            {"fields": ["start"]},
        )
    if start is not None and (end or today) < start:
        raise McpError(
            "INVALID_DATE",
            "start must not be after end.",
            {"start": start.isoformat(), "end": (end or today).isoformat()},
        )
    note_types = _read_note_types(payload)
    include_completed = _read_bool_field(payload, "include_completed", True)

    context = get_vault_context(request)
    aggregated = _aggregator(context).aggregate(
        AggregateOptions(
            days_back=days_back,
            start=start,
            end=end,
            note_types=note_types,
            include_completed=include_completed,
            today=today,
        )
    )

    window = (
        {"start": start.isoformat(), "end": (end or today).isoformat()}
        if start is not None
        else _window(today, days_back)
    )
    return success_response(
        {
            "open": _serialize(aggregated.open),
            "completed": _serialize(aggregated.completed),
            "overdue": _serialize(aggregated.overdue),
            "stale": _serialize(aggregated.stale),
            "byPriority": {
                bucket: _serialize(aggregated.by_priority.get(bucket))
                for bucket in ("high", "medium", "low", "none")
            },
            "summary": aggregated.summary(),
            "window": window,
        }
    )


@mcp_router.post("/tool:rollover_tasks")
def rollover_tasks(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Carry open tasks from recent daily notes into the target daily note."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"target_date", "days_back", "dry_run"})

    target_date = _read_date(payload, "target_date")
    dry_run = _read_bool_field(payload, "dry_run", False)
    context = get_vault_context(request)
    days_back = _read_non_negative_int(
        payload, "days_back", context.settings.scan_days_back
    )
    if not dry_run and not context.settings.rollover_enabled:
        raise McpError(
            "ROLLOVER_DISABLED",
            "Rollover is disabled in the vault settings.",
            {"setting": "tasks.rolloverEnabled"},
        )

    options = RolloverOptions(
        target_date=target_date, source_days_back=days_back, dry_run=dry_run
    )
    result, fs, git_state = _run_write(
        context,
        lambda tracked: _rollover(context, tracked).rollover(options),
        use_git=not dry_run,
    )
    commit_sha = _record_mutation(
        context,
        fs,
        git_state,
        "rollover_tasks",
        result.target_note_path,
        f"roll over {len(result.rolled_over)} task(s)",
    )

    data = result.to_dict()
    data["commitSha"] = commit_sha
    return success_response(data)


@mcp_router.post("/tool:toggle_task")
def toggle_task(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Flip a task between open and completed by its ``path:line`` address."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"address", "fingerprint"})
    _require_fields(payload, ["address"])

    context = get_vault_context(request)
    address = parse_task_address(context.root, payload["address"])
    fingerprint = _read_optional_str(payload, "fingerprint")

    task, fs, git_state = _run_write(
        context,
        lambda tracked: TaskModifier(tracked).toggle_task(
            address.path, address.line, fingerprint
        ),
    )
    commit_sha = _record_mutation(
        context,
        fs,
        git_state,
        "toggle_task",
        address.path,
        "complete task" if task.completed else "reopen task",
    )
    return success_response(
        {"task": task.to_dict(), "address": str(address), "commitSha": commit_sha}
    )


@mcp_router.post("/tool:add_task")
def add_task(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Add a task to a note's tasks section (today's daily note by default)."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(
        payload, {"text", "path", "section", "due", "scheduled", "priority", "tags"}
    )
    _require_fields(payload, ["text"])

    text = payload["text"]
    if not isinstance(text, str):
        raise McpError(
            "INVALID_TYPE",
            "text must be a string.",
            {"text": str(text)},
        )
    today = date.today()
    new_task = NewTask(
        text=text,
        due=_read_date(payload, "due", today),
        scheduled=_read_date(payload, "scheduled", today),
        created=today,
        priority=_read_priority(payload),  # type: ignore[arg-type]
        tags=_read_tags(payload),
    )

    context = get_vault_context(request)
    raw_path = _read_optional_str(payload, "path")
    if raw_path is None:
        raw_path = context.locator.note_path("daily", today)
    note_path = validate_note_path(context.root, raw_path)
    section = _read_optional_str(payload, "section") or context.settings.tasks_section

    task, fs, git_state = _run_write(
        context,
        lambda tracked: TaskModifier(tracked).add_task(note_path, new_task, section),
    )
    commit_sha = _record_mutation(
        context, fs, git_state, "add_task", note_path, "add task"
    )
    return success_response(
        {
            "task": task.to_dict(),
            "address": f"{note_path}:{task.line}",
            "commitSha": commit_sha,
        }
    )


@mcp_router.post("/tool:update_task_metadata")
def update_task_metadata(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Set or clear metadata tokens on one task line."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"address", "fields", "fingerprint"})
    _require_fields(payload, ["address", "fields"])

    fields = payload["fields"]
    if not isinstance(fields, dict) or not fields:
        raise McpError(
            "INVALID_TYPE",
            "fields must be a non-empty object.",
            {"fields": str(fields)},
        )
    _reject_unknown_fields(fields, set(METADATA_FIELDS))
    updates = _read_metadata_updates(fields)

    context = get_vault_context(request)
    address = parse_task_address(context.root, payload["address"])
    fingerprint = _read_optional_str(payload, "fingerprint")

    task, fs, git_state = _run_write(
        context,
        lambda tracked: TaskModifier(tracked).update_metadata(
            address.path, address.line, updates, fingerprint
        ),
    )
    commit_sha = _record_mutation(
        context,
        fs,
        git_state,
        "update_task_metadata",
        address.path,
        f"update {', '.join(sorted(updates))}",
    )
    return success_response(
        {"task": task.to_dict(), "address": str(address), "commitSha": commit_sha}
    )


def _aggregator(context: VaultContext) -> TaskAggregator:
    return TaskAggregator(
        context.locator,
        LocalFileSystem(context.root),
        stale_after_days=context.settings.stale_after_days,
        max_workers=context.read_workers,
    )


def _rollover(context: VaultContext, fs: TrackingFileSystem) -> TaskRollover:
    return TaskRollover(
        context.locator,
        fs,
        tasks_section=context.settings.tasks_section,
        scan_days_back=context.settings.scan_days_back,
        max_workers=context.read_workers,
    )


def _read_metadata_updates(fields: dict[str, Any]) -> dict[str, Any]:
    updates: dict[str, Any] = {}
    for key, value in fields.items():
        if value is None:
            updates[key] = None
        elif key in _DATE_FIELDS:
            updates[key] = _read_date(fields, key)
        elif key == "priority":
            updates[key] = _read_priority(fields)
        elif key == "tags":
            updates[key] = list(_read_tags(fields))
        else:
            updates[key] = value
    return updates


def _run_write(
    context: VaultContext,
    action: Callable[[TrackingFileSystem], T],
    *,
    use_git: bool = True,
) -> tuple[T, TrackingFileSystem, GitState]:
    """Run ``action`` against a tracking filesystem; undo partial writes on failure."""
    git_state: GitState = (None, None, None)
    if use_git and context.git_enabled:
        repo = _ensure_git_repo(context.root)
        git_state = (repo, *_read_head_state(context.root))

    fs = TrackingFileSystem(LocalFileSystem(context.root))
    try:
        result = action(fs)
    except Exception:
        if fs.originals:
            _rollback_note_changes(None, context.root, fs.originals)
        raise
    return result, fs, git_state


def _record_mutation(
    context: VaultContext,
    fs: TrackingFileSystem,
    git_state: GitState,
    operation: str,
    target: str,
    summary: str,
) -> str | None:
    """Commit the written notes and append an activity entry, or roll back."""
    if not fs.originals:
        return None

    repo, head_ref_path, previous_head = git_state
    commit_sha = None
    if repo is not None:
        try:
            commit_sha = _commit_note_changes(repo, fs.written_paths, operation, target)
        except Exception as exc:
            _rollback_note_changes(repo, context.root, fs.originals)
            raise McpError(
                "GIT_ERROR",
                "Git commit failed; mutation rolled back.",
                {"path": target, "operation": operation},
            ) from exc

    try:
        entry = _build_activity_entry(operation, target, summary, commit_sha)
        _append_activity_log(context.root, entry)
    except Exception as exc:
        _rollback_note_changes(repo, context.root, fs.originals)
        if repo is not None:
            _restore_git_head(context.root, head_ref_path, previous_head)
        raise McpError(
            "LOG_ERROR",
            "Activity log update failed; mutation rolled back.",
            {"path": target, "operation": operation},
        ) from exc
    return commit_sha


def _serialize(tasks: Iterable[TaskWithSource]) -> list[dict[str, Any]]:
    return [task.to_dict() for task in tasks]


def _window(today: date, days_back: int) -> dict[str, str]:
    return {
        "start": date.fromordinal(today.toordinal() - days_back).isoformat(),
        "end": today.isoformat(),
    }
