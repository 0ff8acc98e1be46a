"""Single-line, read-modify-write edits of task lines in a note."""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Callable, Mapping, Sequence

from cadence.errors import (
    LineOutOfRangeError,
    McpError,
    NoteNotFoundError,
    NotATaskError,
    StaleTaskError,
)
from cadence.fs import NoteFileSystem
from cadence.mcp_utils import _detect_line_ending, _join_keep_breaks, _split_keep_breaks
from cadence.task_models import METADATA_FIELDS, PRIORITIES, NewTask, Task
from cadence.task_parser import (
    CHECKBOX_PATTERN,
    PRIORITY_PATTERN,
    TAG_REMOVAL_PATTERN,
    TaskParser,
)

DEFAULT_TASKS_SECTION = "## Tasks"

_DATE_TOKEN_PATTERNS = {
    key: re.compile(rf"{key}:\S+", re.IGNORECASE)
    for key in ("due", "scheduled", "created")
}
_AGE_TOKEN_PATTERN = re.compile(r"age:\d+", re.IGNORECASE)
_HEADING_PATTERN = re.compile(r"^(#{1,6})\s")
_PRIORITY_MARK_REMOVAL_PATTERN = re.compile(r"\s*(?<!\S)!{1,3}(?!\S)")
_TAG_NAME_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


class TaskModifier:
    """Toggle, add and re-tag tasks without disturbing the rest of the note.

    Every operation reads one file, changes at most one line (or inserts one
    new line) and writes the file back. Line-addressed operations fail loudly
    when the note is missing, the line is out of range, the line is no longer
    a checkbox, or an expected fingerprint no longer matches.
    """

    def __init__(
        self,
        fs: NoteFileSystem,
        parser: TaskParser | None = None,
        *,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self.fs = fs
        self.parser = parser or TaskParser()
        self.clock = clock

    def toggle_task(self, path: str, line: int, fingerprint: str | None = None) -> Task:
        lines, breaks, task, match = self._load_task_line(path, line, fingerprint)
        box = match.start(2)
        mark = " " if task.completed else "x"
        new_line = task.raw[:box] + mark + task.raw[box + 1 :]

        lines[line - 1] = new_line
        self.fs.write_text(path, _join_keep_breaks(lines, breaks))
        return self._reparse(new_line, line)

    def update_metadata(
        self,
        path: str,
        line: int,
        updates: Mapping[str, Any],
        fingerprint: str | None = None,
    ) -> Task:
        unknown = sorted(set(updates) - METADATA_FIELDS)
        if unknown:
            raise McpError(
                "UNKNOWN_FIELD",
                "Unknown metadata fields are not allowed.",
                {"fields": unknown},
            )

        lines, breaks, task, match = self._load_task_line(path, line, fingerprint)
        body_start = match.start(3)
        new_body = apply_metadata_updates(match.group(3), updates)
        new_line = task.raw[:body_start] + new_body

        lines[line - 1] = new_line
        self.fs.write_text(path, _join_keep_breaks(lines, breaks))
        return self._reparse(new_line, line)

    def add_task(
        self, path: str, new_task: NewTask, section: str = DEFAULT_TASKS_SECTION
    ) -> Task:
        task_line = format_task_line(new_task, created=new_task.created or self.clock())
        content = self.fs.read_text(path) if self.fs.exists(path) else ""
        updated, line_number = insert_into_section(content, section, [task_line])
        self.fs.write_text(path, updated)
        return self._reparse(task_line, line_number)

    def _load_task_line(
        self, path: str, line: int, fingerprint: str | None
    ) -> tuple[list[str], list[str], Task, re.Match[str]]:
        if not self.fs.exists(path):
            raise NoteNotFoundError("Note does not exist.", {"path": path})

        lines, breaks = _split_keep_breaks(self.fs.read_text(path))
        if line < 1 or line > len(lines):
            raise LineOutOfRangeError(
                f"Line {line} is out of range (1-{len(lines)}).",
                {"path": path, "line": line, "lineCount": len(lines)},
            )

        match = CHECKBOX_PATTERN.match(lines[line - 1])
        task = self.parser.parse_line(lines[line - 1], line)
        if task is None or match is None:
            raise NotATaskError(
                f"Line {line} is not a task.",
                {"path": path, "line": line, "content": lines[line - 1]},
            )
        if fingerprint is not None and fingerprint != task.fingerprint:
            raise StaleTaskError(
                "Task line changed since it was read.",
                {
                    "path": path,
                    "line": line,
                    "expected": fingerprint,
                    "actual": task.fingerprint,
                },
            )
        return lines, breaks, task, match

    def _reparse(self, raw: str, line: int) -> Task:
        task = self.parser.parse_line(raw, line)
        if task is None:
            raise McpError(
                "INVALID_TASK_TEXT",
                "Rewritten line is not a task.",
                {"line": line, "content": raw},
            )
        return task


def format_task_line(task: NewTask, created: date | None = None) -> str:
    """Render a checkbox line using only syntax :class:`TaskParser` reads back."""
    text = task.text.strip() if isinstance(task.text, str) else ""
    if not text or "\n" in text or "\r" in text:
        raise McpError(
            "INVALID_TASK_TEXT",
            "Task text must be a non-empty single line.",
            {"text": str(task.text)},
        )
    _validate_priority(task.priority)
    tags = validate_tags(task.tags)

    parts = [f"- [{'x' if task.completed else ' '}] {text}"]
    created = task.created or created
    if created is not None:
        parts.append(f"created:{created.isoformat()}")
    if task.due is not None:
        parts.append(f"due:{task.due.isoformat()}")
    if task.scheduled is not None:
        parts.append(f"scheduled:{task.scheduled.isoformat()}")
    if task.priority:
        parts.append(f"priority:{task.priority}")
    if task.age is not None:
        parts.append(f"age:{task.age}")
    parts.extend(f"#{tag}" for tag in tags)
    return " ".join(parts)


def apply_metadata_updates(body: str, updates: Mapping[str, Any]) -> str:
    """Set (value) or clear (``None``) metadata tokens inside a task body."""
    for key in ("due", "scheduled", "created"):
        if key in updates:
            body = _set_token(
                body, _DATE_TOKEN_PATTERNS[key], key, _format_date(key, updates[key])
            )

    if "age" in updates:
        age = updates["age"]
        if age is not None and (
            not isinstance(age, int) or isinstance(age, bool) or age < 0
        ):
            raise McpError(
                "INVALID_TYPE",
                "age must be a non-negative integer.",
                {"age": str(age)},
            )
        body = _set_token(body, _AGE_TOKEN_PATTERN, "age", None if age is None else str(age))

    if "priority" in updates:
        priority = updates["priority"]
        _validate_priority(priority)
        body = _PRIORITY_MARK_REMOVAL_PATTERN.sub("", body)
        body = _set_token(body, PRIORITY_PATTERN, "priority", priority)

    if "tags" in updates:
        tags = validate_tags(updates["tags"] or ())
        body = TAG_REMOVAL_PATTERN.sub("", body)
        if tags:
            body = body.rstrip() + " " + " ".join(f"#{tag}" for tag in tags)

    return body.strip()


def insert_into_section(
    content: str, section: str, new_lines: Sequence[str]
) -> tuple[str, int]:
    """Append ``new_lines`` at the end of ``section`` and return the new content.

    The section runs from its heading to the next heading of the same or a
    higher level. Lines go after the last non-blank line of the section. A
    missing heading is appended at the end of the note first. The second
    value is the 1-indexed line number of the first inserted line.
    """
    ending = _detect_line_ending(content)
    if content:
        lines, breaks = _split_keep_breaks(content)
        rows = list(zip(lines, breaks + [""]))
    else:
        rows = []

    header_index = _find_section(rows, section)
    if header_index is None:
        trailing: list[tuple[str, str]] = []
        if rows and rows[-1] == ("", ""):
            trailing = [rows.pop()]
        if rows:
            rows[-1] = (rows[-1][0], rows[-1][1] or ending)
            if rows[-1][0].strip():
                rows.append(("", ending))
        rows.append((section.strip(), ending))
        position = len(rows)
        rows.extend((line, ending) for line in new_lines)
        rows.extend(trailing or [("", "")])
    else:
        end = _section_end(rows, header_index)
        position = header_index + 1
        for index in range(end - 1, header_index, -1):
            if rows[index][0].strip():
                position = index + 1
                break
        inserted = [(line, ending) for line in new_lines]
        if position == len(rows):
            rows[-1] = (rows[-1][0], rows[-1][1] or ending)
            inserted[-1] = (inserted[-1][0], "")
        rows[position:position] = inserted

    return "".join(line + brk for line, brk in rows), position + 1


def _find_section(rows: list[tuple[str, str]], section: str) -> int | None:
    wanted = section.strip().lower()
    for index, (line, _brk) in enumerate(rows):
        if line.strip().lower() == wanted:
            return index
    return None


def _section_end(rows: list[tuple[str, str]], header_index: int) -> int:
    heading = _HEADING_PATTERN.match(rows[header_index][0].strip())
    if heading is None:
        return len(rows)
    level = len(heading.group(1))
    for index in range(header_index + 1, len(rows)):
        other = _HEADING_PATTERN.match(rows[index][0])
        if other is not None and len(other.group(1)) <= level:
            return index
    return len(rows)


def _set_token(
    body: str, pattern: re.Pattern[str], key: str, value: str | None
) -> str:
    if value is None:
        return re.sub(rf"\s*{pattern.pattern}", "", body, flags=re.IGNORECASE)
    replacement = f"{key}:{value}"
    if pattern.search(body):
        return pattern.sub(lambda _match: replacement, body, count=1)
    return f"{body.rstrip()} {replacement}"


def _format_date(key: str, value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    raise McpError(
        "INVALID_DATE",
        f"{key} must be a date.",
        {key: str(value)},
    )


def validate_tags(tags: Any) -> tuple[str, ...]:
    """Return tag names without ``#``; each must be a whole tag to the parser."""
    if not isinstance(tags, (list, tuple)) or not all(isinstance(tag, str) for tag in tags):
        raise McpError(
            "INVALID_TYPE",
            "tags must be a list of strings.",
            {"tags": str(tags)},
        )
    names = tuple(tag.strip().lstrip("#") for tag in tags)
    invalid = [tag for tag, name in zip(tags, names) if not _TAG_NAME_PATTERN.fullmatch(name)]
    if invalid:
        raise McpError(
            "INVALID_TAG",
            "tags may only contain letters, digits, underscores and hyphens.",
            {"tags": invalid},
        )
    return names


def _validate_priority(priority: Any) -> None:
    if priority is not None and priority not in PRIORITIES:
        raise McpError(
            "INVALID_PRIORITY",
            "priority must be one of high, medium, or low.",
            {"priority": str(priority)},
        )
