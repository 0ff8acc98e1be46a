"""Checkbox task parser for periodic note content."""

from __future__ import annotations

import re
from datetime import date

from cadence.dates import DateInterpreter, interpret_date
from cadence.task_models import Priority, Task, TaskMetadata

LINE_SPLIT_PATTERN = re.compile(r"\r?\n")
CHECKBOX_PATTERN = re.compile(r"^(\s*)[-*+]\s+\[([ xX])\]\s+(.*)$")

DUE_PATTERN = re.compile(r"due:(\S+)", re.IGNORECASE)
SCHEDULED_PATTERN = re.compile(r"scheduled:(\S+)", re.IGNORECASE)
CREATED_PATTERN = re.compile(r"created:(\S+)", re.IGNORECASE)
AGE_PATTERN = re.compile(r"age:(\d+)", re.IGNORECASE)
PRIORITY_PATTERN = re.compile(r"priority:(high|medium|low)", re.IGNORECASE)
TAG_PATTERN = re.compile(r"#([a-zA-Z0-9_-]+)")

HIGH_MARK_PATTERN = re.compile(r"(?:^|\s)!!!(?:\s|$)")
MEDIUM_MARK_PATTERN = re.compile(r"(?:^|\s)!!(?!!)(?:\s|$)")
LOW_MARK_PATTERN = re.compile(r"(?:^|\s)!(?!!)(?:\s|$)")

# Removal patterns consume the whitespace in front of each token so the
# surrounding words close up; the final collapse handles the rest.
TOKEN_REMOVAL_PATTERNS = (
    re.compile(r"\s*due:\S+", re.IGNORECASE),
    re.compile(r"\s*scheduled:\S+", re.IGNORECASE),
    re.compile(r"\s*created:\S+", re.IGNORECASE),
    re.compile(r"\s*age:\d+", re.IGNORECASE),
    re.compile(r"\s*priority:(?:high|medium|low)", re.IGNORECASE),
)
MARK_REMOVAL_PATTERNS = (
    re.compile(r"(?:^|\s)!!!(?=\s|$)"),
    re.compile(r"(?:^|\s)!!(?!!)(?=\s|$)"),
    re.compile(r"(?:^|\s)!(?!!)(?=\s|$)"),
)
TAG_REMOVAL_PATTERN = re.compile(r"\s*#[a-zA-Z0-9_-]+")
WHITESPACE_PATTERN = re.compile(r"\s+")


class TaskParser:
    """Parse markdown checkbox tasks and their inline metadata.

    Recognized lines look like ``- [ ] body``, ``* [x] body`` or
    ``+ [X] body``. Inside the body the parser understands ``due:``,
    ``scheduled:`` and ``created:`` dates, ``age:N``, ``priority:level`` or the
    ``!!!``/``!!``/``!`` shorthand, and ``#tags``.

    Parsing never raises: an unresolvable date leaves the field unset and a
    line that is not a checkbox is simply not a task.
    """

    def __init__(self, interpret: DateInterpreter | None = None) -> None:
        self._interpret = interpret or interpret_date

    def parse(self, content: str) -> list[Task]:
        tasks: list[Task] = []
        for index, line in enumerate(split_lines(content)):
            task = self.parse_line(line, index + 1)
            if task is not None:
                tasks.append(task)
        return tasks

    def parse_line(self, line: str, line_number: int) -> Task | None:
        match = CHECKBOX_PATTERN.match(line)
        if not match:
            return None

        body = match.group(3)
        return Task(
            line=line_number,
            text=clean_text(body),
            completed=match.group(2).lower() == "x",
            metadata=self.parse_metadata(body),
            raw=line,
        )

    def parse_metadata(self, body: str) -> TaskMetadata:
        age_match = AGE_PATTERN.search(body)
        return TaskMetadata(
            due=self._date_field(DUE_PATTERN, body),
            scheduled=self._date_field(SCHEDULED_PATTERN, body),
            created=self._date_field(CREATED_PATTERN, body),
            priority=parse_priority(body),
            tags=tuple(TAG_PATTERN.findall(body)),
            age=int(age_match.group(1)) if age_match else None,
        )

    def _date_field(self, pattern: re.Pattern[str], body: str) -> date | None:
        match = pattern.search(body)
        if not match:
            return None
        try:
            return self._interpret(match.group(1))
        except Exception:
            return None


def split_lines(content: str) -> list[str]:
    return LINE_SPLIT_PATTERN.split(content)


def parse_priority(body: str) -> Priority | None:
    keyword = PRIORITY_PATTERN.search(body)
    if keyword:
        return keyword.group(1).lower()  # type: ignore[return-value]
    if HIGH_MARK_PATTERN.search(body):
        return "high"
    if MEDIUM_MARK_PATTERN.search(body):
        return "medium"
    if LOW_MARK_PATTERN.search(body):
        return "low"
    return None


def strip_priority_marks(body: str) -> str:
    for pattern in MARK_REMOVAL_PATTERNS:
        body = pattern.sub(" ", body)
    return body


def clean_text(body: str) -> str:
    text = body
    for pattern in TOKEN_REMOVAL_PATTERNS:
        text = pattern.sub("", text)
    text = strip_priority_marks(text)
    text = TAG_REMOVAL_PATTERN.sub("", text)
    return WHITESPACE_PATTERN.sub(" ", text).strip()
