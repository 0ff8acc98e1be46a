"""Default interpreter for ``due:``/``scheduled:``/``created:`` token values."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from dateutil import parser as date_parser

DateInterpreter = Callable[[str], Optional[date]]

_WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)
_OFFSET_PATTERN = re.compile(r"^(?P<sign>[+-])(?P<count>\d+)(?P<unit>[dw])$", re.IGNORECASE)


def interpret_date(value: str, today: date | None = None) -> date | None:
    """Resolve a single metadata token to a calendar date.

    Returns ``None`` for anything that cannot be resolved; never raises.
    """
    if not isinstance(value, str):
        return None
    token = value.strip().lower()
    if not token:
        return None
    base = today or date.today()

    try:
        return date.fromisoformat(token)
    except ValueError:
        pass

    if token == "today":
        return base
    if token == "tomorrow":
        return base + timedelta(days=1)
    if token == "yesterday":
        return base - timedelta(days=1)
    if token in {"next-week", "nextweek"}:
        return base + timedelta(days=7)

    weekday = token.removeprefix("next-")
    if weekday in _WEEKDAYS:
        delta = (_WEEKDAYS.index(weekday) - base.weekday()) % 7
        return base + timedelta(days=delta or 7)

    offset = _OFFSET_PATTERN.match(token)
    if offset:
        days = int(offset.group("count")) * (7 if offset.group("unit") == "w" else 1)
        if offset.group("sign") == "-":
            days = -days
        try:
            return base + timedelta(days=days)
        except OverflowError:
            return None

    # dateutil fills missing parts from the default, so "01/20" lands in the base year.
    default = datetime(base.year, base.month, base.day)
    try:
        return date_parser.parse(token, default=default).date()
    except (ValueError, OverflowError):
        return None
