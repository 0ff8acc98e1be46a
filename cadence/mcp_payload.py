"""Payload validation helpers for task endpoints."""

from __future__ import annotations

from datetime import date
from typing import Any

from cadence.dates import interpret_date
from cadence.errors import McpError
from cadence.notes import NOTE_TYPES
from cadence.task_models import PRIORITIES
from cadence.task_modifier import validate_tags


def _ensure_payload_dict(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise McpError(
            "INVALID_TYPE",
            "Payload must be an object.",
            {"type": type(payload).__name__},
        )
    return payload


def _reject_unknown_fields(payload: dict[str, Any], allowed_fields: set[str]) -> None:
    unknown_fields = sorted(set(payload) - allowed_fields)
    if unknown_fields:
        raise McpError(
            "UNKNOWN_FIELD",
            "Unknown fields are not allowed.",
            {"fields": unknown_fields},
        )


def _require_fields(payload: dict[str, Any], required_fields: list[str]) -> None:
    missing = [name for name in required_fields if name not in payload]
    if missing:
        raise McpError(
            "MISSING_FIELDS",
            f"{' and '.join(required_fields)} {'is' if len(required_fields) == 1 else 'are'} required.",
            {"fields": missing},
        )


def _read_non_negative_int(payload: dict[str, Any], key: str, default: int) -> int:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise McpError(
            "INVALID_TYPE",
            f"{key} must be a non-negative integer.",
            {key: str(value)},
        )
    return value


def _read_bool_field(payload: dict[str, Any], key: str, default: bool) -> bool:
    value = payload.get(key, default)
    if not isinstance(value, bool):
        raise McpError(
            "INVALID_TYPE",
            f"{key} must be a boolean.",
            {key: str(value)},
        )
    return value


def _read_optional_str(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise McpError(
            "INVALID_TYPE",
            f"{key} must be a string.",
            {key: str(value)},
        )
    return value


def _read_date(payload: dict[str, Any], key: str, today: date | None = None) -> date | None:
    """Read a date field; accepts anything the note date grammar accepts."""
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise McpError(
            "INVALID_TYPE",
            f"{key} must be a date string.",
            {key: str(value)},
        )
    parsed = interpret_date(value.strip(), today=today)
    if parsed is None:
        raise McpError(
            "INVALID_DATE",
            f"{key} must be a date such as YYYY-MM-DD.",
            {key: value},
        )
    return parsed


def _read_priority(payload: dict[str, Any], key: str = "priority") -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or value.lower() not in PRIORITIES:
        raise McpError(
            "INVALID_PRIORITY",
            "priority must be one of high, medium, or low.",
            {key: str(value)},
        )
    return value.lower()


def _read_tags(payload: dict[str, Any], key: str = "tags") -> tuple[str, ...]:
    value = payload.get(key)
    if value is None:
        return ()
    if not isinstance(value, list):
        raise McpError(
            "INVALID_TYPE",
            f"{key} must be a list of strings.",
            {key: str(value)},
        )
    return validate_tags(value)


def _read_note_types(payload: dict[str, Any], key: str = "note_types") -> tuple[str, ...]:
    value = payload.get(key)
    if value is None:
        return ("daily",)
    if (
        not isinstance(value, list)
        or not value
        or not all(isinstance(item, str) for item in value)
    ):
        raise McpError(
            "INVALID_TYPE",
            f"{key} must be a non-empty list of strings.",
            {key: str(value)},
        )
    unknown = sorted(set(value) - set(NOTE_TYPES))
    if unknown:
        raise McpError(
            "INVALID_NOTE_TYPE",
            f"{key} must only contain {', '.join(NOTE_TYPES)}.",
            {"noteTypes": unknown},
        )
    return tuple(dict.fromkeys(value))
