"""Activity log helpers and endpoints."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from fastapi import Request

from cadence.errors import McpError, success_response
from cadence.mcp_payload import (
    _ensure_payload_dict,
    _read_optional_str,
    _reject_unknown_fields,
)
from cadence.mcp_router import mcp_router
from cadence.vault_scope import get_request_vault_root

ACTIVITY_LOG_FILENAME = "activity.log"
DEFAULT_ACTIVITY_LIMIT = 50


def _activity_log_path(vault_root: Path) -> Path:
    return vault_root / ACTIVITY_LOG_FILENAME


def _append_activity_log(vault_root: Path, entry: dict[str, Any]) -> None:
    payload = json.dumps(entry, sort_keys=True, separators=(",", ":"))
    with _activity_log_path(vault_root).open("a", encoding="utf-8") as log_file:
        log_file.write(payload + "\n")
        log_file.flush()
        os.fsync(log_file.fileno())


def _build_activity_entry(
    operation: str,
    relative_path: str,
    summary: str,
    commit_sha: str | None,
) -> dict[str, Any]:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "operation": operation,
        "path": relative_path,
        "summary": summary,
        "commitSha": commit_sha,
    }


def _iter_activity_entries(vault_root: Path) -> Iterator[dict[str, Any]]:
    """Yield logged entries in append order; unparseable lines are skipped."""
    log_path = _activity_log_path(vault_root)
    if not log_path.exists():
        return
    for line in log_path.read_text(encoding="utf-8").splitlines():
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(entry, dict):
            yield entry


def _entry_time(entry: dict[str, Any]) -> datetime | None:
    try:
        value = datetime.fromisoformat(entry.get("timestamp"))
    except (TypeError, ValueError):
        return None
    return _as_aware(value)


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _read_activity_entries(
    vault_root: Path,
    since: datetime | None,
    limit: int,
    operation: str | None = None,
) -> list[dict[str, Any]]:
    entries: list[dict[str, Any]] = []
    for entry in _iter_activity_entries(vault_root):
        if operation and entry.get("operation") != operation:
            continue
        if since:
            entry_time = _entry_time(entry)
            if entry_time and entry_time < since:
                continue
        entries.append(entry)
    return entries[-limit:]


@mcp_router.post("/tool:read_activity_log")
def read_activity_log(payload: dict[str, Any], request: Request) -> dict[str, Any]:
    """Read the most recent activity entries, oldest first."""
    payload = _ensure_payload_dict(payload)
    _reject_unknown_fields(payload, {"limit", "since", "operation"})

    limit = payload.get("limit", DEFAULT_ACTIVITY_LIMIT)
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise McpError(
            "INVALID_TYPE",
            "limit must be a positive integer.",
            {"limit": str(limit)},
        )

    since_value = payload.get("since")
    since = None
    if since_value is not None:
        try:
            since = _as_aware(datetime.fromisoformat(str(since_value)))
        except ValueError:
            raise McpError(
                "INVALID_DATE",
                "since must be an ISO date or date-time.",
                {"since": since_value},
            ) from None

    operation = _read_optional_str(payload, "operation")
    vault_root = get_request_vault_root(request)
    return success_response(
        {"entries": _read_activity_entries(vault_root, since, limit, operation)}
    )
