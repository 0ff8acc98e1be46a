"""Tool handler registration."""

# ruff: noqa: F401

from __future__ import annotations

from fastapi import FastAPI

from cadence.mcp_router import mcp_router

# Import modules to register routes with the shared router.
from cadence import mcp_activity, mcp_tasks, mcp_tools_endpoint

# Re-export endpoints for tests and direct imports.
from cadence.mcp_activity import ACTIVITY_LOG_FILENAME, read_activity_log
from cadence.mcp_git import _read_head_state, _resolve_git_head
from cadence.mcp_tasks import (
    add_task,
    aggregate_tasks,
    get_open_tasks,
    get_overdue_tasks,
    rollover_tasks,
    toggle_task,
    update_task_metadata,
)
from cadence.mcp_tools_endpoint import list_tool_schemas


def register_mcp_handlers(app: FastAPI) -> None:
    """Attach tool routes to the FastAPI application."""
    app.include_router(mcp_router)
