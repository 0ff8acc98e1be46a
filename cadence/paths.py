"""Path validation utilities for enforcing the vault boundary."""

from __future__ import annotations

from pathlib import Path, PurePosixPath

from cadence.errors import McpError
from cadence.task_models import TaskAddress

ALLOWED_MARKDOWN_EXTENSIONS = {".md", ".markdown"}


def validate_path(vault_root: Path, raw_path: str) -> Path:
    """Validate a user-supplied path and return a normalized absolute path."""
    if not isinstance(raw_path, str):
        raise McpError(
            "INVALID_TYPE",
            "Path must be a string.",
            {"path": str(raw_path), "type": type(raw_path).__name__},
        )

    candidate = PurePosixPath(raw_path.replace("\\", "/"))

    if candidate.is_absolute():
        raise McpError(
            "ABSOLUTE_PATH",
            "Absolute paths are not allowed.",
            {"path": raw_path},
        )

    if ".." in candidate.parts:
        raise McpError(
            "PATH_TRAVERSAL",
            "Path traversal is not allowed.",
            {"path": raw_path},
        )

    if _contains_symlink(vault_root, candidate):
        raise McpError(
            "PATH_SYMLINK",
            "Symlinked paths are not allowed.",
            {"path": raw_path},
        )

    return vault_root.joinpath(*candidate.parts)


def validate_note_path(vault_root: Path, raw_path: str) -> str:
    """Validate a markdown note path and return it as a vault-relative POSIX path."""
    resolved = validate_path(vault_root, raw_path)
    if resolved.suffix.lower() not in ALLOWED_MARKDOWN_EXTENSIONS:
        raise McpError(
            "NOT_MARKDOWN",
            "Only markdown notes can hold tasks.",
            {"path": raw_path},
        )
    return resolved.relative_to(vault_root).as_posix()


def parse_task_address(vault_root: Path, address: str) -> TaskAddress:
    """Parse ``"<path>:<line>"``, splitting on the last colon."""
    if not isinstance(address, str):
        raise McpError(
            "INVALID_TYPE",
            "address must be a string.",
            {"address": str(address)},
        )
    path, separator, line_text = address.rpartition(":")
    if not separator or not path.strip():
        raise McpError(
            "INVALID_ADDRESS",
            "address must look like <path>:<line>.",
            {"address": address},
        )
    if not (line_text.isascii() and line_text.isdigit()) or int(line_text) < 1:
        raise McpError(
            "INVALID_ADDRESS",
            "address line must be a positive integer.",
            {"address": address},
        )
    return TaskAddress(path=validate_note_path(vault_root, path.strip()), line=int(line_text))


def _contains_symlink(vault_root: Path, relative_path: PurePosixPath) -> bool:
    current = vault_root
    for segment in relative_path.parts:
        current = current / segment
        if current.is_symlink():
            return True
    return False
