"""Shared filesystem and text helpers for tool endpoints."""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path

_LINE_BREAK_PATTERN = re.compile(r"(\r?\n)")


def _detect_line_ending(content: str) -> str:
    return "\r\n" if "\r\n" in content else "\n"


def _split_keep_breaks(content: str) -> tuple[list[str], list[str]]:
    """Split content into lines and the exact break that followed each one.

    ``lines`` has one more entry than ``breaks``; joining them back in turn
    reproduces ``content`` byte for byte, mixed line endings included.
    """
    parts = _LINE_BREAK_PATTERN.split(content)
    return parts[0::2], parts[1::2]


def _join_keep_breaks(lines: list[str], breaks: list[str]) -> str:
    chunks: list[str] = []
    for index, line in enumerate(lines):
        chunks.append(line)
        if index < len(breaks):
            chunks.append(breaks[index])
    return "".join(chunks)


def _atomic_write(target_path: Path, content: str) -> None:
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", newline="", dir=target_path.parent, delete=False
        ) as temp_file:
            temp_path = Path(temp_file.name)
            temp_file.write(content)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        os.replace(temp_path, target_path)
    finally:
        if temp_path is not None and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                pass
