"""Vault file access used by the task components."""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Protocol

from cadence.mcp_utils import _atomic_write


class NoteFileSystem(Protocol):
    def exists(self, path: str) -> bool: ...

    def read_text(self, path: str) -> str: ...

    def write_text(self, path: str, content: str) -> None: ...


class LocalFileSystem:
    """Read and write vault-relative paths under ``root``.

    Reads return the exact decoded bytes (``\\r\\n`` is not translated) and
    writes go through a temp file and ``os.replace``.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def resolve(self, path: str) -> Path:
        return self.root.joinpath(*PurePosixPath(path.replace("\\", "/")).parts)

    def exists(self, path: str) -> bool:
        return self.resolve(path).is_file()

    def read_text(self, path: str) -> str:
        return self.resolve(path).read_bytes().decode("utf-8")

    def write_text(self, path: str, content: str) -> None:
        target = self.resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        _atomic_write(target, content)


class TrackingFileSystem:
    """Wrap a filesystem and remember what each written path held before.

    ``originals`` maps a path to its content before the first write, or
    ``None`` when the write created the file.
    """

    def __init__(self, inner: LocalFileSystem) -> None:
        self.inner = inner
        self.originals: dict[str, str | None] = {}

    @property
    def root(self) -> Path:
        return self.inner.root

    def exists(self, path: str) -> bool:
        return self.inner.exists(path)

    def read_text(self, path: str) -> str:
        return self.inner.read_text(path)

    def write_text(self, path: str, content: str) -> None:
        if path not in self.originals:
            self.originals[path] = (
                self.inner.read_text(path) if self.inner.exists(path) else None
            )
        self.inner.write_text(path, content)

    @property
    def written_paths(self) -> list[str]:
        return list(self.originals)
