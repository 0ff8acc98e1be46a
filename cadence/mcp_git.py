"""Git helpers for task endpoints."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping

from dulwich import porcelain
from dulwich.repo import Repo

from cadence.errors import McpError
from cadence.mcp_utils import _atomic_write

logger = logging.getLogger(__name__)


def _resolve_git_head(vault_root: Path) -> str | None:
    return _read_head_state(vault_root)[1]


def _read_head_state(vault_root: Path) -> tuple[Path | None, str | None]:
    git_dir = vault_root / ".git"
    head_path = git_dir / "HEAD"
    if not head_path.exists():
        return None, None

    try:
        head_contents = head_path.read_text(encoding="utf-8").strip()
    except OSError:
        return None, None

    if head_contents.startswith("ref:"):
        ref_name = head_contents.partition("ref:")[2].strip()
        if not ref_name:
            return None, None
        ref_path = git_dir / ref_name
        if ref_path.exists():
            try:
                return (
                    ref_path,
                    ref_path.read_text(encoding="utf-8").strip() or None,
                )
            except OSError:
                return ref_path, None
        return ref_path, _lookup_packed_ref(git_dir / "packed-refs", ref_name)

    return None, head_contents or None


def _restore_git_head(
    vault_root: Path,
    ref_path: Path | None,
    previous_head: str | None,
) -> None:
    head_path = vault_root / ".git" / "HEAD"

    if ref_path is None:
        if previous_head is None or not head_path.exists():
            return
        try:
            head_path.write_text(f"{previous_head}\n", encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not restore detached HEAD: %s", exc)
        return

    try:
        if previous_head is None:
            if ref_path.exists():
                ref_path.unlink()
        else:
            ref_path.parent.mkdir(parents=True, exist_ok=True)
            ref_path.write_text(f"{previous_head}\n", encoding="utf-8")
    except OSError as exc:
        logger.warning("Could not restore %s: %s", ref_path, exc)


def _ensure_git_repo(vault_root: Path) -> Repo:
    git_dir = vault_root / ".git"
    try:
        if git_dir.exists():
            return Repo(str(vault_root))
        return porcelain.init(str(vault_root))
    except Exception as exc:
        raise McpError(
            "GIT_ERROR",
            "Git repository could not be initialized.",
            {"path": str(vault_root)},
        ) from exc


def _commit_note_changes(
    repo: Repo,
    relative_paths: list[str],
    operation: str,
    target: str,
) -> str:
    repo.get_worktree().stage(relative_paths)
    commit_sha = porcelain.commit(repo, message=f"{operation}: {target}")
    if isinstance(commit_sha, bytes):
        return commit_sha.decode("ascii")
    return str(commit_sha)


def _rollback_note_changes(
    repo: Repo | None,
    vault_root: Path,
    originals: Mapping[str, str | None],
) -> None:
    """Put every touched note back; notes that did not exist are removed."""
    for relative_path, original in originals.items():
        target_path = vault_root / relative_path
        if original is None:
            try:
                if target_path.exists():
                    target_path.unlink()
            except OSError as exc:
                logger.warning("Could not remove %s during rollback: %s", relative_path, exc)
        else:
            _atomic_write(target_path, original)

    if repo is None:
        return
    try:
        repo.get_worktree().stage(list(originals))
    except Exception as exc:
        logger.warning("Could not restage rolled back notes: %s", exc)


def _lookup_packed_ref(packed_refs: Path, ref_name: str) -> str | None:
    if not packed_refs.exists():
        return None
    try:
        contents = packed_refs.read_text(encoding="utf-8")
    except OSError:
        return None

    for line in contents.splitlines():
        if not line or line.startswith("#") or line.startswith("^"):
            continue
        sha, _, name = line.partition(" ")
        if name.strip() == ref_name:
            return sha
    return None
