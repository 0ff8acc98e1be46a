"""Request-scoped vault root, settings and collaborators."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from fastapi import Request

from cadence.config import ConfigError, VaultSettings, load_vault_settings
from cadence.errors import McpError
from cadence.notes import PathPatternLocator
from cadence.task_aggregator import DEFAULT_READ_WORKERS

SERVICE_TOKEN_HEADER = "X-Cadence-Service-Token"
AUTH_EXEMPT_PATHS = {"/health"}


@dataclass(frozen=True)
class VaultContext:
    root: Path
    settings: VaultSettings
    locator: PathPatternLocator
    git_enabled: bool = True
    read_workers: int = DEFAULT_READ_WORKERS


def get_request_vault_root(request: Request) -> Path:
    """Resolve the vault root from the app config, falling back to app state."""
    config = getattr(request.app.state, "config", None)
    if config is not None and hasattr(config, "vault_path"):
        return Path(config.vault_path)
    return Path(request.app.state.vault_path)


def get_vault_context(request: Request) -> VaultContext:
    root = get_request_vault_root(request)
    if not root.is_dir():
        raise McpError(
            "VAULT_NOT_FOUND",
            "Vault root does not exist.",
            {"path": str(root)},
        )
    try:
        settings = load_vault_settings(root)
    except ConfigError as exc:
        raise McpError(
            "CONFIG_ERROR",
            "Vault settings are invalid.",
            {"error": str(exc)},
        ) from exc

    config = getattr(request.app.state, "config", None)
    return VaultContext(
        root=root,
        settings=settings,
        locator=PathPatternLocator(settings.note_paths),
        git_enabled=bool(getattr(config, "git_enabled", True)),
        read_workers=int(getattr(config, "read_workers", DEFAULT_READ_WORKERS)),
    )
