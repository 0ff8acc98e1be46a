"""Configuration loading for the task service and the vault it serves."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from cadence.notes import NOTE_TYPES

VAULT_SETTINGS_PATH = Path(".cadence") / "config.json"

DEFAULT_NOTE_PATHS: dict[str, str] = {
    "daily": "Journal/{year}/Daily/{month}/{date}.md",
    "weekly": "Journal/{year}/Weekly/W{week}.md",
    "monthly": "Journal/{year}/Monthly/{month}.md",
    "quarterly": "Journal/{year}/Quarterly/Q{quarter}.md",
    "yearly": "Journal/{year}/Year.md",
}

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class ConfigError(RuntimeError):
    """Raised when required configuration is missing or invalid."""


@dataclass(frozen=True)
class AppConfig:
    vault_path: Path
    service_token: str | None
    git_enabled: bool = True
    log_level: str = "WARNING"
    read_workers: int = 8


@dataclass(frozen=True)
class VaultSettings:
    """Per-vault settings read from ``.cadence/config.json``."""

    note_paths: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_NOTE_PATHS))
    tasks_section: str = "## Tasks"
    scan_days_back: int = 7
    stale_after_days: int = 14
    rollover_enabled: bool = True


def _read_dotenv_value(dotenv_path: Path, key: str) -> str | None:
    """Read a single key from a .env file without mutating the environment."""
    if not dotenv_path.is_file():
        return None
    try:
        content = dotenv_path.read_text(encoding="utf-8")
    except OSError:
        return None

    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped.startswith("export "):
            stripped = stripped[len("export ") :].strip()
        if "=" not in stripped:
            continue
        name, value = stripped.split("=", 1)
        if name.strip() != key:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        return value or None
    return None


def _read_setting(dotenv_path: Path, key: str) -> str | None:
    value = os.environ.get(key)
    if value is None:
        value = _read_dotenv_value(dotenv_path, key)
    return value


def _read_bool(raw_value: str | None, *, default: bool, key: str) -> bool:
    if raw_value is None:
        return default
    normalized = raw_value.strip().lower()
    if not normalized:
        return default
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ConfigError(f"{key} must be a boolean value.")


def _read_int(raw_value: str | None, *, default: int, key: str) -> int:
    if raw_value is None or not raw_value.strip():
        return default
    try:
        value = int(raw_value.strip())
    except ValueError:
        raise ConfigError(f"{key} must be a positive integer.") from None
    if value <= 0:
        raise ConfigError(f"{key} must be a positive integer.")
    return value


def load_config() -> AppConfig:
    """Load service configuration from the environment, then ``./.env``."""
    dotenv_path = Path.cwd() / ".env"

    raw_path = (_read_setting(dotenv_path, "CADENCE_VAULT_PATH") or "").strip()
    if not raw_path:
        raise ConfigError(
            "CADENCE_VAULT_PATH is required; set it to the vault root path."
        )

    service_token = _read_setting(dotenv_path, "CADENCE_SERVICE_TOKEN")
    service_token = service_token.strip() if isinstance(service_token, str) else None

    log_level = (_read_setting(dotenv_path, "CADENCE_LOG_LEVEL") or "WARNING").strip().upper()
    if log_level not in _LOG_LEVELS:
        raise ConfigError(
            f"CADENCE_LOG_LEVEL must be one of {', '.join(sorted(_LOG_LEVELS))}."
        )

    return AppConfig(
        vault_path=Path(raw_path).resolve(),
        service_token=service_token or None,
        git_enabled=_read_bool(
            _read_setting(dotenv_path, "CADENCE_GIT_ENABLED"),
            default=True,
            key="CADENCE_GIT_ENABLED",
        ),
        log_level=log_level,
        read_workers=_read_int(
            _read_setting(dotenv_path, "CADENCE_READ_WORKERS"),
            default=8,
            key="CADENCE_READ_WORKERS",
        ),
    )


def configure_logging(config: AppConfig) -> None:
    logging.getLogger("cadence").setLevel(config.log_level)


def load_vault_settings(vault_root: Path) -> VaultSettings:
    """Read ``.cadence/config.json`` under ``vault_root``; every key is optional."""
    settings_path = vault_root / VAULT_SETTINGS_PATH
    if not settings_path.is_file():
        return VaultSettings()
    try:
        data = json.loads(settings_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Vault settings could not be read: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError("Vault settings must be a JSON object.")

    paths = _section(data, "paths")
    note_paths = dict(DEFAULT_NOTE_PATHS)
    for note_type, pattern in paths.items():
        if note_type not in NOTE_TYPES:
            raise ConfigError(f"paths.{note_type} is not a known note type.")
        if not isinstance(pattern, str) or not pattern.strip():
            raise ConfigError(f"paths.{note_type} must be a non-empty string.")
        note_paths[note_type] = pattern

    sections = _section(data, "sections")
    tasks_section = sections.get("tasks", "## Tasks")
    if not isinstance(tasks_section, str) or not tasks_section.strip():
        raise ConfigError("sections.tasks must be a non-empty string.")

    tasks = _section(data, "tasks")
    return VaultSettings(
        note_paths=note_paths,
        tasks_section=tasks_section,
        scan_days_back=_settings_int(tasks, "scanDaysBack", 7),
        stale_after_days=_settings_int(tasks, "staleAfterDays", 14),
        rollover_enabled=_settings_bool(tasks, "rolloverEnabled", True),
    )


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name, {})
    if not isinstance(value, dict):
        raise ConfigError(f"{name} must be an object.")
    return value


def _settings_int(section: dict[str, Any], key: str, default: int) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(f"tasks.{key} must be a non-negative integer.")
    return value


def _settings_bool(section: dict[str, Any], key: str, default: bool) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"tasks.{key} must be a boolean.")
    return value
