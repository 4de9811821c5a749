"""Configuration loading utilities for the dbdesk CLI suite."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import yaml

from . import paths
from .exceptions import ConfigurationError
from .models import ConnectionConfig

SUPPORTED_ENGINES = ("sqlite", "postgresql")
DEFAULT_PROBE_QUERY = "SELECT count(*) FROM sqlite_master"


@dataclass(frozen=True, slots=True)
class ConnectionSettings:
    """Defaults applied when opening connections."""

    read_only: bool
    require_existing_file: bool


@dataclass(frozen=True, slots=True)
class EncryptionSettings:
    """Encrypted database discovery settings."""

    enabled: bool
    probe_query: str


@dataclass(frozen=True, slots=True)
class DiffSettings:
    """Row comparison and sync script defaults."""

    page_size: int
    include_deletes: bool


@dataclass(frozen=True, slots=True)
class LoggingSettings:
    """Logging behaviour."""

    log_sql: bool


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Top-level application configuration."""

    source_path: Path
    connections: ConnectionSettings
    encryption: EncryptionSettings
    diff: DiffSettings
    logging: LoggingSettings
    profiles: Mapping[str, ConnectionConfig]

    def profile(self, name: str) -> ConnectionConfig:
        """Return the saved connection profile called ``name``."""
        try:
            return self.profiles[name]
        except KeyError as exc:
            available = ", ".join(sorted(self.profiles)) or "none"
            raise ConfigurationError(
                f"Connection profile '{name}' is not defined. Available profiles: {available}."
            ) from exc

    def connection_for_path(
        self,
        path: str | Path,
        *,
        password: str | None = None,
        read_only: bool | None = None,
    ) -> ConnectionConfig:
        """Build a SQLite connection config for an ad-hoc file path."""
        resolved = paths.resolve_path(path)
        return ConnectionConfig(
            type="sqlite",
            path=str(resolved),
            name=paths.display_name(resolved),
            password=password,
            read_only=self.connections.read_only if read_only is None else read_only,
        )


def _default_config() -> dict[str, Any]:
    return {
        "connections": {
            "read_only": False,
            "require_existing_file": True,
        },
        "encryption": {
            "enabled": True,
            "probe_query": DEFAULT_PROBE_QUERY,
        },
        "diff": {
            "page_size": 10000,
            "include_deletes": False,
        },
        "logging": {
            "log_sql": False,
        },
        "profiles": {},
    }


ENV_OVERRIDE_SPEC: dict[str, tuple[str, type]] = {
    "connections.read_only": ("DBDESK_READ_ONLY", bool),
    "connections.require_existing_file": ("DBDESK_REQUIRE_EXISTING_FILE", bool),
    "encryption.enabled": ("DBDESK_ENCRYPTION_ENABLED", bool),
    "diff.page_size": ("DBDESK_DIFF_PAGE_SIZE", int),
    "diff.include_deletes": ("DBDESK_DIFF_INCLUDE_DELETES", bool),
    "logging.log_sql": ("DBDESK_LOG_SQL", bool),
}


def load_config(
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load configuration from defaults, YAML file, and env overrides."""
    env = dict(env or os.environ)
    resolved_config_path = paths.config_path(config_path, env=env)
    file_data = _load_yaml(resolved_config_path)
    defaults = _default_config()
    merged: dict[str, Any] = _deep_merge(defaults, file_data)
    merged = _apply_env_overrides(merged, env)
    return _build_config(merged, resolved_config_path)


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
        if not isinstance(data, MutableMapping):
            raise ConfigurationError(f"Config file at {path} must define a mapping root object.")
        return dict(data)


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], Mapping) and isinstance(value, Mapping):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(config: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    config_copy = _deep_merge(config, {})  # shallow copy via merge
    for dotted_key, (env_key, expected_type) in ENV_OVERRIDE_SPEC.items():
        if env_key not in env:
            continue
        raw_value = env[env_key]
        try:
            value = _coerce_env_value(raw_value, expected_type)
        except ValueError as exc:
            raise ConfigurationError(
                f"Environment override {env_key} has invalid value '{raw_value}': {exc}"
            ) from exc
        _assign_nested(config_copy, dotted_key.split("."), value)
    return config_copy


def _coerce_env_value(raw: str, expected_type: type) -> Any:
    cleaned = raw.strip()
    if expected_type is bool:
        lowered = cleaned.lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
        raise ValueError("expected boolean (true/false)")
    if expected_type is int:
        return int(cleaned)
    return cleaned


def _assign_nested(target: MutableMapping[str, Any], keys: list[str], value: Any) -> None:
    current = target
    for key in keys[:-1]:
        if key not in current or not isinstance(current[key], MutableMapping):
            current[key] = {}
        current = current[key]  # type: ignore[assignment]
    current[keys[-1]] = value


def _build_profile(name: str, raw: Any, default_read_only: bool) -> ConnectionConfig:
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"Connection profile '{name}' must be a mapping.")
    engine = str(raw.get("type", "sqlite")).lower()
    if engine not in SUPPORTED_ENGINES:
        raise ConfigurationError(
            f"Connection profile '{name}' uses unsupported type '{engine}'. "
            f"Supported types: {', '.join(SUPPORTED_ENGINES)}."
        )
    path = raw.get("path")
    if engine == "sqlite" and not path:
        raise ConfigurationError(f"SQLite profile '{name}' requires a 'path'.")
    if engine != "sqlite" and not raw.get("host"):
        raise ConfigurationError(f"Profile '{name}' requires a 'host'.")
    port = raw.get("port")
    return ConnectionConfig(
        type=engine,
        path=str(paths.resolve_path(path)) if path else None,
        name=str(raw.get("name") or name),
        read_only=bool(raw.get("read_only", default_read_only)),
        host=str(raw["host"]) if raw.get("host") else None,
        port=int(port) if port is not None else None,
        database=str(raw["database"]) if raw.get("database") else None,
        username=str(raw["username"]) if raw.get("username") else None,
        ssl=bool(raw.get("ssl", False)),
    )


def _build_config(data: Mapping[str, Any], source_path: Path) -> AppConfig:
    try:
        connections = ConnectionSettings(
            read_only=bool(data["connections"]["read_only"]),
            require_existing_file=bool(data["connections"]["require_existing_file"]),
        )
        encryption = EncryptionSettings(
            enabled=bool(data["encryption"]["enabled"]),
            probe_query=str(data["encryption"]["probe_query"]),
        )
        diff = DiffSettings(
            page_size=int(data["diff"]["page_size"]),
            include_deletes=bool(data["diff"]["include_deletes"]),
        )
        logging = LoggingSettings(log_sql=bool(data["logging"]["log_sql"]))
        raw_profiles = data.get("profiles") or {}
        if not isinstance(raw_profiles, Mapping):
            raise ConfigurationError("'profiles' must be a mapping of name to connection settings.")
        profiles = {
            str(name): _build_profile(str(name), raw, connections.read_only)
            for name, raw in raw_profiles.items()
        }
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid configuration structure: {exc}") from exc

    if diff.page_size <= 0:
        raise ConfigurationError("diff.page_size must be a positive integer.")

    return AppConfig(
        source_path=source_path,
        connections=connections,
        encryption=encryption,
        diff=diff,
        logging=logging,
        profiles=profiles,
    )
