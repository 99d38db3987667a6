"""Connection configuration resolution for integration tests."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

import tomllib

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

LOG = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CDC_TESTKIT_CONFIG"
ENV_PREFIX = "DATABASE_"
PK_FIELD = "pk"

DEFAULTS: Mapping[str, object] = MappingProxyType(
    {
        "host": "localhost",
        "port": 5432,
        "database": "postgres",
        "user": "postgres",
        "password": "postgres",
        "server_name": "test_server",
        "drop_slot_on_stop": True,
        "status_update_interval_ms": 100,
    }
)

_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "hostname": "host",
        "dbname": "database",
        "server.name": "server_name",
        "slot.drop_on_stop": "drop_slot_on_stop",
        "slot.drop.on.stop": "drop_slot_on_stop",
        "status.update.interval.ms": "status_update_interval_ms",
    }
)

_NAMESPACES = ("database.", "database_")


class ConfigurationError(ValueError):
    """Raised when an override cannot be coerced to its field's type."""


class ConnectionConfig(BaseModel):
    """Fully resolved connection settings; every field is always populated."""

    model_config = ConfigDict(frozen=True)

    host: str
    port: int
    database: str
    user: str
    password: str
    server_name: str
    drop_slot_on_stop: bool
    status_update_interval_ms: int

    @field_validator("host", "database", "user", "password", "server_name", mode="before")
    @classmethod
    def _as_text(cls, value: object) -> object:
        if value is None:
            return value
        return str(value)


def resolve(overrides: Mapping[str, object] | None = None) -> ConnectionConfig:
    """Layer ``overrides`` over :data:`DEFAULTS`.

    Keys are matched case-insensitively, with or without the ``database.``
    namespace, and the connector's own property names are accepted as aliases.
    Blank values count as absent. When a canonical name and an alias both set
    the same field, the canonical name wins. A value that cannot be coerced to
    its field's type raises :class:`ConfigurationError`.
    """

    values = _canonicalize(overrides or {})
    for field, default in DEFAULTS.items():
        values.setdefault(field, default)
    try:
        return ConnectionConfig(**values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid connection settings: {exc}") from exc


def overrides_from_environ(
    environ: Mapping[str, str] | None = None,
    prefix: str = ENV_PREFIX,
) -> dict[str, str]:
    """Collect the namespaced overrides (``DATABASE_HOST`` and friends)."""

    source = os.environ if environ is None else environ
    overrides: dict[str, str] = {}
    for name, value in source.items():
        if not name.upper().startswith(prefix.upper()):
            continue
        key = name[len(prefix):].lower()
        if key:
            overrides[key] = value
    return overrides


def load_config(path: Path | None = None, environ: Mapping[str, str] | None = None) -> ConnectionConfig:
    """Resolve config from an optional TOML file, then the environment, then defaults."""

    env = os.environ if environ is None else environ
    if path is None and env.get(CONFIG_ENV_VAR):
        path = Path(env[CONFIG_ENV_VAR])
    overrides: dict[str, object] = {}
    if path is not None:
        overrides.update(_canonicalize(_read_config_file(path)))
    overrides.update(_canonicalize(overrides_from_environ(env)))
    return resolve(overrides)


def connector_properties(config: ConnectionConfig | None = None) -> dict[str, object]:
    """Flat connector settings for a test that starts the CDC connector."""

    config = config or load_config()
    return {
        "database.hostname": config.host,
        "database.port": config.port,
        "database.dbname": config.database,
        "database.user": config.user,
        "database.password": config.password,
        "database.server.name": config.server_name,
        "slot.drop_on_stop": config.drop_slot_on_stop,
        "status.update.interval.ms": config.status_update_interval_ms,
    }


def topic_name(suffix: str, config: ConnectionConfig | None = None) -> str:
    """Topic the connector publishes ``suffix`` (``schema.table``) changes to."""

    server_name = config.server_name if config is not None else DEFAULTS["server_name"]
    return f"{server_name}.{suffix}"


def _canonicalize(overrides: Mapping[str, object]) -> dict[str, object]:
    aliased: dict[str, object] = {}
    canonical: dict[str, object] = {}
    for key, value in overrides.items():
        name = _strip_namespace(key)
        field = _ALIASES.get(name, name)
        if field not in DEFAULTS:
            LOG.debug("Ignoring unrecognized config key %r", key)
            continue
        if value is None or (isinstance(value, str) and not value.strip()):
            LOG.debug("Ignoring empty value for config key %r", key)
            continue
        (canonical if field == name else aliased)[field] = value
    return {**aliased, **canonical}


def _strip_namespace(key: str) -> str:
    name = key.strip().lower()
    for namespace in _NAMESPACES:
        if name.startswith(namespace):
            return name[len(namespace):]
    return name


def _read_config_file(path: Path) -> dict[str, object]:
    try:
        with path.open("rb") as handle:
            raw = tomllib.load(handle)
    except FileNotFoundError:
        LOG.debug("Config file %s not found; using environment and defaults", path)
        return {}
    except (tomllib.TOMLDecodeError, OSError) as exc:
        LOG.warning("Ignoring unreadable config file %s: %s", path, exc)
        return {}
    section = raw.get("database")
    if not isinstance(section, dict):
        return {}
    return {str(key): value for key, value in section.items()}


__all__ = [
    "CONFIG_ENV_VAR",
    "ConfigurationError",
    "ConnectionConfig",
    "DEFAULTS",
    "ENV_PREFIX",
    "PK_FIELD",
    "connector_properties",
    "load_config",
    "overrides_from_environ",
    "resolve",
    "topic_name",
]
