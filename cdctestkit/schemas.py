"""Schema discovery and bulk teardown between tests."""

from __future__ import annotations

import logging
import os
from typing import Iterable

from .config import ConnectionConfig, load_config
from .connections import SessionFactory
from .executor import StatementExecutor
from .identifiers import quote_identifier

LOG = logging.getLogger(__name__)

PUBLIC_SCHEMA_NAME = "public"
SYSTEM_SCHEMAS = frozenset({"pg_catalog", "information_schema"})
SYSTEM_SCHEMA_PREFIX = "pg_"


def is_system_schema(name: str) -> bool:
    """Catalog schemas plus the server's ``pg_*`` toast and temp schemas."""

    return name in SYSTEM_SCHEMAS or name.startswith(SYSTEM_SCHEMA_PREFIX)


def drop_schemas_script(names: Iterable[str]) -> str:
    """One ``DROP SCHEMA ... CASCADE`` per distinct name, always including public."""

    targets = set(names)
    targets.add(PUBLIC_SCHEMA_NAME)
    return os.linesep.join(
        f"DROP SCHEMA IF EXISTS {quote_identifier(name)} CASCADE;" for name in sorted(targets)
    )


class SchemaReset:
    """Drops every user schema so each test starts from an empty database."""

    def __init__(
        self,
        factory: SessionFactory | None = None,
        executor: StatementExecutor | None = None,
        *,
        config: ConnectionConfig | None = None,
        recreate_default: bool = True,
    ) -> None:
        self._factory = factory or SessionFactory()
        self._executor = executor or StatementExecutor(self._factory, config=config)
        self._config = config
        self._recreate_default = recreate_default

    def schema_names(self) -> set[str]:
        """Names of all non-system schemas visible to the configured user."""

        with self._factory.open_plain(self._config or load_config()) as session:
            return session.read_schema_names(lambda name: not is_system_schema(name))

    def reset_all_schemas(self) -> set[str]:
        """Drop every non-system schema (and public); returns the dropped names."""

        names = self.schema_names()
        names.add(PUBLIC_SCHEMA_NAME)
        script = drop_schemas_script(names)
        if self._recreate_default:
            script += os.linesep + f"CREATE SCHEMA IF NOT EXISTS {quote_identifier(PUBLIC_SCHEMA_NAME)};"
        self._executor.execute(script)
        LOG.info("Dropped %d schema(s): %s", len(names), ", ".join(sorted(names)))
        return names


def schema_names(config: ConnectionConfig | None = None) -> set[str]:
    return SchemaReset(config=config).schema_names()


def reset_all_schemas(config: ConnectionConfig | None = None) -> set[str]:
    """Drop all non-system schemas from the default database."""

    return SchemaReset(config=config).reset_all_schemas()


__all__ = [
    "PUBLIC_SCHEMA_NAME",
    "SYSTEM_SCHEMAS",
    "SchemaReset",
    "drop_schemas_script",
    "is_system_schema",
    "reset_all_schemas",
    "schema_names",
]
