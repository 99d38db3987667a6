"""Database bootstrap helpers for change-data-capture integration tests."""

from __future__ import annotations

from .config import (
    DEFAULTS,
    ConfigurationError,
    PK_FIELD,
    ConnectionConfig,
    connector_properties,
    load_config,
    resolve,
    topic_name,
)
from .connections import (
    DatabaseConnectionError,
    PlainSession,
    ReplicationSession,
    SessionClosedError,
    SessionFactory,
    create,
    create_for_replication,
)
from .executor import ROLLBACK_SENTINEL, StatementExecutionError, StatementExecutor, execute
from .fixtures import (
    DirectoryResourceLoader,
    FixtureLoader,
    FixtureNotFoundError,
    PackageResourceLoader,
    execute_ddl,
)
from .identifiers import quote_identifier
from .models import ReplicationSlotOptions
from .schemas import PUBLIC_SCHEMA_NAME, SchemaReset, drop_schemas_script, reset_all_schemas, schema_names

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "ConnectionConfig",
    "DEFAULTS",
    "DatabaseConnectionError",
    "DirectoryResourceLoader",
    "FixtureLoader",
    "FixtureNotFoundError",
    "PK_FIELD",
    "PUBLIC_SCHEMA_NAME",
    "PackageResourceLoader",
    "PlainSession",
    "ROLLBACK_SENTINEL",
    "ReplicationSession",
    "ReplicationSlotOptions",
    "SchemaReset",
    "SessionClosedError",
    "SessionFactory",
    "StatementExecutionError",
    "StatementExecutor",
    "connector_properties",
    "create",
    "create_for_replication",
    "drop_schemas_script",
    "execute",
    "execute_ddl",
    "load_config",
    "quote_identifier",
    "reset_all_schemas",
    "resolve",
    "schema_names",
    "topic_name",
    "__version__",
]
