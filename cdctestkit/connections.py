"""Plain and replication sessions backed by asyncpg."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Coroutine, Self, TypeVar

import asyncpg

from .config import ConnectionConfig, load_config
from .identifiers import quote_identifier
from .models import ReplicationSlotOptions, SchemaPredicate

LOG = logging.getLogger(__name__)

T = TypeVar("T")


class DatabaseConnectionError(ConnectionError):
    """Raised when a session cannot be opened or the catalog cannot be read."""


class SessionClosedError(DatabaseConnectionError):
    """Raised when a closed session is asked to talk to the server."""


class _LoopThread:
    """Event loop running on a daemon thread; drives one session's connection."""

    def __init__(self, name: str) -> None:
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, name=name, daemon=True)
        self._thread.start()

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    def shutdown(self) -> None:
        if not self._loop.is_running():  # pragma: no cover - defensive
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=1)
        if not self._thread.is_alive():
            self._loop.close()


class _Session:
    """Exclusive handle on one connection; closed exactly once."""

    def __init__(self, connection: asyncpg.Connection, loop: _LoopThread, config: ConnectionConfig) -> None:
        self._connection = connection
        self._loop = loop
        self._config = config
        self._closed = False

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionClosedError(f"{type(self).__name__} is closed")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._loop.run(self._connection.close())
        finally:
            self._loop.shutdown()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class PlainSession(_Session):
    """Query/DDL session; auto-commit starts disabled, so a submit opens a transaction."""

    _SCHEMA_QUERY = "SELECT nspname FROM pg_catalog.pg_namespace ORDER BY nspname"

    _SLOT_QUERY = "SELECT slot_name FROM pg_catalog.pg_replication_slots WHERE slot_name = $1"

    _DROP_SLOT_QUERY = """
        SELECT pg_drop_replication_slot(slot_name)
        FROM pg_catalog.pg_replication_slots
        WHERE slot_name = $1
    """

    def __init__(self, connection: asyncpg.Connection, loop: _LoopThread, config: ConnectionConfig) -> None:
        super().__init__(connection, loop, config)
        self._auto_commit = False
        self._transaction: Any | None = None

    @property
    def auto_commit(self) -> bool:
        return self._auto_commit

    @property
    def in_transaction(self) -> bool:
        return self._transaction is not None

    def set_auto_commit(self, enabled: bool) -> None:
        """Toggle auto-commit; switching it back on commits the open transaction."""

        if enabled and self._transaction is not None:
            self.commit()
        self._auto_commit = enabled

    def submit(self, text: str) -> None:
        """Send ``text`` as one simple-protocol query (may hold many statements)."""

        self._ensure_open()
        LOG.debug("Submitting batch (%d chars, auto_commit=%s)", len(text), self._auto_commit)
        self._loop.run(self._submit(text))

    def commit(self) -> None:
        self._ensure_open()
        transaction, self._transaction = self._transaction, None
        if transaction is not None:
            self._loop.run(transaction.commit())

    def rollback(self) -> None:
        self._ensure_open()
        transaction, self._transaction = self._transaction, None
        if transaction is not None:
            self._loop.run(transaction.rollback())

    def read_schema_names(self, predicate: SchemaPredicate) -> set[str]:
        """Return the schema names accepted by ``predicate``."""

        self._ensure_open()
        try:
            rows = self._loop.run(self._connection.fetch(self._SCHEMA_QUERY))
        except Exception as exc:
            raise DatabaseConnectionError(f"Failed to read schema names: {exc}") from exc
        return {name for name in (str(row["nspname"]) for row in rows) if predicate(name)}

    def replication_slot_exists(self, slot_name: str) -> bool:
        self._ensure_open()
        try:
            rows = self._loop.run(self._connection.fetch(self._SLOT_QUERY, slot_name))
        except Exception as exc:
            raise DatabaseConnectionError(f"Failed to look up slot '{slot_name}': {exc}") from exc
        return bool(rows)

    def drop_replication_slot(self, slot_name: str) -> bool:
        """Drop ``slot_name`` if present; returns whether a slot was dropped."""

        self._ensure_open()
        try:
            rows = self._loop.run(self._connection.fetch(self._DROP_SLOT_QUERY, slot_name))
        except Exception as exc:
            raise DatabaseConnectionError(f"Failed to drop slot '{slot_name}': {exc}") from exc
        return bool(rows)

    async def _submit(self, text: str) -> None:
        if not self._auto_commit and self._transaction is None:
            transaction = self._connection.transaction()
            await transaction.start()
            self._transaction = transaction
        await self._connection.execute(text)


class ReplicationSession(_Session):
    """Replication-mode session bound to one logical decoding slot."""

    def __init__(
        self,
        connection: asyncpg.Connection,
        loop: _LoopThread,
        config: ConnectionConfig,
        options: ReplicationSlotOptions,
        factory: SessionFactory,
    ) -> None:
        super().__init__(connection, loop, config)
        self._options = options
        self._factory = factory
        self._slot_created = False

    @property
    def options(self) -> ReplicationSlotOptions:
        return self._options

    @property
    def slot_name(self) -> str:
        return self._options.slot_name

    @property
    def slot_created(self) -> bool:
        """True when this session created the slot rather than reusing one."""

        return self._slot_created

    def close(self) -> None:
        """Close the connection, dropping the slot first when the policy asks for it."""

        if self._closed:
            return
        dropped = False
        if self._options.drop_on_close:
            dropped = self._drop_in_session()
        try:
            super().close()
        finally:
            if self._options.drop_on_close and not dropped:
                self._drop_via_plain_session()

    def _create_slot(self) -> None:
        command = (
            f"CREATE_REPLICATION_SLOT {quote_identifier(self.slot_name)} "
            f"LOGICAL {self._options.plugin}"
        )
        try:
            self._loop.run(self._connection.execute(command))
        except asyncpg.exceptions.DuplicateObjectError:
            LOG.info("Reusing existing replication slot '%s'", self.slot_name)
            return
        self._slot_created = True
        LOG.info("Created replication slot '%s' (%s)", self.slot_name, self._options.plugin)

    def _drop_in_session(self) -> bool:
        command = f"DROP_REPLICATION_SLOT {quote_identifier(self.slot_name)}"
        try:
            self._loop.run(self._connection.execute(command))
        except Exception as exc:
            LOG.warning("Dropping slot '%s' on its own connection failed: %s", self.slot_name, exc)
            return False
        LOG.info("Dropped replication slot '%s'", self.slot_name)
        return True

    def _drop_via_plain_session(self) -> None:
        with self._factory.open_plain(self._config) as session:
            if session.drop_replication_slot(self.slot_name):
                LOG.info("Dropped replication slot '%s' via plain session", self.slot_name)


class SessionFactory:
    """Opens plain and replication sessions; never retries a failed handshake."""

    def open_plain(self, config: ConnectionConfig | None = None) -> PlainSession:
        config = config or load_config()
        loop = _LoopThread("cdctestkit-plain-session")
        connection = self._connect(loop, config)
        return PlainSession(connection, loop, config)

    def open_replication(
        self,
        options: ReplicationSlotOptions,
        config: ConnectionConfig | None = None,
    ) -> ReplicationSession:
        config = config or load_config()
        loop = _LoopThread("cdctestkit-replication-session")
        connection = self._connect(loop, config, server_settings={"replication": "database"})
        session = ReplicationSession(connection, loop, config, options, self)
        if options.create_if_missing:
            try:
                session._create_slot()
            except Exception as exc:
                session.close()
                raise DatabaseConnectionError(
                    f"Failed to create replication slot '{options.slot_name}': {exc}"
                ) from exc
        return session

    def _connect(
        self,
        loop: _LoopThread,
        config: ConnectionConfig,
        server_settings: dict[str, str] | None = None,
    ) -> asyncpg.Connection:
        kwargs = _connect_kwargs(config)
        if server_settings:
            kwargs["server_settings"] = server_settings
        try:
            return loop.run(asyncpg.connect(**kwargs))
        except Exception as exc:
            loop.shutdown()
            raise DatabaseConnectionError(
                f"Failed to connect to {config.host}:{config.port}/{config.database}: {exc}"
            ) from exc


def create(config: ConnectionConfig | None = None) -> PlainSession:
    """Open a plain session with the resolved default config."""

    return SessionFactory().open_plain(config)


def create_for_replication(
    slot_name: str,
    drop_on_close: bool,
    *,
    config: ConnectionConfig | None = None,
) -> ReplicationSession:
    """Open a replication session for ``slot_name``."""

    options = ReplicationSlotOptions(slot_name=slot_name, drop_on_close=drop_on_close)
    return SessionFactory().open_replication(options, config)


def _connect_kwargs(config: ConnectionConfig) -> dict[str, object]:
    return {
        "host": config.host,
        "port": config.port,
        "user": config.user,
        "password": config.password,
        "database": config.database,
    }


__all__ = [
    "DatabaseConnectionError",
    "PlainSession",
    "ReplicationSession",
    "SessionClosedError",
    "SessionFactory",
    "create",
    "create_for_replication",
]
