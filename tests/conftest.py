"""Fake asyncpg server shared by the unit tests."""

from __future__ import annotations

import os
from typing import Any

import asyncpg
import pytest

pytest_plugins = ["pytester"]


class FakeServer:
    """In-memory stand-in for the pieces of PostgreSQL the helpers touch."""

    def __init__(self) -> None:
        self.schemas: list[str] = ["information_schema", "pg_catalog", "pg_toast", "public"]
        self.slots: set[str] = set()
        self.connections: list[FakeConnection] = []
        self.executed: list[str] = []
        self.fail_on: str | None = None
        self.refuse_connections = False

    async def connect(self, **kwargs: Any) -> "FakeConnection":
        if self.refuse_connections:
            raise OSError("connection refused")
        connection = FakeConnection(self, kwargs)
        self.connections.append(connection)
        return connection

    @property
    def replication_connections(self) -> list["FakeConnection"]:
        return [conn for conn in self.connections if conn.replication]

    @property
    def plain_connections(self) -> list["FakeConnection"]:
        return [conn for conn in self.connections if not conn.replication]


class FakeTransaction:
    def __init__(self, connection: "FakeConnection") -> None:
        self._connection = connection

    async def start(self) -> None:
        self._connection.log.append("BEGIN")

    async def commit(self) -> None:
        self._connection.log.append("COMMIT")

    async def rollback(self) -> None:
        self._connection.log.append("ROLLBACK")


class FakeConnection:
    def __init__(self, server: FakeServer, kwargs: dict[str, Any]) -> None:
        self.server = server
        self.kwargs = kwargs
        self.log: list[str] = []
        self.closed = False

    @property
    def replication(self) -> bool:
        settings = self.kwargs.get("server_settings") or {}
        return settings.get("replication") == "database"

    def is_closed(self) -> bool:
        return self.closed

    def transaction(self) -> FakeTransaction:
        return FakeTransaction(self)

    async def execute(self, query: str) -> str:
        self._maybe_fail(query)
        self.server.executed.append(query)
        self.log.append(query)
        if query.startswith("CREATE_REPLICATION_SLOT"):
            name = _slot_from_command(query)
            if name in self.server.slots:
                raise asyncpg.exceptions.DuplicateObjectError(f'replication slot "{name}" already exists')
            self.server.slots.add(name)
        elif query.startswith("DROP_REPLICATION_SLOT"):
            self.server.slots.discard(_slot_from_command(query))
        return "OK"

    async def fetch(self, query: str, *args: Any) -> list[dict[str, Any]]:
        self._maybe_fail(query)
        if "pg_drop_replication_slot" in query:
            name = args[0]
            if name in self.server.slots:
                self.server.slots.discard(name)
                return [{"pg_drop_replication_slot": None}]
            return []
        if "pg_replication_slots" in query:
            return [{"slot_name": args[0]}] if args[0] in self.server.slots else []
        if "pg_namespace" in query:
            return [{"nspname": name} for name in self.server.schemas]
        return []

    async def close(self) -> None:
        self.closed = True

    def _maybe_fail(self, query: str) -> None:
        if self.server.fail_on and self.server.fail_on in query:
            raise RuntimeError(f"boom: {self.server.fail_on}")


def _slot_from_command(command: str) -> str:
    return command.split()[1].strip('"')


@pytest.fixture
def fake_server(monkeypatch: pytest.MonkeyPatch) -> FakeServer:
    server = FakeServer()
    monkeypatch.setattr("cdctestkit.connections.asyncpg.connect", server.connect)
    return server


@pytest.fixture(autouse=True)
def _isolated_environment(request: pytest.FixtureRequest, monkeypatch: pytest.MonkeyPatch) -> None:
    if request.node.get_closest_marker("integration"):
        return
    for name in [key for key in os.environ if key.upper().startswith("DATABASE_")]:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("CDC_TESTKIT_CONFIG", raising=False)
