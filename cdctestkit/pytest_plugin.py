"""pytest fixtures exposing the session helpers to connector test suites."""

from __future__ import annotations

from contextlib import ExitStack
from typing import Callable, Iterator

import pytest

from .config import ConnectionConfig, load_config
from .connections import ReplicationSession, SessionFactory
from .models import ReplicationSlotOptions
from .schemas import SchemaReset

ReplicationSessionOpener = Callable[..., ReplicationSession]


@pytest.fixture
def cdc_config() -> ConnectionConfig:
    """Connection settings resolved from the environment."""

    return load_config()


@pytest.fixture
def session_factory() -> SessionFactory:
    return SessionFactory()


@pytest.fixture
def clean_database(cdc_config: ConnectionConfig, session_factory: SessionFactory) -> Iterator[ConnectionConfig]:
    """Drop every user schema before the test runs."""

    SchemaReset(session_factory, config=cdc_config).reset_all_schemas()
    yield cdc_config


@pytest.fixture
def replication_session(
    cdc_config: ConnectionConfig,
    session_factory: SessionFactory,
) -> Iterator[ReplicationSessionOpener]:
    """Open replication sessions that are all closed at teardown."""

    with ExitStack() as stack:

        def _open(slot_name: str, drop_on_close: bool = False, **options: object) -> ReplicationSession:
            slot = ReplicationSlotOptions(slot_name=slot_name, drop_on_close=drop_on_close, **options)
            return stack.enter_context(session_factory.open_replication(slot, cdc_config))

        yield _open
