"""Shared value types used across session and schema modules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

SchemaName = str
SchemaPredicate = Callable[[SchemaName], bool]


@dataclass(frozen=True, slots=True)
class ReplicationSlotOptions:
    """How a replication session treats its logical decoding slot."""

    slot_name: str
    drop_on_close: bool = False
    plugin: str = "pgoutput"
    create_if_missing: bool = True


__all__ = ["ReplicationSlotOptions", "SchemaName", "SchemaPredicate"]
