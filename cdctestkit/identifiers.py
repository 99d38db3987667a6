"""SQL identifier quoting."""

from __future__ import annotations


def quote_identifier(name: str) -> str:
    """Return ``name`` as a double-quoted identifier, doubling embedded quotes."""

    return '"' + name.replace('"', '""') + '"'


__all__ = ["quote_identifier"]
