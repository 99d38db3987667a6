"""Loading DDL fixture scripts and running them as a single batch."""

from __future__ import annotations

import os
import re
from importlib import resources
from pathlib import Path
from typing import Protocol, runtime_checkable

from .config import ConnectionConfig
from .executor import StatementExecutor

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


class FixtureNotFoundError(FileNotFoundError):
    """Raised when a fixture script cannot be located."""


@runtime_checkable
class ResourceLoader(Protocol):
    """Looks up fixture scripts by name."""

    def read_lines(self, name: str) -> list[str]:
        """Return the resource's lines without terminators, or raise FixtureNotFoundError."""


class DirectoryResourceLoader:
    """Resolves names against one or more directories; the first hit wins."""

    def __init__(self, *roots: Path | str) -> None:
        self._roots = tuple(Path(root) for root in roots) or (Path.cwd(),)

    @property
    def roots(self) -> tuple[Path, ...]:
        return self._roots

    def read_lines(self, name: str) -> list[str]:
        for root in self._roots:
            candidate = root / name
            if candidate.is_file():
                return split_lines(candidate.read_text(encoding="utf-8"))
        searched = ", ".join(str(root) for root in self._roots)
        raise FixtureNotFoundError(f"Cannot locate {name} (searched {searched})")


class PackageResourceLoader:
    """Resolves names as data files shipped inside an importable package."""

    def __init__(self, package: str) -> None:
        self._package = package

    def read_lines(self, name: str) -> list[str]:
        try:
            resource = resources.files(self._package).joinpath(name)
        except ModuleNotFoundError as exc:
            raise FixtureNotFoundError(f"Cannot locate {name}: {exc}") from exc
        if not resource.is_file():
            raise FixtureNotFoundError(f"Cannot locate {name} in package '{self._package}'")
        return split_lines(resource.read_text(encoding="utf-8"))


def split_lines(text: str) -> list[str]:
    """Split on CR, LF and CRLF only; other control characters stay in the line."""

    lines = _LINE_BREAK.split(text)
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def read_script(name: str, loader: ResourceLoader) -> str:
    return os.linesep.join(loader.read_lines(name))


class FixtureLoader:
    """Runs a named DDL script through the statement executor."""

    def __init__(
        self,
        loader: ResourceLoader | None = None,
        executor: StatementExecutor | None = None,
        *,
        config: ConnectionConfig | None = None,
    ) -> None:
        self._loader = loader or DirectoryResourceLoader()
        self._executor = executor or StatementExecutor(config=config)

    def load_and_execute(self, name: str, *, rollback: bool | None = None) -> bool:
        """Run the whole script as one batch; the resource is read before connecting."""

        script = read_script(name, self._loader)
        return self._executor.execute(script, rollback=rollback)


def execute_ddl(
    name: str,
    loader: ResourceLoader | None = None,
    *,
    config: ConnectionConfig | None = None,
) -> bool:
    return FixtureLoader(loader, config=config).load_and_execute(name)


__all__ = [
    "DirectoryResourceLoader",
    "FixtureLoader",
    "FixtureNotFoundError",
    "PackageResourceLoader",
    "ResourceLoader",
    "execute_ddl",
    "read_script",
    "split_lines",
]
