"""Statement batch execution with the trailing ``ROLLBACK;`` convention.

Test authors can end a batch with ``ROLLBACK;`` to have the whole batch rolled
back instead of committed. This is a convention between tests and this helper,
not a transaction API; new code can pass ``rollback=`` explicitly instead.
"""

from __future__ import annotations

import logging

from .config import ConnectionConfig, load_config
from .connections import PlainSession, SessionFactory

LOG = logging.getLogger(__name__)

ROLLBACK_SENTINEL = "ROLLBACK;"


class StatementExecutionError(RuntimeError):
    """Raised when a batch fails to submit, commit or roll back."""


def ends_with_rollback(batch: str) -> bool:
    """Whether ``batch`` asks to be rolled back rather than committed."""

    return batch.strip().endswith(ROLLBACK_SENTINEL)


class StatementExecutor:
    """Runs SQL batches on plain sessions under an explicit transaction."""

    def __init__(
        self,
        factory: SessionFactory | None = None,
        *,
        config: ConnectionConfig | None = None,
    ) -> None:
        self._factory = factory or SessionFactory()
        self._config = config

    def execute(self, batch: str, *, rollback: bool | None = None) -> bool:
        """Run ``batch`` on a fresh session; returns True when it was committed."""

        config = self._config or load_config()
        with self._factory.open_plain(config) as session:
            return self.execute_in(session, batch, rollback=rollback)

    @staticmethod
    def execute_in(session: PlainSession, batch: str, *, rollback: bool | None = None) -> bool:
        """Run ``batch`` on ``session`` and commit or roll back.

        With ``rollback=None`` the decision comes from :func:`ends_with_rollback`.
        A failure leaves any open transaction to be abandoned when the session
        closes.
        """

        roll_back = ends_with_rollback(batch) if rollback is None else rollback
        try:
            session.set_auto_commit(False)
            session.submit(batch)
            if roll_back:
                session.rollback()
            else:
                session.commit()
        except Exception as exc:
            raise StatementExecutionError(f"Failed to execute statement batch: {exc}") from exc
        LOG.debug("Batch %s", "rolled back" if roll_back else "committed")
        return not roll_back


def execute(
    batch: str,
    *,
    config: ConnectionConfig | None = None,
    rollback: bool | None = None,
) -> bool:
    """Run ``batch`` against the default database."""

    return StatementExecutor(config=config).execute(batch, rollback=rollback)


__all__ = [
    "ROLLBACK_SENTINEL",
    "StatementExecutionError",
    "StatementExecutor",
    "ends_with_rollback",
    "execute",
]
