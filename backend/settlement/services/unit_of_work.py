# Overview: Explicit unit of work wrapping the SQLAlchemy session.

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from ..extensions import db
from .concurrency import run_with_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UnitOfWork:
    """
    Atomic scope for one settlement.

    Every write collaborator receives the `uow` explicitly and works through
    `uow.session`; nothing inside the scope commits on its own.

    - clean exit: commit, then run after-commit callbacks
    - exception: rollback, callbacks discarded

    After-commit callbacks (cache invalidation, notifications) must never
    undo a committed settlement, so their failures are logged and dropped.
    """

    def __init__(self, session=None):
        self.session = session if session is not None else db.session
        self._after_commit: list[Callable[[], None]] = []
        self.committed = False

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self.rollback()
            return False
        try:
            self.commit()
        except Exception:
            self.rollback()
            raise
        return False

    def add_after_commit(self, callback: Callable[[], None]) -> None:
        self._after_commit.append(callback)

    def flush(self) -> None:
        self.session.flush()

    def commit(self) -> None:
        self.session.commit()
        self.committed = True
        callbacks, self._after_commit = self._after_commit, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.warning("After-commit hook %r failed", callback, exc_info=True)

    def rollback(self) -> None:
        self._after_commit = []
        self.session.rollback()


def run_in_unit_of_work(work: Callable[[UnitOfWork], T], **retry_kwargs) -> T:
    """Run `work(uow)` atomically, retrying the whole scope on store contention."""
    def _op() -> T:
        with UnitOfWork() as uow:
            return work(uow)

    return run_with_retry(_op, **retry_kwargs)
