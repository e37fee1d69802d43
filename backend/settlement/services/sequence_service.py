# Overview: Day-scoped document number allocation for returns and exchange slips.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import TransactionError
from ..models import DocumentSequence
from ..time_utils import day_stamp, utcnow
from .unit_of_work import UnitOfWork

SEQUENCE_PAD = 4
MAX_DAILY_SEQUENCE = 10 ** SEQUENCE_PAD - 1


def _bump(uow: UnitOfWork, prefix: str, day: str) -> int | None:
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.prefix == prefix, DocumentSequence.day == day)
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )
    result = uow.session.execute(stmt)
    if not result.rowcount:
        return None
    current = (
        uow.session.query(DocumentSequence.next_number)
        .filter_by(prefix=prefix, day=day)
        .scalar()
    )
    return current - 1


def next_document_number(uow: UnitOfWork, *, prefix: str, on: datetime | None = None) -> str:
    """
    Allocate `<PREFIX><YYMMDD><NNNN>` inside the caller's unit of work.

    The counter row is incremented in place, so the number is reserved by
    the same transaction that writes the document; a rollback releases it.
    The first number of a day inserts the row under a savepoint; losing that
    insert race falls back to the in-place increment.
    """
    if not prefix:
        raise ValueError("prefix is required")
    day = day_stamp(on or utcnow())

    number = _bump(uow, prefix, day)
    if number is None:
        try:
            with uow.session.begin_nested():
                uow.session.add(DocumentSequence(prefix=prefix, day=day, next_number=2))
            number = 1
        except IntegrityError:
            number = _bump(uow, prefix, day)
            if number is None:
                raise

    if number > MAX_DAILY_SEQUENCE:
        raise TransactionError(
            f"Daily sequence exhausted for prefix {prefix}",
            details={"prefix": prefix, "day": day},
        )
    return f"{prefix}{day}{number:0{SEQUENCE_PAD}d}"
