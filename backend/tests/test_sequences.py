# Overview: Pytest coverage for day-scoped document number allocation.

from datetime import datetime

import pytest

from settlement.errors import TransactionError
from settlement.extensions import db
from settlement.models import DocumentSequence
from settlement.services.sequence_service import next_document_number
from settlement.services.unit_of_work import UnitOfWork

DAY = datetime(2026, 10, 19, 9, 30)
NEXT_DAY = datetime(2026, 10, 20, 0, 5)


class TestDocumentNumbers:

    def test_increments_within_a_day(self, db_session):
        with UnitOfWork() as uow:
            first = next_document_number(uow, prefix="RET", on=DAY)
            second = next_document_number(uow, prefix="RET", on=DAY)

        assert first == "RET2610190001"
        assert second == "RET2610190002"

    def test_counter_survives_commit(self, db_session):
        with UnitOfWork() as uow:
            next_document_number(uow, prefix="RET", on=DAY)
        with UnitOfWork() as uow:
            number = next_document_number(uow, prefix="RET", on=DAY)

        assert number == "RET2610190002"

    def test_prefixes_and_days_are_independent(self, db_session):
        with UnitOfWork() as uow:
            ret = next_document_number(uow, prefix="RET", on=DAY)
            slip = next_document_number(uow, prefix="EXS", on=DAY)
            tomorrow = next_document_number(uow, prefix="RET", on=NEXT_DAY)

        assert ret == "RET2610190001"
        assert slip == "EXS2610190001"
        assert tomorrow == "RET2610200001"
        assert db.session.query(DocumentSequence).count() == 3

    def test_rollback_releases_number(self, db_session):
        with pytest.raises(RuntimeError):
            with UnitOfWork() as uow:
                next_document_number(uow, prefix="RET", on=DAY)
                raise RuntimeError("settlement failed")

        with UnitOfWork() as uow:
            number = next_document_number(uow, prefix="RET", on=DAY)

        assert number == "RET2610190001"

    def test_daily_limit(self, db_session):
        db_session.add(DocumentSequence(prefix="RET", day="261019", next_number=10000))
        db_session.commit()

        with pytest.raises(TransactionError):
            with UnitOfWork() as uow:
                next_document_number(uow, prefix="RET", on=DAY)

    def test_prefix_required(self, db_session):
        with pytest.raises(ValueError):
            with UnitOfWork() as uow:
                next_document_number(uow, prefix="", on=DAY)
