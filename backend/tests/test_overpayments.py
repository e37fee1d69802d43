# Overview: Pytest coverage for store credit consumption.

from datetime import timedelta

import pytest

from settlement.errors import NotFoundError, ValidationError
from settlement.extensions import db
from settlement.models import CustomerOverpayment, OverpaymentUsage
from settlement.services import settlement_service
from settlement.services.notification_service import EVENT_CREDIT_USED
from settlement.time_utils import utcnow

from conftest import CASHIER_ID


@pytest.fixture
def make_credit(db_session, customer):
    def _make(amount, age_days=0, expiry_date=None, status="active"):
        credit = CustomerOverpayment(
            customer_id=customer.id,
            amount_cents=amount,
            balance_cents=amount if status == "active" else 0,
            source="refund",
            status=status,
            expiry_date=expiry_date,
            created_by_user_id=CASHIER_ID,
            created_at=utcnow() - timedelta(days=age_days),
        )
        db_session.add(credit)
        db_session.commit()
        return credit

    return _make


@pytest.fixture
def spending_sale(make_product, make_sale, customer):
    return make_sale([(make_product(name="Mixer", price_cents=1000), 1, 1000)], customer=customer)


def _usage_total(credit_id):
    rows = db.session.query(OverpaymentUsage).filter_by(overpayment_id=credit_id).all()
    return sum(u.used_amount_cents for u in rows)


class TestUseOverpayment:
    """Oldest credit first, balances only go down."""

    def test_fifo_consumption(self, customer, make_credit, spending_sale):
        older = make_credit(300, age_days=10)
        newer = make_credit(500, age_days=1)

        result = settlement_service.use_overpayment(customer.id, 400, spending_sale.id, CASHIER_ID)

        assert result["used_cents"] == 400
        assert result["remaining_balance_cents"] == 400
        assert result["applied"] == [
            {"overpayment_id": older.id, "used_cents": 300, "remaining_cents": 0},
            {"overpayment_id": newer.id, "used_cents": 100, "remaining_cents": 400},
        ]

        older = db.session.get(CustomerOverpayment, older.id)
        newer = db.session.get(CustomerOverpayment, newer.id)
        assert (older.balance_cents, older.status) == (0, "fully_used")
        assert (newer.balance_cents, newer.status) == (400, "active")

    def test_usage_rows_match_balance(self, customer, make_credit, spending_sale):
        credit = make_credit(500)

        settlement_service.use_overpayment(customer.id, 120, spending_sale.id, CASHIER_ID)
        settlement_service.use_overpayment(customer.id, 80, spending_sale.id, CASHIER_ID)

        credit = db.session.get(CustomerOverpayment, credit.id)
        assert credit.balance_cents == 300
        assert _usage_total(credit.id) == credit.amount_cents - credit.balance_cents
        assert [u.remaining_balance_cents for u in credit.usage_history] == [380, 300]

    def test_insufficient_balance(self, customer, make_credit, spending_sale):
        credit = make_credit(300)

        with pytest.raises(ValidationError) as exc_info:
            settlement_service.use_overpayment(customer.id, 301, spending_sale.id, CASHIER_ID)

        assert exc_info.value.details == {"available_cents": 300, "requested_cents": 301}
        assert db.session.get(CustomerOverpayment, credit.id).balance_cents == 300
        assert db.session.query(OverpaymentUsage).count() == 0

    def test_expired_credit_not_spendable(self, customer, make_credit, spending_sale):
        make_credit(500, expiry_date=utcnow() - timedelta(days=1))

        with pytest.raises(ValidationError):
            settlement_service.use_overpayment(customer.id, 100, spending_sale.id, CASHIER_ID)

    def test_non_positive_amount(self, customer, make_credit, spending_sale):
        make_credit(500)

        with pytest.raises(ValidationError):
            settlement_service.use_overpayment(customer.id, 0, spending_sale.id, CASHIER_ID)

    def test_unknown_customer_and_sale(self, customer, make_credit, spending_sale):
        make_credit(500)

        with pytest.raises(NotFoundError):
            settlement_service.use_overpayment(customer.id + 1000, 100, spending_sale.id, CASHIER_ID)
        with pytest.raises(NotFoundError):
            settlement_service.use_overpayment(customer.id, 100, spending_sale.id + 1000, CASHIER_ID)

    def test_credit_used_event(self, customer, make_credit, spending_sale, notifier):
        make_credit(500)

        settlement_service.use_overpayment(customer.id, 100, spending_sale.id, CASHIER_ID)

        assert [e[0] for e in notifier.events] == [EVENT_CREDIT_USED]
        assert notifier.events[0][1]["remaining_balance_cents"] == 400


class TestCustomerCredits:

    def test_summary_lists_spendable_rows(self, customer, make_credit):
        make_credit(300, age_days=5)
        make_credit(200)
        make_credit(900, status="fully_used")
        make_credit(400, expiry_date=utcnow() - timedelta(days=1))

        summary = settlement_service.get_customer_credits(customer.id)

        assert summary["customer_id"] == customer.id
        assert summary["total_balance_cents"] == 500
        assert [c["balance_cents"] for c in summary["credits"]] == [300, 200]

    def test_unknown_customer(self, db_session):
        with pytest.raises(NotFoundError):
            settlement_service.get_customer_credits(424242)
