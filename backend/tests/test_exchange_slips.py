# Overview: Pytest coverage for exchange slip redemption, cancellation and search.

"""
Exchange Slip Tests

A slip leaves `active` exactly once. These tests cover:
1. Redeem succeeds once; the second attempt sees "not active"
2. Cancel only from active; cancelled slips cannot be redeemed
3. Expired slips are rejected on redeem and swept by the maintenance job
4. Search by customer id or phone, read through the invalidated cache
"""

from datetime import timedelta

import pytest

from settlement.errors import NotFoundError, ValidationError
from settlement.extensions import db
from settlement.models import ExchangeSlip
from settlement.services import return_service, settlement_service
from settlement.services.notification_service import EVENT_SLIP_CANCELLED, EVENT_SLIP_REDEEMED
from settlement.services.settlement_service import allocate_exchange_values
from settlement.validation import parse_return_request

from conftest import CASHIER_ID, MANAGER_ID


@pytest.fixture
def issued_slip(db_session, scenario_sale, return_payload):
    """Slip worth 300 for one Kettle and one Toaster."""
    sale, x, y = scenario_sale
    request = parse_return_request(return_payload(
        sale, [(x, 1, 100), (y, 1, 200)], refund_method="exchange_slip", return_type="exchange",
    ))
    return return_service.process_return(request, CASHIER_ID).exchange_slip


@pytest.fixture
def new_sale(make_product, make_sale, customer):
    return make_sale([(make_product(name="Mixer", price_cents=300), 1, 300)], customer=customer)


class TestAllocation:

    def test_no_discount(self):
        assert allocate_exchange_values([100, 200], 0) == [100, 200]

    def test_discount_taken_first_item_first(self):
        assert allocate_exchange_values([100, 200, 50], 250) == [0, 50, 50]

    def test_sum_matches_total(self):
        values = allocate_exchange_values([333, 333, 334], 7)
        assert sum(values) == 993
        assert min(values) >= 0


class TestRedeem:

    def test_redeem_once(self, issued_slip, new_sale, notifier):
        """Second redemption of the same slip fails with "not active"."""
        assert issued_slip.total_value_cents == 300

        slip = settlement_service.redeem_exchange_slip(issued_slip.slip_no, new_sale.id, MANAGER_ID)

        assert slip.status == "redeemed"
        assert slip.redemption_sale_id == new_sale.id
        assert slip.redeemed_by_user_id == MANAGER_ID
        assert slip.redeemed_at is not None
        assert [e[0] for e in notifier.events].count(EVENT_SLIP_REDEEMED) == 1

        with pytest.raises(ValidationError) as exc_info:
            settlement_service.redeem_exchange_slip(issued_slip.slip_no, new_sale.id, MANAGER_ID)

        assert "not active" in exc_info.value.message
        assert db.session.get(ExchangeSlip, issued_slip.id).redemption_sale_id == new_sale.id

    def test_unknown_slip(self, db_session, new_sale):
        with pytest.raises(NotFoundError):
            settlement_service.redeem_exchange_slip("EXS0000000000", new_sale.id, MANAGER_ID)

    def test_unknown_sale(self, issued_slip):
        with pytest.raises(NotFoundError):
            settlement_service.redeem_exchange_slip(issued_slip.slip_no, 999999, MANAGER_ID)

        assert db.session.get(ExchangeSlip, issued_slip.id).status == "active"

    def test_expired_slip_rejected(self, issued_slip, new_sale):
        later = issued_slip.expiry_date + timedelta(days=1)

        with pytest.raises(ValidationError) as exc_info:
            settlement_service.redeem_exchange_slip(issued_slip.slip_no, new_sale.id, MANAGER_ID, now=later)

        assert "has expired" in exc_info.value.message
        assert db.session.get(ExchangeSlip, issued_slip.id).status == "active"


class TestCancel:

    def test_cancel_active(self, issued_slip, notifier):
        slip = settlement_service.cancel_exchange_slip(issued_slip.slip_no, MANAGER_ID, reason="issued in error")

        assert slip.status == "cancelled"
        assert slip.cancelled_by_user_id == MANAGER_ID
        assert slip.cancellation_reason == "issued in error"
        assert (EVENT_SLIP_CANCELLED, {
            "slip_no": slip.slip_no, "customer_id": slip.customer_id, "reason": "issued in error",
        }) in notifier.events

    def test_cancel_by_id(self, issued_slip):
        slip = settlement_service.cancel_exchange_slip(str(issued_slip.id), MANAGER_ID)

        assert slip.status == "cancelled"

    def test_slip_number_wins_over_id(self, issued_slip, db_session):
        """A digit-only slip number equal to another slip's id picks the numbered slip."""
        numbered = ExchangeSlip(
            slip_no=str(issued_slip.id),
            original_sale_id=issued_slip.original_sale_id,
            customer_id=issued_slip.customer_id,
            total_value_cents=50,
            expiry_date=issued_slip.expiry_date,
            issued_by_user_id=CASHIER_ID,
        )
        db_session.add(numbered)
        db_session.commit()

        slip = settlement_service.cancel_exchange_slip(str(issued_slip.id), MANAGER_ID)

        assert slip.id == numbered.id
        assert db.session.get(ExchangeSlip, issued_slip.id).status == "active"

    def test_cancelled_slip_cannot_be_redeemed(self, issued_slip, new_sale):
        settlement_service.cancel_exchange_slip(issued_slip.slip_no, MANAGER_ID)

        with pytest.raises(ValidationError) as exc_info:
            settlement_service.redeem_exchange_slip(issued_slip.slip_no, new_sale.id, MANAGER_ID)

        assert "not active" in exc_info.value.message

    def test_cancel_after_redeem_rejected(self, issued_slip, new_sale):
        settlement_service.redeem_exchange_slip(issued_slip.slip_no, new_sale.id, MANAGER_ID)

        with pytest.raises(ValidationError):
            settlement_service.cancel_exchange_slip(issued_slip.slip_no, MANAGER_ID)

        assert db.session.get(ExchangeSlip, issued_slip.id).status == "redeemed"

    def test_cancel_unknown(self, db_session):
        with pytest.raises(NotFoundError):
            settlement_service.cancel_exchange_slip("EXS0000000000", MANAGER_ID)


class TestExpirySweep:

    def test_sweep_expires_only_overdue_active_slips(self, issued_slip):
        later = issued_slip.expiry_date + timedelta(days=1)

        assert settlement_service.expire_exchange_slips(now=issued_slip.expiry_date - timedelta(days=1)) == 0
        assert settlement_service.expire_exchange_slips(now=later) == 1
        assert db.session.get(ExchangeSlip, issued_slip.id).status == "expired"
        assert settlement_service.expire_exchange_slips(now=later) == 0


class TestSearch:

    def test_search_by_customer(self, issued_slip, customer):
        slips = settlement_service.search_exchange_slips(customer_id=customer.id)

        assert [s["slip_no"] for s in slips] == [issued_slip.slip_no]

    def test_search_by_phone_ignores_formatting(self, issued_slip):
        slips = settlement_service.search_exchange_slips(phone="0771234567")

        assert [s["slip_no"] for s in slips] == [issued_slip.slip_no]

    def test_search_without_match(self, issued_slip):
        assert settlement_service.search_exchange_slips(phone="0119999999") == []
        assert settlement_service.search_exchange_slips(phone="---") == []
        assert settlement_service.search_exchange_slips() == []

    def test_search_reflects_redeem(self, issued_slip, new_sale, customer):
        """Cached search results are dropped once a redemption commits."""
        before = settlement_service.search_exchange_slips(customer_id=customer.id)
        settlement_service.redeem_exchange_slip(issued_slip.slip_no, new_sale.id, MANAGER_ID)
        after = settlement_service.search_exchange_slips(customer_id=customer.id)

        assert before[0]["status"] == "active"
        assert after[0]["status"] == "redeemed"
