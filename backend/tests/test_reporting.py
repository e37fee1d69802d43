# Overview: Pytest coverage for sale lookup, customer return history and analytics.

from datetime import timedelta

import pytest

from settlement.errors import NotFoundError
from settlement.services import return_reporting_service, return_service
from settlement.services.sale_lookup_service import SaleLookupCriteria, lookup_sales
from settlement.time_utils import utcnow
from settlement.validation import parse_return_request

from conftest import CASHIER_ID


def _settle(payload):
    return return_service.process_return(parse_return_request(payload), CASHIER_ID).return_transaction


class TestSaleLookup:

    def test_by_invoice(self, db_session, scenario_sale):
        sale, _, _ = scenario_sale

        results = lookup_sales(SaleLookupCriteria(invoice_no=sale.invoice_no.lower()))

        assert [s["id"] for s in results] == [sale.id]
        assert results[0]["customer"]["name"] == "Nimal Perera"
        assert {line["available_for_return"] for line in results[0]["lines"]} == {3, 2}

    def test_by_customer_fields(self, db_session, scenario_sale):
        sale, _, _ = scenario_sale

        for criteria in (
            SaleLookupCriteria(customer_name="perera"),
            SaleLookupCriteria(customer_name="Nimal Per"),
            SaleLookupCriteria(customer_phone="077 123 4567"),
            SaleLookupCriteria(customer_nic="901234567v"),
            SaleLookupCriteria(customer_email="NIMAL@"),
        ):
            assert [s["id"] for s in lookup_sales(criteria)] == [sale.id], criteria

    def test_by_product_name(self, db_session, scenario_sale):
        sale, _, _ = scenario_sale

        assert [s["id"] for s in lookup_sales(SaleLookupCriteria(product_name="toast"))] == [sale.id]

    def test_unmatched_criteria_return_nothing(self, db_session, scenario_sale):
        assert lookup_sales(SaleLookupCriteria(customer_name="Silva")) == []
        assert lookup_sales(SaleLookupCriteria(product_name="blender")) == []

    def test_default_search_window(self, db_session, make_product, make_sale):
        x = make_product()
        recent = make_sale([(x, 1, 100)], days_ago=2)
        old = make_sale([(x, 1, 100)], days_ago=45)

        default_ids = [s["id"] for s in lookup_sales(SaleLookupCriteria())]
        wide_ids = [s["id"] for s in lookup_sales(SaleLookupCriteria(search_days=60))]

        assert default_ids == [recent.id]
        assert wide_ids == [recent.id, old.id]


class TestCustomerHistory:

    def test_newest_first(self, db_session, scenario_sale, customer, return_payload):
        sale, x, y = scenario_sale
        first = _settle(return_payload(sale, [(x, 1, 100)]))
        second = _settle(return_payload(sale, [(y, 1, 200)]))

        history = return_reporting_service.get_customer_return_history(customer.id)

        assert [h["return_no"] for h in history] == [second.return_no, first.return_no]

    def test_unknown_customer(self, db_session):
        with pytest.raises(NotFoundError):
            return_reporting_service.get_customer_return_history(424242)


class TestAnalytics:

    def test_groups_by_type_and_reason(self, db_session, scenario_sale, return_payload, make_policy):
        sale, x, y = scenario_sale
        _settle(return_payload(sale, [(x, 1, 100)]))
        _settle(return_payload(
            sale, [(y, 1, 201, {"reason": "defective"})],
            refund_method="exchange_slip", return_type="exchange",
        ))
        make_policy(name="Approval", priority=1, manager_approval_required=True)
        pending = _settle(return_payload(sale, [(x, 1, 100)]))
        assert pending.status == "pending"

        now = utcnow()
        report = return_reporting_service.get_return_analytics(now - timedelta(days=1), now + timedelta(days=1))

        assert report["total_returns"] == 2
        assert report["total_cents"] == 301
        assert report["average_cents"] == 151
        assert report["by_type"] == [
            {"return_type": "exchange", "count": 1, "amount_cents": 201},
            {"return_type": "partial_refund", "count": 1, "amount_cents": 100},
        ]
        assert report["by_reason"] == [
            {"reason": "defective", "lines": 1, "quantity": 1, "amount_cents": 201},
            {"reason": "unwanted", "lines": 1, "quantity": 1, "amount_cents": 100},
        ]

    def test_empty_range(self, db_session):
        now = utcnow()
        report = return_reporting_service.get_return_analytics(now - timedelta(days=1), now)

        assert report["total_returns"] == 0
        assert report["average_cents"] == 0
        assert report["by_type"] == []
