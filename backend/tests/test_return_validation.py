# Overview: Pytest coverage for read-only return validation.

import pytest

from settlement.errors import NotFoundError, ValidationError
from settlement.extensions import db
from settlement.models import ReturnTransaction, Sale
from settlement.services import return_service
from settlement.validation import parse_return_request

from conftest import CASHIER_ID


def _check(payload, **kwargs):
    return return_service.check_return(parse_return_request(payload), **kwargs)


def _settle(payload):
    return return_service.process_return(parse_return_request(payload), CASHIER_ID)


class TestAvailableQuantity:
    """Quantities already returned reduce what can come back."""

    def test_over_return_names_product_and_available(self, db_session, scenario_sale, return_payload):
        """Three units of X when only two remain is invalid and writes nothing."""
        sale, x, _ = scenario_sale
        _settle(return_payload(sale, [(x, 1, 100)]))

        result = _check(return_payload(sale, [(x, 3, 300)]))

        assert result.valid is False
        assert len(result.errors) == 1
        assert "Kettle" in result.errors[0]
        assert "only 2 available" in result.errors[0]

        assert db.session.query(ReturnTransaction).count() == 1
        sale = db.session.get(Sale, sale.id)
        assert sale.returned_total_cents == 100
        assert sale.status == "partially_refunded"

    def test_exact_remaining_quantity_is_valid(self, db_session, scenario_sale, return_payload):
        sale, x, _ = scenario_sale
        _settle(return_payload(sale, [(x, 1, 100)]))

        result = _check(return_payload(sale, [(x, 2, 200)]))

        assert result.valid is True
        assert result.errors == []

    def test_split_lines_are_aggregated(self, db_session, scenario_sale, return_payload):
        """Two lines for the same product cannot together exceed the sold quantity."""
        sale, x, _ = scenario_sale

        result = _check(return_payload(sale, [(x, 2, 200), (x, 2, 200)]))

        assert result.valid is False
        assert any("only 3 available" in e for e in result.errors)

    def test_product_not_on_sale(self, db_session, scenario_sale, make_product, return_payload):
        sale, _, _ = scenario_sale
        other = make_product(name="Blender")

        result = _check(return_payload(sale, [(other, 1, 100)]))

        assert result.valid is False
        assert f"Product {other.id} is not part of sale {sale.invoice_no}" in result.errors

    def test_missing_sale(self, db_session, scenario_sale, return_payload):
        sale, x, _ = scenario_sale
        payload = return_payload(sale, [(x, 1, 100)])
        payload["sale_id"] = sale.id + 1000

        with pytest.raises(NotFoundError):
            _check(payload)


class TestReturnWindow:

    def test_expired_window(self, db_session, make_product, make_sale, customer, return_payload):
        x = make_product(name="Kettle")
        sale = make_sale([(x, 1, 100)], customer=customer, days_ago=45)

        result = _check(return_payload(sale, [(x, 1, 100)]))

        assert result.valid is False
        assert result.days_since_sale == 45
        assert "Return window of 30 days has expired (45 days since sale)" in result.errors

    def test_manager_override_turns_window_into_warning(self, db_session, make_product, make_sale, customer, return_payload):
        x = make_product(name="Kettle")
        sale = make_sale([(x, 1, 100)], customer=customer, days_ago=45)

        result = _check(return_payload(sale, [(x, 1, 100)], manager_override=True))

        assert result.valid is True
        assert result.requires_approval is True
        assert any("manager override applied" in w for w in result.warnings)

    def test_policy_window(self, db_session, make_product, make_sale, customer, return_payload, make_policy):
        x = make_product(name="Kettle")
        sale = make_sale([(x, 1, 100)], customer=customer, days_ago=10)
        make_policy(name="Short window", priority=1, return_window_days=7)

        result = _check(return_payload(sale, [(x, 1, 100)]))

        assert result.valid is False
        assert result.policy.name == "Short window"


class TestPolicyRules:
    """Exclusions, thresholds, receipts and refund methods."""

    def test_excluded_product(self, db_session, scenario_sale, return_payload, make_policy):
        sale, x, _ = scenario_sale
        make_policy(name="No kettles", priority=1, excluded_products=[x])

        result = _check(return_payload(sale, [(x, 1, 100)]))

        assert result.valid is False
        assert "Kettle is excluded from returns by policy" in result.errors

    def test_excluded_category(self, db_session, make_product, make_sale, customer, category, return_payload, make_policy):
        x = make_product(name="Knife", category=category)
        sale = make_sale([(x, 1, 100)], customer=customer)
        make_policy(name="No kitchen", priority=1, excluded_categories=[category])

        result = _check(return_payload(sale, [(x, 1, 100)]))

        assert result.valid is False
        assert any("category excluded" in e for e in result.errors)

    def test_amount_above_price_is_warning(self, db_session, scenario_sale, return_payload):
        sale, x, _ = scenario_sale

        result = _check(return_payload(sale, [(x, 1, 150)]))

        assert result.valid is True
        assert any("exceeds original price 100" in w for w in result.warnings)

    def test_approval_threshold(self, db_session, scenario_sale, return_payload, make_policy):
        sale, _, y = scenario_sale
        make_policy(name="Threshold", priority=1, approval_threshold_cents=150)

        result = _check(return_payload(sale, [(y, 1, 200)]))

        assert result.valid is True
        assert result.requires_approval is True
        assert result.total_cents == 200

    def test_approval_threshold_ignores_discount(self, db_session, scenario_sale, return_payload, make_policy):
        """A return discount cannot pull a large return under the threshold."""
        sale, x, y = scenario_sale
        make_policy(name="Threshold", priority=1, approval_threshold_cents=450)

        result = _check(return_payload(sale, [(x, 1, 100), (y, 2, 400)], discount_cents=200))

        assert result.valid is True
        assert result.total_cents == 300
        assert result.requires_approval is True
        assert "Return amount 500 exceeds approval threshold 450; manager approval required" in result.warnings

    def test_max_return_amount(self, db_session, scenario_sale, return_payload, make_policy):
        sale, _, y = scenario_sale
        make_policy(name="Cap", priority=1, max_return_amount_enabled=True, max_return_amount_cents=250)

        blocked = _check(return_payload(sale, [(y, 2, 400)]))
        overridden = _check(return_payload(sale, [(y, 2, 400)], manager_override=True))

        assert blocked.valid is False
        assert "Return total 400 exceeds maximum return amount 250" in blocked.errors
        assert overridden.valid is True
        assert overridden.requires_approval is True

    def test_receipt_required(self, db_session, scenario_sale, return_payload):
        sale, x, _ = scenario_sale

        result = _check(return_payload(sale, [(x, 1, 100)], has_receipt=False))

        assert result.valid is False
        assert "A receipt is required for returns under this policy" in result.errors

    def test_no_receipt_allowed_needs_approval(self, db_session, scenario_sale, return_payload, make_policy):
        sale, x, _ = scenario_sale
        make_policy(name="Lenient", priority=1, allow_no_receipt_returns=True)

        result = _check(return_payload(sale, [(x, 1, 100)], has_receipt=False))

        assert result.valid is True
        assert result.requires_approval is True

    def test_refund_method_not_allowed(self, db_session, scenario_sale, return_payload):
        """Bank transfer is off in the built-in default."""
        sale, x, _ = scenario_sale

        result = _check(return_payload(sale, [(x, 1, 100)], refund_method="bank_transfer"))

        assert result.valid is False
        assert "Refund method bank_transfer is not allowed by policy" in result.errors
        assert result.policy.is_default

    def test_refund_method_override(self, db_session, scenario_sale, return_payload):
        sale, x, _ = scenario_sale

        result = _check(return_payload(sale, [(x, 1, 100)], refund_method="bank_transfer", manager_override=True))

        assert result.valid is True
        assert result.requires_approval is True

    def test_exchange_flag_governs_exchange_slip(self, db_session, scenario_sale, return_payload, make_policy):
        sale, x, _ = scenario_sale
        make_policy(name="No exchanges", priority=1, allow_exchange=False)

        result = _check(return_payload(sale, [(x, 1, 100)], refund_method="exchange_slip"))

        assert "Refund method exchange_slip is not allowed by policy" in result.errors

    def test_per_customer_limit(self, db_session, scenario_sale, return_payload, make_policy):
        sale, x, y = scenario_sale
        make_policy(name="One per month", priority=1, max_returns_enabled=True, max_returns_count=1)
        _settle(return_payload(sale, [(x, 1, 100)]))

        result = _check(return_payload(sale, [(y, 1, 200)]))

        assert result.valid is False
        assert any("limit of 1 returns in 30 days" in e for e in result.errors)


class TestAmounts:

    def test_discount_above_item_total(self, db_session, scenario_sale, return_payload):
        sale, x, _ = scenario_sale

        result = _check(return_payload(sale, [(x, 1, 100)], discount_cents=150))

        assert result.valid is False
        assert "Discount 150 exceeds the item total 100" in result.errors

    @pytest.mark.parametrize("amount, discount", [(0, 0), (100, 100)])
    def test_store_credit_needs_positive_total(self, db_session, scenario_sale, return_payload, amount, discount):
        """What validates must also settle: zero-value credits are rejected up front."""
        sale, x, _ = scenario_sale
        payload = return_payload(
            sale, [(x, 1, amount)], refund_method="store_credit", return_type="store_credit", discount_cents=discount,
        )

        result = _check(payload)

        assert result.valid is False
        assert "Refund method store_credit requires a positive return total" in result.errors
        with pytest.raises(ValidationError) as exc_info:
            _settle(payload)
        assert exc_info.value.errors == result.errors
        assert db.session.query(ReturnTransaction).count() == 0

    def test_zero_total_cash_return_is_allowed(self, db_session, scenario_sale, return_payload):
        sale, x, _ = scenario_sale

        result = _check(return_payload(sale, [(x, 1, 0)]))

        assert result.valid is True

    def test_cumulative_total_capped_at_sale_total(self, db_session, scenario_sale, return_payload):
        """Generous amounts cannot push the returned total past the sale total."""
        sale, x, y = scenario_sale
        _settle(return_payload(sale, [(y, 2, 400)]))

        result = _check(return_payload(sale, [(x, 3, 400)]))

        assert result.valid is False
        assert any("exceeds sale total 700" in e for e in result.errors)

    def test_collects_every_error(self, db_session, scenario_sale, make_product, return_payload):
        sale, x, _ = scenario_sale
        other = make_product()

        result = _check(return_payload(
            sale, [(x, 5, 500), (other, 1, 100)], refund_method="bank_transfer", has_receipt=False,
        ))

        assert len(result.errors) == 4


class TestRequestParsing:
    """JSON body coercion."""

    def test_rejects_decimal_and_boolean_numbers(self, scenario_sale, return_payload):
        sale, x, _ = scenario_sale
        payload = return_payload(sale, [(x, 1, 100)])
        payload["items"][0]["quantity"] = 1.5
        payload["items"][0]["return_amount_cents"] = True

        with pytest.raises(ValidationError) as exc_info:
            parse_return_request(payload)

        assert len(exc_info.value.errors) == 2

    def test_rejects_unknown_method_and_type(self, scenario_sale, return_payload):
        sale, x, _ = scenario_sale

        with pytest.raises(ValidationError) as exc_info:
            parse_return_request(return_payload(sale, [(x, 1, 100)], refund_method="cheque", return_type="swap"))

        assert len(exc_info.value.errors) == 2

    def test_empty_items(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_return_request({"sale_id": 1, "items": [], "return_type": "exchange", "refund_method": "cash"})

        assert exc_info.value.errors == ["items must be a non-empty list"]

    def test_defaults(self, scenario_sale, return_payload):
        sale, x, _ = scenario_sale

        request = parse_return_request(return_payload(sale, [(x, "2", "200")]))

        assert request.items[0].quantity == 2
        assert request.items[0].return_amount_cents == 200
        assert request.has_receipt is True
        assert request.manager_override is False
        assert request.discount_cents == 0
        assert request.total_cents == 200
