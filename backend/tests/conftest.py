"""
Pytest fixtures for the returns settlement tests.

Provides the app on in-memory SQLite, a per-test table wipe, the test client
and small factories for products, customers, sales, policies and barcodes.
"""

from datetime import timedelta

import pytest
from settlement import create_app
from settlement.config import TestingConfig
from settlement.extensions import db, read_cache
from settlement.models import (
    Category,
    Customer,
    InventoryRecord,
    Product,
    ReturnPolicy,
    Sale,
    SaleLine,
    UnitBarcode,
)
from settlement.models.barcodes import BARCODE_STATUS_SOLD
from settlement.time_utils import utcnow


CASHIER_ID = 7
MANAGER_ID = 9


class RecordingNotifier:
    """Collects events instead of delivering them."""

    def __init__(self):
        self.events = []

    def notify(self, event, payload):
        self.events.append((event, payload))


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestingConfig, notifier=RecordingNotifier())

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def auth_headers():
    return {"X-User-Id": str(CASHIER_ID)}


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        read_cache.clear()
        app.config["RETURNS_ENABLED"] = True

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def notifier(app):
    recorder = app.extensions["notifier"]
    recorder.events.clear()
    return recorder


@pytest.fixture(scope='function')
def category(db_session):
    cat = Category(name="Kitchen")
    db_session.add(cat)
    db_session.commit()
    return cat


@pytest.fixture(scope='function')
def make_product(db_session):
    counter = {"n": 0}

    def _make(name=None, price_cents=100, stock=10, category=None):
        counter["n"] += 1
        product = Product(
            sku=f"SKU-{counter['n']:04d}",
            name=name or f"Product {counter['n']}",
            price_cents=price_cents,
            current_stock=stock,
            category_id=category.id if category else None,
        )
        db_session.add(product)
        db_session.flush()
        db_session.add(InventoryRecord(product_id=product.id, current_stock=stock, available_stock=stock))
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def customer(db_session):
    cust = Customer(
        first_name="Nimal",
        last_name="Perera",
        email="nimal@example.lk",
        phone="077-123-4567",
        nic="901234567V",
        customer_type="retail",
    )
    db_session.add(cust)
    db_session.commit()
    return cust


@pytest.fixture(scope='function')
def make_sale(db_session):
    counter = {"n": 0}

    def _make(lines, customer=None, days_ago=0, invoice_no=None):
        """lines: iterable of (product, quantity, unit_price_cents)."""
        counter["n"] += 1
        sale = Sale(
            invoice_no=invoice_no or f"INV-{counter['n']:05d}",
            customer_id=customer.id if customer else None,
            cashier_user_id=CASHIER_ID,
            total_cents=sum(qty * price for _, qty, price in lines),
            created_at=utcnow() - timedelta(days=days_ago),
        )
        for product, qty, price in lines:
            sale.lines.append(SaleLine(
                product_id=product.id,
                quantity=qty,
                unit_price_cents=price,
                unit_cost_cents=price // 2,
                line_total_cents=qty * price,
            ))
        db_session.add(sale)
        db_session.commit()
        return sale

    return _make


@pytest.fixture(scope='function')
def make_policy(db_session):
    def _make(**fields):
        categories = fields.pop("categories", [])
        products = fields.pop("products", [])
        excluded_categories = fields.pop("excluded_categories", [])
        excluded_products = fields.pop("excluded_products", [])
        fields.setdefault("name", "Test policy")
        fields.setdefault("customer_types", [])
        policy = ReturnPolicy(**fields)
        policy.categories = list(categories)
        policy.products = list(products)
        policy.excluded_categories = list(excluded_categories)
        policy.excluded_products = list(excluded_products)
        db_session.add(policy)
        db_session.commit()
        return policy

    return _make


@pytest.fixture(scope='function')
def make_barcodes(db_session):
    def _make(sale, product, count, status=BARCODE_STATUS_SOLD):
        units = []
        for i in range(count):
            unit = UnitBarcode(
                barcode=f"U-{sale.id}-{product.id}-{i}",
                product_id=product.id,
                status=status,
                sale_id=sale.id,
                sold_at=sale.created_at,
                customer_id=sale.customer_id,
            )
            db_session.add(unit)
            units.append(unit)
        db_session.commit()
        return units

    return _make


@pytest.fixture(scope='function')
def scenario_sale(make_product, make_sale, customer):
    """Product X qty 3 @ 100 and product Y qty 2 @ 200 (total 700)."""
    x = make_product(name="Kettle", price_cents=100, stock=5)
    y = make_product(name="Toaster", price_cents=200, stock=5)
    sale = make_sale([(x, 3, 100), (y, 2, 200)], customer=customer)
    return sale, x, y


@pytest.fixture(scope='function')
def return_payload():
    """Build a JSON return request body."""
    def _build(sale, items, refund_method="cash", return_type="partial_refund", **extra):
        """items: iterable of (product, quantity, amount_cents) or (..., {item fields})."""
        rows = []
        for item in items:
            product, qty, amount = item[:3]
            row = {"product_id": product.id, "quantity": qty, "return_amount_cents": amount, "reason": "unwanted"}
            if len(item) > 3:
                row.update(item[3])
            rows.append(row)
        body = {
            "sale_id": sale.id,
            "items": rows,
            "return_type": return_type,
            "refund_method": refund_method,
        }
        body.update(extra)
        return body

    return _build
