# Overview: Pytest coverage for the read cache and its invalidation after commits.

import pytest

from settlement.cache import ReadCache
from settlement.extensions import read_cache
from settlement.services import return_service
from settlement.services.sale_lookup_service import SaleLookupCriteria, lookup_sales
from settlement.services.unit_of_work import UnitOfWork
from settlement.services.settlement_service import invalidate_read_caches
from settlement.validation import parse_return_request

from conftest import CASHIER_ID


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ReadCache(ttl_seconds=10, clock=clock)


class TestReadCache:

    def test_entries_expire(self, cache, clock):
        cache.set("sales:lookup:a", [1])
        assert cache.get("sales:lookup:a") == [1]

        clock.now += 9
        assert cache.get("sales:lookup:a") == [1]

        clock.now += 1
        assert cache.get("sales:lookup:a") is None
        assert len(cache) == 0

    def test_size_is_bounded(self, clock):
        cache = ReadCache(ttl_seconds=10, maxsize=2, clock=clock)

        for key in ("a", "b", "c"):
            cache.set(key, key)

        assert len(cache) == 2
        assert cache.get("c") == "c"

    def test_get_or_set_loads_once(self, cache):
        calls = []

        def loader():
            calls.append(1)
            return "value"

        assert cache.get_or_set("k", loader) == "value"
        assert cache.get_or_set("k", loader) == "value"
        assert len(calls) == 1

    def test_invalidate_prefix(self, cache):
        cache.set("sales:lookup:a", 1)
        cache.set("sales:lookup:b", 2)
        cache.set("slips:search:c", 3)

        assert cache.invalidate_prefix("sales:") == 2
        assert cache.get("sales:lookup:a") is None
        assert cache.get("slips:search:c") == 3

    def test_disabled_cache_always_loads(self, cache):
        cache.enabled = False
        calls = []

        cache.get_or_set("k", lambda: calls.append(1))
        cache.get_or_set("k", lambda: calls.append(1))

        assert len(calls) == 2
        assert len(cache) == 0

    def test_bound_to_app(self, app):
        assert app.extensions["read_cache"] is read_cache
        assert read_cache.ttl_seconds == app.config["READ_CACHE_TTL_SECONDS"]


class TestInvalidationHooks:
    """Writers drop cached reads only once their unit of work commits."""

    def test_rollback_keeps_cache(self, db_session):
        read_cache.set("sales:lookup:x", "cached")

        with pytest.raises(RuntimeError):
            with UnitOfWork() as uow:
                invalidate_read_caches(uow)
                raise RuntimeError("abort")

        assert read_cache.get("sales:lookup:x") == "cached"

    def test_commit_drops_cache(self, db_session):
        read_cache.set("sales:lookup:x", "cached")
        read_cache.set("slips:search:y", "cached")

        with UnitOfWork() as uow:
            invalidate_read_caches(uow)

        assert read_cache.get("sales:lookup:x") is None
        assert read_cache.get("slips:search:y") is None

    def test_lookup_refreshed_after_return(self, db_session, scenario_sale, return_payload):
        sale, x, _ = scenario_sale
        criteria = SaleLookupCriteria(invoice_no=sale.invoice_no)

        before = lookup_sales(criteria)
        return_service.process_return(parse_return_request(return_payload(sale, [(x, 1, 100)])), CASHIER_ID)
        after = lookup_sales(criteria)

        kettle_before = next(line for line in before[0]["lines"] if line["product_id"] == x.id)
        kettle_after = next(line for line in after[0]["lines"] if line["product_id"] == x.id)
        assert kettle_before["available_for_return"] == 3
        assert kettle_after["returned_quantity"] == 1
        assert kettle_after["available_for_return"] == 2
        assert after[0]["status"] == "partially_refunded"
