import time
from decimal import Decimal

import pytest

from app.core.errors import ValidationError, VendorTransientError
from app.domains.shipping.services.quote_aggregator import ShippingQuoteAggregator
from app.external.vendors.base import Capability, ProductListing
from app.external.vendors.fake import FakeVendorAdapter
from app.infra.base import utcnow
from app.repositories.catalog.write.catalog_entry_write_repo import CatalogEntryWriteRepository
from app.schemas.fulfillment import LineItem


def _item(sku: str, qty: int = 1, vendor_id: str | None = None) -> LineItem:
    return LineItem(vendor_product_id=sku, quantity=qty, unit_price=Decimal("10.00"), vendor_id=vendor_id)


def _stock(uow, vendor_id: str, *skus: str) -> None:
    repo = CatalogEntryWriteRepository(uow.db)
    for sku in skus:
        repo.upsert(
            vendor_id=vendor_id,
            listing=ProductListing(vendor_product_id=sku, title=sku, price=Decimal("9.00"), stock=10),
            local_product_id=f"local-{sku}",
            id_run=0,
            now=utcnow(),
        )
    uow.commit()


@pytest.fixture
def fast(registry) -> FakeVendorAdapter:
    adapter = FakeVendorAdapter("fast", shipping_cost=Decimal("6.00"))
    registry.register("fast", adapter)
    return adapter


@pytest.fixture
def cheap(registry) -> FakeVendorAdapter:
    adapter = FakeVendorAdapter("cheap", shipping_cost=Decimal("3.50"), eta_days=(7, 14))
    registry.register("cheap", adapter)
    return adapter


@pytest.fixture
def aggregator(registry) -> ShippingQuoteAggregator:
    return ShippingQuoteAggregator(registry, timeout_s=0.2)


@pytest.mark.asyncio
async def test_slow_vendor_does_not_block_other_quotes(uow, aggregator, registry, fast, address):
    slow = FakeVendorAdapter("slow")
    slow.latency_s = 5.0
    registry.register("slow", slow)

    items = [_item("sku-1", vendor_id="fast"), _item("sku-1", vendor_id="slow")]
    started = time.monotonic()
    result = await aggregator.quote(uow, items, address)
    elapsed = time.monotonic() - started

    assert elapsed < 1.5
    assert [q.vendor_id for q in result.quotes] == ["fast"]
    assert result.failed_vendors == ["slow"]
    assert "no response" in result.errors["slow"]


@pytest.mark.asyncio
async def test_quotes_sorted_by_cost(uow, aggregator, fast, cheap, address):
    _stock(uow, "fast", "mug")
    _stock(uow, "cheap", "mug")

    result = await aggregator.quote(uow, [_item("mug", qty=3)], address)

    assert [q.vendor_id for q in result.quotes] == ["cheap", "fast"]
    assert result.quotes[0].cost == Decimal("4.50")
    assert result.quotes[0].eta_min_days == 7
    assert result.failed_vendors == []
    assert result.unfulfillable == []


@pytest.mark.asyncio
async def test_items_grouped_by_catalog_vendor(uow, aggregator, fast, cheap, address):
    _stock(uow, "fast", "mug", "tee")
    _stock(uow, "cheap", "tee")

    groups, unfulfillable = aggregator.group_by_vendor(uow, [_item("mug"), _item("tee", qty=2)])

    assert {vid: [i.vendor_product_id for i in items] for vid, items in groups.items()} == {
        "fast": ["mug", "tee"],
        "cheap": ["tee"],
    }
    assert unfulfillable == []


@pytest.mark.asyncio
async def test_explicit_vendor_overrides_catalog(uow, aggregator, fast, cheap, address):
    _stock(uow, "fast", "mug")

    groups, _ = aggregator.group_by_vendor(uow, [_item("mug", vendor_id="cheap")])

    assert list(groups) == ["cheap"]


@pytest.mark.asyncio
async def test_unknown_products_are_unfulfillable(uow, aggregator, fast, address):
    _stock(uow, "fast", "mug")

    result = await aggregator.quote(uow, [_item("mug"), _item("ghost"), _item("ghost")], address)

    assert [q.vendor_id for q in result.quotes] == ["fast"]
    assert result.unfulfillable == ["ghost"]
    assert fast.calls["quote_shipping"] == 1


@pytest.mark.asyncio
async def test_nothing_quotable_returns_empty_result(uow, aggregator, fast, address):
    result = await aggregator.quote(uow, [_item("ghost")], address)

    assert result.quotes == []
    assert result.unfulfillable == ["ghost"]
    assert fast.calls["quote_shipping"] == 0


@pytest.mark.asyncio
async def test_disabled_and_incapable_vendors_are_skipped(uow, aggregator, registry, fast, cheap, address):
    registry.register("orders-only", FakeVendorAdapter("orders-only"), [Capability.ORDER_CREATION])
    _stock(uow, "fast", "mug")
    _stock(uow, "cheap", "mug")
    _stock(uow, "orders-only", "mug")
    registry.disable("cheap")

    result = await aggregator.quote(uow, [_item("mug")], address)

    assert [q.vendor_id for q in result.quotes] == ["fast"]
    assert cheap.calls["quote_shipping"] == 0


@pytest.mark.asyncio
async def test_vendor_error_is_reported_not_raised(uow, aggregator, registry, fast, address):
    class Broken(FakeVendorAdapter):
        async def quote_shipping(self, items, destination):
            raise VendorTransientError("HTTP 503", vendor_id=self.vendor_id)

    registry.register("broken", Broken("broken"))

    result = await aggregator.quote(
        uow, [_item("a", vendor_id="fast"), _item("a", vendor_id="broken")], address
    )

    assert [q.vendor_id for q in result.quotes] == ["fast"]
    assert result.errors == {"broken": "HTTP 503"}


@pytest.mark.asyncio
async def test_unexpected_adapter_exception_is_reported_as_vendor_error(uow, aggregator, registry, fast, address):
    class Crashing(FakeVendorAdapter):
        async def quote_shipping(self, items, destination):
            raise RuntimeError("socket reset")

    registry.register("crashing", Crashing("crashing"))

    result = await aggregator.quote(
        uow, [_item("a", vendor_id="fast"), _item("a", vendor_id="crashing")], address
    )

    assert [q.vendor_id for q in result.quotes] == ["fast"]
    assert "socket reset" in result.errors["crashing"]


@pytest.mark.asyncio
@pytest.mark.parametrize("items", [[], [_item("mug", qty=0)]])
async def test_invalid_items_rejected(uow, aggregator, fast, address, items):
    with pytest.raises(ValidationError):
        await aggregator.quote(uow, items, address)
