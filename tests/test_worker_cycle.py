from datetime import timedelta
from decimal import Decimal

import pytest

from app.core.config import Settings
from app.domains.catalog.services.sync_coordinator import CatalogSyncCoordinator
from app.domains.shipping.services.quote_aggregator import ShippingQuoteAggregator
from app.external.vendors.base import ProductListing
from app.infra.base import utcnow
from app.infra.bootstrap import Runtime
from app.models.catalog import CatalogSyncRun
from app.models.fulfillment_order import FulfillmentOrder, FulfillmentStatus
from app.repositories.catalog.write.sync_run_write_repo import CatalogSyncRunWriteRepository
from app.repositories.fulfillment.write.fulfillment_order_write_repo import FulfillmentOrderWriteRepository
from apps.worker_main import run_worker_cycle


@pytest.fixture
def runtime(registry, vendor, orchestrator) -> Runtime:
    return Runtime(
        settings=Settings(ORDER_STATUS_POLL_ENABLED=True, CATALOG_SYNC_STALE_MINUTES=120),
        registry=registry,
        orchestrator=orchestrator,
        catalog_sync=CatalogSyncCoordinator(registry, max_pages=10, timeout_ceiling_s=5.0),
        shipping=ShippingQuoteAggregator(registry, timeout_s=1.0),
    )


@pytest.mark.asyncio
async def test_worker_cycle_runs_every_step(runtime, session_factory, uow, vendor, orchestrator, make_request):
    vendor.products = [ProductListing(vendor_product_id="p1", title="Mug", price=Decimal("8.00"), stock=3)]

    shipped = await orchestrator.create_order(uow, make_request(key="ship-me"), "v1")
    vendor.set_status(shipped.vendor_order_id, "shipped", tracking_number="TN-1")

    repo = FulfillmentOrderWriteRepository(uow.db)
    stuck = repo.create_pending(
        idempotency_key="stuck", vendor_id="v1", request_fingerprint="x", request_payload={}
    )
    repo.mark_submitting(stuck, now=utcnow() - timedelta(hours=1))

    orphan = CatalogSyncRunWriteRepository(uow.db).start(vendor_id="gone")
    orphan.started_at = utcnow() - timedelta(hours=6)
    uow.commit()

    summary = await run_worker_cycle(runtime, session_factory)

    assert summary == {"reaped": 1, "stale_runs": 1, "synced": 1, "status_changed": 1}

    with session_factory() as db:
        assert db.get(FulfillmentOrder, stuck.id).status == FulfillmentStatus.FAILED
        assert db.get(FulfillmentOrder, shipped.id).status == FulfillmentStatus.SHIPPED
        assert db.get(CatalogSyncRun, orphan.id).status == "error"


@pytest.mark.asyncio
async def test_second_cycle_does_not_resync_before_interval(runtime, session_factory, vendor):
    first = await run_worker_cycle(runtime, session_factory)
    second = await run_worker_cycle(runtime, session_factory)

    assert first["synced"] == 1
    assert second["synced"] == 0
    assert vendor.calls["list_products"] == 1


@pytest.mark.asyncio
async def test_polling_can_be_disabled(registry, vendor, orchestrator, session_factory, uow, make_request):
    order = await orchestrator.create_order(uow, make_request(), "v1")
    vendor.set_status(order.vendor_order_id, "delivered")
    runtime = Runtime(
        settings=Settings(ORDER_STATUS_POLL_ENABLED=False),
        registry=registry,
        orchestrator=orchestrator,
        catalog_sync=CatalogSyncCoordinator(registry),
        shipping=ShippingQuoteAggregator(registry),
    )

    summary = await run_worker_cycle(runtime, session_factory)

    assert summary["status_changed"] == 0
    assert vendor.calls["get_order_status"] == 0
