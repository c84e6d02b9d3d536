from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.core.errors import (
    ConfigurationError,
    ErrorKind,
    IdempotencyConflict,
    ValidationError,
    VendorNotFound,
    VendorPermanentError,
    VendorTransientError,
)
from app.domains.fulfillment.services.orchestrator import (
    FulfillmentOrchestrator,
    OrchestratorConfig,
    request_fingerprint,
)
from app.external.vendors.base import Capability, VendorOrderResult
from app.models.fulfillment_order import FulfillmentOrder, FulfillmentStatus
from app.schemas.fulfillment import Address


def _count_orders(uow) -> int:
    return uow.db.scalar(select(func.count()).select_from(FulfillmentOrder))


@pytest.mark.asyncio
async def test_create_order_example_accepted(uow, orchestrator, vendor, make_request):
    vendor.script_create(VendorOrderResult(vendor_order_id="v1-999"))

    order = await orchestrator.create_order(uow, make_request("abc"), "v1")

    assert order.status == FulfillmentStatus.ACCEPTED
    assert order.vendor_order_id == "v1-999"
    assert order.retry_count == 0
    assert order.accepted_at is not None
    assert order.error_kind is None
    assert vendor.calls["create_order"] == 1


@pytest.mark.asyncio
async def test_same_key_returns_same_order_without_vendor_call(uow, orchestrator, vendor, make_request):
    first = await orchestrator.create_order(uow, make_request("k-1"), "v1")
    second = await orchestrator.create_order(uow, make_request("k-1"), "v1")

    assert second.id == first.id
    assert vendor.calls["create_order"] == 1
    assert _count_orders(uow) == 1


@pytest.mark.asyncio
async def test_equivalent_price_formatting_is_not_a_conflict(uow, orchestrator, vendor, make_request):
    first = await orchestrator.create_order(uow, make_request("k-2", [("sku-1", 2, "10.00")]), "v1")
    second = await orchestrator.create_order(uow, make_request("k-2", [("sku-1", 2, "10.0")]), "v1")

    assert second.id == first.id
    assert vendor.calls["create_order"] == 1


@pytest.mark.asyncio
async def test_same_key_different_items_is_conflict(uow, orchestrator, vendor, make_request):
    await orchestrator.create_order(uow, make_request("k-3", [("sku-1", 2, "10.00")]), "v1")

    with pytest.raises(IdempotencyConflict):
        await orchestrator.create_order(uow, make_request("k-3", [("sku-1", 3, "10.00")]), "v1")

    assert vendor.calls["create_order"] == 1


@pytest.mark.asyncio
async def test_same_key_other_vendor_is_conflict(uow, orchestrator, registry, vendor, make_request):
    from app.external.vendors.fake import FakeVendorAdapter

    registry.register("v2", FakeVendorAdapter("v2"))
    await orchestrator.create_order(uow, make_request("k-4"), "v1")

    with pytest.raises(IdempotencyConflict):
        await orchestrator.create_order(uow, make_request("k-4"), "v2")


@pytest.mark.asyncio
async def test_two_transient_failures_then_success(uow, orchestrator, vendor, make_request, sleeps):
    vendor.script_create(
        VendorTransientError("HTTP 503", vendor_id="v1"),
        VendorTransientError("HTTP 503", vendor_id="v1"),
        VendorOrderResult(vendor_order_id="v1-3"),
    )

    order = await orchestrator.create_order(uow, make_request("retry-ok"), "v1")

    assert order.status == FulfillmentStatus.ACCEPTED
    assert order.retry_count == 2
    assert order.vendor_order_id == "v1-3"
    assert order.last_error is None
    assert vendor.calls["create_order"] == 3
    # backoff exponencial: base, base*2
    assert sleeps == [pytest.approx(0.01), pytest.approx(0.02)]


@pytest.mark.asyncio
async def test_retry_after_is_respected_in_backoff(uow, orchestrator, vendor, make_request, sleeps):
    vendor.script_create(VendorTransientError("HTTP 429", vendor_id="v1", status_code=429, retry_after_s=0.5))

    order = await orchestrator.create_order(uow, make_request("rate-limited"), "v1")

    assert order.status == FulfillmentStatus.ACCEPTED
    assert sleeps == [pytest.approx(0.5)]


@pytest.mark.asyncio
async def test_permanent_failure_is_terminal_without_retries(uow, orchestrator, vendor, make_request, sleeps):
    vendor.script_create(VendorPermanentError("out of stock", vendor_id="v1", code="OUT_OF_STOCK"))

    order = await orchestrator.create_order(uow, make_request("perm"), "v1")

    assert order.status == FulfillmentStatus.FAILED
    assert order.retry_count == 0
    assert order.retryable is False
    assert order.error_kind == ErrorKind.VENDOR_PERMANENT
    assert "out of stock" in order.last_error
    assert vendor.calls["create_order"] == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_retries_exhausted_is_terminal(uow, orchestrator, vendor, make_request):
    vendor.script_create(*[VendorTransientError("HTTP 502", vendor_id="v1") for _ in range(4)])

    order = await orchestrator.create_order(uow, make_request("exhaust"), "v1")

    assert order.status == FulfillmentStatus.FAILED
    assert order.retry_count == 3
    assert order.retryable is False
    assert order.error_kind == ErrorKind.VENDOR_TRANSIENT
    assert "retries exhausted" in order.last_error
    assert vendor.calls["create_order"] == 4


@pytest.mark.asyncio
async def test_failed_order_is_returned_on_replay(uow, orchestrator, vendor, make_request):
    vendor.script_create(VendorPermanentError("invalid address", vendor_id="v1"))
    failed = await orchestrator.create_order(uow, make_request("replay-failed"), "v1")

    again = await orchestrator.create_order(uow, make_request("replay-failed"), "v1")

    assert again.id == failed.id
    assert again.status == FulfillmentStatus.FAILED
    assert vendor.calls["create_order"] == 1


@pytest.mark.asyncio
async def test_slow_vendor_times_out_and_never_stays_submitting(uow, registry, make_request):
    from app.external.vendors.fake import FakeVendorAdapter

    slow = FakeVendorAdapter("slow", timeout_s=0.05)
    slow.latency_s = 2.0
    registry.register("slow", slow)

    async def _no_wait(_):
        return None

    orch = FulfillmentOrchestrator(registry, OrchestratorConfig(max_retries=0), sleep=_no_wait)
    order = await orch.create_order(uow, make_request("slow-1"), "slow")

    assert order.status == FulfillmentStatus.FAILED
    assert order.error_kind == ErrorKind.VENDOR_TRANSIENT
    assert order.submitting_since is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "items,destination_overrides",
    [
        ([], {}),
        ([("sku-1", 0, "10.00")], {}),
        ([("sku-1", -1, "10.00")], {}),
        ([("", 1, "10.00")], {}),
        ([("sku-1", 1, "10.00")], {"city": ""}),
        ([("sku-1", 1, "10.00")], {"postal_code": "", "country": ""}),
    ],
)
async def test_invalid_requests_are_not_persisted(
    uow, orchestrator, vendor, make_request, address, items, destination_overrides
):
    destination = Address(**{**address.model_dump(), **destination_overrides})

    with pytest.raises(ValidationError):
        await orchestrator.create_order(uow, make_request("bad", items, destination), "v1")

    assert _count_orders(uow) == 0
    assert vendor.calls["create_order"] == 0


@pytest.mark.asyncio
async def test_disabled_vendor_fails_before_io(uow, orchestrator, registry, vendor, make_request):
    registry.disable("v1")

    with pytest.raises(ConfigurationError):
        await orchestrator.create_order(uow, make_request("disabled"), "v1")

    assert _count_orders(uow) == 0
    assert vendor.calls["create_order"] == 0


@pytest.mark.asyncio
async def test_vendor_without_order_capability(uow, orchestrator, registry, make_request):
    from app.external.vendors.fake import FakeVendorAdapter

    registry.register("quotes-only", FakeVendorAdapter("quotes-only"), [Capability.SHIPPING_QUOTE])

    with pytest.raises(ConfigurationError):
        await orchestrator.create_order(uow, make_request("nocap"), "quotes-only")


@pytest.mark.asyncio
async def test_unknown_vendor(uow, orchestrator, make_request):
    with pytest.raises(VendorNotFound):
        await orchestrator.create_order(uow, make_request("nobody"), "ghost")


@pytest.mark.asyncio
async def test_lease_held_returns_pending_record(uow, orchestrator, vendor, make_request):
    token = orchestrator.leases.try_acquire("busy")
    assert token

    order = await orchestrator.create_order(uow, make_request("busy"), "v1")

    assert order.status == FulfillmentStatus.PENDING
    assert vendor.calls["create_order"] == 0
    orchestrator.leases.release("busy", token)


@pytest.mark.asyncio
async def test_lease_released_after_vendor_exception(uow, orchestrator, vendor, make_request):
    vendor.script_create(VendorPermanentError("nope", vendor_id="v1"))

    await orchestrator.create_order(uow, make_request("release-me"), "v1")

    assert not orchestrator.leases.is_held("release-me")


@pytest.mark.asyncio
async def test_unclassified_adapter_error_counts_as_transient(uow, orchestrator, vendor, make_request):
    vendor.script_create(RuntimeError("socket exploded"))

    order = await orchestrator.create_order(uow, make_request("weird"), "v1")

    assert order.status == FulfillmentStatus.ACCEPTED
    assert order.retry_count == 1


def test_fingerprint_ignores_key_but_not_content(make_request):
    a = request_fingerprint(make_request("one"), "v1")
    b = request_fingerprint(make_request("two"), "v1")
    c = request_fingerprint(make_request("one", [("sku-1", 2, "10.01")]), "v1")
    d = request_fingerprint(make_request("one", notes="gift"), "v1")

    assert a == b
    assert a != c
    assert a != d
    assert request_fingerprint(make_request("one"), "v2") != a


def test_backoff_is_capped():
    cfg = OrchestratorConfig(backoff_base_s=1.0, backoff_max_s=5.0)

    assert cfg.backoff_for(0) == 1.0
    assert cfg.backoff_for(2) == 4.0
    assert cfg.backoff_for(5) == 5.0
    assert cfg.backoff_for(0, retry_after_s=60) == 5.0


@pytest.mark.asyncio
async def test_payload_is_kept_for_retries(uow, orchestrator, vendor, make_request):
    order = await orchestrator.create_order(uow, make_request("payload", [("sku-9", 1, "3.50")]), "v1")

    assert order.request_payload["items"][0]["vendor_product_id"] == "sku-9"
    assert Decimal(order.request_payload["items"][0]["unit_price"]) == Decimal("3.50")
    assert order.request_payload["idempotency_key"] == "payload"
