# app/external/vendors/fake.py
"""
Adapter determinístico para testes e desenvolvimento.

Implementa o mesmo contrato dos adapters reais e é registado da mesma
forma, por isso é intercambiável com eles no registry. Os resultados
podem ser "programados" (script_*), e cada chamada fica registada em
`calls` para asserções.
"""

from __future__ import annotations

import asyncio
from collections import deque
from decimal import Decimal

from app.core.errors import VendorError
from app.external.vendors.base import (
    VENDOR_STATUS_PENDING,
    VENDOR_STATUS_SHIPPED,
    VENDOR_STATUS_DELIVERED,
    CancelResult,
    Capability,
    HealthStatus,
    ProductListing,
    ProductPage,
    VendorAdapter,
    VendorOrderResult,
    VendorOrderStatus,
    VendorShippingQuote,
)


class FakeVendorAdapter(VendorAdapter):
    supported_capabilities = frozenset(Capability)

    def __init__(
        self,
        vendor_id: str,
        *,
        timeout_s: float = 5.0,
        products: list[ProductListing] | None = None,
        page_size: int = 50,
        shipping_cost: Decimal = Decimal("4.99"),
        eta_days: tuple[int, int] = (3, 7),
    ) -> None:
        super().__init__(vendor_id, timeout_s=timeout_s)
        self.products: list[ProductListing] = list(products or [])
        self.page_size = page_size
        self.shipping_cost = shipping_cost
        self.eta_days = eta_days

        self.calls: dict[str, int] = {
            "create_order": 0,
            "get_order_status": 0,
            "cancel_order": 0,
            "list_products": 0,
            "quote_shipping": 0,
        }
        self.orders: dict[str, VendorOrderStatus] = {}

        self._create_outcomes: deque = deque()
        self._seq = 0
        self.fail_on_page: int | None = None
        self.page_error: VendorError | None = None
        self.latency_s = 0.0
        self.healthy = True

    # ---------- Configuração para testes ----------

    def script_create(self, *outcomes: VendorOrderResult | VendorError) -> None:
        """Próximos resultados de create_order (por ordem). Depois disso: sucesso."""
        self._create_outcomes.extend(outcomes)

    def set_status(self, vendor_order_id: str, status: str, tracking_number: str | None = None) -> None:
        self.orders[vendor_order_id] = VendorOrderStatus(
            vendor_order_id=vendor_order_id,
            status=status,
            tracking_number=tracking_number,
        )

    def fail_listing_at(self, page_index: int, error: VendorError) -> None:
        self.fail_on_page = page_index
        self.page_error = error

    # ---------- Contrato ----------

    async def _delay(self) -> None:
        if self.latency_s:
            await asyncio.sleep(self.latency_s)

    async def create_order(self, request) -> VendorOrderResult:
        self.calls["create_order"] += 1
        await self._delay()

        if self._create_outcomes:
            outcome = self._create_outcomes.popleft()
            if isinstance(outcome, Exception):
                raise outcome
        else:
            self._seq += 1
            outcome = VendorOrderResult(vendor_order_id=f"{self.vendor_id}-{self._seq:04d}")

        self.orders[outcome.vendor_order_id] = VendorOrderStatus(
            vendor_order_id=outcome.vendor_order_id,
            status=VENDOR_STATUS_PENDING,
            tracking_number=outcome.tracking_number,
        )
        return outcome

    async def get_order_status(self, vendor_order_id: str) -> VendorOrderStatus:
        self.calls["get_order_status"] += 1
        await self._delay()
        return self.orders.get(
            vendor_order_id,
            VendorOrderStatus(vendor_order_id=vendor_order_id, status=VENDOR_STATUS_PENDING),
        )

    async def cancel_order(self, vendor_order_id: str) -> CancelResult:
        self.calls["cancel_order"] += 1
        await self._delay()
        current = self.orders.get(vendor_order_id)
        if current and current.status in (VENDOR_STATUS_SHIPPED, VENDOR_STATUS_DELIVERED):
            return CancelResult(cancelled=False, reason=f"already {current.status}")
        return CancelResult(cancelled=True)

    async def list_products(self, page_token: str | None = None) -> ProductPage:
        self.calls["list_products"] += 1
        await self._delay()
        page = int(page_token or 0)
        if self.fail_on_page is not None and page == self.fail_on_page and self.page_error:
            raise self.page_error

        start = page * self.page_size
        chunk = self.products[start : start + self.page_size]
        has_more = start + self.page_size < len(self.products)
        return ProductPage(items=chunk, next_page_token=str(page + 1) if has_more else None)

    async def quote_shipping(self, items, destination) -> VendorShippingQuote:
        self.calls["quote_shipping"] += 1
        await self._delay()
        units = sum(i.quantity for i in items)
        return VendorShippingQuote(
            cost=self.shipping_cost + Decimal("0.50") * max(units - 1, 0),
            currency="USD",
            eta_min_days=self.eta_days[0],
            eta_max_days=self.eta_days[1],
            service="Standard",
        )

    async def check_health(self) -> HealthStatus:
        if not self.healthy:
            return HealthStatus(status="error", details="fake vendor marked unhealthy")
        return HealthStatus(status="ok", details="fake vendor")
