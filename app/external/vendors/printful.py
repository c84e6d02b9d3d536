# app/external/vendors/printful.py
"""
Adapter Printful (print-on-demand).

Stock é sempre "disponível" (produção a pedido), por isso a listagem
normaliza stock=999.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from app.core.errors import VendorPermanentError, VendorTransientError
from app.external.vendors.base import (
    VENDOR_STATUS_CANCELLED,
    VENDOR_STATUS_DELIVERED,
    VENDOR_STATUS_PENDING,
    VENDOR_STATUS_PROCESSING,
    VENDOR_STATUS_SHIPPED,
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
from app.external.vendors.http_client import VendorHttpClient

DEFAULT_BASE_URL = "https://api.printful.com"
POD_STOCK = 999
PAGE_SIZE = 100
_CANCEL_REJECTED_STATUS = (400, 409)

STATUS_MAP = {
    "draft": VENDOR_STATUS_PENDING,
    "pending": VENDOR_STATUS_PENDING,
    "failed": VENDOR_STATUS_PENDING,
    "confirmed": VENDOR_STATUS_PROCESSING,
    "inprocess": VENDOR_STATUS_PROCESSING,
    "onhold": VENDOR_STATUS_PROCESSING,
    "partial": VENDOR_STATUS_SHIPPED,
    "fulfilled": VENDOR_STATUS_SHIPPED,
    "shipped": VENDOR_STATUS_SHIPPED,
    "delivered": VENDOR_STATUS_DELIVERED,
    "returned": VENDOR_STATUS_CANCELLED,
    "canceled": VENDOR_STATUS_CANCELLED,
    "cancelled": VENDOR_STATUS_CANCELLED,
}


def _dec(value: Any, default: str = "0") -> Decimal:
    try:
        return Decimal(str(value)) if value not in (None, "") else Decimal(default)
    except InvalidOperation:
        return Decimal(default)


def _result(payload: Any) -> Any:
    if isinstance(payload, dict) and "result" in payload:
        return payload["result"]
    return payload


class PrintfulAdapter(VendorAdapter):
    supported_capabilities = frozenset(
        {Capability.ORDER_CREATION, Capability.CATALOG_SYNC, Capability.SHIPPING_QUOTE}
    )

    def __init__(
        self,
        vendor_id: str,
        *,
        api_key: str,
        store_id: str | None = None,
        base_url: str | None = None,
        timeout_s: float = 15.0,
        rate_limit_per_minute: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("Printful api_key is required")
        super().__init__(vendor_id, timeout_s=timeout_s)
        self.http = VendorHttpClient(
            vendor_id,
            base_url=base_url or DEFAULT_BASE_URL,
            headers={"Authorization": f"Bearer {api_key}", "X-PF-Store-Id": store_id},
            timeout_s=timeout_s,
            rate_limit_per_minute=rate_limit_per_minute,
            transport=transport,
        )

    # ---------- Encomendas ----------

    async def create_order(self, request) -> VendorOrderResult:
        dest = request.destination
        body = {
            "external_id": request.idempotency_key,
            "shipping": "STANDARD",
            "recipient": {
                "name": f"{dest.first_name} {dest.last_name}".strip() or request.buyer.name,
                "company": dest.company or "",
                "address1": dest.address1,
                "address2": dest.address2 or "",
                "city": dest.city,
                "state_code": dest.state or "",
                "country_code": dest.country,
                "zip": dest.postal_code,
                "phone": dest.phone or request.buyer.phone or "",
                "email": request.buyer.email,
            },
            "items": [
                {
                    "sync_variant_id": item.vendor_product_id,
                    "quantity": item.quantity,
                    "retail_price": f"{item.unit_price:.2f}",
                }
                for item in request.items
            ],
        }
        if request.notes:
            body["notes"] = request.notes

        order = _result(
            await self.http.request(
                "POST", "/orders", operation="printful.create_order", json=body, params={"confirm": "true"}
            )
        )
        if not isinstance(order, dict) or not order.get("id"):
            raise VendorTransientError("printful.create_order: missing order id", vendor_id=self.vendor_id)

        costs = order.get("costs") or {}
        if not isinstance(order, dict):
            raise VendorTransientError("printful.order_status: unexpected payload", vendor_id=self.vendor_id)
        shipments = order.get("shipments") or []
        return VendorOrderResult(
            vendor_order_id=str(order["id"]),
            tracking_number=(shipments[0].get("tracking_number") if shipments else None),
            cost=_dec(costs.get("total")) if costs.get("total") is not None else None,
            currency=costs.get("currency"),
        )

    async def get_order_status(self, vendor_order_id: str) -> VendorOrderStatus:
        order = _result(
            await self.http.request("GET", f"/orders/{vendor_order_id}", operation="printful.order_status")
        )
        shipments = order.get("shipments") or []
        first = shipments[0] if shipments else {}
        return VendorOrderStatus(
            vendor_order_id=vendor_order_id,
            status=STATUS_MAP.get(str(order.get("status", "")).lower(), VENDOR_STATUS_PENDING),
            tracking_number=first.get("tracking_number"),
            tracking_url=first.get("tracking_url"),
        )

    async def cancel_order(self, vendor_order_id: str) -> CancelResult:
        try:
            order = _result(
                await self.http.request("DELETE", f"/orders/{vendor_order_id}", operation="printful.cancel")
            )
        except VendorPermanentError as e:
            # Printful responde 400/409 quando a encomenda já está em produção/enviada;
            # auth (401/403) e 404 não são uma recusa do cancelamento
            if e.status_code in _CANCEL_REJECTED_STATUS:
                return CancelResult(cancelled=False, reason=e.detail)
            raise

        if order is not None and not isinstance(order, dict):
            raise VendorTransientError("printful.cancel: unexpected payload", vendor_id=self.vendor_id)
        status = str((order or {}).get("status", "")).lower()
        if STATUS_MAP.get(status) in (VENDOR_STATUS_SHIPPED, VENDOR_STATUS_DELIVERED):
            return CancelResult(cancelled=False, reason=f"already {status}")
        return CancelResult(cancelled=True)

    # ---------- Catálogo ----------

    async def list_products(self, page_token: str | None = None) -> ProductPage:
        offset = int(page_token or 0)
        payload = await self.http.request(
            "GET",
            "/store/products",
            operation="printful.list_products",
            params={"offset": offset, "limit": PAGE_SIZE},
        )
        rows = _result(payload) or []
        paging = (payload or {}).get("paging") or {}

        items = [
            ProductListing(
                vendor_product_id=str(row.get("id")),
                title=row.get("name"),
                price=_dec(row.get("retail_price")),
                currency=row.get("currency") or "USD",
                stock=POD_STOCK,
                available=not row.get("is_ignored", False),
                gtin=row.get("gtin") or None,
            )
            for row in rows
            if row.get("id") is not None
        ]

        total = int(paging.get("total") or 0)
        next_offset = offset + len(rows)
        next_token = str(next_offset) if rows and next_offset < total else None
        return ProductPage(items=items, next_page_token=next_token)

    # ---------- Envio ----------

    async def quote_shipping(self, items, destination) -> VendorShippingQuote:
        body = {
            "recipient": {
                "address1": destination.address1,
                "city": destination.city,
                "country_code": destination.country,
                "state_code": destination.state or "",
                "zip": destination.postal_code,
            },
            "items": [{"variant_id": i.vendor_product_id, "quantity": i.quantity} for i in items],
        }
        rates = _result(
            await self.http.request("POST", "/shipping/rates", operation="printful.shipping_rates", json=body)
        )
        if not rates:
            raise VendorPermanentError(
                "printful.shipping_rates: no rates for destination",
                vendor_id=self.vendor_id,
                code="NO_SHIPPING_RATES",
            )

        best = min(rates, key=lambda r: _dec(r.get("rate")))
        return VendorShippingQuote(
            cost=_dec(best.get("rate")),
            currency=best.get("currency") or "USD",
            eta_min_days=int(best.get("minDeliveryDays") or 0),
            eta_max_days=int(best.get("maxDeliveryDays") or best.get("minDeliveryDays") or 0),
            service=best.get("name") or best.get("id"),
        )

    # ---------- Saúde ----------

    async def check_health(self) -> HealthStatus:
        try:
            store = _result(await self.http.request("GET", "/store", operation="printful.store"))
        except (VendorTransientError, VendorPermanentError) as e:
            return HealthStatus(status="error", details=e.detail)
        name = store.get("name") if isinstance(store, dict) else None
        return HealthStatus(status="ok", details=f"store={name or 'unknown'}")

    async def aclose(self) -> None:
        await self.http.aclose()
