# app/external/vendors/spocket.py
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
from app.external.vendors.http_client import DEFAULT_PERMANENT_CODES, VendorHttpClient

DEFAULT_BASE_URL = "https://api.spocket.co/v1"

STATUS_MAP = {
    "pending": VENDOR_STATUS_PENDING,
    "unpaid": VENDOR_STATUS_PENDING,
    "processing": VENDOR_STATUS_PROCESSING,
    "paid": VENDOR_STATUS_PROCESSING,
    "shipped": VENDOR_STATUS_SHIPPED,
    "in_transit": VENDOR_STATUS_SHIPPED,
    "delivered": VENDOR_STATUS_DELIVERED,
    "cancelled": VENDOR_STATUS_CANCELLED,
    "refunded": VENDOR_STATUS_CANCELLED,
}

# Spocket devolve estes códigos no corpo do erro
PERMANENT_CODES = DEFAULT_PERMANENT_CODES | {"sold_out", "product_unavailable", "unsupported_country"}


def _dec(value: Any) -> Decimal:
    try:
        return Decimal(str(value)) if value not in (None, "") else Decimal("0")
    except InvalidOperation:
        return Decimal("0")


class SpocketAdapter(VendorAdapter):
    """Adapter Spocket (fornecedores EU/US)."""

    supported_capabilities = frozenset(
        {Capability.ORDER_CREATION, Capability.CATALOG_SYNC, Capability.SHIPPING_QUOTE}
    )

    def __init__(
        self,
        vendor_id: str,
        *,
        api_key: str,
        base_url: str | None = None,
        timeout_s: float = 15.0,
        rate_limit_per_minute: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("Spocket api_key is required")
        super().__init__(vendor_id, timeout_s=timeout_s)
        self.http = VendorHttpClient(
            vendor_id,
            base_url=base_url or DEFAULT_BASE_URL,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout_s=timeout_s,
            rate_limit_per_minute=rate_limit_per_minute,
            permanent_codes=PERMANENT_CODES,
            transport=transport,
        )

    async def create_order(self, request) -> VendorOrderResult:
        dest = request.destination
        body = {
            "reference": request.idempotency_key,
            "customer": {
                "name": request.buyer.name,
                "email": request.buyer.email,
                "phone": request.buyer.phone,
            },
            "shipping_address": {
                "first_name": dest.first_name,
                "last_name": dest.last_name,
                "address1": dest.address1,
                "address2": dest.address2,
                "city": dest.city,
                "province": dest.state,
                "zip": dest.postal_code,
                "country_code": dest.country,
            },
            "line_items": [
                {"product_id": i.vendor_product_id, "quantity": i.quantity, "price": str(i.unit_price)}
                for i in request.items
            ],
            "note": request.notes,
        }
        data = await self.http.request("POST", "/orders", operation="spocket.create_order", json=body)
        order = data.get("order") if isinstance(data, dict) else None
        if not order or not order.get("id"):
            raise VendorTransientError("spocket.create_order: missing order id", vendor_id=self.vendor_id)

        return VendorOrderResult(
            vendor_order_id=str(order["id"]),
            tracking_number=order.get("tracking_number"),
            cost=_dec(order["total"]) if order.get("total") is not None else None,
            currency=order.get("currency"),
        )

    async def get_order_status(self, vendor_order_id: str) -> VendorOrderStatus:
        data = await self.http.request("GET", f"/orders/{vendor_order_id}", operation="spocket.order_status")
        order = data.get("order") or {}
        return VendorOrderStatus(
            vendor_order_id=vendor_order_id,
            status=STATUS_MAP.get(str(order.get("status", "")).lower(), VENDOR_STATUS_PENDING),
            tracking_number=order.get("tracking_number"),
            tracking_url=order.get("tracking_url"),
        )

    async def cancel_order(self, vendor_order_id: str) -> CancelResult:
        try:
            data = await self.http.request(
                "POST", f"/orders/{vendor_order_id}/cancel", operation="spocket.cancel"
            )
        except VendorPermanentError as e:
            return CancelResult(cancelled=False, reason=e.detail)
        if isinstance(data, dict) and data.get("success") is False:
            return CancelResult(cancelled=False, reason=str(data.get("message") or "rejected"))
        return CancelResult(cancelled=True)

    async def list_products(self, page_token: str | None = None) -> ProductPage:
        page = int(page_token or 1)
        data = await self.http.request(
            "GET", "/products", operation="spocket.list_products", params={"page": page}
        )
        rows = data.get("products") or []
        meta = data.get("meta") or {}

        items = []
        for row in rows:
            stock = int(row.get("inventory") or 0)
            items.append(
                ProductListing(
                    vendor_product_id=str(row["id"]),
                    title=row.get("title"),
                    price=_dec(row.get("price")),
                    currency=row.get("currency") or "USD",
                    stock=stock,
                    available=stock > 0 and row.get("status", "active") == "active",
                    gtin=row.get("barcode") or None,
                )
            )

        total_pages = int(meta.get("total_pages") or page)
        return ProductPage(items=items, next_page_token=str(page + 1) if page < total_pages else None)

    async def quote_shipping(self, items, destination) -> VendorShippingQuote:
        body = {
            "country_code": destination.country,
            "zip": destination.postal_code,
            "line_items": [{"product_id": i.vendor_product_id, "quantity": i.quantity} for i in items],
        }
        data = await self.http.request("POST", "/shipping/calculate", operation="spocket.shipping", json=body)
        return VendorShippingQuote(
            cost=_dec(data.get("cost")),
            currency=data.get("currency") or "USD",
            eta_min_days=int(data.get("min_days") or 0),
            eta_max_days=int(data.get("max_days") or data.get("min_days") or 0),
            service=data.get("method"),
        )

    async def check_health(self) -> HealthStatus:
        try:
            data = await self.http.request("GET", "/products/count", operation="spocket.health")
        except (VendorTransientError, VendorPermanentError) as e:
            return HealthStatus(status="error", details=e.detail)
        return HealthStatus(status="ok", details=f"products={data.get('count', '?')}")

    async def aclose(self) -> None:
        await self.http.aclose()
