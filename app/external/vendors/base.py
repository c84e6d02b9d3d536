"""
Contrato uniforme dos adapters de fornecedor.

Cada adapter traduz os DTOs normalizados abaixo para o protocolo do
fornecedor e devolve sempre DTOs normalizados. Erros de transporte nunca
saem do adapter: são mapeados para VendorTransientError ou
VendorPermanentError (na dúvida, transient).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from app.core.errors import ConfigurationError

if TYPE_CHECKING:
    from app.schemas.fulfillment import Address, FulfillmentRequest, LineItem


class Capability(str, Enum):
    ORDER_CREATION = "order_creation"
    CATALOG_SYNC = "catalog_sync"
    SHIPPING_QUOTE = "shipping_quote"


ALL_CAPABILITIES = frozenset(Capability)


# Estados normalizados devolvidos por get_order_status
VENDOR_STATUS_PENDING = "pending"
VENDOR_STATUS_PROCESSING = "processing"
VENDOR_STATUS_SHIPPED = "shipped"
VENDOR_STATUS_DELIVERED = "delivered"
VENDOR_STATUS_CANCELLED = "cancelled"


# --------------------- DTOs ---------------------


@dataclass(frozen=True)
class VendorOrderResult:
    vendor_order_id: str
    tracking_number: str | None = None
    estimated_delivery: datetime | None = None
    cost: Decimal | None = None
    currency: str | None = None


@dataclass(frozen=True)
class VendorOrderStatus:
    vendor_order_id: str
    status: str  # pending | processing | shipped | delivered | cancelled
    tracking_number: str | None = None
    tracking_url: str | None = None


@dataclass(frozen=True)
class CancelResult:
    cancelled: bool
    reason: str | None = None


@dataclass(frozen=True)
class ProductListing:
    vendor_product_id: str
    title: str | None
    price: Decimal
    currency: str = "USD"
    stock: int = 0
    available: bool = True
    gtin: str | None = None


@dataclass
class ProductPage:
    items: list[ProductListing] = field(default_factory=list)
    next_page_token: str | None = None


@dataclass(frozen=True)
class VendorShippingQuote:
    cost: Decimal
    currency: str
    eta_min_days: int
    eta_max_days: int
    service: str | None = None


@dataclass(frozen=True)
class HealthStatus:
    status: str  # ok | error
    details: str | None = None


# --------------------- Adapter ---------------------


class VendorAdapter:
    """
    Base dos adapters. Os métodos por omissão rejeitam a operação com
    ConfigurationError; cada adapter implementa as capabilities que declara.
    """

    supported_capabilities: frozenset[Capability] = frozenset()

    def __init__(self, vendor_id: str, *, timeout_s: float = 15.0) -> None:
        self.vendor_id = vendor_id
        self.timeout_s = timeout_s

    def _unsupported(self, capability: Capability):
        return ConfigurationError(
            f"Vendor '{self.vendor_id}' does not support {capability.value}"
        )

    async def create_order(self, request: FulfillmentRequest) -> VendorOrderResult:
        raise self._unsupported(Capability.ORDER_CREATION)

    async def get_order_status(self, vendor_order_id: str) -> VendorOrderStatus:
        raise self._unsupported(Capability.ORDER_CREATION)

    async def cancel_order(self, vendor_order_id: str) -> CancelResult:
        raise self._unsupported(Capability.ORDER_CREATION)

    async def list_products(self, page_token: str | None = None) -> ProductPage:
        raise self._unsupported(Capability.CATALOG_SYNC)

    async def quote_shipping(
        self, items: list[LineItem], destination: Address
    ) -> VendorShippingQuote:
        raise self._unsupported(Capability.SHIPPING_QUOTE)

    async def check_health(self) -> HealthStatus:
        return HealthStatus(status="ok")

    async def aclose(self) -> None:
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} vendor={self.vendor_id}>"
