"""
Pydantic schemas para pedidos e encomendas de fulfillment.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from app.core.errors import ErrorKind
from app.models.fulfillment_order import FulfillmentStatus


# --------------------- Pedido (entrada) ---------------------


class Address(BaseModel):
    """Morada de entrega (já validada pelo checkout)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    first_name: str = ""
    last_name: str = ""
    company: str | None = None
    address1: str = ""
    address2: str | None = None
    city: str = ""
    state: str | None = None
    postal_code: str = ""
    country: str = ""  # ISO-3166 alpha-2
    phone: str | None = None


class BuyerContact(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    email: str
    phone: str | None = None


class LineItem(BaseModel):
    """Linha com id de produto no espaço do fornecedor."""

    model_config = ConfigDict(frozen=True)

    vendor_product_id: str
    quantity: int
    unit_price: Decimal
    # Opcional: só relevante para cotações sem fornecedor fixo
    vendor_id: str | None = None


class FulfillmentRequest(BaseModel):
    """Pedido de fulfillment. Imutável depois de submetido."""

    model_config = ConfigDict(frozen=True)

    items: tuple[LineItem, ...]
    destination: Address
    buyer: BuyerContact
    notes: str | None = None
    idempotency_key: str = Field(min_length=1, max_length=128)


class FulfillmentRequestIn(BaseModel):
    """Payload HTTP: idempotency_key pode vir no header Idempotency-Key."""

    items: list[LineItem]
    destination: Address
    buyer: BuyerContact
    notes: str | None = None
    idempotency_key: str | None = Field(default=None, max_length=128)


# --------------------- Encomenda (saída) ---------------------


class FulfillmentOrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    idempotency_key: str
    vendor_id: str
    vendor_order_id: str | None = None
    status: FulfillmentStatus

    tracking_number: str | None = None
    estimated_delivery_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None

    vendor_cost: Decimal | None = None
    currency: str | None = None

    error_kind: ErrorKind | None = None
    last_error: str | None = None
    retryable: bool = False
    retry_count: int = 0

    created_at: datetime
    updated_at: datetime | None = None


class FulfillmentOrderListOut(BaseModel):
    items: list[FulfillmentOrderOut]
    total: int
    page: int
    page_size: int


# --------------------- Acções ---------------------


class StatusUpdateIn(BaseModel):
    """Atualização de estado empurrada externamente (webhook / operador)."""

    status: FulfillmentStatus
    tracking_number: str | None = None
