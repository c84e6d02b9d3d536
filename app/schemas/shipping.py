"""
Pydantic schemas para cotações de envio.
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field

from app.schemas.fulfillment import Address, LineItem


class ShippingQuoteIn(BaseModel):
    items: list[LineItem]
    destination: Address


class ShippingQuote(BaseModel):
    """Cotação comparável de um fornecedor. Nunca é persistida."""

    vendor_id: str
    cost: Decimal
    currency: str
    eta_min_days: int
    eta_max_days: int
    service: str | None = None


class ShippingQuoteResult(BaseModel):
    quotes: list[ShippingQuote] = Field(default_factory=list)
    failed_vendors: list[str] = Field(default_factory=list)
    # vendor_id -> motivo (timeout, erro do fornecedor, ...)
    errors: dict[str, str] = Field(default_factory=dict)
    # Produtos que nenhum fornecedor ativo consegue servir
    unfulfillable: list[str] = Field(default_factory=list)
