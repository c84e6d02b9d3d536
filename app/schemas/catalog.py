from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class CatalogEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    vendor_id: str
    vendor_product_id: str
    local_product_id: str
    title: str | None = None
    gtin: str | None = None
    price: Decimal
    currency: str
    stock: int
    available: bool
    active: bool
    last_synced_at: datetime
    last_seen_at: datetime | None = None


class CatalogEntryListOut(BaseModel):
    items: list[CatalogEntryOut]
    total: int
    page: int
    page_size: int


class SyncResultOut(BaseModel):
    """Resumo de uma sincronização de catálogo."""

    vendor_id: str
    id_run: int | None = None
    status: str  # ok | partial | error | skipped
    pages: int = 0
    inserted: int = 0
    updated: int = 0
    deactivated: int = 0
    errors: list[str] = Field(default_factory=list)


class SyncRunOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    vendor_id: str
    status: str
    pages: int
    items_seen: int
    inserted: int
    updated: int
    deactivated: int
    items_failed: int
    error_msg: str | None = None
    started_at: datetime
    finished_at: datetime | None = None
    duration_ms: int | None = None


class SyncRunListOut(BaseModel):
    items: list[SyncRunOut]
    total: int
    page: int
    page_size: int
