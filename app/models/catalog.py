"""
Modelos SQLAlchemy do catálogo sincronizado a partir dos fornecedores.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.infra.base import Base, utcnow


class CatalogEntry(Base):
    """
    Produto de um fornecedor mapeado para um produto local.

    (vendor_id, vendor_product_id) é único; o mesmo local_product_id pode
    ser servido por vários fornecedores.
    """

    __tablename__ = "catalog_entries"
    __table_args__ = (UniqueConstraint("vendor_id", "vendor_product_id", name="uq_catalog_vendor_product"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    vendor_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    vendor_product_id: Mapped[str] = mapped_column(String(128), nullable=False)
    local_product_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    gtin: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)

    price: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # False quando desaparece do feed do fornecedor (nunca se apaga)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    # Última alteração efetiva (insert/update) e última vez visto no feed
    last_synced_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    last_seen_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_seen_run_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<CatalogEntry {self.vendor_id}:{self.vendor_product_id} active={self.active}>"


class CatalogSyncRun(Base):
    """Execução de sincronização de catálogo de um fornecedor."""

    __tablename__ = "catalog_sync_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vendor_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # "running" | "ok" | "partial" | "error"
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True, default="running")

    pages: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_seen: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    inserted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    deactivated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    error_msg: Mapped[str | None] = mapped_column(Text, nullable=True)

    started_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False, index=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def __repr__(self) -> str:
        return f"<CatalogSyncRun id={self.id} vendor={self.vendor_id} status={self.status}>"
