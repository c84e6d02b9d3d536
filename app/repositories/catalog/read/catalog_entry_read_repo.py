# app/repositories/catalog/read/catalog_entry_read_repo.py
from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.catalog import CatalogEntry


class CatalogEntryReadRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_by_vendor_product(self, vendor_id: str, vendor_product_id: str) -> CatalogEntry | None:
        stmt = (
            select(CatalogEntry)
            .where(CatalogEntry.vendor_id == vendor_id)
            .where(CatalogEntry.vendor_product_id == vendor_product_id)
        )
        return self.db.scalar(stmt)

    def local_product_id_for_gtin(self, gtin: str) -> str | None:
        """Produto local já associado a este GTIN (por qualquer fornecedor)."""
        if not gtin:
            return None
        stmt = (
            select(CatalogEntry.local_product_id)
            .where(CatalogEntry.gtin == gtin)
            .order_by(CatalogEntry.id.asc())
            .limit(1)
        )
        return self.db.scalar(stmt)

    def vendors_for_products(self, vendor_product_ids: Iterable[str]) -> dict[str, list[str]]:
        """vendor_product_id -> [vendor_id, ...] das entradas ativas (ordem de criação)."""
        ids = list({str(x) for x in vendor_product_ids})
        if not ids:
            return {}
        stmt = (
            select(CatalogEntry.vendor_product_id, CatalogEntry.vendor_id)
            .where(CatalogEntry.vendor_product_id.in_(ids))
            .where(CatalogEntry.active.is_(True))
            .order_by(CatalogEntry.id.asc())
        )
        out: dict[str, list[str]] = {}
        for vpid, vid in self.db.execute(stmt).all():
            out.setdefault(vpid, []).append(vid)
        return out

    def list_entries(
        self,
        *,
        page: int = 1,
        page_size: int = 50,
        vendor_id: str | None = None,
        local_product_id: str | None = None,
        active: bool | None = None,
    ) -> tuple[list[CatalogEntry], int]:
        stmt = select(CatalogEntry)
        if vendor_id:
            stmt = stmt.where(CatalogEntry.vendor_id == vendor_id)
        if local_product_id:
            stmt = stmt.where(CatalogEntry.local_product_id == local_product_id)
        if active is not None:
            stmt = stmt.where(CatalogEntry.active.is_(active))

        total = self.db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        stmt = stmt.order_by(CatalogEntry.id.asc()).offset((page - 1) * page_size).limit(page_size)
        return list(self.db.scalars(stmt)), total
