# app/repositories/catalog/write/catalog_entry_write_repo.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.external.vendors.base import ProductListing
from app.models.catalog import CatalogEntry


class CatalogEntryWriteRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def upsert(
        self,
        *,
        vendor_id: str,
        listing: ProductListing,
        local_product_id: str,
        id_run: int,
        now: datetime,
    ) -> tuple[CatalogEntry, bool, bool]:
        """
        Insere ou atualiza a entrada (vendor_id, vendor_product_id).

        last_synced_at só muda quando há alteração real; last_seen_* é
        sempre atualizado (usado para desativar os não vistos no fim da run).

        Returns:
            (entry, created, changed)
        """
        stmt = (
            select(CatalogEntry)
            .where(CatalogEntry.vendor_id == vendor_id)
            .where(CatalogEntry.vendor_product_id == listing.vendor_product_id)
        )
        entry = self.db.scalar(stmt)

        if entry is None:
            entry = CatalogEntry(
                vendor_id=vendor_id,
                vendor_product_id=listing.vendor_product_id,
                local_product_id=local_product_id,
                title=listing.title,
                gtin=listing.gtin,
                price=listing.price,
                currency=listing.currency,
                stock=listing.stock,
                available=listing.available,
                active=True,
                last_synced_at=now,
                last_seen_at=now,
                last_seen_run_id=id_run,
                created_at=now,
            )
            self.db.add(entry)
            self.db.flush()
            return entry, True, False

        changed = (
            entry.price != listing.price
            or entry.stock != listing.stock
            or entry.available != listing.available
            or entry.title != listing.title
            or entry.currency != listing.currency
            or not entry.active
        )
        if changed:
            entry.title = listing.title
            entry.price = listing.price
            entry.currency = listing.currency
            entry.stock = listing.stock
            entry.available = listing.available
            entry.active = True
            entry.last_synced_at = now
        if listing.gtin and not entry.gtin:
            entry.gtin = listing.gtin

        entry.last_seen_at = now
        entry.last_seen_run_id = id_run
        return entry, False, changed

    def deactivate_unseen(self, *, vendor_id: str, id_run: int, now: datetime) -> int:
        """
        Desativa (nunca apaga) as entradas ativas deste fornecedor que não
        foram vistas na run. Outros fornecedores não são tocados.
        """
        stmt = (
            update(CatalogEntry)
            .where(CatalogEntry.vendor_id == vendor_id)
            .where(CatalogEntry.active.is_(True))
            .where(
                (CatalogEntry.last_seen_run_id.is_(None)) | (CatalogEntry.last_seen_run_id != id_run)
            )
            .values(active=False, available=False, last_synced_at=now)
        )
        res = self.db.execute(stmt)
        return int(res.rowcount or 0)
