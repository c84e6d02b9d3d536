from __future__ import annotations

from app.infra.uow import UoW
from app.repositories.catalog.read.catalog_entry_read_repo import CatalogEntryReadRepository
from app.schemas.catalog import CatalogEntryListOut, CatalogEntryOut


def execute(
    uow: UoW,
    *,
    page: int = 1,
    page_size: int = 50,
    vendor_id: str | None = None,
    local_product_id: str | None = None,
    active: bool | None = None,
) -> CatalogEntryListOut:
    entries, total = CatalogEntryReadRepository(uow.db).list_entries(
        page=page,
        page_size=page_size,
        vendor_id=vendor_id,
        local_product_id=local_product_id,
        active=active,
    )
    return CatalogEntryListOut(
        items=[CatalogEntryOut.model_validate(e) for e in entries],
        total=total,
        page=page,
        page_size=page_size,
    )
