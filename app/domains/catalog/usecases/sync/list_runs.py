# app/domains/catalog/usecases/sync/list_runs.py
from __future__ import annotations

from app.infra.uow import UoW
from app.repositories.catalog.read.sync_run_read_repo import CatalogSyncRunReadRepository
from app.schemas.catalog import SyncRunListOut, SyncRunOut


def execute(uow: UoW, *, vendor_id: str | None = None, page: int = 1, page_size: int = 50) -> SyncRunListOut:
    runs, total = CatalogSyncRunReadRepository(uow.db).list(vendor_id=vendor_id, page=page, page_size=page_size)
    return SyncRunListOut(
        items=[SyncRunOut.model_validate(r) for r in runs],
        total=total,
        page=page,
        page_size=page_size,
    )
