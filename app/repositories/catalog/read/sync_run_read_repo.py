# app/repositories/catalog/read/sync_run_read_repo.py
from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.errors import NotFound
from app.models.catalog import CatalogSyncRun


class CatalogSyncRunReadRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, id_run: int) -> CatalogSyncRun | None:
        return self.db.get(CatalogSyncRun, id_run)

    def get_required(self, id_run: int) -> CatalogSyncRun:
        run = self.get(id_run)
        if not run:
            raise NotFound("Run not found")
        return run

    def get_running(self, vendor_id: str) -> CatalogSyncRun | None:
        stmt = (
            select(CatalogSyncRun)
            .where(CatalogSyncRun.vendor_id == vendor_id)
            .where(CatalogSyncRun.status == "running")
            .order_by(CatalogSyncRun.id.desc())
            .limit(1)
        )
        return self.db.scalar(stmt)

    def last_finished(self, vendor_id: str) -> CatalogSyncRun | None:
        stmt = (
            select(CatalogSyncRun)
            .where(CatalogSyncRun.vendor_id == vendor_id)
            .where(CatalogSyncRun.status != "running")
            .order_by(CatalogSyncRun.started_at.desc())
            .limit(1)
        )
        return self.db.scalar(stmt)

    def list(
        self, *, vendor_id: str | None = None, page: int = 1, page_size: int = 50
    ) -> tuple[list[CatalogSyncRun], int]:
        stmt = select(CatalogSyncRun)
        if vendor_id:
            stmt = stmt.where(CatalogSyncRun.vendor_id == vendor_id)
        total = self.db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        stmt = stmt.order_by(CatalogSyncRun.id.desc()).offset((page - 1) * page_size).limit(page_size)
        return list(self.db.scalars(stmt)), total
