# app/repositories/catalog/write/sync_run_write_repo.py
from __future__ import annotations

from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.errors import NotFound
from app.infra.base import utcnow
from app.models.catalog import CatalogSyncRun


class CatalogSyncRunWriteRepository:
    def __init__(self, db: Session):
        self.db = db

    def _get_required(self, id_run: int) -> CatalogSyncRun:
        run = self.db.get(CatalogSyncRun, id_run)
        if not run:
            raise NotFound("Run not found")
        return run

    def start(self, *, vendor_id: str) -> CatalogSyncRun:
        """Cria a run em 'running' com flush imediato (id usado em last_seen_run_id)."""
        run = CatalogSyncRun(vendor_id=vendor_id, status="running", started_at=utcnow())
        self.db.add(run)
        self.db.flush()
        return run

    def record_page(self, id_run: int, *, items_seen: int, inserted: int, updated: int, failed: int) -> None:
        run = self._get_required(id_run)
        run.pages += 1
        run.items_seen += items_seen
        run.inserted += inserted
        run.updated += updated
        run.items_failed += failed
        self.db.flush()

    def _finish(self, run: CatalogSyncRun) -> None:
        run.finished_at = utcnow()
        if run.started_at and run.finished_at:
            run.duration_ms = int((run.finished_at - run.started_at).total_seconds() * 1000)

    def finalize_ok(self, id_run: int, *, deactivated: int) -> None:
        run = self._get_required(id_run)
        run.status = "ok"
        run.deactivated = deactivated
        self._finish(run)
        self.db.flush()

    def finalize_partial(self, id_run: int, *, error_msg: str) -> None:
        """Paginação interrompida: o que foi processado fica, nada é desativado."""
        run = self._get_required(id_run)
        run.status = "partial"
        run.error_msg = (error_msg or "")[:500]
        self._finish(run)
        self.db.flush()

    def finalize_error(self, id_run: int, *, error_msg: str) -> None:
        run = self._get_required(id_run)
        run.status = "error"
        run.error_msg = (error_msg or "")[:500]
        self._finish(run)
        self.db.flush()

    def mark_stale_running_as_error(self, *, stale_after_minutes: int = 120) -> int:
        """
        Runs 'running' há mais de X minutos (worker crashou) passam a 'error'.
        Retorna o número de runs afetadas.
        """
        cutoff = utcnow() - timedelta(minutes=stale_after_minutes)
        stmt = (
            select(CatalogSyncRun)
            .where(CatalogSyncRun.status == "running")
            .where(CatalogSyncRun.started_at < cutoff)
        )
        count = 0
        for run in self.db.scalars(stmt).all():
            run.status = "error"
            run.error_msg = f"Stale: running for more than {stale_after_minutes} minutes"
            run.finished_at = utcnow()
            count += 1

        if count:
            self.db.flush()
        return count
