# app/domains/catalog/usecases/sync/due_vendors.py
from __future__ import annotations

from datetime import datetime, timedelta

from app.domains.vendors.services.registry import AdapterRegistry
from app.external.vendors.base import Capability
from app.infra.uow import UoW
from app.repositories.catalog.read.sync_run_read_repo import CatalogSyncRunReadRepository


def execute(
    uow: UoW,
    registry: AdapterRegistry,
    *,
    now: datetime,
    default_interval_minutes: int = 60,
) -> list[str]:
    """
    Fornecedores com catalog_sync cuja última run começou há mais do que o
    intervalo configurado. Fornecedores com uma run 'running' ficam de fora
    (o trigger é ignorado, não fica em fila).
    """
    run_r = CatalogSyncRunReadRepository(uow.db)
    due: list[str] = []

    for vendor_id in registry.list_enabled(Capability.CATALOG_SYNC):
        if run_r.get_running(vendor_id) is not None:
            continue
        interval = registry.get_profile(vendor_id).catalog_sync_interval_minutes or default_interval_minutes
        last = run_r.last_finished(vendor_id)
        if last is None or last.started_at + timedelta(minutes=interval) <= now:
            due.append(vendor_id)

    return due
