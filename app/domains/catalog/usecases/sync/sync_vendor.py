from __future__ import annotations

from app.domains.catalog.services.sync_coordinator import CatalogSyncCoordinator
from app.infra.uow import UoW
from app.schemas.catalog import SyncResultOut


async def execute(uow: UoW, coordinator: CatalogSyncCoordinator, *, vendor_id: str) -> SyncResultOut:
    return await coordinator.sync_vendor(uow, vendor_id)
