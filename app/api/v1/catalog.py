# app/api/v1/catalog.py
from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.core.deps import get_catalog_sync, get_uow
from app.domains.catalog.services.sync_coordinator import CatalogSyncCoordinator
from app.domains.catalog.usecases.sync.list_entries import execute as uc_list_entries
from app.domains.catalog.usecases.sync.list_runs import execute as uc_list_runs
from app.domains.catalog.usecases.sync.sync_vendor import execute as uc_sync_vendor
from app.infra.uow import UoW
from app.schemas.catalog import CatalogEntryListOut, SyncResultOut, SyncRunListOut

router = APIRouter(prefix="/catalog", tags=["catalog"])

UowDep = Annotated[UoW, Depends(get_uow)]


@router.post(
    "/vendors/{vendor_id}/sync",
    response_model=SyncResultOut,
    summary="Sincronizar catálogo de um fornecedor (síncrono)",
)
async def sync_vendor(
    vendor_id: str,
    uow: UowDep,
    coordinator: Annotated[CatalogSyncCoordinator, Depends(get_catalog_sync)],
):
    """
    Lê todas as páginas do fornecedor e reconcilia com o catálogo local.
    Se já existir uma sync a correr para o fornecedor devolve status=skipped.
    """
    return await uc_sync_vendor(uow, coordinator, vendor_id=vendor_id)


@router.get("/entries", response_model=CatalogEntryListOut)
def list_entries(
    uow: UowDep,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    vendor_id: str | None = None,
    local_product_id: str | None = None,
    active: bool | None = None,
):
    return uc_list_entries(
        uow,
        page=page,
        page_size=page_size,
        vendor_id=vendor_id,
        local_product_id=local_product_id,
        active=active,
    )


@router.get("/runs", response_model=SyncRunListOut, summary="Histórico de sincronizações")
def list_runs(
    uow: UowDep,
    vendor_id: str | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
):
    return uc_list_runs(uow, vendor_id=vendor_id, page=page, page_size=page_size)
