# app/api/v1/vendors.py
from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from app.core.deps import get_registry, get_runtime
from app.domains.vendors.services.registry import AdapterRegistry
from app.domains.vendors.usecases import check_health as uc_health
from app.domains.vendors.usecases import list_vendors as uc_list
from app.domains.vendors.usecases import set_enabled as uc_set_enabled
from app.infra.bootstrap import Runtime
from app.schemas.vendors import VendorHealthOut, VendorProfileOut

router = APIRouter(prefix="/vendors", tags=["vendors"])

RegistryDep = Annotated[AdapterRegistry, Depends(get_registry)]


@router.get("", response_model=list[VendorProfileOut])
def list_vendors(registry: RegistryDep):
    return uc_list.execute(registry)


@router.get("/health", response_model=list[VendorHealthOut])
async def vendors_health(runtime: Annotated[Runtime, Depends(get_runtime)]):
    return await uc_health.execute(runtime.registry, timeout_s=runtime.settings.SHIPPING_QUOTE_TIMEOUT_S)


@router.post("/{vendor_id}/enable", response_model=VendorProfileOut)
def enable_vendor(vendor_id: str, registry: RegistryDep):
    return uc_set_enabled.execute(registry, vendor_id=vendor_id, enabled=True)


@router.post("/{vendor_id}/disable", response_model=VendorProfileOut)
def disable_vendor(vendor_id: str, registry: RegistryDep):
    return uc_set_enabled.execute(registry, vendor_id=vendor_id, enabled=False)
