"""
UseCase: Saúde dos fornecedores registados (chamadas em paralelo, com timeout).
"""

from __future__ import annotations

import asyncio
import logging

from app.core.errors import AppError
from app.domains.vendors.services.calls import call_with_timeout, effective_timeout
from app.domains.vendors.services.registry import AdapterRegistry, VendorProfile
from app.schemas.vendors import VendorHealthOut

log = logging.getLogger("dsf.vendors")


async def _check_one(registry: AdapterRegistry, profile: VendorProfile, timeout_s: float) -> VendorHealthOut:
    if not profile.enabled:
        return VendorHealthOut(vendor_id=profile.vendor_id, status="disabled")
    try:
        health = await call_with_timeout(
            registry.get(profile.vendor_id).check_health(),
            vendor_id=profile.vendor_id,
            timeout_s=effective_timeout(profile.timeout_s, timeout_s),
            operation="check_health",
        )
    except AppError as e:
        log.warning("[health vendor=%s] %s", profile.vendor_id, e.detail)
        return VendorHealthOut(vendor_id=profile.vendor_id, status="error", details=e.detail)
    return VendorHealthOut(vendor_id=profile.vendor_id, status=health.status, details=health.details)


async def execute(registry: AdapterRegistry, *, timeout_s: float = 5.0) -> list[VendorHealthOut]:
    profiles = registry.list_profiles()
    return list(await asyncio.gather(*(_check_one(registry, p, timeout_s) for p in profiles)))
