from __future__ import annotations

from app.domains.vendors.services.registry import AdapterRegistry, VendorProfile
from app.schemas.vendors import VendorProfileOut


def to_out(profile: VendorProfile) -> VendorProfileOut:
    return VendorProfileOut(
        vendor_id=profile.vendor_id,
        display_name=profile.display_name,
        enabled=profile.enabled,
        capabilities=sorted(c.value for c in profile.capabilities),
        timeout_s=profile.timeout_s,
        rate_limit_per_minute=profile.rate_limit_per_minute,
    )


def execute(registry: AdapterRegistry) -> list[VendorProfileOut]:
    return [to_out(p) for p in registry.list_profiles()]
