from __future__ import annotations

from app.domains.vendors.services.registry import AdapterRegistry
from app.domains.vendors.usecases.list_vendors import to_out
from app.schemas.vendors import VendorProfileOut


def execute(registry: AdapterRegistry, *, vendor_id: str, enabled: bool) -> VendorProfileOut:
    """Soft enable/disable: encomendas existentes não são afetadas."""
    profile = registry.enable(vendor_id) if enabled else registry.disable(vendor_id)
    return to_out(profile)
