# app/external/vendors/factory.py
from __future__ import annotations

from app.core.config import VendorSettings
from app.core.errors import ConfigurationError
from app.external.vendors.base import VendorAdapter
from app.external.vendors.fake import FakeVendorAdapter
from app.external.vendors.printful import PrintfulAdapter
from app.external.vendors.spocket import SpocketAdapter


def build_adapter(cfg: VendorSettings) -> VendorAdapter:
    """Instancia o adapter de um fornecedor a partir das settings."""
    kind = (cfg.kind or "").lower()

    if kind == "printful":
        return PrintfulAdapter(
            cfg.vendor_id,
            api_key=cfg.api_key or "",
            store_id=cfg.store_id,
            base_url=cfg.base_url,
            timeout_s=cfg.timeout_s,
            rate_limit_per_minute=cfg.rate_limit_per_minute,
        )
    if kind == "spocket":
        return SpocketAdapter(
            cfg.vendor_id,
            api_key=cfg.api_key or "",
            base_url=cfg.base_url,
            timeout_s=cfg.timeout_s,
            rate_limit_per_minute=cfg.rate_limit_per_minute,
        )
    if kind == "fake":
        return FakeVendorAdapter(cfg.vendor_id, timeout_s=cfg.timeout_s)

    raise ConfigurationError(f"Unknown vendor kind '{cfg.kind}' for vendor '{cfg.vendor_id}'")
