# app/domains/vendors/services/registry.py
"""
Registry em memória: vendor_id -> (adapter, perfil).

Registos acontecem no arranque / reload de configuração; lookups em todos
os pedidos. Estratégia copy-on-write: quem escreve constrói um dict novo
sob lock e troca a referência; quem lê nunca bloqueia.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, replace

from app.core.errors import ConfigurationError, VendorNotFound
from app.external.vendors.base import Capability, VendorAdapter

log = logging.getLogger("dsf.registry")


@dataclass(frozen=True)
class VendorProfile:
    vendor_id: str
    display_name: str
    enabled: bool
    capabilities: frozenset[Capability]
    timeout_s: float = 15.0
    rate_limit_per_minute: int | None = None
    catalog_sync_interval_minutes: int | None = None

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities


@dataclass(frozen=True)
class _Registration:
    adapter: VendorAdapter
    profile: VendorProfile


class AdapterRegistry:
    def __init__(self) -> None:
        self._entries: dict[str, _Registration] = {}
        self._write_lock = threading.Lock()

    def register(
        self,
        vendor_id: str,
        adapter: VendorAdapter,
        capabilities: Iterable[Capability | str] | None = None,
        *,
        display_name: str | None = None,
        enabled: bool = True,
        timeout_s: float | None = None,
        rate_limit_per_minute: int | None = None,
        catalog_sync_interval_minutes: int | None = None,
    ) -> VendorProfile:
        """
        Regista (ou substitui) um fornecedor. A última registação ganha.
        Capabilities não declaradas pelo adapter são ignoradas com aviso.
        """
        if capabilities is None:
            caps = frozenset(adapter.supported_capabilities)
        else:
            caps = frozenset(Capability(c) for c in capabilities)

        unsupported = caps - adapter.supported_capabilities
        if unsupported:
            log.warning(
                "Vendor %s: adapter %s does not implement %s (ignored)",
                vendor_id,
                type(adapter).__name__,
                sorted(c.value for c in unsupported),
            )
            caps = caps & adapter.supported_capabilities

        profile = VendorProfile(
            vendor_id=vendor_id,
            display_name=display_name or vendor_id,
            enabled=enabled,
            capabilities=caps,
            timeout_s=timeout_s if timeout_s is not None else adapter.timeout_s,
            rate_limit_per_minute=rate_limit_per_minute,
            catalog_sync_interval_minutes=catalog_sync_interval_minutes,
        )

        with self._write_lock:
            if vendor_id in self._entries:
                log.warning("Vendor %s already registered - overwriting previous adapter", vendor_id)
            entries = dict(self._entries)
            entries[vendor_id] = _Registration(adapter=adapter, profile=profile)
            self._entries = entries

        log.info(
            "Registered vendor %s (%s) enabled=%s caps=%s",
            vendor_id,
            type(adapter).__name__,
            enabled,
            sorted(c.value for c in caps),
        )
        return profile

    def _get_entry(self, vendor_id: str) -> _Registration:
        entry = self._entries.get(vendor_id)
        if entry is None:
            raise VendorNotFound(f"Vendor '{vendor_id}' not registered")
        return entry

    def get(self, vendor_id: str) -> VendorAdapter:
        return self._get_entry(vendor_id).adapter

    def get_profile(self, vendor_id: str) -> VendorProfile:
        return self._get_entry(vendor_id).profile

    def require(self, vendor_id: str, capability: Capability) -> tuple[VendorAdapter, VendorProfile]:
        """Adapter + perfil de um fornecedor ativo com a capability, ou ConfigurationError."""
        entry = self._get_entry(vendor_id)
        if not entry.profile.enabled:
            raise ConfigurationError(f"Vendor '{vendor_id}' is disabled")
        if not entry.profile.supports(capability):
            raise ConfigurationError(f"Vendor '{vendor_id}' does not support {capability.value}")
        return entry.adapter, entry.profile

    def list_enabled(self, capability: Capability | None = None) -> list[str]:
        """vendor_ids ativos (por ordem de registo), opcionalmente filtrados por capability."""
        return [
            vid
            for vid, entry in self._entries.items()
            if entry.profile.enabled and (capability is None or entry.profile.supports(capability))
        ]

    def list_profiles(self) -> list[VendorProfile]:
        return [entry.profile for entry in self._entries.values()]

    def adapters(self) -> list[VendorAdapter]:
        return [entry.adapter for entry in self._entries.values()]

    def _set_enabled(self, vendor_id: str, enabled: bool) -> VendorProfile:
        with self._write_lock:
            entry = self._entries.get(vendor_id)
            if entry is None:
                raise VendorNotFound(f"Vendor '{vendor_id}' not registered")
            profile = replace(entry.profile, enabled=enabled)
            entries = dict(self._entries)
            entries[vendor_id] = _Registration(adapter=entry.adapter, profile=profile)
            self._entries = entries
        log.info("Vendor %s %s", vendor_id, "enabled" if enabled else "disabled")
        return profile

    def enable(self, vendor_id: str) -> VendorProfile:
        return self._set_enabled(vendor_id, True)

    def disable(self, vendor_id: str) -> VendorProfile:
        """Soft-disable: encomendas existentes continuam a referenciar o fornecedor."""
        return self._set_enabled(vendor_id, False)

    def __contains__(self, vendor_id: str) -> bool:
        return vendor_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
