# app/infra/bootstrap.py
import logging
from dataclasses import dataclass

from app.core.config import Settings
from app.core.errors import ConfigurationError
from app.domains.catalog.services.sync_coordinator import CatalogSyncCoordinator
from app.domains.fulfillment.services.orchestrator import FulfillmentOrchestrator, OrchestratorConfig
from app.domains.shipping.services.quote_aggregator import ShippingQuoteAggregator
from app.domains.vendors.services.registry import AdapterRegistry
from app.external.vendors.factory import build_adapter

log = logging.getLogger("dsf.bootstrap")


@dataclass
class Runtime:
    """Instâncias partilhadas pela API e pelo worker (sem singletons globais)."""

    settings: Settings
    registry: AdapterRegistry
    orchestrator: FulfillmentOrchestrator
    catalog_sync: CatalogSyncCoordinator
    shipping: ShippingQuoteAggregator

    async def aclose(self) -> None:
        for adapter in self.registry.adapters():
            await adapter.aclose()


def build_registry(settings: Settings) -> AdapterRegistry:
    """
    Regista um adapter por entrada em settings.VENDORS.
    Uma definição inválida é ignorada (com erro no log) sem impedir o arranque.
    """
    registry = AdapterRegistry()
    for cfg in settings.VENDORS:
        try:
            adapter = build_adapter(cfg)
        except (ConfigurationError, ValueError) as e:
            log.error("Bootstrap: vendor %s skipped: %s", cfg.vendor_id, e)
            continue

        registry.register(
            cfg.vendor_id,
            adapter,
            cfg.capabilities,
            display_name=cfg.display_name,
            enabled=cfg.enabled,
            timeout_s=cfg.timeout_s,
            rate_limit_per_minute=cfg.rate_limit_per_minute,
            catalog_sync_interval_minutes=cfg.catalog_sync_interval_minutes,
        )

    if not len(registry):
        log.warning("Bootstrap: no vendors configured (set VENDORS)")
    return registry


def build_runtime(settings: Settings, registry: AdapterRegistry | None = None) -> Runtime:
    registry = registry if registry is not None else build_registry(settings)
    return Runtime(
        settings=settings,
        registry=registry,
        orchestrator=FulfillmentOrchestrator(registry, OrchestratorConfig.from_settings(settings)),
        catalog_sync=CatalogSyncCoordinator.from_settings(registry, settings),
        shipping=ShippingQuoteAggregator.from_settings(registry, settings),
    )
