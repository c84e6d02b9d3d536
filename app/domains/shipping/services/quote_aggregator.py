# app/domains/shipping/services/quote_aggregator.py
from __future__ import annotations

import asyncio
import logging

from app.core.config import Settings
from app.core.errors import AppError, ValidationError
from app.domains.vendors.services.calls import call_with_timeout, effective_timeout
from app.domains.vendors.services.registry import AdapterRegistry
from app.external.vendors.base import Capability, VendorShippingQuote
from app.infra.uow import UoW
from app.repositories.catalog.read.catalog_entry_read_repo import CatalogEntryReadRepository
from app.schemas.fulfillment import Address, LineItem
from app.schemas.shipping import ShippingQuote, ShippingQuoteResult

log = logging.getLogger("dsf.shipping")


class ShippingQuoteAggregator:
    """
    Pede cotações de envio a todos os fornecedores relevantes em paralelo.

    Cada chamada tem o seu próprio timeout; espera-se por todas (não pela
    primeira). Um fornecedor lento ou em erro vai para failed_vendors e
    nunca faz falhar o pedido inteiro.
    """

    def __init__(self, registry: AdapterRegistry, *, timeout_s: float = 5.0) -> None:
        self.registry = registry
        self.timeout_s = timeout_s

    @classmethod
    def from_settings(cls, registry: AdapterRegistry, s: Settings) -> ShippingQuoteAggregator:
        return cls(registry, timeout_s=min(s.SHIPPING_QUOTE_TIMEOUT_S, s.VENDOR_TIMEOUT_CEILING_S))

    def group_by_vendor(
        self, uow: UoW, items: list[LineItem]
    ) -> tuple[dict[str, list[LineItem]], list[str]]:
        """
        vendor_id -> linhas que esse fornecedor consegue servir.
        Linhas com vendor_id explícito vão só para esse fornecedor; as
        restantes vão para todos os fornecedores com entrada ativa no catálogo.
        """
        enabled = self.registry.list_enabled(Capability.SHIPPING_QUOTE)
        enabled_set = set(enabled)

        unscoped = [i.vendor_product_id for i in items if not i.vendor_id]
        catalog_vendors = CatalogEntryReadRepository(uow.db).vendors_for_products(unscoped) if unscoped else {}

        groups: dict[str, list[LineItem]] = {}
        unfulfillable: list[str] = []

        for item in items:
            if item.vendor_id:
                candidates = [item.vendor_id] if item.vendor_id in enabled_set else []
            else:
                candidates = [v for v in catalog_vendors.get(item.vendor_product_id, []) if v in enabled_set]

            if not candidates:
                if item.vendor_product_id not in unfulfillable:
                    unfulfillable.append(item.vendor_product_id)
                continue
            for vid in candidates:
                groups.setdefault(vid, []).append(item)

        # ordem de registo, para resultados estáveis
        ordered = {vid: groups[vid] for vid in enabled if vid in groups}
        return ordered, unfulfillable

    async def _quote_one(
        self, vendor_id: str, items: list[LineItem], destination: Address
    ) -> tuple[str, VendorShippingQuote | None, str | None]:
        try:
            adapter = self.registry.get(vendor_id)
            profile = self.registry.get_profile(vendor_id)
            quote = await call_with_timeout(
                adapter.quote_shipping(items, destination),
                vendor_id=vendor_id,
                timeout_s=effective_timeout(profile.timeout_s, self.timeout_s),
                operation="quote_shipping",
            )
            return vendor_id, quote, None
        except AppError as e:
            log.warning("[quote vendor=%s] failed: %s", vendor_id, e.detail)
            return vendor_id, None, e.detail

    async def quote(self, uow: UoW, items: list[LineItem], destination: Address) -> ShippingQuoteResult:
        if not items:
            raise ValidationError("No line items to quote")
        for item in items:
            if item.quantity <= 0:
                raise ValidationError(f"{item.vendor_product_id}: quantity must be positive")

        groups, unfulfillable = self.group_by_vendor(uow, list(items))
        result = ShippingQuoteResult(unfulfillable=unfulfillable)
        if not groups:
            return result

        outcomes = await asyncio.gather(
            *(self._quote_one(vid, vitems, destination) for vid, vitems in groups.items())
        )

        for vendor_id, quote, error in outcomes:
            if quote is None:
                result.failed_vendors.append(vendor_id)
                result.errors[vendor_id] = error or "unknown error"
                continue
            result.quotes.append(
                ShippingQuote(
                    vendor_id=vendor_id,
                    cost=quote.cost,
                    currency=quote.currency,
                    eta_min_days=quote.eta_min_days,
                    eta_max_days=quote.eta_max_days,
                    service=quote.service,
                )
            )

        result.quotes.sort(key=lambda q: (q.cost, q.vendor_id))
        log.info(
            "shipping quote: vendors=%s quotes=%s failed=%s unfulfillable=%s",
            len(groups),
            len(result.quotes),
            result.failed_vendors,
            len(unfulfillable),
        )
        return result
