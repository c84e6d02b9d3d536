from __future__ import annotations

from app.domains.shipping.services.quote_aggregator import ShippingQuoteAggregator
from app.infra.uow import UoW
from app.schemas.shipping import ShippingQuoteIn, ShippingQuoteResult


async def execute(uow: UoW, aggregator: ShippingQuoteAggregator, *, payload: ShippingQuoteIn) -> ShippingQuoteResult:
    return await aggregator.quote(uow, payload.items, payload.destination)
