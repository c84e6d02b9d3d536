# app/api/v1/shipping.py
from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from app.core.deps import get_shipping, get_uow
from app.domains.shipping.services.quote_aggregator import ShippingQuoteAggregator
from app.domains.shipping.usecases.quote_shipping import execute as uc_quote
from app.infra.uow import UoW
from app.schemas.shipping import ShippingQuoteIn, ShippingQuoteResult

router = APIRouter(prefix="/shipping", tags=["shipping"])


@router.post("/quotes", response_model=ShippingQuoteResult)
async def quote_shipping(
    payload: ShippingQuoteIn,
    uow: Annotated[UoW, Depends(get_uow)],
    aggregator: Annotated[ShippingQuoteAggregator, Depends(get_shipping)],
):
    """Cotações de todos os fornecedores que servem os produtos; os lentos vão para failed_vendors."""
    return await uc_quote(uow, aggregator, payload=payload)
