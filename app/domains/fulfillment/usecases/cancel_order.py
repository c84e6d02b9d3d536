from __future__ import annotations

from app.domains.fulfillment.services.orchestrator import FulfillmentOrchestrator
from app.infra.uow import UoW
from app.schemas.fulfillment import FulfillmentOrderOut


async def execute(uow: UoW, orchestrator: FulfillmentOrchestrator, *, order_id: int) -> FulfillmentOrderOut:
    """PENDING cancela localmente; ACCEPTED pede o cancelamento ao fornecedor."""
    order = await orchestrator.cancel_order(uow, order_id)
    return FulfillmentOrderOut.model_validate(order)
