from __future__ import annotations

from app.core.errors import OrderNotFound
from app.domains.fulfillment.services.orchestrator import FulfillmentOrchestrator
from app.infra.uow import UoW
from app.schemas.fulfillment import FulfillmentOrderOut


def execute(uow: UoW, orchestrator: FulfillmentOrchestrator, *, order_id: int) -> FulfillmentOrderOut:
    return FulfillmentOrderOut.model_validate(orchestrator.get_order(uow, order_id))


def execute_by_key(uow: UoW, orchestrator: FulfillmentOrchestrator, *, key: str) -> FulfillmentOrderOut:
    order = orchestrator.get_by_idempotency_key(uow, key)
    if order is None:
        raise OrderNotFound(f"No order for idempotency key '{key}'")
    return FulfillmentOrderOut.model_validate(order)
