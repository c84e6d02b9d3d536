"""
UseCases: estado de envio vindo do fornecedor (push via webhook ou pull via polling).
"""

from __future__ import annotations

from app.domains.fulfillment.services.orchestrator import FulfillmentOrchestrator
from app.infra.uow import UoW
from app.schemas.fulfillment import FulfillmentOrderOut, StatusUpdateIn


def execute(
    uow: UoW,
    orchestrator: FulfillmentOrchestrator,
    *,
    order_id: int,
    payload: StatusUpdateIn,
) -> FulfillmentOrderOut:
    order = orchestrator.apply_status_update(
        uow, order_id, payload.status, tracking_number=payload.tracking_number
    )
    return FulfillmentOrderOut.model_validate(order)


async def execute_reconcile(
    uow: UoW, orchestrator: FulfillmentOrchestrator, *, order_id: int
) -> FulfillmentOrderOut:
    order = await orchestrator.reconcile_order_status(uow, order_id)
    return FulfillmentOrderOut.model_validate(order)
