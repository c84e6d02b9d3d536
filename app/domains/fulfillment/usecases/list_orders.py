"""
UseCase: Listar encomendas de fulfillment.
"""

from __future__ import annotations

from app.domains.fulfillment.services.orchestrator import FulfillmentOrchestrator
from app.infra.uow import UoW
from app.models.fulfillment_order import FulfillmentStatus
from app.schemas.fulfillment import FulfillmentOrderListOut, FulfillmentOrderOut


def execute(
    uow: UoW,
    orchestrator: FulfillmentOrchestrator,
    *,
    page: int = 1,
    page_size: int = 50,
    status: FulfillmentStatus | None = None,
    vendor_id: str | None = None,
) -> FulfillmentOrderListOut:
    orders, total = orchestrator.list_orders(
        uow, page=page, page_size=page_size, status=status, vendor_id=vendor_id
    )
    return FulfillmentOrderListOut(
        items=[FulfillmentOrderOut.model_validate(o) for o in orders],
        total=total,
        page=page,
        page_size=page_size,
    )
