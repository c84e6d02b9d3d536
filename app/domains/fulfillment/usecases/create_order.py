"""
UseCase: Criar encomenda no fornecedor (idempotente por key).
"""

from __future__ import annotations

from app.core.errors import ValidationError
from app.domains.fulfillment.services.orchestrator import FulfillmentOrchestrator
from app.infra.uow import UoW
from app.schemas.fulfillment import FulfillmentOrderOut, FulfillmentRequest, FulfillmentRequestIn


async def execute(
    uow: UoW,
    orchestrator: FulfillmentOrchestrator,
    *,
    payload: FulfillmentRequestIn,
    vendor_id: str,
    idempotency_key: str | None = None,
) -> FulfillmentOrderOut:
    """
    A key do corpo tem prioridade; o header Idempotency-Key serve de fallback.
    Sem key não há garantia de idempotência, por isso o pedido é recusado.
    """
    key = (payload.idempotency_key or idempotency_key or "").strip()
    if not key:
        raise ValidationError("idempotency_key is required (body or Idempotency-Key header)")

    request = FulfillmentRequest(
        items=tuple(payload.items),
        destination=payload.destination,
        buyer=payload.buyer,
        notes=payload.notes,
        idempotency_key=key,
    )
    order = await orchestrator.create_order(uow, request, vendor_id)
    return FulfillmentOrderOut.model_validate(order)
