"""
Endpoints de encomendas ao fornecedor.
Routes simples - lógica nos usecases / orquestrador.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query

from app.core.deps import get_orchestrator, get_uow
from app.domains.fulfillment.services.orchestrator import FulfillmentOrchestrator
from app.domains.fulfillment.usecases import (
    cancel_order as uc_cancel,
    create_order as uc_create,
    get_order as uc_get,
    list_orders as uc_list,
    retry_order as uc_retry,
    update_status as uc_status,
)
from app.infra.uow import UoW
from app.models.fulfillment_order import FulfillmentStatus
from app.schemas.fulfillment import (
    FulfillmentOrderListOut,
    FulfillmentOrderOut,
    FulfillmentRequestIn,
    StatusUpdateIn,
)

router = APIRouter(prefix="/fulfillment", tags=["fulfillment"])

UowDep = Annotated[UoW, Depends(get_uow)]
OrchestratorDep = Annotated[FulfillmentOrchestrator, Depends(get_orchestrator)]


@router.post("/orders", response_model=FulfillmentOrderOut, summary="Criar encomenda no fornecedor")
async def create_order(
    payload: FulfillmentRequestIn,
    uow: UowDep,
    orchestrator: OrchestratorDep,
    vendor_id: str = Query(..., min_length=1),
    idempotency_key: Annotated[str | None, Header(alias="Idempotency-Key")] = None,
):
    """
    Submete o pedido ao fornecedor. Repetir com a mesma key devolve a mesma
    encomenda; falhas do fornecedor vêm na própria encomenda (status=failed).
    """
    return await uc_create.execute(
        uow, orchestrator, payload=payload, vendor_id=vendor_id, idempotency_key=idempotency_key
    )


@router.get("/orders", response_model=FulfillmentOrderListOut)
def list_orders(
    uow: UowDep,
    orchestrator: OrchestratorDep,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    status: FulfillmentStatus | None = None,
    vendor_id: str | None = None,
):
    return uc_list.execute(
        uow, orchestrator, page=page, page_size=page_size, status=status, vendor_id=vendor_id
    )


@router.get("/orders/by-key/{key}", response_model=FulfillmentOrderOut)
def get_order_by_key(key: str, uow: UowDep, orchestrator: OrchestratorDep):
    return uc_get.execute_by_key(uow, orchestrator, key=key)


@router.get("/orders/{order_id}", response_model=FulfillmentOrderOut)
def get_order(order_id: int, uow: UowDep, orchestrator: OrchestratorDep):
    return uc_get.execute(uow, orchestrator, order_id=order_id)


@router.post("/orders/{order_id}/cancel", response_model=FulfillmentOrderOut)
async def cancel_order(order_id: int, uow: UowDep, orchestrator: OrchestratorDep):
    return await uc_cancel.execute(uow, orchestrator, order_id=order_id)


@router.post("/orders/{order_id}/retry", response_model=FulfillmentOrderOut)
async def retry_order(order_id: int, uow: UowDep, orchestrator: OrchestratorDep):
    return await uc_retry.execute(uow, orchestrator, order_id=order_id)


@router.post(
    "/orders/{order_id}/status",
    response_model=FulfillmentOrderOut,
    summary="Atualização de estado (webhook / operador)",
)
def apply_status_update(order_id: int, payload: StatusUpdateIn, uow: UowDep, orchestrator: OrchestratorDep):
    """Transições para trás (ex.: delivered -> accepted) são rejeitadas com 409."""
    return uc_status.execute(uow, orchestrator, order_id=order_id, payload=payload)


@router.post("/orders/{order_id}/reconcile", response_model=FulfillmentOrderOut)
async def reconcile_order(order_id: int, uow: UowDep, orchestrator: OrchestratorDep):
    return await uc_status.execute_reconcile(uow, orchestrator, order_id=order_id)
