# app/repositories/fulfillment/write/fulfillment_order_write_repo.py
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.errors import ErrorKind, OrderNotFound
from app.infra.base import utcnow
from app.models.fulfillment_order import FulfillmentOrder, FulfillmentStatus


class FulfillmentOrderWriteRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def _get_required(self, id_order: int) -> FulfillmentOrder:
        order = self.db.get(FulfillmentOrder, id_order)
        if not order:
            raise OrderNotFound(f"Order {id_order} not found")
        return order

    def create_pending(
        self,
        *,
        idempotency_key: str,
        vendor_id: str,
        request_fingerprint: str,
        request_payload: dict[str, Any],
    ) -> FulfillmentOrder:
        """
        Cria a encomenda em PENDING e faz flush para obter o id.
        A unicidade de idempotency_key é garantida pela constraint da BD.
        """
        order = FulfillmentOrder(
            idempotency_key=idempotency_key,
            vendor_id=vendor_id,
            request_fingerprint=request_fingerprint,
            request_payload=request_payload,
            status=FulfillmentStatus.PENDING,
            retry_count=0,
            retryable=False,
        )
        self.db.add(order)
        self.db.flush()
        return order

    def mark_submitting(self, order: FulfillmentOrder, *, now: datetime) -> None:
        order.status = FulfillmentStatus.SUBMITTING
        order.submitting_since = now
        order.updated_at = now
        self.db.flush()

    def mark_accepted(
        self,
        order: FulfillmentOrder,
        *,
        vendor_order_id: str,
        tracking_number: str | None,
        estimated_delivery_at: datetime | None,
        vendor_cost,
        currency: str | None,
        now: datetime,
    ) -> None:
        order.status = FulfillmentStatus.ACCEPTED
        order.vendor_order_id = vendor_order_id
        order.tracking_number = tracking_number or order.tracking_number
        order.estimated_delivery_at = estimated_delivery_at
        order.vendor_cost = vendor_cost
        order.currency = currency
        order.error_kind = None
        order.last_error = None
        order.retryable = False
        order.submitting_since = None
        order.accepted_at = now
        order.updated_at = now
        self.db.flush()

    def mark_failed(
        self,
        order: FulfillmentOrder,
        *,
        error_kind: ErrorKind,
        error_msg: str,
        retryable: bool,
        now: datetime,
    ) -> None:
        order.status = FulfillmentStatus.FAILED
        order.error_kind = error_kind
        order.last_error = (error_msg or "")[:2000]
        order.retryable = retryable
        order.submitting_since = None
        order.updated_at = now
        self.db.flush()

    def mark_retrying(self, order: FulfillmentOrder, *, now: datetime) -> None:
        """FAILED -> SUBMITTING para nova tentativa (conta o retry)."""
        order.retry_count = (order.retry_count or 0) + 1
        self.mark_submitting(order, now=now)

    def set_status(
        self,
        order: FulfillmentOrder,
        status: FulfillmentStatus,
        *,
        tracking_number: str | None = None,
        now: datetime,
    ) -> None:
        order.status = status
        if tracking_number:
            order.tracking_number = tracking_number
        if status == FulfillmentStatus.SHIPPED and not order.shipped_at:
            order.shipped_at = now
        elif status == FulfillmentStatus.DELIVERED:
            order.delivered_at = now
            order.shipped_at = order.shipped_at or now
        elif status == FulfillmentStatus.CANCELLED:
            order.cancelled_at = now
        order.updated_at = now
        self.db.flush()

    def mark_stale_submitting_as_failed(
        self, *, stale_after_s: int, max_retries: int, now: datetime | None = None
    ) -> list[int]:
        """
        Encomendas em SUBMITTING há mais de X segundos (processo morreu a meio
        da chamada ao fornecedor) passam a FAILED transient. Só ficam elegíveis
        para retry se ainda não esgotaram max_retries.
        Devolve os ids afetados.
        """
        now = now or utcnow()
        cutoff = now - timedelta(seconds=stale_after_s)

        stmt = (
            select(FulfillmentOrder)
            .where(FulfillmentOrder.status == FulfillmentStatus.SUBMITTING)
            .where(FulfillmentOrder.submitting_since < cutoff)
        )
        reaped: list[int] = []
        for order in self.db.scalars(stmt).all():
            order.status = FulfillmentStatus.FAILED
            order.error_kind = ErrorKind.VENDOR_TRANSIENT
            order.last_error = f"Stale: submitting for more than {stale_after_s}s"
            order.retryable = (order.retry_count or 0) < max_retries
            order.submitting_since = None
            order.updated_at = now
            reaped.append(order.id)

        if reaped:
            self.db.flush()
        return reaped
