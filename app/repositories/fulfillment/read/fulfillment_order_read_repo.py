# app/repositories/fulfillment/read/fulfillment_order_read_repo.py
from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.errors import OrderNotFound
from app.models.fulfillment_order import FulfillmentOrder, FulfillmentStatus


class FulfillmentOrderReadRepository:
    """Consultas de leitura para encomendas de fulfillment."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, id_order: int) -> FulfillmentOrder | None:
        return self.db.get(FulfillmentOrder, id_order)

    def get_required(self, id_order: int) -> FulfillmentOrder:
        order = self.get(id_order)
        if not order:
            raise OrderNotFound(f"Order {id_order} not found")
        return order

    def get_by_idempotency_key(self, key: str) -> FulfillmentOrder | None:
        stmt = select(FulfillmentOrder).where(FulfillmentOrder.idempotency_key == key)
        return self.db.scalar(stmt)

    def list_orders(
        self,
        *,
        page: int = 1,
        page_size: int = 50,
        status: FulfillmentStatus | None = None,
        vendor_id: str | None = None,
    ) -> tuple[list[FulfillmentOrder], int]:
        """
        Lista encomendas com paginação e filtros.

        Returns:
            Tuplo de (encomendas, total)
        """
        stmt = select(FulfillmentOrder)
        if status:
            stmt = stmt.where(FulfillmentOrder.status == status)
        if vendor_id:
            stmt = stmt.where(FulfillmentOrder.vendor_id == vendor_id)

        total = self.db.scalar(select(func.count()).select_from(stmt.subquery())) or 0

        stmt = stmt.order_by(FulfillmentOrder.id.desc())
        stmt = stmt.offset((page - 1) * page_size).limit(page_size)
        return list(self.db.scalars(stmt)), total

    def list_open_with_vendor_order(self, *, limit: int = 200) -> list[FulfillmentOrder]:
        """Encomendas aceites/enviadas cujo estado ainda pode avançar no fornecedor."""
        stmt = (
            select(FulfillmentOrder)
            .where(FulfillmentOrder.status.in_((FulfillmentStatus.ACCEPTED, FulfillmentStatus.SHIPPED)))
            .where(FulfillmentOrder.vendor_order_id.is_not(None))
            .order_by(FulfillmentOrder.updated_at.asc())
            .limit(limit)
        )
        return list(self.db.scalars(stmt))

    def count_by_status(self) -> dict[str, int]:
        stmt = select(FulfillmentOrder.status, func.count()).group_by(FulfillmentOrder.status)
        return {status.value: int(n) for status, n in self.db.execute(stmt).all()}
