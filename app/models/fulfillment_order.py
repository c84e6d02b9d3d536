"""
Modelos SQLAlchemy para encomendas de fulfillment enviadas a fornecedores.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SQLEnum,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.errors import ErrorKind
from app.infra.base import Base, JSONType, utcnow


# --------------------- ENUMS ---------------------


class FulfillmentStatus(str, Enum):
    """
    Ciclo de vida de uma encomenda ao fornecedor:

        PENDING -> SUBMITTING -> ACCEPTED -> (SHIPPED -> DELIVERED) | FAILED | CANCELLED
    """

    PENDING = "pending"  # Persistida, ainda não enviada
    SUBMITTING = "submitting"  # Chamada ao adapter em curso
    ACCEPTED = "accepted"  # Fornecedor devolveu vendor_order_id
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    FAILED = "failed"
    CANCELLED = "cancelled"


# --------------------- MODELOS ---------------------


class FulfillmentOrder(Base):
    """
    Registo durável de uma tentativa de fulfillment.
    Uma idempotency key produz exatamente uma FulfillmentOrder.
    """

    __tablename__ = "fulfillment_orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Idempotência
    idempotency_key: Mapped[str] = mapped_column(String(128), unique=True, index=True, nullable=False)
    request_fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    request_payload: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    # Fornecedor
    vendor_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    vendor_order_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)

    # Estado
    status: Mapped[FulfillmentStatus] = mapped_column(
        SQLEnum(FulfillmentStatus, name="fulfillment_status"),
        default=FulfillmentStatus.PENDING,
        nullable=False,
        index=True,
    )

    # Envio
    tracking_number: Mapped[str | None] = mapped_column(String(128), nullable=True)
    estimated_delivery_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    shipped_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Custo reportado pelo fornecedor
    vendor_cost: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)

    # Erros / retries
    error_kind: Mapped[ErrorKind | None] = mapped_column(
        SQLEnum(ErrorKind, name="fulfillment_error_kind"), nullable=True
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    retryable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Início do estado SUBMITTING atual (usado pelo watchdog)
    submitting_since: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:  # debug only
        return f"<FulfillmentOrder id={self.id} key={self.idempotency_key} status={self.status}>"
