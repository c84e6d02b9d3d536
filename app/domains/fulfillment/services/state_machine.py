# app/domains/fulfillment/services/state_machine.py
from __future__ import annotations

from app.core.errors import InvalidStateTransition
from app.external.vendors.base import (
    VENDOR_STATUS_CANCELLED,
    VENDOR_STATUS_DELIVERED,
    VENDOR_STATUS_SHIPPED,
)
from app.models.fulfillment_order import FulfillmentStatus as S

# Ordem de progressão do fluxo feliz; FAILED/CANCELLED ficam fora
RANK = {
    S.PENDING: 0,
    S.SUBMITTING: 1,
    S.ACCEPTED: 2,
    S.SHIPPED: 3,
    S.DELIVERED: 4,
}

TERMINAL = frozenset({S.DELIVERED, S.CANCELLED})

# Estados que podem chegar de fora (webhook / polling) e de onde
EXTERNAL_TRANSITIONS: dict[S, frozenset[S]] = {
    S.SHIPPED: frozenset({S.ACCEPTED}),
    S.DELIVERED: frozenset({S.ACCEPTED, S.SHIPPED}),
    S.CANCELLED: frozenset({S.ACCEPTED}),
}

VENDOR_STATUS_TO_LOCAL = {
    VENDOR_STATUS_SHIPPED: S.SHIPPED,
    VENDOR_STATUS_DELIVERED: S.DELIVERED,
    VENDOR_STATUS_CANCELLED: S.CANCELLED,
}


def is_backward(current: S, new: S) -> bool:
    if current in RANK and new in RANK:
        return RANK[new] < RANK[current]
    return False


def check_external_transition(current: S, new: S) -> None:
    """Valida uma atualização de estado vinda do fornecedor. Igual ao atual = no-op."""
    if new == current:
        return
    allowed_from = EXTERNAL_TRANSITIONS.get(new)
    if allowed_from is None:
        raise InvalidStateTransition(f"Status '{new.value}' cannot be applied externally")
    if is_backward(current, new):
        raise InvalidStateTransition(f"Backward transition {current.value} -> {new.value} rejected")
    if current not in allowed_from:
        raise InvalidStateTransition(f"Transition {current.value} -> {new.value} not allowed")
