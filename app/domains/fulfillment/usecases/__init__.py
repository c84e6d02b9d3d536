"""UseCases de fulfillment."""

from . import (
    cancel_order,
    create_order,
    get_order,
    list_orders,
    retry_order,
    update_status,
)

__all__ = [
    "cancel_order",
    "create_order",
    "get_order",
    "list_orders",
    "retry_order",
    "update_status",
]
