# app/domains/vendors/services/calls.py
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from app.core.errors import AppError, VendorTransientError

T = TypeVar("T")

log = logging.getLogger("dsf.vendors")


def effective_timeout(declared_s: float | None, ceiling_s: float) -> float:
    """Timeout do fornecedor, nunca acima do teto global."""
    if not declared_s or declared_s <= 0:
        return ceiling_s
    return min(declared_s, ceiling_s)


async def call_with_timeout(
    awaitable: Awaitable[T],
    *,
    vendor_id: str,
    timeout_s: float,
    operation: str,
) -> T:
    """
    Executa uma chamada ao adapter com timeout. Timeout -> VendorTransientError,
    para que a encomenda nunca fique presa em SUBMITTING.

    Erros que não são AppError (bug ou exceção de transporte que escapou ao
    adapter) também saem como VendorTransientError: quem chama nunca recebe
    uma exceção crua do adapter.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_s)
    except TimeoutError as e:
        raise VendorTransientError(
            f"{operation}: no response within {timeout_s:g}s",
            vendor_id=vendor_id,
            code="VENDOR_TIMEOUT",
        ) from e
    except AppError:
        raise
    except Exception as e:  # noqa: BLE001
        log.exception("[vendor=%s] %s: unclassified adapter error", vendor_id, operation)
        raise VendorTransientError(
            f"{operation}: {type(e).__name__}: {e}",
            vendor_id=vendor_id,
        ) from e
