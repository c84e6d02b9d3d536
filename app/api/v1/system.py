# app/api/v1/system.py
from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text

from app.core.config import settings
from app.core.deps import get_uow
from app.infra.uow import UoW
from app.repositories.fulfillment.read.fulfillment_order_read_repo import FulfillmentOrderReadRepository

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/health")
def health(request: Request, uow: Annotated[UoW, Depends(get_uow)]):
    db_ok = True
    try:
        uow.db.execute(text("SELECT 1"))
    except Exception:  # noqa: BLE001
        db_ok = False

    started_at = getattr(request.app.state, "started_at", None)
    uptime_s = int((datetime.now(UTC) - started_at).total_seconds()) if started_at else None
    runtime = getattr(request.app.state, "runtime", None)

    return {
        "ok": db_ok,
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "db": "ok" if db_ok else "error",
        "uptime_s": uptime_s,
        "vendors": len(runtime.registry) if runtime else 0,
        "orders_by_status": FulfillmentOrderReadRepository(uow.db).count_by_status() if db_ok else {},
    }
