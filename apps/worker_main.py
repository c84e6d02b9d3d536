# apps/worker_main.py

from __future__ import annotations

import asyncio
import logging
import os
import socket

from app.core.config import settings
from app.core.logging import setup_logging
from app.domains.catalog.usecases.sync.due_vendors import execute as uc_due_vendors
from app.infra.base import utcnow
from app.infra.bootstrap import Runtime, build_runtime
from app.infra.uow import uow_scope
from app.models import create_db_and_tables
from app.repositories.catalog.write.sync_run_write_repo import CatalogSyncRunWriteRepository

logger = logging.getLogger("dsf.worker")


async def run_worker_cycle(runtime: Runtime, session_factory=None) -> dict[str, int]:
    """
    Um ciclo do worker:
    1) Watchdog: encomendas presas em SUBMITTING -> FAILED (transient)
    2) Cleanup: sync runs 'running' há demasiado tempo -> error
    3) Sync de catálogo dos fornecedores cujo intervalo já passou
    4) Polling de estado das encomendas aceites/enviadas
    Cada passo usa a sua própria sessão; a falha de um não impede os outros.
    """
    s = runtime.settings
    summary = {"reaped": 0, "stale_runs": 0, "synced": 0, "status_changed": 0}

    # 1) Watchdog
    with uow_scope(session_factory) as uow:
        reaped = runtime.orchestrator.reap_stale_submissions(uow)
        summary["reaped"] = len(reaped)

    # 2) Cleanup de sync runs órfãs
    with uow_scope(session_factory) as uow:
        stale_runs = CatalogSyncRunWriteRepository(uow.db).mark_stale_running_as_error(
            stale_after_minutes=s.CATALOG_SYNC_STALE_MINUTES
        )
        if stale_runs:
            uow.commit()
            logger.warning("Marked %d stale catalog sync run(s) as error", stale_runs)
        summary["stale_runs"] = stale_runs

    # 3) Sync periódica (um fornecedor de cada vez, cada um isolado)
    with uow_scope(session_factory) as uow:
        due = uc_due_vendors(
            uow,
            runtime.registry,
            now=utcnow(),
            default_interval_minutes=s.CATALOG_SYNC_INTERVAL_MINUTES,
        )

    for vendor_id in due:
        with uow_scope(session_factory) as uow:
            try:
                res = await runtime.catalog_sync.sync_vendor(uow, vendor_id)
            except Exception:  # noqa: BLE001
                logger.exception("Catalog sync for vendor=%s crashed", vendor_id)
                continue
        if res.status in ("ok", "partial"):
            summary["synced"] += 1

    # 4) Polling de estado
    if s.ORDER_STATUS_POLL_ENABLED:
        with uow_scope(session_factory) as uow:
            try:
                polled = await runtime.orchestrator.poll_open_orders(uow)
                summary["status_changed"] = polled["changed"]
            except Exception:  # noqa: BLE001
                logger.exception("Order status polling failed")

    return summary


async def run_worker_loop() -> None:
    setup_logging()

    worker_id = f"{socket.gethostname()}-{os.getpid()}"
    logger.info("Starting worker process %s", worker_id)

    create_db_and_tables()
    runtime = build_runtime(settings)

    try:
        while True:
            try:
                summary = await run_worker_cycle(runtime)
                if any(summary.values()):
                    logger.info("Worker cycle: %s", summary)
            except Exception:  # noqa: BLE001
                logger.exception("Worker cycle failed")

            await asyncio.sleep(settings.WORKER_POLL_INTERVAL_S)
    finally:
        await runtime.aclose()


if __name__ == "__main__":
    asyncio.run(run_worker_loop())
