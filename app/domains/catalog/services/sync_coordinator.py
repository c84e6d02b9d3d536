# app/domains/catalog/services/sync_coordinator.py
"""
Sincronização do catálogo de um fornecedor (pull do adapter -> catalog_entries).

Por cada página:
  - upsert (vendor_id, vendor_product_id) -> inserted / updated / sem alteração
  - commit antes de pedir a página seguinte
No fim, se a paginação correu toda sem erros:
  - entradas ativas deste fornecedor não vistas nesta run -> active=False

Falha a meio da paginação: o que já foi reconciliado fica, nada é desativado
e a run termina em 'partial'. Uma run já 'running' para o mesmo fornecedor
faz com que o trigger seja ignorado ('skipped').
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from contextlib import AbstractContextManager
from decimal import Decimal

from app.core.config import Settings
from app.core.errors import AppError, VendorError
from app.core.logging import log_timing, vendor_context
from app.domains.vendors.services.calls import call_with_timeout, effective_timeout
from app.domains.vendors.services.registry import AdapterRegistry
from app.external.vendors.base import Capability, ProductListing
from app.infra.base import utcnow
from app.infra.uow import UoW
from app.repositories.catalog.read.catalog_entry_read_repo import CatalogEntryReadRepository
from app.repositories.catalog.read.sync_run_read_repo import CatalogSyncRunReadRepository
from app.repositories.catalog.write.catalog_entry_write_repo import CatalogEntryWriteRepository
from app.repositories.catalog.write.sync_run_write_repo import CatalogSyncRunWriteRepository
from app.schemas.catalog import SyncResultOut

log = logging.getLogger("dsf.catalog_sync")


def _check_listing(listing: ProductListing) -> None:
    if not (listing.vendor_product_id or "").strip():
        raise ValueError("listing without vendor_product_id")
    if listing.price is None or Decimal(listing.price) < 0:
        raise ValueError(f"{listing.vendor_product_id}: invalid price {listing.price!r}")
    if listing.stock is not None and listing.stock < 0:
        raise ValueError(f"{listing.vendor_product_id}: negative stock")


class CatalogSyncCoordinator:
    def __init__(
        self,
        registry: AdapterRegistry,
        *,
        max_pages: int = 500,
        timeout_ceiling_s: float = 30.0,
    ) -> None:
        self.registry = registry
        self.max_pages = max_pages
        self.timeout_ceiling_s = timeout_ceiling_s

    @classmethod
    def from_settings(cls, registry: AdapterRegistry, s: Settings) -> CatalogSyncCoordinator:
        return cls(registry, max_pages=s.CATALOG_SYNC_MAX_PAGES, timeout_ceiling_s=s.VENDOR_TIMEOUT_CEILING_S)

    def _resolve_local_id(self, entries_r: CatalogEntryReadRepository, listing: ProductListing) -> str:
        # mesmo GTIN noutro fornecedor -> mesmo produto local
        if listing.gtin:
            found = entries_r.local_product_id_for_gtin(listing.gtin)
            if found:
                return found
        return uuid.uuid4().hex

    async def sync_vendor(self, uow: UoW, vendor_id: str) -> SyncResultOut:
        adapter, profile = self.registry.require(vendor_id, Capability.CATALOG_SYNC)

        db = uow.db
        run_r = CatalogSyncRunReadRepository(db)
        run_w = CatalogSyncRunWriteRepository(db)
        entries_r = CatalogEntryReadRepository(db)
        entries_w = CatalogEntryWriteRepository(db)

        running = run_r.get_running(vendor_id)
        if running is not None:
            log.info("[sync vendor=%s] run %s still running - trigger skipped", vendor_id, running.id)
            return SyncResultOut(vendor_id=vendor_id, id_run=running.id, status="skipped")

        run = run_w.start(vendor_id=vendor_id)
        uow.commit()
        id_run = run.id

        timeout_s = effective_timeout(profile.timeout_s, self.timeout_ceiling_s)
        result = SyncResultOut(vendor_id=vendor_id, id_run=id_run, status="running")
        items_failed = 0
        page_token: str | None = None

        log.info("[sync vendor=%s run=%s] start", vendor_id, id_run)

        with vendor_context(vendor_id):
            try:
                with log_timing("catalog.sync", log, vendor=vendor_id, run=id_run):
                    while True:
                        if result.pages >= self.max_pages:
                            raise VendorError(
                                f"page limit reached ({self.max_pages})", vendor_id=vendor_id, code="PAGE_LIMIT"
                            )

                        page = await call_with_timeout(
                            adapter.list_products(page_token),
                            vendor_id=vendor_id,
                            timeout_s=timeout_s,
                            operation="list_products",
                        )

                        now = utcnow()
                        inserted = updated = failed = 0
                        for listing in page.items:
                            try:
                                _check_listing(listing)
                            except ValueError as e:
                                failed += 1
                                result.errors.append(str(e))
                                continue

                            existing = entries_r.get_by_vendor_product(vendor_id, listing.vendor_product_id)
                            local_id = (
                                existing.local_product_id
                                if existing
                                else self._resolve_local_id(entries_r, listing)
                            )
                            _, created, changed = entries_w.upsert(
                                vendor_id=vendor_id,
                                listing=listing,
                                local_product_id=local_id,
                                id_run=id_run,
                                now=now,
                            )
                            if created:
                                inserted += 1
                            elif changed:
                                updated += 1

                        run_w.record_page(
                            id_run,
                            items_seen=len(page.items),
                            inserted=inserted,
                            updated=updated,
                            failed=failed,
                        )
                        uow.commit()

                        result.pages += 1
                        result.inserted += inserted
                        result.updated += updated
                        items_failed += failed

                        next_token = page.next_page_token
                        if not next_token or next_token == page_token:
                            break
                        page_token = next_token

            except VendorError as e:
                # paginação interrompida: mantém o que já foi gravado, não desativa nada
                uow.rollback()
                result.errors.append(e.detail)
                if result.pages:
                    run_w.finalize_partial(id_run, error_msg=e.detail)
                    result.status = "partial"
                else:
                    run_w.finalize_error(id_run, error_msg=e.detail)
                    result.status = "error"
                uow.commit()
                log.warning(
                    "[sync vendor=%s run=%s] aborted after %s pages: %s",
                    vendor_id,
                    id_run,
                    result.pages,
                    e.detail,
                )
                return result

            except Exception as e:  # noqa: BLE001
                uow.rollback()
                try:
                    run_w.finalize_error(id_run, error_msg=f"{type(e).__name__}: {e}")
                    uow.commit()
                except AppError:
                    uow.rollback()
                log.exception("[sync vendor=%s run=%s] sync failed", vendor_id, id_run)
                result.status = "error"
                result.errors.append(f"{type(e).__name__}: {e}")
                return result

            if items_failed:
                # itens rejeitados não contam como "vistos": não arriscar desativações erradas
                run_w.finalize_partial(id_run, error_msg=f"{items_failed} listings rejected")
                result.status = "partial"
            else:
                result.deactivated = entries_w.deactivate_unseen(vendor_id=vendor_id, id_run=id_run, now=utcnow())
                run_w.finalize_ok(id_run, deactivated=result.deactivated)
                result.status = "ok"
            uow.commit()

        log.info(
            "[sync vendor=%s run=%s] done status=%s pages=%s inserted=%s updated=%s deactivated=%s errors=%s",
            vendor_id,
            id_run,
            result.status,
            result.pages,
            result.inserted,
            result.updated,
            result.deactivated,
            len(result.errors),
        )
        return result

    async def sync_all(self, uow_factory: Callable[[], AbstractContextManager[UoW]]) -> list[SyncResultOut]:
        """
        Sincroniza todos os fornecedores ativos com catalog_sync, cada um na
        sua própria UoW: a falha de um não afeta os outros.
        """
        results: list[SyncResultOut] = []
        for vendor_id in self.registry.list_enabled(Capability.CATALOG_SYNC):
            with uow_factory() as uow:
                try:
                    results.append(await self.sync_vendor(uow, vendor_id))
                except AppError as e:
                    log.warning("[sync vendor=%s] not started: %s", vendor_id, e.detail)
                    results.append(SyncResultOut(vendor_id=vendor_id, status="error", errors=[e.detail]))
        return results
