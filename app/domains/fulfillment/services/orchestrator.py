# app/domains/fulfillment/services/orchestrator.py
"""
Orquestrador de encomendas ao fornecedor.

Fluxo de createOrder:
1) Procura encomenda pela idempotency key (mesma key + mesmo pedido -> devolve-a).
2) Valida o pedido e o fornecedor (sem persistir nada se falhar).
3) Persiste PENDING, adquire o lease da key, passa a SUBMITTING e chama o adapter.
4) Sucesso -> ACCEPTED com vendor_order_id.
5) Falha transient -> retry com backoff exponencial até max_retries;
   falha permanente -> FAILED terminal.
6) O lease é libertado em qualquer caso.

Cada transição é commitada logo, para que um crash a meio deixe a
encomenda num estado conhecido (o watchdog trata os SUBMITTING órfãos).
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import IntegrityError

from app.core.config import Settings
from app.core.errors import (
    AppError,
    CancellationRejected,
    ErrorKind,
    IdempotencyConflict,
    InvalidStateTransition,
    ValidationError,
    VendorPermanentError,
)
from app.core.logging import vendor_context
from app.domains.fulfillment.services.leases import SubmissionLeases
from app.domains.fulfillment.services.state_machine import (
    VENDOR_STATUS_TO_LOCAL,
    check_external_transition,
    is_backward,
)
from app.domains.vendors.services.calls import call_with_timeout, effective_timeout
from app.domains.vendors.services.registry import AdapterRegistry, VendorProfile
from app.external.vendors.base import Capability, VendorAdapter
from app.infra.base import utcnow
from app.infra.uow import UoW
from app.models.fulfillment_order import FulfillmentOrder, FulfillmentStatus
from app.repositories.fulfillment.read.fulfillment_order_read_repo import (
    FulfillmentOrderReadRepository,
)
from app.repositories.fulfillment.write.fulfillment_order_write_repo import (
    FulfillmentOrderWriteRepository,
)
from app.schemas.fulfillment import FulfillmentRequest

log = logging.getLogger("dsf.orchestrator")

_PRICE_QUANT = Decimal("0.0001")


@dataclass(frozen=True)
class OrchestratorConfig:
    max_retries: int = 3
    backoff_base_s: float = 0.5
    backoff_max_s: float = 30.0
    timeout_ceiling_s: float = 30.0
    submit_stale_after_s: int = 300
    lease_ttl_s: float = 300.0

    @classmethod
    def from_settings(cls, s: Settings) -> OrchestratorConfig:
        return cls(
            max_retries=s.ORDER_MAX_RETRIES,
            backoff_base_s=s.ORDER_BACKOFF_BASE_S,
            backoff_max_s=s.ORDER_BACKOFF_MAX_S,
            timeout_ceiling_s=s.VENDOR_TIMEOUT_CEILING_S,
            submit_stale_after_s=s.SUBMIT_STALE_AFTER_S,
            lease_ttl_s=float(s.SUBMIT_LEASE_TTL_S),
        )

    def backoff_for(self, attempt: int, retry_after_s: float | None = None) -> float:
        delay = self.backoff_base_s * (2**attempt)
        if retry_after_s:
            delay = max(delay, retry_after_s)
        return min(delay, self.backoff_max_s)


# ---------------- helpers ----------------


def _canonical(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value.quantize(_PRICE_QUANT))
    if isinstance(value, dict):
        return {k: _canonical(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [_canonical(v) for v in value]
    return value


def request_fingerprint(request: FulfillmentRequest, vendor_id: str) -> str:
    """
    Hash do conteúdo material do pedido (sem a idempotency key).
    10.0 e 10.00 dão o mesmo fingerprint.
    """
    body = _canonical(request.model_dump(exclude={"idempotency_key"}))
    raw = json.dumps({"vendor_id": vendor_id, "request": body}, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def validate_request(request: FulfillmentRequest) -> None:
    if not request.items:
        raise ValidationError("Request has no line items")

    for idx, item in enumerate(request.items):
        if not (item.vendor_product_id or "").strip():
            raise ValidationError(f"Line {idx}: vendor_product_id is required")
        if item.quantity <= 0:
            raise ValidationError(f"Line {idx}: quantity must be positive (got {item.quantity})")
        if item.unit_price < 0:
            raise ValidationError(f"Line {idx}: unit_price cannot be negative")

    dest = request.destination
    missing = [f for f in ("address1", "city", "postal_code", "country") if not (getattr(dest, f) or "").strip()]
    if missing:
        raise ValidationError(f"Destination address incomplete: missing {', '.join(missing)}")


# ---------------- orquestrador ----------------


class FulfillmentOrchestrator:
    def __init__(
        self,
        registry: AdapterRegistry,
        config: OrchestratorConfig | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        leases: SubmissionLeases | None = None,
    ) -> None:
        self.registry = registry
        self.config = config or OrchestratorConfig()
        self.clock = clock
        self.sleep = sleep
        self.leases = leases or SubmissionLeases(ttl_s=self.config.lease_ttl_s)

    # ---------- leitura ----------

    def get_order(self, uow: UoW, order_id: int) -> FulfillmentOrder:
        return FulfillmentOrderReadRepository(uow.db).get_required(order_id)

    def get_by_idempotency_key(self, uow: UoW, key: str) -> FulfillmentOrder | None:
        return FulfillmentOrderReadRepository(uow.db).get_by_idempotency_key(key)

    def list_orders(
        self,
        uow: UoW,
        *,
        page: int = 1,
        page_size: int = 50,
        status: FulfillmentStatus | None = None,
        vendor_id: str | None = None,
    ) -> tuple[list[FulfillmentOrder], int]:
        return FulfillmentOrderReadRepository(uow.db).list_orders(
            page=page, page_size=page_size, status=status, vendor_id=vendor_id
        )

    # ---------- createOrder ----------

    async def create_order(self, uow: UoW, request: FulfillmentRequest, vendor_id: str) -> FulfillmentOrder:
        """
        Cria (ou devolve) a encomenda para esta idempotency key.

        Falhas do fornecedor não são levantadas: a encomenda volta em FAILED
        com error_kind / last_error. Levanta ValidationError,
        ConfigurationError, VendorNotFound e IdempotencyConflict.
        """
        repo_r = FulfillmentOrderReadRepository(uow.db)
        repo_w = FulfillmentOrderWriteRepository(uow.db)
        key = request.idempotency_key
        fingerprint = request_fingerprint(request, vendor_id)

        existing = repo_r.get_by_idempotency_key(key)
        if existing is not None:
            return self._replay(existing, fingerprint)

        validate_request(request)
        adapter, profile = self.registry.require(vendor_id, Capability.ORDER_CREATION)

        try:
            order = repo_w.create_pending(
                idempotency_key=key,
                vendor_id=vendor_id,
                request_fingerprint=fingerprint,
                request_payload=request.model_dump(mode="json"),
            )
            uow.commit()
        except IntegrityError:
            # outro pedido inseriu a mesma key entretanto
            uow.rollback()
            existing = repo_r.get_by_idempotency_key(key)
            if existing is None:
                raise
            return self._replay(existing, fingerprint)

        log.info("[order=%s] pending key=%s vendor=%s items=%d", order.id, key, vendor_id, len(request.items))

        with self.leases.hold(key) as acquired:
            if not acquired:
                log.info("[order=%s] submission already in flight for key=%s", order.id, key)
                return order
            repo_w.mark_submitting(order, now=self.clock())
            uow.commit()
            return await self._submit(uow, order, request, adapter, profile)

    def _replay(self, existing: FulfillmentOrder, fingerprint: str) -> FulfillmentOrder:
        if existing.request_fingerprint != fingerprint:
            log.warning(
                "[order=%s] idempotency key %s reused with a different request",
                existing.id,
                existing.idempotency_key,
            )
            raise IdempotencyConflict(
                f"Idempotency key '{existing.idempotency_key}' already used for a different request"
            )
        log.debug("[order=%s] idempotent replay key=%s", existing.id, existing.idempotency_key)
        return existing

    async def _submit(
        self,
        uow: UoW,
        order: FulfillmentOrder,
        request: FulfillmentRequest,
        adapter: VendorAdapter,
        profile: VendorProfile,
    ) -> FulfillmentOrder:
        """
        Chamada ao fornecedor com retries. A encomenda entra aqui em SUBMITTING
        e sai sempre em ACCEPTED ou FAILED.
        """
        repo_w = FulfillmentOrderWriteRepository(uow.db)
        timeout_s = effective_timeout(profile.timeout_s, self.config.timeout_ceiling_s)
        attempt = 0

        with vendor_context(order.vendor_id):
            while True:
                try:
                    result = await call_with_timeout(
                        adapter.create_order(request),
                        vendor_id=order.vendor_id,
                        timeout_s=timeout_s,
                        operation="create_order",
                    )
                except VendorPermanentError as e:
                    repo_w.mark_failed(
                        order,
                        error_kind=ErrorKind.VENDOR_PERMANENT,
                        error_msg=e.detail,
                        retryable=False,
                        now=self.clock(),
                    )
                    uow.commit()
                    log.warning("[order=%s] rejected by vendor (permanent): %s", order.id, e.detail)
                    return order
                except AppError as err:
                    # call_with_timeout já converteu erros não classificados em transient
                    exhausted = order.retry_count >= self.config.max_retries
                    repo_w.mark_failed(
                        order,
                        error_kind=ErrorKind.VENDOR_TRANSIENT,
                        error_msg=(
                            f"{err.detail} (retries exhausted after {order.retry_count})"
                            if exhausted
                            else err.detail
                        ),
                        retryable=not exhausted,
                        now=self.clock(),
                    )
                    uow.commit()

                    if exhausted:
                        log.error(
                            "[order=%s] failed after %s retries: %s",
                            order.id,
                            order.retry_count,
                            err.detail,
                        )
                        return order

                    delay = self.config.backoff_for(attempt, getattr(err, "retry_after_s", None))
                    log.warning(
                        "[order=%s] transient failure (retry %s/%s in %.2fs): %s",
                        order.id,
                        order.retry_count + 1,
                        self.config.max_retries,
                        delay,
                        err.detail,
                    )
                    await self.sleep(delay)
                    attempt += 1
                    repo_w.mark_retrying(order, now=self.clock())
                    uow.commit()
                    continue

                uow.db.refresh(order)
                if order.status != FulfillmentStatus.SUBMITTING:
                    # o watchdog marcou-a como FAILED durante a chamada; o fornecedor aceitou, por isso prevalece
                    log.warning(
                        "[order=%s] vendor accepted after local status moved to %s",
                        order.id,
                        order.status.value,
                    )

                repo_w.mark_accepted(
                    order,
                    vendor_order_id=result.vendor_order_id,
                    tracking_number=result.tracking_number,
                    estimated_delivery_at=result.estimated_delivery,
                    vendor_cost=result.cost,
                    currency=result.currency,
                    now=self.clock(),
                )
                uow.commit()
                log.info(
                    "[order=%s] accepted vendor_order_id=%s retries=%s",
                    order.id,
                    result.vendor_order_id,
                    order.retry_count,
                )
                return order

    # ---------- retry explícito ----------

    async def retry_order(self, uow: UoW, order_id: int) -> FulfillmentOrder:
        """Nova submissão de uma encomenda FAILED elegível (ex.: recolhida pelo watchdog)."""
        repo_r = FulfillmentOrderReadRepository(uow.db)
        repo_w = FulfillmentOrderWriteRepository(uow.db)
        order = repo_r.get_required(order_id)

        if order.status != FulfillmentStatus.FAILED or not order.retryable:
            raise InvalidStateTransition(
                f"Order {order_id} is not retryable (status={order.status.value}, retryable={order.retryable})"
            )
        if (order.retry_count or 0) >= self.config.max_retries:
            raise InvalidStateTransition(
                f"Order {order_id} already used {order.retry_count}/{self.config.max_retries} retries"
            )

        adapter, profile = self.registry.require(order.vendor_id, Capability.ORDER_CREATION)
        request = FulfillmentRequest.model_validate(order.request_payload)

        with self.leases.hold(order.idempotency_key) as acquired:
            if not acquired:
                log.info("[order=%s] retry skipped: submission already in flight", order.id)
                return order
            repo_w.mark_retrying(order, now=self.clock())
            uow.commit()
            log.info("[order=%s] manual retry #%s", order.id, order.retry_count)
            return await self._submit(uow, order, request, adapter, profile)

    # ---------- cancelamento ----------

    async def cancel_order(self, uow: UoW, order_id: int) -> FulfillmentOrder:
        repo_w = FulfillmentOrderWriteRepository(uow.db)
        order = FulfillmentOrderReadRepository(uow.db).get_required(order_id)

        if order.status == FulfillmentStatus.CANCELLED:
            return order

        if order.status == FulfillmentStatus.PENDING:
            if self.leases.is_held(order.idempotency_key):
                raise InvalidStateTransition(f"Order {order_id} is being submitted")
            repo_w.set_status(order, FulfillmentStatus.CANCELLED, now=self.clock())
            uow.commit()
            log.info("[order=%s] cancelled locally (pending)", order.id)
            return order

        if order.status != FulfillmentStatus.ACCEPTED:
            raise InvalidStateTransition(f"Order {order_id} cannot be cancelled in status {order.status.value}")

        adapter = self.registry.get(order.vendor_id)
        profile = self.registry.get_profile(order.vendor_id)
        with vendor_context(order.vendor_id):
            result = await call_with_timeout(
                adapter.cancel_order(order.vendor_order_id),
                vendor_id=order.vendor_id,
                timeout_s=effective_timeout(profile.timeout_s, self.config.timeout_ceiling_s),
                operation="cancel_order",
            )

        if not result.cancelled:
            log.warning("[order=%s] vendor rejected cancellation: %s", order.id, result.reason)
            raise CancellationRejected(
                f"Vendor rejected cancellation of order {order_id}: {result.reason or 'rejected'}"
            )

        repo_w.set_status(order, FulfillmentStatus.CANCELLED, now=self.clock())
        uow.commit()
        log.info("[order=%s] cancelled at vendor (vendor_order_id=%s)", order.id, order.vendor_order_id)
        return order

    # ---------- estado vindo do fornecedor ----------

    def apply_status_update(
        self,
        uow: UoW,
        order_id: int,
        new_status: FulfillmentStatus,
        tracking_number: str | None = None,
    ) -> FulfillmentOrder:
        """Único ponto de entrada para SHIPPED / DELIVERED / cancelamento do lado do fornecedor."""
        repo_w = FulfillmentOrderWriteRepository(uow.db)
        order = FulfillmentOrderReadRepository(uow.db).get_required(order_id)
        current = order.status

        try:
            check_external_transition(current, new_status)
        except InvalidStateTransition:
            log.warning(
                "[order=%s] status update rejected: %s -> %s",
                order.id,
                current.value,
                new_status.value,
            )
            raise

        if new_status == current:
            if tracking_number and tracking_number != order.tracking_number:
                repo_w.set_status(order, current, tracking_number=tracking_number, now=self.clock())
                uow.commit()
            return order

        repo_w.set_status(order, new_status, tracking_number=tracking_number, now=self.clock())
        uow.commit()
        log.info(
            "[order=%s] status %s -> %s tracking=%s",
            order.id,
            current.value,
            new_status.value,
            order.tracking_number,
        )
        return order

    async def reconcile_order_status(self, uow: UoW, order_id: int) -> FulfillmentOrder:
        """Pergunta o estado ao fornecedor e aplica-o via apply_status_update."""
        order = FulfillmentOrderReadRepository(uow.db).get_required(order_id)
        if not order.vendor_order_id:
            raise InvalidStateTransition(f"Order {order_id} has no vendor order yet")

        adapter = self.registry.get(order.vendor_id)
        profile = self.registry.get_profile(order.vendor_id)
        with vendor_context(order.vendor_id):
            remote = await call_with_timeout(
                adapter.get_order_status(order.vendor_order_id),
                vendor_id=order.vendor_id,
                timeout_s=effective_timeout(profile.timeout_s, self.config.timeout_ceiling_s),
                operation="get_order_status",
            )

        target = VENDOR_STATUS_TO_LOCAL.get(remote.status)
        if target is None or is_backward(order.status, target):
            return order
        if target == order.status and not remote.tracking_number:
            return order

        return self.apply_status_update(uow, order.id, target, tracking_number=remote.tracking_number)

    async def poll_open_orders(self, uow: UoW, *, limit: int = 200) -> dict[str, int]:
        """Reconcilia todas as encomendas ACCEPTED/SHIPPED. Falhas por encomenda são isoladas."""
        orders = FulfillmentOrderReadRepository(uow.db).list_open_with_vendor_order(limit=limit)
        checked = changed = errors = 0

        for order in orders:
            if order.vendor_id not in self.registry:
                continue
            before = order.status
            checked += 1
            try:
                after = await self.reconcile_order_status(uow, order.id)
            except AppError as e:
                uow.rollback()
                errors += 1
                log.warning("[order=%s] status poll failed: %s", order.id, getattr(e, "detail", e))
                continue
            if after.status != before:
                changed += 1

        if checked:
            log.info("status poll: checked=%s changed=%s errors=%s", checked, changed, errors)
        return {"checked": checked, "changed": changed, "errors": errors}

    # ---------- watchdog ----------

    def reap_stale_submissions(self, uow: UoW) -> list[int]:
        """SUBMITTING há mais de submit_stale_after_s -> FAILED (transient; retryable enquanto houver retries)."""
        ids = FulfillmentOrderWriteRepository(uow.db).mark_stale_submitting_as_failed(
            stale_after_s=self.config.submit_stale_after_s,
            max_retries=self.config.max_retries,
            now=self.clock(),
        )
        uow.commit()
        if ids:
            log.warning("watchdog: %d stale submitting orders marked failed: %s", len(ids), ids)
        return ids
