# app/external/vendors/http_client.py
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx

from app.core.config import settings
from app.core.errors import VendorError, VendorPermanentError, VendorTransientError

# Não faz sentido repetir: o pedido em si está errado
PERMANENT_STATUS = frozenset({400, 401, 403, 404, 409, 410, 422})
# Repetir mais tarde
TRANSIENT_STATUS = frozenset({408, 425, 429})

# Códigos de erro no corpo da resposta que tornam a falha permanente
DEFAULT_PERMANENT_CODES = frozenset(
    {"out_of_stock", "invalid_address", "product_not_found", "invalid_order", "validation_error"}
)


def _retry_after(resp: httpx.Response) -> float | None:
    raw = resp.headers.get("Retry-After")
    if not raw:
        return None
    try:
        return max(float(raw), 0.0)
    except ValueError:
        return None


def _error_code_and_message(resp: httpx.Response) -> tuple[str | None, str]:
    try:
        data = resp.json()
    except ValueError:
        return None, (resp.text or "")[:500]

    if not isinstance(data, dict):
        return None, str(data)[:500]

    err = data.get("error")
    if isinstance(err, dict):
        code = err.get("code") or err.get("reason")
        message = err.get("message") or err.get("detail") or str(err)
    else:
        code = data.get("code")
        message = err or data.get("message") or data.get("result") or str(data)

    return (str(code).lower() if code else None), str(message)[:500]


class VendorHttpClient:
    """
    Cliente HTTP assíncrono partilhado pelos adapters.
    - Sem retries: quem decide repetir é o orquestrador.
    - Classifica todas as falhas em VendorTransientError / VendorPermanentError.
    - Rate limit simples por fornecedor (intervalo mínimo entre pedidos).
    - Logging seguro (nunca regista credenciais).
    """

    def __init__(
        self,
        vendor_id: str,
        *,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout_s: float = 15.0,
        rate_limit_per_minute: int | None = None,
        permanent_codes: frozenset[str] = DEFAULT_PERMANENT_CODES,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.vendor_id = vendor_id
        self.permanent_codes = permanent_codes
        self.log = logging.getLogger(f"dsf.vendors.{vendor_id}")

        h = {
            "Accept": "application/json",
            "User-Agent": settings.VENDOR_USER_AGENT,
        }
        for k, v in (headers or {}).items():
            if v is not None:
                h[str(k)] = str(v)

        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=h,
            timeout=timeout_s,
            transport=transport,
        )

        self._min_interval = 60.0 / rate_limit_per_minute if rate_limit_per_minute else 0.0
        self._last_request_at = 0.0
        self._throttle_lock = asyncio.Lock()

    async def _throttle(self) -> None:
        if not self._min_interval:
            return
        async with self._throttle_lock:
            wait = self._last_request_at + self._min_interval - time.monotonic()
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_request_at = time.monotonic()

    def _classify(self, resp: httpx.Response, operation: str) -> VendorError:
        sc = resp.status_code
        code, message = _error_code_and_message(resp)
        detail = f"{operation}: HTTP {sc} {message}".strip()

        if code and code in self.permanent_codes:
            return VendorPermanentError(detail, vendor_id=self.vendor_id, code=code.upper(), status_code=sc)
        if sc in TRANSIENT_STATUS or sc >= 500:
            return VendorTransientError(
                detail,
                vendor_id=self.vendor_id,
                status_code=sc,
                retry_after_s=_retry_after(resp),
            )
        if sc in PERMANENT_STATUS:
            return VendorPermanentError(detail, vendor_id=self.vendor_id, status_code=sc)
        # não classificável -> transient
        return VendorTransientError(detail, vendor_id=self.vendor_id, status_code=sc)

    async def request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """
        Executa o pedido e devolve o JSON da resposta (ou {} se vazia).

        Raises:
            VendorTransientError: timeout, rede, 408/425/429, 5xx, resposta inválida
            VendorPermanentError: 4xx de validação/autorização ou código de erro permanente
        """
        await self._throttle()
        start = time.perf_counter()

        try:
            resp = await self._client.request(method, path, json=json, params=params)
        except httpx.TimeoutException as e:
            self.log.warning("%s %s timeout after %.1fms", operation, method, (time.perf_counter() - start) * 1000)
            raise VendorTransientError(
                f"{operation}: timeout", vendor_id=self.vendor_id, code="VENDOR_TIMEOUT"
            ) from e
        except httpx.HTTPError as e:
            self.log.warning("%s %s network error: %s", operation, method, e)
            raise VendorTransientError(
                f"{operation}: {type(e).__name__}: {e}", vendor_id=self.vendor_id
            ) from e

        dur_ms = (time.perf_counter() - start) * 1000.0
        self.log.info(
            "%s %s done status=%s dur=%.1fms len=%d",
            operation,
            method,
            resp.status_code,
            dur_ms,
            len(resp.content or b""),
        )

        if resp.status_code >= 400:
            err = self._classify(resp, operation)
            self.log.warning(
                "%s %s %s status=%s code=%s",
                operation,
                method,
                "transient_error" if err.retryable else "permanent_error",
                resp.status_code,
                err.code,
            )
            raise err

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise VendorTransientError(
                f"{operation}: upstream_invalid_json", vendor_id=self.vendor_id
            ) from e

    async def aclose(self) -> None:
        await self._client.aclose()
