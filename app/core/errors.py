# app/core/errors.py
"""
Hierarquia de erros da aplicação.

Todos os erros de domínio derivam de AppError (code + detail + http_status)
e são convertidos em JSON por app.core.http_errors.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Classificação máquina-legível guardada nas encomendas."""

    VALIDATION = "validation"
    VENDOR_TRANSIENT = "vendor_transient"
    VENDOR_PERMANENT = "vendor_permanent"
    CONFLICT = "conflict"
    CONFIGURATION = "configuration"


class AppError(Exception):
    code: str = "APP_ERROR"
    http_status: int = 500
    kind: ErrorKind | None = None

    def __init__(self, detail: str | None = None, *, code: str | None = None) -> None:
        self.detail = detail or self.__class__.__name__
        if code:
            self.code = code
        super().__init__(self.detail)


class BadRequest(AppError):
    code = "BAD_REQUEST"
    http_status = 400


class InvalidArgument(AppError):
    code = "INVALID_ARGUMENT"
    http_status = 422


class Unauthorized(AppError):
    code = "UNAUTHORIZED"
    http_status = 401


class NotFound(AppError):
    code = "NOT_FOUND"
    http_status = 404


class Conflict(AppError):
    code = "CONFLICT"
    http_status = 409


# --------------------- Taxonomia de fulfillment ---------------------


class ValidationError(InvalidArgument):
    """Input inválido. Nunca é persistido nem repetido."""

    code = "VALIDATION_ERROR"
    kind = ErrorKind.VALIDATION


class ConfigurationError(BadRequest):
    """Fornecedor desativado ou capability não suportada (falha antes de I/O)."""

    code = "CONFIGURATION_ERROR"
    kind = ErrorKind.CONFIGURATION


class IdempotencyConflict(Conflict):
    """Idempotency key reutilizada com um pedido materialmente diferente."""

    code = "IDEMPOTENCY_CONFLICT"
    kind = ErrorKind.CONFLICT


class InvalidStateTransition(Conflict):
    code = "INVALID_STATE_TRANSITION"


class CancellationRejected(Conflict):
    """O fornecedor recusou o cancelamento (ex.: já enviado)."""

    code = "CANCELLATION_REJECTED"


class VendorNotFound(NotFound):
    code = "VENDOR_NOT_FOUND"


class OrderNotFound(NotFound):
    code = "ORDER_NOT_FOUND"


class VendorError(AppError):
    """Base dos erros devolvidos pelos adapters de fornecedor."""

    code = "VENDOR_ERROR"
    http_status = 502
    retryable = True

    def __init__(
        self,
        detail: str | None = None,
        *,
        vendor_id: str | None = None,
        code: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(detail, code=code)
        self.vendor_id = vendor_id
        self.status_code = status_code


class VendorTransientError(VendorError):
    """Timeout, rate-limit, 5xx. Elegível para retry automático limitado."""

    code = "VENDOR_TRANSIENT"
    http_status = 503
    kind = ErrorKind.VENDOR_TRANSIENT
    retryable = True

    def __init__(
        self,
        detail: str | None = None,
        *,
        vendor_id: str | None = None,
        code: str | None = None,
        status_code: int | None = None,
        retry_after_s: float | None = None,
    ) -> None:
        super().__init__(detail, vendor_id=vendor_id, code=code, status_code=status_code)
        self.retry_after_s = retry_after_s


class VendorPermanentError(VendorError):
    """O fornecedor rejeitou o conteúdo (validação, sem stock). Terminal."""

    code = "VENDOR_PERMANENT"
    http_status = 502
    kind = ErrorKind.VENDOR_PERMANENT
    retryable = False
