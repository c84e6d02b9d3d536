# app/core/http_errors.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.errors import AppError
from app.core.logging import get_request_id

log = logging.getLogger(__name__)


def _payload(err: AppError) -> dict:
    body = {"code": err.code, "detail": err.detail}
    if err.kind is not None:
        body["kind"] = err.kind.value
    rid = get_request_id()
    if rid:
        body["request_id"] = rid
    return body


def init_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        if exc.http_status >= 500:
            log.error("%s %s -> %s [%s] %s", request.method, request.url.path, exc.http_status, exc.code, exc.detail)
        return JSONResponse(status_code=exc.http_status, content=_payload(exc))
