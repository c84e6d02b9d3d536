# app/core/middleware.py
"""
Middleware HTTP: request id, idempotency key e logging de requests.
"""

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.logging import set_request_id

log = logging.getLogger(__name__)

SLOW_REQUEST_MS = 2000
IDEMPOTENCY_HEADER = "Idempotency-Key"


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        set_request_id(rid)
        t0 = time.perf_counter()

        method = request.method
        path = request.url.path
        idem_key = request.headers.get(IDEMPOTENCY_HEADER)
        idem_display = f" key={idem_key}" if idem_key else ""

        try:
            log.info("-> %s %s%s", method, path, idem_display)
            response = await call_next(request)

            dt = (time.perf_counter() - t0) * 1000
            response.headers["X-Request-ID"] = rid
            if idem_key:
                response.headers[IDEMPOTENCY_HEADER] = idem_key

            status = response.status_code
            if status >= 500:
                log.error("<- %s %s -> %s %.0fms%s", method, path, status, dt, idem_display)
            elif status >= 400:
                log.warning("<- %s %s -> %s %.0fms%s", method, path, status, dt, idem_display)
            elif dt > SLOW_REQUEST_MS:
                log.warning("<- %s %s -> %s %.0fms [SLOW]", method, path, status, dt)
            else:
                log.info("<- %s %s -> %s %.0fms", method, path, status, dt)

            return response
        finally:
            set_request_id(None)
