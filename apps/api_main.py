# apps/api_main.py
from __future__ import annotations

from datetime import UTC, datetime

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from app.infra.bootstrap import build_runtime


# Routes
from app.api.v1.catalog import router as catalog_router
from app.api.v1.fulfillment import router as fulfillment_router
from app.api.v1.shipping import router as shipping_router
from app.api.v1.system import router as system_router
from app.api.v1.vendors import router as vendors_router

# Others
from app.core.http_errors import init_error_handlers
from app.core.logging import setup_logging
from app.core.middleware import RequestContextMiddleware
from app.core.config import settings

setup_logging()


app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION)
app.add_middleware(RequestContextMiddleware)

init_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r".*",  # aceita qualquer origem
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "Idempotency-Key"],
    allow_credentials=True,  # ecoa o Origin em vez de '*'
    max_age=86400,
)


@app.on_event("startup")
async def on_startup():
    app.state.started_at = datetime.now(UTC)
    from app.models import create_db_and_tables

    create_db_and_tables()
    # testes podem injetar um runtime próprio antes do arranque
    if getattr(app.state, "runtime", None) is None:
        app.state.runtime = build_runtime(settings)


@app.on_event("shutdown")
async def on_shutdown():
    runtime = getattr(app.state, "runtime", None)
    if runtime is not None:
        await runtime.aclose()


# routers
app.include_router(system_router, prefix="/api/v1")
app.include_router(vendors_router, prefix="/api/v1")
app.include_router(fulfillment_router, prefix="/api/v1")
app.include_router(catalog_router, prefix="/api/v1")
app.include_router(shipping_router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("apps.api_main:app", host=settings.API_HOST, port=settings.API_PORT)
