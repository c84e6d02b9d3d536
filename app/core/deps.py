# app/core/deps.py
# Dependências comuns para rotas FastAPI

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.domains.catalog.services.sync_coordinator import CatalogSyncCoordinator
from app.domains.fulfillment.services.orchestrator import FulfillmentOrchestrator
from app.domains.shipping.services.quote_aggregator import ShippingQuoteAggregator
from app.domains.vendors.services.registry import AdapterRegistry
from app.infra.bootstrap import Runtime
from app.infra.session import get_session
from app.infra.uow import UoW


def get_uow(db: Annotated[Session, Depends(get_session)]) -> UoW:
    return UoW(db)


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def get_registry(runtime: Annotated[Runtime, Depends(get_runtime)]) -> AdapterRegistry:
    return runtime.registry


def get_orchestrator(runtime: Annotated[Runtime, Depends(get_runtime)]) -> FulfillmentOrchestrator:
    return runtime.orchestrator


def get_catalog_sync(runtime: Annotated[Runtime, Depends(get_runtime)]) -> CatalogSyncCoordinator:
    return runtime.catalog_sync


def get_shipping(runtime: Annotated[Runtime, Depends(get_runtime)]) -> ShippingQuoteAggregator:
    return runtime.shipping
