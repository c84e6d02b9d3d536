"""
Fixtures partilhadas: SQLite em memória por teste, registry com fake vendor
e orquestrador sem esperas reais entre retries.
"""

import os
import tempfile

# Antes de importar módulos da app (settings / engine / logging leem env no import)
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="dsf-test-logs-"))
os.environ.setdefault("LOG_COLORS", "false")

from collections.abc import Callable, Iterator
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.domains.fulfillment.services.orchestrator import FulfillmentOrchestrator, OrchestratorConfig
from app.domains.vendors.services.registry import AdapterRegistry
from app.external.vendors.fake import FakeVendorAdapter
from app.infra.uow import UoW
from app.models import create_db_and_tables
from app.schemas.fulfillment import Address, BuyerContact, FulfillmentRequest, LineItem


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine) -> Callable[[], Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def uow(session_factory) -> Iterator[UoW]:
    with session_factory() as db:
        yield UoW(db)


@pytest.fixture
def registry() -> AdapterRegistry:
    return AdapterRegistry()


@pytest.fixture
def vendor(registry) -> FakeVendorAdapter:
    """Fornecedor 'v1' registado com todas as capabilities."""
    adapter = FakeVendorAdapter("v1", timeout_s=2.0)
    registry.register("v1", adapter, display_name="Vendor One")
    return adapter


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def orchestrator(registry, sleeps) -> FulfillmentOrchestrator:
    async def _no_wait(delay: float) -> None:
        sleeps.append(delay)

    config = OrchestratorConfig(
        max_retries=3,
        backoff_base_s=0.01,
        backoff_max_s=1.0,
        timeout_ceiling_s=5.0,
        submit_stale_after_s=300,
    )
    return FulfillmentOrchestrator(registry, config, sleep=_no_wait)


@pytest.fixture
def address() -> Address:
    return Address(
        first_name="Ana",
        last_name="Silva",
        address1="Rua Augusta 10",
        city="Lisboa",
        postal_code="1100-053",
        country="PT",
    )


@pytest.fixture
def make_request(address) -> Callable[..., FulfillmentRequest]:
    def _make(
        key: str = "abc",
        items: list[tuple[str, int, str]] | None = None,
        destination: Address | None = None,
        notes: str | None = None,
    ) -> FulfillmentRequest:
        rows = items if items is not None else [("sku-1", 2, "10.00")]
        return FulfillmentRequest(
            items=tuple(
                LineItem(vendor_product_id=sku, quantity=qty, unit_price=Decimal(price))
                for sku, qty, price in rows
            ),
            destination=destination or address,
            buyer=BuyerContact(name="Ana Silva", email="ana@example.com"),
            notes=notes,
            idempotency_key=key,
        )

    return _make
