# app/models/__init__.py
from app.infra.base import Base
from app.models.catalog import CatalogEntry, CatalogSyncRun
from app.models.fulfillment_order import FulfillmentOrder, FulfillmentStatus

__all__ = [
    "Base",
    "CatalogEntry",
    "CatalogSyncRun",
    "FulfillmentOrder",
    "FulfillmentStatus",
    "create_db_and_tables",
]


def create_db_and_tables(bind=None) -> None:
    if bind is None:
        from app.infra.session import engine as bind

    Base.metadata.create_all(bind=bind)
