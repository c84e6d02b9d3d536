# app/core/config.py
"""
Settings da aplicação (lidas de env / .env).

Os fornecedores são definidos em VENDORS como lista JSON, ex.:

    VENDORS='[{"vendor_id": "printful", "kind": "printful", "api_key": "..."}]'

As credenciais só são lidas aqui e injetadas nos adapters no arranque;
o orquestrador nunca as vê.
"""

from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class VendorSettings(BaseModel):
    """Definição de um fornecedor (adapter + perfil)."""

    vendor_id: str
    kind: str = "fake"  # printful | spocket | fake
    display_name: str | None = None
    base_url: str | None = None
    api_key: str | None = None
    store_id: str | None = None
    enabled: bool = True
    capabilities: list[str] = Field(
        default_factory=lambda: ["order_creation", "catalog_sync", "shipping_quote"]
    )
    timeout_s: float = 15.0
    rate_limit_per_minute: int | None = None
    catalog_sync_interval_minutes: int | None = None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_NAME: str = "Dropship Fulfillment Engine"
    APP_VERSION: str = "1.0.0"

    DATABASE_URL: str = "sqlite:///./dropship.db"
    DB_ECHO: bool = False

    # Servidor HTTP (python -m apps.api_main)
    API_HOST: str = "127.0.0.1"
    API_PORT: int = 8000

    # Orquestrador de encomendas
    ORDER_MAX_RETRIES: int = 3
    ORDER_BACKOFF_BASE_S: float = 0.5
    ORDER_BACKOFF_MAX_S: float = 30.0
    VENDOR_TIMEOUT_CEILING_S: float = 30.0
    SUBMIT_STALE_AFTER_S: int = 300
    SUBMIT_LEASE_TTL_S: int = 300

    # Cotações de envio
    SHIPPING_QUOTE_TIMEOUT_S: float = 5.0

    # Sincronização de catálogo
    CATALOG_SYNC_INTERVAL_MINUTES: int = 60
    CATALOG_SYNC_MAX_PAGES: int = 500
    CATALOG_SYNC_STALE_MINUTES: int = 120

    # Worker
    WORKER_POLL_INTERVAL_S: int = 30
    ORDER_STATUS_POLL_ENABLED: bool = True

    VENDOR_USER_AGENT: str = "dropship-fulfillment/1.0"

    VENDORS: list[VendorSettings] = Field(default_factory=list)


settings = Settings()
