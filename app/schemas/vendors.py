from __future__ import annotations

from pydantic import BaseModel


class VendorProfileOut(BaseModel):
    vendor_id: str
    display_name: str
    enabled: bool
    capabilities: list[str]
    timeout_s: float
    rate_limit_per_minute: int | None = None


class VendorHealthOut(BaseModel):
    vendor_id: str
    status: str  # ok | error | disabled
    details: str | None = None
