# app/infra/base.py
from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

# JSONB em Postgres, JSON genérico nos restantes (ex.: SQLite nos testes)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    """UTC naive: as colunas DateTime guardam sempre UTC sem tzinfo."""
    return datetime.now(UTC).replace(tzinfo=None)
