"""Exchange rate models."""

import uuid

from andaya.models.base import Base, TimestampMixin, utcnow
from sqlalchemy import JSON, Column, DateTime, Float, Index, Integer, Numeric, String, Uuid


class ExchangeRate(Base, TimestampMixin):
    """Bolivar rate for a currency as published by a provider (bcv, paralelo...)."""

    __tablename__ = "exchange_rates"

    __table_args__ = (
        Index("ix_exchange_rates_provider_code_fetched", "provider", "code", "fetched_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    provider = Column(String(50), nullable=False)
    code = Column(String(3), nullable=False)
    buy = Column(Numeric(18, 4))
    sell = Column(Numeric(18, 4))
    value = Column(Numeric(18, 4), nullable=False)
    source = Column(JSON)
    fetched_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<ExchangeRate({self.provider}:{self.code}={self.value} at {self.fetched_at})>"


class FxSettings(Base, TimestampMixin):
    """Singleton row with exchange rate preferences."""

    __tablename__ = "fx_settings"

    id = Column(Integer, primary_key=True, default=1)
    default_provider = Column(String(50), default="bcv", nullable=False)
    default_currency = Column(String(3), default="USD", nullable=False)
    refresh_minutes = Column(Integer, default=30, nullable=False)
    eur_usd_fallback_rate = Column(Float, default=1.10)
    updated_by = Column(Uuid)
