"""Exchange rate lookup, refresh and settings."""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from andaya.config import settings
from andaya.errors import NotFoundError
from andaya.models import ExchangeRate, FxSettings
from andaya.services import database
from andaya.services.fx_provider import FxProviderClient
from andaya.services.redis_client import cache_fx_rate, get_cached_fx_rate, invalidate_fx_cache
from andaya.tools.common import record_audit
from andaya.tools.serializers import exchange_rate_to_dict, fx_settings_to_dict
from andaya.utils.currency import to_decimal
from andaya.utils.dates import as_utc, parse_iso_datetime
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

FX_SETTINGS_ID = 1
RATE_PLACES = Decimal("0.0001")


# ============================================================================
# Settings
# ============================================================================


async def get_fx_settings(db: AsyncSession) -> FxSettings:
    """Load the settings row, creating it with defaults on first use."""
    fx_settings = await db.get(FxSettings, FX_SETTINGS_ID)
    if fx_settings is None:
        fx_settings = FxSettings(
            id=FX_SETTINGS_ID,
            default_provider=settings.FX_DEFAULT_PROVIDER,
            default_currency=settings.FX_DEFAULT_CODE,
            refresh_minutes=settings.FX_REFRESH_MINUTES,
            eur_usd_fallback_rate=settings.EUR_USD_FALLBACK_RATE,
        )
        db.add(fx_settings)
        await db.commit()
    return fx_settings


async def read_fx_settings(db: AsyncSession) -> Dict[str, Any]:
    return fx_settings_to_dict(await get_fx_settings(db))


async def update_fx_settings(
    db: AsyncSession, admin_id: uuid.UUID, patch: Dict[str, Any]
) -> Dict[str, Any]:
    fx_settings = await get_fx_settings(db)
    for key, value in patch.items():
        setattr(fx_settings, key, value)
    fx_settings.updated_by = admin_id

    record_audit(
        db,
        "update_fx_settings",
        actor_id=admin_id,
        entity_type="fx_settings",
        entity_id=FX_SETTINGS_ID,
        meta={"changes": patch},
    )
    await db.commit()
    await db.refresh(fx_settings)

    await invalidate_fx_cache()
    logger.info(f"FX settings updated by {admin_id}: {patch}")
    return fx_settings_to_dict(fx_settings)


# ============================================================================
# Latest rate
# ============================================================================


def _freshness(fetched_at: datetime, now: datetime) -> Dict[str, Any]:
    hours = (now - as_utc(fetched_at)).total_seconds() / 3600
    return {
        "stale": hours > settings.FX_STALE_HOURS,
        "hours_since_update": round(hours, 1),
    }


async def get_latest_rate(
    db: AsyncSession,
    provider: Optional[str] = None,
    code: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Most recent rate for a provider and currency.

    The rate itself is cached in Redis; staleness is computed on every call
    so a cached entry never reports an outdated age.

    Returns:
        {"rate": {...}, "stale": bool, "hours_since_update": float}

    Raises:
        NotFoundError: No rate stored for the pair (body carries provider/code)
    """
    provider = provider or settings.FX_DEFAULT_PROVIDER
    code = (code or settings.FX_DEFAULT_CODE).upper()
    now = as_utc(now) if now else datetime.now(timezone.utc)

    rate = await get_cached_fx_rate(provider, code)
    if rate is None:
        row = await db.scalar(
            select(ExchangeRate)
            .where(ExchangeRate.provider == provider, ExchangeRate.code == code)
            .order_by(ExchangeRate.fetched_at.desc())
            .limit(1)
        )
        if row is None:
            raise NotFoundError("Rate not found", provider=provider, code=code)

        rate = exchange_rate_to_dict(row)
        rate["source"] = row.source
        await cache_fx_rate(provider, code, rate)
    else:
        logger.debug(f"FX cache hit for {provider}:{code}")

    result = {"rate": rate}
    result.update(_freshness(parse_iso_datetime(rate["fetched_at"]), now))
    if result["stale"]:
        logger.info(f"Rate {provider}:{code} is stale ({result['hours_since_update']}h)")
    return result


# ============================================================================
# Refresh
# ============================================================================


async def refresh_rates(
    db: AsyncSession,
    provider_client: Optional[FxProviderClient] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Pull current USD quotes and store them with derived EUR rates.

    Providers that already have a USD row newer than ``refresh_minutes`` (or
    one carrying the same publication time) are skipped. EUR is derived from
    USD with the configured EUR/USD fallback rate.

    Returns:
        {"ok": True, "inserted": int, "codes": ["bcv:USD", ...], "timestamp": str}
    """
    provider_client = provider_client or FxProviderClient()
    now = as_utc(now) if now else datetime.now(timezone.utc)

    fx_settings = await get_fx_settings(db)
    refresh_minutes = fx_settings.refresh_minutes or settings.FX_REFRESH_MINUTES
    eur_usd = to_decimal(fx_settings.eur_usd_fallback_rate or settings.EUR_USD_FALLBACK_RATE)
    cutoff = now - timedelta(minutes=refresh_minutes)

    quotes = await provider_client.fetch_usd_quotes()

    inserted = 0
    codes = []
    for quote in quotes:
        fetched_at = quote.fetched_at or now

        recent = await db.scalar(
            select(ExchangeRate.id)
            .where(
                ExchangeRate.provider == quote.provider,
                ExchangeRate.code == "USD",
                (ExchangeRate.fetched_at >= cutoff) | (ExchangeRate.fetched_at == fetched_at),
            )
            .limit(1)
        )
        if recent:
            logger.info(f"Skipping {quote.provider} - recent data exists")
            continue

        db.add(
            ExchangeRate(
                provider=quote.provider,
                code="USD",
                buy=quote.buy,
                sell=quote.sell,
                value=quote.value,
                source=quote.raw,
                fetched_at=fetched_at,
            )
        )
        db.add(
            ExchangeRate(
                provider=quote.provider,
                code="EUR",
                buy=(quote.buy * eur_usd).quantize(RATE_PLACES) if quote.buy else None,
                sell=(quote.sell * eur_usd).quantize(RATE_PLACES) if quote.sell else None,
                value=(quote.value * eur_usd).quantize(RATE_PLACES),
                source={
                    **quote.raw,
                    "derived": True,
                    "eur_usd_rate": float(eur_usd),
                    "note": "Calculated from USD rate",
                },
                fetched_at=fetched_at,
            )
        )
        inserted += 2
        codes.extend([f"{quote.provider}:USD", f"{quote.provider}:EUR"])

    await db.commit()
    if inserted:
        await invalidate_fx_cache()

    logger.info(f"FX refresh inserted {inserted} rates: {codes}")
    return {"ok": True, "inserted": inserted, "codes": codes, "timestamp": now.isoformat()}


async def refresh_rates_background():
    """Refresh in a fresh session; used after a stale read. Failures are only logged."""
    if database.async_session_maker is None:
        logger.warning("Database not initialized, skipping background FX refresh")
        return
    try:
        async with database.async_session_maker() as session:
            await refresh_rates(session)
    except Exception as e:
        logger.error(f"Background FX refresh failed: {e}", exc_info=True)
