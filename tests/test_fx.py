"""Exchange rate lookup and refresh tests."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from andaya.errors import UpstreamError
from andaya.models import ExchangeRate
from andaya.services.fx_provider import FxProviderClient
from andaya.tools import fx_tools
from sqlalchemy import select

from tests.conftest import auth_headers

NOW = datetime(2025, 3, 5, 15, 0, tzinfo=timezone.utc)

DOLARAPI_PAYLOAD = [
    {
        "fuente": "oficial",
        "nombre": "Oficial",
        "compra": None,
        "venta": None,
        "promedio": 36.5,
        "fechaActualizacion": "2025-03-05T14:00:00.000Z",
    },
    {
        "fuente": "paralelo",
        "nombre": "Paralelo",
        "compra": 40.1,
        "venta": 40.5,
        "promedio": 40.3,
        "fechaActualizacion": "2025-03-05T13:30:00.000Z",
    },
]


def provider_client(payload=DOLARAPI_PAYLOAD, status_code=200) -> FxProviderClient:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=payload)

    return FxProviderClient(url="https://fx.test/v1/dolares", transport=httpx.MockTransport(handler))


async def seed_rate(db_session, hours_ago: float, provider="bcv", code="USD", value="36.50"):
    rate = ExchangeRate(
        provider=provider,
        code=code,
        value=Decimal(value),
        source={"seed": True},
        fetched_at=datetime.now(timezone.utc) - timedelta(hours=hours_ago),
    )
    db_session.add(rate)
    await db_session.commit()
    return rate


class TestLatestRate:
    @pytest.mark.asyncio
    async def test_fresh_rate(self, client, db_session):
        await seed_rate(db_session, hours_ago=30, value="35.00")
        await seed_rate(db_session, hours_ago=1)

        with patch.object(fx_tools, "refresh_rates_background", new=AsyncMock()) as refresh:
            response = await client.get("/api/v1/functions/fx-latest")

        assert response.status_code == 200
        data = response.json()
        assert data["rate"]["value"] == 36.5
        assert data["rate"]["provider"] == "bcv"
        assert data["stale"] is False
        assert data["hours_since_update"] == pytest.approx(1.0, abs=0.1)
        refresh.assert_not_called()

    @pytest.mark.asyncio
    async def test_stale_rate_schedules_refresh(self, client, db_session):
        await seed_rate(db_session, hours_ago=30)

        with patch.object(fx_tools, "refresh_rates_background", new=AsyncMock()) as refresh:
            response = await client.get("/api/v1/functions/fx-latest?code=usd")

        assert response.json()["stale"] is True
        refresh.assert_called_once()

    @pytest.mark.asyncio
    async def test_missing_rate(self, client, db_session):
        await seed_rate(db_session, hours_ago=1)

        response = await client.get("/api/v1/functions/fx-latest?provider=paralelo&code=EUR")

        assert response.status_code == 404
        assert response.json() == {"error": "Rate not found", "provider": "paralelo", "code": "EUR"}


class TestRefreshRates:
    @pytest.mark.asyncio
    async def test_inserts_usd_and_derived_eur(self, db_session):
        result = await fx_tools.refresh_rates(db_session, provider_client(), now=NOW)

        assert result["ok"] is True
        assert result["inserted"] == 4
        assert result["codes"] == ["oficial:USD", "oficial:EUR", "paralelo:USD", "paralelo:EUR"]

        eur = await db_session.scalar(
            select(ExchangeRate).where(ExchangeRate.provider == "paralelo", ExchangeRate.code == "EUR")
        )
        assert eur.value == Decimal("44.3300")
        assert eur.buy == Decimal("44.1100")
        assert eur.sell == Decimal("44.5500")
        assert eur.source["derived"] is True
        assert eur.source["eur_usd_rate"] == pytest.approx(1.10)

        usd = await db_session.scalar(
            select(ExchangeRate).where(ExchangeRate.provider == "oficial", ExchangeRate.code == "USD")
        )
        assert usd.value == Decimal("36.5000")
        assert usd.buy is None

    @pytest.mark.asyncio
    async def test_recent_data_is_skipped(self, db_session):
        await fx_tools.refresh_rates(db_session, provider_client(), now=NOW)

        result = await fx_tools.refresh_rates(
            db_session, provider_client(), now=NOW + timedelta(minutes=10)
        )

        assert result["inserted"] == 0
        rows = (await db_session.execute(select(ExchangeRate))).scalars().all()
        assert len(rows) == 4

    @pytest.mark.asyncio
    async def test_refreshed_rate_is_served(self, db_session):
        await fx_tools.refresh_rates(db_session, provider_client(), now=NOW)

        latest = await fx_tools.get_latest_rate(
            db_session, "oficial", "EUR", now=NOW + timedelta(hours=2)
        )

        assert latest["rate"]["value"] == 40.15
        assert latest["stale"] is False
        assert latest["hours_since_update"] == 3.0

    @pytest.mark.asyncio
    async def test_provider_error(self, db_session):
        with pytest.raises(UpstreamError):
            await fx_tools.refresh_rates(db_session, provider_client({"error": "down"}, 500), now=NOW)

    @pytest.mark.asyncio
    async def test_manual_refresh_requires_admin(self, client, renter):
        response = await client.post(
            "/api/v1/functions/fx-refresh", headers=auth_headers("renter-token")
        )

        assert response.status_code == 403
