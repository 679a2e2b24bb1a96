"""Client for the public Venezuelan exchange rate API (ve.dolarapi.com)."""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx
from andaya.config import settings
from andaya.errors import UpstreamError
from andaya.utils.currency import to_decimal
from andaya.utils.dates import parse_iso_datetime
from andaya.utils.retry import with_retry

logger = logging.getLogger(__name__)


def provider_slug(name: str) -> str:
    """``"BCV Oficial"`` -> ``"bcv_oficial"``"""
    return "_".join(name.lower().split())


@dataclass
class ProviderQuote:
    """USD quote published by one provider."""

    provider: str
    buy: Optional[Decimal]
    sell: Optional[Decimal]
    value: Decimal
    fetched_at: Optional[datetime]
    raw: Dict[str, Any]

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "ProviderQuote":
        # Some providers publish only the average; fall back to sell then buy
        value = item.get("promedio") or item.get("venta") or item.get("compra")
        if value is None:
            raise ValueError(f"No rate for provider {item.get('nombre')!r}")

        fetched_at = None
        if item.get("fechaActualizacion"):
            try:
                fetched_at = parse_iso_datetime(item["fechaActualizacion"])
            except ValueError:
                logger.warning(f"Unparseable fechaActualizacion: {item['fechaActualizacion']}")

        return cls(
            provider=provider_slug(item.get("nombre") or item.get("fuente") or "desconocido"),
            buy=to_decimal(item["compra"]) if item.get("compra") is not None else None,
            sell=to_decimal(item["venta"]) if item.get("venta") is not None else None,
            value=to_decimal(value),
            fetched_at=fetched_at,
            raw=item,
        )


class FxProviderClient:
    """Fetches current USD/VES quotes from every provider the API lists."""

    def __init__(self, url: str = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url or settings.FX_API_URL
        self.transport = transport

    async def fetch_usd_quotes(self) -> List[ProviderQuote]:
        """
        Fetch the current quotes.

        Raises:
            UpstreamError: If the API stays unreachable or answers with an error
        """
        async with httpx.AsyncClient(
            timeout=settings.HTTP_TIMEOUT, transport=self.transport
        ) as client:

            async def call():
                response = await client.get(self.url)
                response.raise_for_status()
                return response

            try:
                response = await with_retry(
                    call,
                    max_retries=3,
                    initial_delay=1.0,
                    retry_on=(httpx.TransportError,),
                    operation_name="FX provider fetch",
                )
            except httpx.HTTPError as e:
                raise UpstreamError(f"Exchange rate API failed: {e}") from e

        payload = response.json()
        if isinstance(payload, dict):
            payload = [payload]

        quotes = []
        for item in payload:
            try:
                quotes.append(ProviderQuote.from_api(item))
            except ValueError as e:
                logger.warning(f"Skipping exchange rate entry: {e}")

        logger.info(f"Fetched {len(quotes)} USD quotes from {self.url}")
        return quotes
