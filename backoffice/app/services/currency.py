"""Currency conversion with a TTL rate cache and markup helper."""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional, Tuple

import httpx
from loguru import logger

from backoffice.app.config import Settings

# Approximate rates used when the live rate service is unreachable.
FALLBACK_RATES: Dict[str, Dict[str, float]] = {
    "EUR": {"GBP": 0.85, "USD": 1.08, "EUR": 1.0},
    "GBP": {"EUR": 1.18, "USD": 1.27, "GBP": 1.0},
    "USD": {"EUR": 0.93, "GBP": 0.79, "USD": 1.0},
}


def apply_markup(price: float, markup_percent: float) -> float:
    """``price`` increased by ``markup_percent`` percent, rounded to pennies."""
    return round(price + price * markup_percent / 100, 2)


class RateCache:
    """Exchange rates keyed by ``"{from}_{to}"`` with lazy expiry."""

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, float]] = {}

    @staticmethod
    def key(from_currency: str, to_currency: str) -> str:
        return f"{from_currency}_{to_currency}"

    def get(self, from_currency: str, to_currency: str) -> Optional[float]:
        key = self.key(from_currency, to_currency)
        entry = self._entries.get(key)
        if entry is None:
            return None
        rate, stored_at = entry
        if self._clock() - stored_at >= self._ttl:
            del self._entries[key]
            return None
        return rate

    def set(self, from_currency: str, to_currency: str, rate: float) -> None:
        self._entries[self.key(from_currency, to_currency)] = (rate, self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class CurrencyConverter:
    """Converts amounts using live rates, falling back to ``FALLBACK_RATES``.

    When neither the rate service nor the fallback table knows a pair, the
    amount is returned unchanged. Callers cannot tell such a no-op apart from
    a real conversion; the fallback is logged at warning level.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._base_url = str(settings.exchange_rate_api_base).rstrip("/")
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(10.0), transport=transport)
        self.cache = RateCache(settings.rate_cache_ttl_seconds, clock=clock)

    async def close(self) -> None:
        await self._client.aclose()

    async def _fetch_rate(self, from_currency: str, to_currency: str) -> Optional[float]:
        url = f"{self._base_url}/{from_currency}"
        logger.debug("Fetching exchange rates from {url}", url=url)
        response = await self._client.get(url)
        response.raise_for_status()
        payload: Any = response.json()
        rate = (payload.get("rates") or {}).get(to_currency) if isinstance(payload, dict) else None
        if isinstance(rate, (int, float)) and not isinstance(rate, bool):
            return float(rate)
        return None

    async def get_rate(self, from_currency: str, to_currency: str) -> Optional[float]:
        """Live or cached rate; ``None`` when only the fallback can answer."""
        cached = self.cache.get(from_currency, to_currency)
        if cached is not None:
            logger.debug("Exchange rate cache hit for {pair}", pair=RateCache.key(from_currency, to_currency))
            return cached
        try:
            rate = await self._fetch_rate(from_currency, to_currency)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "Exchange rate lookup {source}->{target} failed: {error}",
                source=from_currency,
                target=to_currency,
                error=exc,
            )
            return None
        if rate is not None:
            self.cache.set(from_currency, to_currency, rate)
        return rate

    async def lookup(self, from_currency: str, to_currency: str) -> Tuple[Optional[float], str]:
        """Rate for a pair and where it came from.

        The source is ``identity``, ``service`` (live or cached), ``fallback``
        or ``unavailable``.
        """
        source = from_currency.upper()
        target = to_currency.upper()
        if source == target:
            return 1.0, "identity"

        rate = await self.get_rate(source, target)
        if rate is not None:
            return rate, "service"
        rate = FALLBACK_RATES.get(source, {}).get(target)
        if rate is None:
            logger.warning(
                "No exchange rate for {source}->{target}; amount left unconverted",
                source=source,
                target=target,
            )
            return None, "unavailable"
        logger.warning(
            "Using fallback exchange rate {rate} for {source}->{target}",
            rate=rate,
            source=source,
            target=target,
        )
        return rate, "fallback"

    async def convert(self, amount: float, from_currency: str, to_currency: str) -> float:
        """Convert ``amount``; identical currencies return it untouched."""
        rate, source = await self.lookup(from_currency, to_currency)
        if rate is None or source == "identity":
            return amount
        return round(amount * rate, 2)
