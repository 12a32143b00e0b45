import logging
import time
from decimal import Decimal
from typing import Callable, Dict, Optional, Tuple

import requests

from config import settings
from currency_converter import CurrencyConverter
from models import RateContext, RateTable
from precision import round_to, to_decimal

logger = logging.getLogger(__name__)

# Fallback static rates (USD as base)
FALLBACK_RATES: Dict[str, Decimal] = {
    "USD": Decimal("1"),
    "EUR": Decimal("0.92"),
    "GBP": Decimal("0.79"),
    "AUD": Decimal("1.53"),
    "CAD": Decimal("1.36"),
    "TWD": Decimal("31.5"),
    "JPY": Decimal("149.5"),
    "KRW": Decimal("1320"),
    "CNY": Decimal("7.24"),
    "HKD": Decimal("7.82"),
    "SGD": Decimal("1.34"),
    "THB": Decimal("35.8"),
    "VND": Decimal("24500"),
}


class ExchangeRateError(Exception):
    pass


class ExchangeRateProvider:
    """
    Supplies rate tables to the ledger engine.

    Live rates are fetched over HTTP and cached for `cache_seconds`. Any
    failure returns the static fallback table flagged with using_fallback,
    which callers pass through to the UI untouched.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        base_currency: Optional[str] = None,
        cache_seconds: Optional[int] = None,
        timeout: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.api_url = api_url or settings.EXCHANGE_RATE_API_URL
        self.base_currency = base_currency or settings.EXCHANGE_RATE_BASE
        self.cache_seconds = settings.RATE_CACHE_SECONDS if cache_seconds is None else cache_seconds
        self.timeout = timeout or settings.RATE_REQUEST_TIMEOUT
        self.clock = clock

        self._cached: Optional[RateTable] = None
        self._cached_at = 0.0
        self.using_fallback = False

    def _fetch(self) -> Dict:
        response = requests.get(
            self.api_url,
            params={"base": self.base_currency},
            timeout=self.timeout,
        )
        if response.status_code != 200:
            raise ExchangeRateError(f"Rate API returned status {response.status_code}")

        data = response.json()
        if not data.get("success"):
            raise ExchangeRateError("Rate API returned unsuccessful response")
        if not data.get("rates"):
            raise ExchangeRateError("Rate API returned no rates")
        return data

    def get_rates(self) -> RateTable:
        """Return cached rates while fresh, otherwise fetch; never raises"""
        now = self.clock()
        if self._cached and now - self._cached_at < self.cache_seconds:
            return self._cached

        try:
            data = self._fetch()
            rates = {}
            for code, rate in data["rates"].items():
                rate = to_decimal(rate)
                if len(code) == 3 and code.isalpha() and rate.is_finite() and rate > 0:
                    rates[code.upper()] = rate
            self._cached = RateTable(
                base=data.get("base") or self.base_currency,
                rates=rates,
                timestamp=now,
                using_fallback=False,
            )
            self._cached_at = now
            self.using_fallback = False
            logger.info(f"Fetched {len(rates)} exchange rates (base {self._cached.base})")
            return self._cached

        except (requests.RequestException, ValueError, ExchangeRateError) as e:
            logger.error(f"Exchange rate fetch error: {str(e)}")
            self.using_fallback = True
            return RateTable(base="USD", rates=dict(FALLBACK_RATES), timestamp=now, using_fallback=True)

    def convert(self, amount, from_currency: str, to_currency: str) -> Tuple[Decimal, Decimal]:
        """Convert at the current market rate; returns (converted_amount, rate)"""
        amount = to_decimal(amount)
        if from_currency == to_currency:
            return amount, Decimal(1)

        table = self.get_rates()
        rate = CurrencyConverter.get_rate(from_currency, to_currency, table.rates)
        return round_to(amount * rate, 2), rate

    def rate_context(
        self,
        settlement_currency: str,
        precision: int,
        custom_rates: Optional[Dict[str, Decimal]] = None,
    ) -> RateContext:
        """Bundle the current table into the context the engine consumes"""
        table = self.get_rates()
        return RateContext(
            rates=table.rates,
            custom_rates=custom_rates,
            settlement_currency=settlement_currency,
            precision=precision,
            using_fallback=table.using_fallback,
        )
