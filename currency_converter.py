import logging
from decimal import Decimal
from typing import Dict, Optional

from precision import currency_decimals, round_to, to_decimal

logger = logging.getLogger(__name__)

ONE = Decimal(1)


class CurrencyConverter:
    """
    Normalizes amounts between currencies.

    Rate tables map a currency code to "units per 1 unit of some common base";
    only the ratio rates[to] / rates[from] is ever used. A missing table or a
    missing entry counts as 1, so conversion degrades to identity instead of
    failing.
    """

    @staticmethod
    def get_rate(from_currency: str, to_currency: str, rates: Optional[Dict[str, Decimal]]) -> Decimal:
        """Market rate from one currency to another, without overrides"""
        if from_currency == to_currency:
            return ONE
        if not rates:
            return ONE

        from_rate = rates.get(from_currency)
        to_rate = rates.get(to_currency)
        if from_rate is None or to_rate is None:
            logger.debug(f"No rate for {from_currency}->{to_currency}, treating missing side as 1")
        return to_decimal(to_rate or ONE) / to_decimal(from_rate or ONE)

    @staticmethod
    def effective_rate(
        from_currency: str,
        to_currency: str,
        rates: Optional[Dict[str, Decimal]],
        overrides: Optional[Dict[str, Decimal]] = None,
        settlement_currency: Optional[str] = None,
    ) -> Decimal:
        """
        Rate actually applied by convert().

        A custom override for `from_currency` wins, but only when converting
        into the settlement currency. If no settlement currency is given the
        target is assumed to be it.
        """
        if from_currency == to_currency:
            return ONE

        target = settlement_currency or to_currency
        if overrides and from_currency in overrides and to_currency == target:
            return to_decimal(overrides[from_currency])

        return CurrencyConverter.get_rate(from_currency, to_currency, rates)

    @staticmethod
    def convert(
        amount,
        from_currency: str,
        to_currency: str,
        rates: Optional[Dict[str, Decimal]],
        overrides: Optional[Dict[str, Decimal]],
        precision: int,
        settlement_currency: Optional[str] = None,
    ) -> Decimal:
        """Convert `amount` and round it; same-currency amounts pass through untouched"""
        amount = to_decimal(amount)
        if from_currency == to_currency:
            return amount

        rate = CurrencyConverter.effective_rate(
            from_currency, to_currency, rates, overrides, settlement_currency
        )
        return round_to(amount * rate, precision)

    @staticmethod
    def describe_rate(
        from_currency: str,
        to_currency: str,
        rates: Optional[Dict[str, Decimal]],
        overrides: Optional[Dict[str, Decimal]] = None,
        settlement_currency: Optional[str] = None,
        precision: Optional[int] = None,
    ) -> str:
        """Human readable rate, e.g. '1 USD = 32.00 TWD'"""
        rate = CurrencyConverter.effective_rate(
            from_currency, to_currency, rates, overrides, settlement_currency
        )
        if precision is None:
            precision = max(currency_decimals(to_currency), 2)
        return f"1 {from_currency} = {round_to(rate, precision)} {to_currency}"
