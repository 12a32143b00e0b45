from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

SUPPORTED_CURRENCIES: List[Dict[str, Any]] = [
    # International
    {"code": "USD", "name": "US Dollar"},
    {"code": "EUR", "name": "Euro"},
    {"code": "GBP", "name": "British Pound"},
    {"code": "AUD", "name": "Australian Dollar"},
    {"code": "CAD", "name": "Canadian Dollar"},
    # Asian
    {"code": "TWD", "name": "New Taiwan Dollar", "decimals": 0},
    {"code": "JPY", "name": "Japanese Yen", "decimals": 0},
    {"code": "KRW", "name": "South Korean Won", "decimals": 0},
    {"code": "CNY", "name": "Chinese Yuan", "decimals": 0},
    {"code": "HKD", "name": "Hong Kong Dollar"},
    {"code": "SGD", "name": "Singapore Dollar"},
    {"code": "THB", "name": "Thai Baht", "decimals": 0},
    {"code": "VND", "name": "Vietnamese Dong", "decimals": 0},
]

DEFAULT_CURRENCY = "TWD"
MAX_PRECISION = 8


def to_decimal(value) -> Decimal:
    """Coerce int/float/str into a Decimal without binary float artefacts"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_to(value, precision: int) -> Decimal:
    """
    Round a monetary value to `precision` fractional digits.

    Ties go away from zero (half-up on the magnitude), so 0.125 -> 0.13
    and -0.125 -> -0.13.
    """
    exponent = Decimal(1).scaleb(-precision)
    return to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP)


def get_currency_info(code: str) -> Dict[str, Any]:
    """Look up a supported currency, falling back to the default currency"""
    for info in SUPPORTED_CURRENCIES:
        if info["code"] == code:
            return info
    return next(c for c in SUPPORTED_CURRENCIES if c["code"] == DEFAULT_CURRENCY)


def currency_decimals(code: str) -> int:
    return get_currency_info(code).get("decimals", 2)


def format_currency(amount, code: str, decimals: Optional[int] = None) -> str:
    """
    Format an amount for reports, e.g. 'TWD 1,000' or 'USD 12.50'.

    `decimals` overrides the currency's display decimals, e.g. for a project
    that settles TWD at 2 decimals.
    """
    info = get_currency_info(code)
    if decimals is None:
        decimals = info.get("decimals", 2)
    return f"{info['code']} {round_to(amount, decimals):,.{decimals}f}"
