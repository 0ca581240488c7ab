"""
Currency formatting and conversion.

Rates are fixed placeholders for display purposes; no live FX lookups.
"""

from typing import Dict, Tuple

from .utils import round_cost

CURRENCY_SYMBOLS: Dict[str, str] = {
    "CNY": "¥",
    "USD": "$",
    "EUR": "€",
}

# Fixed placeholder rates - not meant to be accurate
_STATIC_RATES: Dict[Tuple[str, str], float] = {
    ("USD", "CNY"): 7.20,
    ("EUR", "CNY"): 7.80,
    ("EUR", "USD"): 1.08,
}


def get_rate(base_currency: str, quote_currency: str) -> float:
    """Look up a static conversion rate, inverting the pair if needed.

    Unknown pairs resolve to 1.0.
    """
    base = (base_currency or "").upper().strip() or "USD"
    quote = (quote_currency or "").upper().strip() or "USD"
    if base == quote:
        return 1.0
    direct = _STATIC_RATES.get((base, quote))
    if direct:
        return direct
    inverse = _STATIC_RATES.get((quote, base))
    if inverse:
        return 1.0 / inverse
    return 1.0


def convert_amount(amount: float, from_currency: str, to_currency: str) -> float:
    return round_cost(amount * get_rate(from_currency, to_currency))


def format_currency(amount: float, currency: str = "CNY") -> str:
    """Format an amount with its currency symbol and two decimals.

    Args:
        amount: Amount to format
        currency: ISO code; unknown codes are used as the prefix

    Returns:
        String such as ``$1,234.50`` or ``-€3.00``
    """
    code = getattr(currency, "value", currency)
    symbol = CURRENCY_SYMBOLS.get(code, f"{code} ")
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"
