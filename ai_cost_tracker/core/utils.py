"""
Date and number helpers shared by the calculator and provider adapters.

All functions here are stateless.
"""

import calendar
import json
import math
import random
import string
import time
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar, Union

T = TypeVar("T")

DateLike = Union[date, datetime, str]

_BASE36 = string.digits + string.ascii_lowercase


def round_cost(value: float) -> float:
    """Round to whole cents using half-up rounding.

    Goes through ``Decimal(str(value))`` so that values like 2.675 and 1.005
    round up to 2.68 and 1.01 instead of drifting down in binary floating
    point. Ties on negative values round away from zero (-0.005 -> -0.01),
    so a cost change and its negation always have the same magnitude. NaN
    and infinities are returned unchanged.
    """
    if value is None:
        return 0.0
    if isinstance(value, float) and not math.isfinite(value):
        return value
    rounded = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(rounded)


def parse_date(value: Optional[DateLike]) -> date:
    """Parse an ISO 8601 date (or datetime) into a ``date``.

    ``None`` and empty strings resolve to today.

    Raises:
        ValueError: If the string is not a valid ISO date
    """
    if value is None or value == "":
        return date.today()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        if "T" in text or " " in text:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return date.fromisoformat(text)
    except ValueError:
        raise ValueError(f"Invalid date string: {value}")


def first_day_of_month(value: DateLike) -> date:
    d = parse_date(value)
    return d.replace(day=1)


def last_day_of_month(value: DateLike) -> date:
    d = parse_date(value)
    return d.replace(day=calendar.monthrange(d.year, d.month)[1])


def shift_months(value: DateLike, months: int) -> date:
    """Return the first day of the month ``months`` away from ``value``."""
    d = parse_date(value)
    index = d.year * 12 + (d.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def month_key(value: DateLike) -> str:
    """Month identifier in ``YYYY-MM`` form."""
    d = parse_date(value)
    return f"{d.year:04d}-{d.month:02d}"


def days_between(start: DateLike, end: DateLike) -> int:
    return (parse_date(end) - parse_date(start)).days


def iter_days(start: DateLike, end: DateLike) -> List[str]:
    """Every ISO date from start to end inclusive."""
    current = parse_date(start)
    last = parse_date(end)
    days = []
    while current <= last:
        days.append(current.isoformat())
        current += timedelta(days=1)
    return days


def utc_now_iso() -> str:
    return datetime.now().isoformat(timespec="milliseconds")


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_id(prefix: Optional[str] = None) -> str:
    """Generate an opaque unique id: base36 millisecond timestamp + random tail."""
    timestamp = _to_base36(int(time.time() * 1000))
    random_part = "".join(random.choices(_BASE36, k=9))
    identifier = f"{timestamp}-{random_part}"
    return f"{prefix}-{identifier}" if prefix else identifier


def format_number(value: float, decimals: Optional[int] = None) -> str:
    """Thousands-separated number; NaN and None render as ``0``."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "0"
    if decimals is None:
        if float(value).is_integer():
            return f"{int(value):,}"
        return f"{value:,}"
    return f"{value:,.{decimals}f}"


def format_percent(value: float, decimals: int = 1) -> str:
    """Format a 0-1 ratio as a percentage string."""
    return f"{value * 100:.{decimals}f}%"


def group_by(items: Iterable[T], key_fn: Callable[[T], str]) -> Dict[str, List[T]]:
    groups: Dict[str, List[T]] = {}
    for item in items:
        groups.setdefault(key_fn(item), []).append(item)
    return groups


def safe_json_loads(text: Optional[str], fallback: Any) -> Any:
    """Parse JSON, returning ``fallback`` for empty or corrupt input."""
    if not text:
        return fallback
    try:
        return json.loads(text)
    except ValueError:
        return fallback
