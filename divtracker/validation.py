"""
divtracker/validation.py  —  Input validation rules

All validators return a list of error strings (empty = valid).
Forms and the CSV importer sanitise and validate here, so the income
projector only ever sees clean numbers.
"""

import math
import re
from datetime import datetime
from typing import Any, List, Optional

from divtracker.models import PAYOUT_FREQUENCIES

_BAD_SYMBOL_CHARS = re.compile(r'[^A-Z0-9.\-]')
_MAX_SYMBOL_LEN   = 10

# Sanity bounds: "almost certainly a typo" guards
_MIN_SHARES = 0.001
_MAX_SHARES = 999_999_999
_MIN_PRICE  = 0.01
_MAX_PRICE  = 999_999_999
_MAX_YIELD  = 100.0     # percent
_MAX_NAME   = 50

_STRIP_CHARS = re.compile(r'[^\d.\-eE]')

_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y")


def to_number(value: Any) -> float:
    """
    Coerce form / CSV input into a float. Blank, NaN and unparsable input
    become 0.0; currency symbols, thousands separators and % are ignored.
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        f = float(value)
        return 0.0 if math.isnan(f) or math.isinf(f) else f
    cleaned = _STRIP_CHARS.sub("", str(value))
    try:
        f = float(cleaned)
    except ValueError:
        return 0.0
    return 0.0 if math.isnan(f) or math.isinf(f) else f


def validate_symbol(symbol: str) -> List[str]:
    errors = []
    s = (symbol or "").strip().upper()
    if not s:
        errors.append("Symbol cannot be empty.")
        return errors
    if len(s) > _MAX_SYMBOL_LEN:
        errors.append(f"Symbol '{s}' is too long (max {_MAX_SYMBOL_LEN} characters).")
    if _BAD_SYMBOL_CHARS.search(s):
        errors.append(f"Symbol '{s}' contains invalid characters. "
                      f"Only letters, numbers, dots and hyphens are allowed.")
    if s[0] in ".-" or s[-1] in ".-":
        errors.append(f"Symbol '{s}' cannot start or end with '.' or '-'.")
    return errors


def validate_holding(shares: float, avg_price: float,
                     current_price: float = 0.0,
                     dividend_yield: float = 0.0) -> List[str]:
    errors = []

    if shares < _MIN_SHARES:
        errors.append(f"Shares must be at least {_MIN_SHARES}.")
    elif shares > _MAX_SHARES:
        errors.append(f"Shares {shares:,.0f} seems extremely large. Please double-check.")

    if avg_price < _MIN_PRICE:
        errors.append(f"Average price must be at least {_MIN_PRICE:.2f}.")
    elif avg_price > _MAX_PRICE:
        errors.append(f"Average price {avg_price:,.2f} seems unusually high.")

    # 0 means "unknown" and falls back to the average price
    if current_price < 0:
        errors.append("Current price cannot be negative.")
    elif current_price > _MAX_PRICE:
        errors.append(f"Current price {current_price:,.2f} seems unusually high.")

    if dividend_yield < 0:
        errors.append("Dividend yield cannot be negative.")
    elif dividend_yield > _MAX_YIELD:
        errors.append(f"Dividend yield {dividend_yield:.2f}% is above 100%. "
                      f"Enter it as a percentage, e.g. 3.5 for 3.5%.")

    return errors


def validate_frequency(frequency: str) -> List[str]:
    """Blank is allowed (defaults to quarterly); anything else must be known."""
    f = (frequency or "").strip().lower()
    if f and f not in PAYOUT_FREQUENCIES:
        return [f"Unknown payout frequency '{frequency}'. "
                f"Use one of: {', '.join(PAYOUT_FREQUENCIES)}."]
    return []


def validate_name(name: str) -> List[str]:
    errors = []
    n = (name or "").strip()
    if not n:
        errors.append("Please enter a portfolio name.")
    elif len(n) > _MAX_NAME:
        errors.append(f"Name is too long (max {_MAX_NAME} characters).")
    return errors


def parse_date(value: Any) -> Optional[str]:
    """Normalise a date to YYYY-MM-DD. Returns None if it cannot be read."""
    s = str(value or "").strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).strftime("%Y-%m-%d")
        except ValueError:
            continue
    return None


def validate_dividend(amount: float, payment_date: Any, ex_date: Any = None) -> List[str]:
    """A received dividend: positive per-share amount and readable dates."""
    errors = []
    if amount <= 0:
        errors.append("Dividend amount must be greater than 0.")
    elif amount > _MAX_PRICE:
        errors.append(f"Dividend amount {amount:,.2f} seems unusually high.")

    paid = parse_date(payment_date)
    if paid is None:
        errors.append(f"Date '{payment_date or ''}' is not a valid date (use YYYY-MM-DD).")
    if ex_date:
        ex = parse_date(ex_date)
        if ex is None:
            errors.append(f"Ex-date '{ex_date}' is not a valid date (use YYYY-MM-DD).")
        elif paid is not None and ex > paid:
            errors.append("Ex-date cannot be after the payment date.")
    return errors
