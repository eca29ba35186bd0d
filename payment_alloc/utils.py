"""Utility functions for the payment allocation toolkit.

This module provides helpers for turning user input into Python data types
(amounts and dates) and for month arithmetic used when laying out payment
schedules and grouping transactions by month.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime
from decimal import Decimal, getcontext
from typing import Union

getcontext().prec = 28  # increase decimal precision to avoid rounding errors

CENT = Decimal("0.01")


def parse_date(value: Union[str, date]) -> date:
    """Parse a ``YYYY-MM-DD`` string (or an ISO timestamp) into a ``date``.

    ``date`` and ``datetime`` instances are returned unchanged so callers can
    pass already-parsed values through.

    Raises
    ------
    ValueError
        If the string is not a valid ISO date.
    """
    if isinstance(value, date):
        return value
    try:
        text = value.strip()
        if "T" in text or " " in text:
            return datetime.fromisoformat(text)
        return date.fromisoformat(text)
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Invalid date string: {value}") from exc


def parse_year_month(ym: str) -> date:
    """Parse a budget month (``YYYY-MM``) into the first day of that month.

    A full ``YYYY-MM-DD`` date is accepted; its day is dropped.
    """
    try:
        parts = ym.split("-")
        if len(parts) < 2:
            raise ValueError
        year = int(parts[0])
        month = int(parts[1])
        return date(year, month, 1)
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Invalid year-month string: {ym}") from exc


def month_key(dt: date) -> str:
    """Return the ``YYYY-MM`` key used to bucket values by month."""
    return dt.strftime("%Y-%m")


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    The day of the month is clamped to the last valid day if needed (e.g.,
    adding one month to Jan 31 yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def decimal_from_str(value: str) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    The function strips any commas and handles both integer and float-like
    strings. It raises ``ValueError`` if conversion fails.
    """
    try:
        cleaned = str(value).replace(",", "").strip()
        return Decimal(cleaned)
    except ArithmeticError as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc
