"""Display formatting for screening rows and tool summaries."""

from __future__ import annotations

import math
from typing import Optional

MISSING = "--"


def _is_missing(value: Optional[float]) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def format_number(value: Optional[float], decimals: int = 2) -> str:
    if _is_missing(value):
        return MISSING
    return f"{value:.{decimals}f}"


def format_percentage(value: Optional[float], decimals: int = 2) -> str:
    if _is_missing(value):
        return MISSING
    return f"{value:.{decimals}f}%"


def format_currency(value: Optional[float], unit: str = "元") -> str:
    """Format an amount in yuan, switching to 亿元 or 万元 for large amounts.

    Any other ``unit`` is appended verbatim to a two-decimal figure.
    """
    if _is_missing(value):
        return MISSING
    if unit != "元":
        return f"{value:.2f}{unit}"

    yi = value / 1e8
    if abs(yi) >= 1:
        return f"{yi:.2f}亿元"
    if value / 1e4 >= 1:
        return f"{value / 1e4:.2f}万元"
    return f"{value:.2f}元"


def format_years(days: Optional[float]) -> str:
    """Format a day count as years, e.g. ``1825 -> "5.00年"``."""
    if _is_missing(days):
        return MISSING
    return f"{days / 365:.2f}年"
