"""
Rank module for the KPSC notification feed.

Orders notifications newest gazette first, then by descending category
number, and bounds the result size.
"""

import math
import re
from datetime import date
from typing import Any, List, Optional, Tuple

from kpsc_feed.filter import cat_number
from kpsc_feed.parse import NotificationItem


DEFAULT_LIMIT = 40
MIN_LIMIT = 5
MAX_LIMIT = 100

# Numeric text forms accepted by JavaScript's Number()
JS_DECIMAL_RE = re.compile(r"[+-]?(?:Infinity|(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?)")
JS_RADIX_RE = re.compile(r"0[xX][0-9a-fA-F]+|0[oO][0-7]+|0[bB][01]+")


def parse_gazette_date(value: Optional[str]) -> date:
    """
    Parse a dd/mm/yyyy (or dd-mm-yyyy) date for ordering.

    Args:
        value: Date text.

    Returns:
        The calendar date, or date.min when missing or invalid so that
        such items sort after every dated one.
    """
    if not value:
        return date.min

    parts = value.replace("-", "/").split("/")
    if len(parts) != 3:
        return date.min

    try:
        day, month, year = (int(p) for p in parts)
        return date(year, month, day)
    except ValueError:
        return date.min


def sort_key(item: NotificationItem) -> Tuple[date, int]:
    """Composite ordering key: (gazette date, category number)."""
    return parse_gazette_date(item.gazette_date), cat_number(item.cat_no)


def rank_items(items: List[NotificationItem], limit: int) -> List[NotificationItem]:
    """
    Order notifications and truncate to limit.

    Items with equal keys keep their extraction order.

    Args:
        items: Candidate notifications.
        limit: Maximum number of items to return.

    Returns:
        The top items, most recent gazette first.
    """
    ordered = sorted(items, key=sort_key, reverse=True)
    return ordered[:max(0, limit)]


def parse_query_number(raw: Any) -> float:
    """
    Read a query value the way a JavaScript Number() conversion would.

    Accepts decimal and exponent notation, a signed "Infinity" and
    0x/0o/0b integer literals. Empty text reads as 0; anything else
    (including Python-only forms such as "inf" or "1_000") is NaN.
    """
    text = str(raw).strip()
    if not text:
        return 0.0

    if JS_RADIX_RE.fullmatch(text):
        return float(int(text, 0))

    if not JS_DECIMAL_RE.fullmatch(text):
        return math.nan

    return float(text)


def clamp_limit(raw: Any) -> int:
    """
    Turn a raw ?limit= value into an effective limit.

    Missing, empty, non-numeric and zero values give the default of 40;
    anything else is clamped to [5, 100] and truncated to an integer.

    Args:
        raw: Query value (string, number or None).

    Returns:
        Effective limit.
    """
    if raw is None:
        return DEFAULT_LIMIT

    value = parse_query_number(raw)
    if math.isnan(value) or value == 0:
        return DEFAULT_LIMIT

    return int(max(MIN_LIMIT, min(MAX_LIMIT, value)))
