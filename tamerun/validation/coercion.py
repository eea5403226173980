"""
Defensive parsing of raw values coming from forms or store rows.

Nothing in here raises. A value that can't be understood comes back
as zero (amounts) or None (dates), so one bad record never stops a
whole screen from rendering.
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional


# "1,500" or "12,345.67"; any other comma makes the amount unreadable
GROUPED_NUMBER = re.compile(r"^[+-]?\d{1,3}(,\d{3})+(\.\d*)?$")


def parse_amount(raw: Any) -> Optional[Decimal]:
    """Parse a numeric amount, or None if it isn't a finite number."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, Decimal):
        value = raw
    else:
        text = str(raw).strip()
        if not text:
            return None
        if "," in text:
            if not GROUPED_NUMBER.match(text):
                return None
            text = text.replace(",", "")
        try:
            value = Decimal(text)
        except InvalidOperation:
            return None
    if not value.is_finite():
        return None
    return value


def coerce_amount(raw: Any) -> Decimal:
    """Like parse_amount, but non-numeric input becomes zero."""
    value = parse_amount(raw)
    return value if value is not None else Decimal("0")


def parse_calendar_date(raw: Any) -> Optional[date]:
    """
    Parse a calendar date.

    Accepts date objects, datetimes (truncated to their date) and ISO
    strings ("2024-06-01", "2024-06-01T09:30:00Z"). Anything else,
    including impossible dates like "2024-02-30", gives None.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw

    text = str(raw).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def parse_int(raw: Any) -> Optional[int]:
    """Parse an integer id, or None."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    text = str(raw).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        return None


def parse_bool(raw: Any, default: bool = False) -> bool:
    if isinstance(raw, bool):
        return raw
    text = str(raw or "").strip().lower()
    if text in ("true", "1", "yes", "on"):
        return True
    if text in ("false", "0", "no", "off"):
        return False
    return default
