"""
Utility functions for the application.

Safe-parse helpers used by the normalizers. Every helper coerces bad input
to its default instead of raising.
"""
import logging
import re

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional, Union

logger = logging.getLogger(__name__)

Number = Union[int, float, Decimal, str]

_NON_NUMERIC = re.compile(r"[^0-9.\-]")


def safe_decimal(value: Any, default: Number = 0) -> Decimal:
    """
    Parse a monetary value into a Decimal.

    Accepts ints, floats, Decimals and strings such as "12.50", "$1,200.00"
    or " 3 ". Anything unparseable, including NaN and infinity, returns
    the default.
    """
    if value is None or isinstance(value, bool):
        return Decimal(str(default))
    if isinstance(value, Decimal):
        result = value
    else:
        text = str(value).strip()
        if not text:
            return Decimal(str(default))
        text = _NON_NUMERIC.sub("", text.replace(",", ""))
        try:
            result = Decimal(text)
        except (InvalidOperation, ValueError):
            return Decimal(str(default))
    if not result.is_finite():
        return Decimal(str(default))
    return result


def safe_int(value: Any, default: int = 0) -> int:
    """Parse an integer, accepting "3", "3.0" and 3.7 (truncated)."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    try:
        return int(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError, OverflowError):
        return default


def parse_datetime(value: Any, default: Optional[datetime] = None) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Handles the trailing "Z" eBay uses and offsets such as "-05:00" from
    Shopify. Naive values are assumed to be UTC.
    """
    if value is None:
        return default
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return default
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug(f"Could not parse datetime value: {value!r}")
            return default
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def split_tags(value: Any) -> List[str]:
    """Split a comma separated tag string (or list) into trimmed, non-empty tags."""
    if value is None:
        return []
    if isinstance(value, str):
        parts: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple)):
        parts = value
    else:
        return []
    return [str(part).strip() for part in parts if str(part).strip()]


def as_list(value: Any) -> List[Any]:
    """xmltodict returns a dict for one child and a list for several."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def text_value(value: Any, default: str = "") -> str:
    """Plain text of an xmltodict node, whether scalar or `{"#text": ...}`."""
    if value is None:
        return default
    if isinstance(value, dict):
        inner = value.get("#text")
        return str(inner).strip() if inner is not None else default
    return str(value).strip()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
