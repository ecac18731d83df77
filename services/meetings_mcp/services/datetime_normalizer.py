"""
Date/time normalization for meeting operations.

Every timestamp sent to the meetings backend is rendered as
``YYYY-MM-DDTHH:MM:SS`` followed by an explicit offset (``Z`` or ``±HH:MM``).
Input may omit seconds, carry fractional seconds, use ``±HHMM`` offsets or no
offset at all; offset-less input is pinned to the application default offset.
Bare dates are only meaningful for day lookups and range bounds.
"""

import re
from datetime import datetime, timezone
from typing import Literal, Optional

from services.meetings_mcp.exceptions import (
    InvalidRangeError,
    InvalidTimestampError,
    PastTimestampError,
)

DEFAULT_OFFSET = "-03:00"

DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIMESTAMP_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[Tt ]"
    r"(?P<hour>\d{2}):(?P<minute>\d{2})"
    r"(?::(?P<second>\d{2})(?:\.\d+)?)?"
    r"(?P<offset>[Zz]|[+-]\d{2}:?\d{2})?$"
)

RangeSide = Literal["start", "end"]

_RANGE_SUFFIXES = {"start": "T00:00:00", "end": "T23:59:59"}


def is_date_only(raw: str) -> bool:
    return bool(DATE_ONLY_RE.match(str(raw).strip()))


def _render_offset(offset: Optional[str], default_offset: str) -> str:
    if offset is None:
        return default_offset
    if offset in ("Z", "z"):
        return "Z"
    if ":" not in offset:
        return f"{offset[:3]}:{offset[3:]}"
    return offset


def parse_timestamp(ts: str) -> datetime:
    """Parse a normalized timestamp into an aware datetime."""
    return datetime.fromisoformat(ts.replace("Z", "+00:00"))


def normalize_to_offset_iso(raw: str, default_offset: str = DEFAULT_OFFSET) -> str:
    """
    Canonicalize a timestamp string to ``YYYY-MM-DDTHH:MM:SS`` plus offset.

    Raises:
        InvalidTimestampError: for bare dates, unrecognized shapes and
            impossible calendar or clock values.
    """
    text = str(raw).strip()
    if DATE_ONLY_RE.match(text):
        raise InvalidTimestampError(
            raw, f"Data sem horário: {text!r}. Informe também a hora com offset."
        )

    match = TIMESTAMP_RE.match(text)
    if not match:
        raise InvalidTimestampError(raw)

    normalized = (
        f"{match.group('date')}T{match.group('hour')}:{match.group('minute')}:"
        f"{match.group('second') or '00'}"
        f"{_render_offset(match.group('offset'), default_offset)}"
    )

    try:
        parse_timestamp(normalized)
    except ValueError:
        raise InvalidTimestampError(raw)

    return normalized


def to_day_key(raw: str, default_offset: str = DEFAULT_OFFSET) -> str:
    """Return ``YYYY-MM-DD`` for a bare date (unchanged) or any timestamp."""
    text = str(raw).strip()
    if DATE_ONLY_RE.match(text):
        return text
    return normalize_to_offset_iso(text, default_offset)[:10]


def expand_range_bound(
    raw: str, side: RangeSide, offset: str = DEFAULT_OFFSET
) -> str:
    """Turn a bare date into the first or last second of that civil day."""
    if side not in _RANGE_SUFFIXES:
        raise ValueError(f"side must be 'start' or 'end', got {side!r}")
    if DATE_ONLY_RE.match(str(raw).strip()):
        return f"{str(raw).strip()}{_RANGE_SUFFIXES[side]}{offset}"
    return raw


def ensure_future(ts: str, now: Optional[datetime] = None) -> None:
    """Raise PastTimestampError unless ``ts`` is strictly after ``now``."""
    reference = now or datetime.now(timezone.utc)
    if parse_timestamp(ts) <= reference:
        raise PastTimestampError(ts)


def ensure_ordered(start: str, end: str) -> None:
    """Raise InvalidRangeError when ``start`` is later than ``end``."""
    if parse_timestamp(start) > parse_timestamp(end):
        raise InvalidRangeError(start, end)


def normalize_phone(raw: str) -> str:
    """Keep only digits, so ``+55 31 98765-4321`` becomes ``5531987654321``."""
    return re.sub(r"\D", "", str(raw))
