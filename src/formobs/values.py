"""
Value conversion between control values and wire values.

    normalize_value      control value  -> wire value   (encoding)
    decode_wire_value    wire value     -> control value (decoding)
    format_timestamp     date/datetime  -> canonical timestamp string

Encoding and decoding are not symmetric: every date encodes to
a full timestamp string, but only strings matching the strict datetime
pattern decode back into datetimes. A date-only string stays a string.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any, Mapping, Optional

from formobs.config import DEFAULT_CONFIG, FormsConfig
from formobs.model import CodedAnswer, ComplexValue, ControlKind, ControlNode


SCALAR_TYPES = (str, int, float, bool)

# fractional seconds after HH:MM:SS, any length
_FRACTION_RE = re.compile(r"(?<=T\d{2}:\d{2}:\d{2})\.(\d+)")


def format_timestamp(value: date) -> str:
    """
    Serialize a date or datetime to YYYY-MM-DDTHH:MM:SS.mmmZ (UTC).

    Naive datetimes are taken as UTC. A bare date is midnight UTC.
    """
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def current_timestamp(now: Optional[Any] = None) -> str:
    """
    Timestamp shared by every observation of one transform call.

    `now` may be a datetime (formatted) or a ready string (used as is).
    """
    if isinstance(now, str):
        return now
    if isinstance(now, date):
        return format_timestamp(now)
    return format_timestamp(datetime.now(timezone.utc))


def is_coded_answer(value: Any) -> bool:
    if isinstance(value, CodedAnswer):
        return True
    return isinstance(value, Mapping) and "uuid" in value


def _reference_url(value: Any) -> Optional[str]:
    if isinstance(value, ComplexValue):
        return value.url
    if isinstance(value, Mapping):
        return value["url"] if "url" in value else None
    return getattr(value, "url", None)


def normalize_value(control: ControlNode) -> Any:
    """
    Convert one control's raw value into its wire shape.

    - None and scalars pass through
    - dates/datetimes become canonical timestamp strings
    - a SELECT holding a coded answer passes through unchanged
    - anything else exposing a url (attachments) is reduced to the url
    - every other shape passes through unchanged
    """
    value = control.value

    if value is None or isinstance(value, SCALAR_TYPES):
        return value

    if isinstance(value, date):
        return format_timestamp(value)

    if control.kind == ControlKind.SELECT and is_coded_answer(value):
        return value

    if not isinstance(value, (list, tuple)):
        url = _reference_url(value)
        if url is not None:
            return url

    return value


def parse_timestamp(value: str) -> Optional[datetime]:
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    # fromisoformat before 3.11 only takes 3 or 6 fraction digits
    text = _FRACTION_RE.sub(lambda m: "." + (m.group(1) + "000000")[:6], text, count=1)
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def decode_wire_value(value: Any, config: FormsConfig = DEFAULT_CONFIG) -> Any:
    """
    Convert a wire value back into a control value.

    Only strings matching the strict datetime pattern (and parsing cleanly)
    become datetimes. Everything else is returned unchanged.
    """
    if isinstance(value, str) and config.datetime_regex().match(value):
        parsed = parse_timestamp(value)
        if parsed is not None:
            return parsed
    return value
