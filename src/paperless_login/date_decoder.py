"""
Date decoding for server timestamps.

The server emits ISO-8601 timestamps with a varying number of fractional
digits and with or without a UTC offset, plus plain dates for some fields.
"""

import re
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional

from .exceptions import DateDecodingError


_TIMESTAMP_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})"
    r"T(?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<offset>Z|[+-]\d{2}:?\d{2})?$"
)

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _parse_offset(offset: str) -> tzinfo:
    if offset == "Z":
        return timezone.utc
    sign = -1 if offset[0] == "-" else 1
    digits = offset[1:].replace(":", "")
    hours, minutes = int(digits[:2]), int(digits[2:])
    if hours > 23 or minutes > 59:
        raise ValueError(f"Invalid UTC offset: {offset}")
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


def _attach(naive: datetime, tz: Optional[tzinfo]) -> datetime:
    if tz is None:
        # Local offset at that instant
        return naive.astimezone()
    return naive.replace(tzinfo=tz)


def decode_date(value: str, tz: Optional[tzinfo] = None) -> datetime:
    """
    Decode a server date string.

    Accepted forms:
        - ``2024-05-13T23:38:10.546679Z`` (any number of fractional digits,
          truncated to microseconds)
        - ``2023-02-18T00:00:00+01:00`` and ``...+0100``
        - ``2023-02-18T00:00:00`` (no offset, interpreted in ``tz``)
        - ``2023-02-18`` (midnight in ``tz``)

    Args:
        value: The date string
        tz: Timezone for values without an offset (local time if None)

    Returns:
        A timezone-aware datetime

    Raises:
        DateDecodingError: If the value matches none of the accepted forms
    """
    if not isinstance(value, str):
        raise DateDecodingError(repr(value))

    text = value.strip()
    match = _TIMESTAMP_RE.match(text)
    try:
        if match:
            fraction = (match.group("fraction") or "")[:6].ljust(6, "0")
            naive = datetime.strptime(
                f"{match.group('date')}T{match.group('time')}.{fraction}",
                "%Y-%m-%dT%H:%M:%S.%f",
            )
            offset = match.group("offset")
            if offset:
                return naive.replace(tzinfo=_parse_offset(offset))
            return _attach(naive, tz)

        if _DATE_RE.match(text):
            return _attach(datetime.strptime(text, "%Y-%m-%d"), tz)
    except ValueError as e:
        raise DateDecodingError(value) from e

    raise DateDecodingError(value)
