"""RFC 3339 timestamp parsing and UTC formatting for manifest ctime."""

from __future__ import annotations

import re
from datetime import UTC, datetime

from intermodal.errors import InvalidTimestampError, describe

_RFC3339_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[Tt ]"
    r"(?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<offset>[Zz]|[+-]\d{2}:\d{2})$"
)


def parse_rfc3339(text: str, *, field: str = "manifest.ctime") -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime.

    Fractional seconds beyond microsecond precision are truncated.

    Args:
        text: Timestamp text, e.g. ``2020-08-25T16:02:20Z``.
        field: Field path reported on failure.

    Returns:
        Timezone-aware datetime normalized to UTC.

    Raises:
        InvalidTimestampError: If text is not a valid RFC 3339 timestamp.
    """
    match = _RFC3339_RE.match(text.strip())
    if match is None:
        raise InvalidTimestampError(
            f"{field}: expected an RFC 3339 timestamp, got {describe(text)}",
            field=field,
            value=text,
        )
    fraction = match.group("fraction") or ""
    fraction = f".{fraction[:6].ljust(6, '0')}" if fraction else ""
    offset = match.group("offset")
    offset = "+00:00" if offset in {"Z", "z"} else offset
    normalized = f"{match.group('date')}T{match.group('time')}{fraction}{offset}"
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise InvalidTimestampError(
            f"{field}: {exc}; got {describe(text)}",
            field=field,
            value=text,
        ) from exc
    return parsed.astimezone(UTC)


def ensure_utc(value: datetime, *, field: str = "manifest.ctime") -> datetime:
    """Normalize an aware datetime to UTC; naive datetimes are rejected.

    Args:
        value: Datetime to normalize.
        field: Field path reported on failure.

    Returns:
        Equivalent datetime in UTC.

    Raises:
        InvalidTimestampError: If value carries no timezone.
    """
    if value.tzinfo is None or value.utcoffset() is None:
        raise InvalidTimestampError(
            f"{field}: timestamp must carry a UTC offset, got {describe(value)}",
            field=field,
            value=value,
        )
    return value.astimezone(UTC)


def format_rfc3339_utc(value: datetime) -> str:
    """Format a datetime as RFC 3339 in UTC with a ``Z`` suffix.

    Sub-second precision is emitted only when present: milliseconds when the
    value is a whole number of milliseconds, microseconds otherwise.
    """
    value = ensure_utc(value)
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        if value.microsecond % 1000 == 0:
            text += f".{value.microsecond // 1000:03d}"
        else:
            text += f".{value.microsecond:06d}"
    return f"{text}Z"
