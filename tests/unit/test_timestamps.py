"""RFC 3339 ctime parsing and formatting."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from intermodal.errors import InvalidTimestampError
from intermodal.timestamps import ensure_utc, format_rfc3339_utc, parse_rfc3339


def test_parse_utc_z_suffix() -> None:
    """Z suffix parses to an aware UTC instant."""
    parsed = parse_rfc3339("2020-08-25T16:02:20Z")
    assert parsed == datetime(2020, 8, 25, 16, 2, 20, tzinfo=UTC)
    assert parsed.utcoffset() == timedelta(0)


def test_parse_offset_is_normalized_to_utc() -> None:
    """Offsets are converted to the same instant in UTC."""
    parsed = parse_rfc3339("2020-08-25T18:02:20+02:00")
    assert parsed == datetime(2020, 8, 25, 16, 2, 20, tzinfo=UTC)
    assert format_rfc3339_utc(parsed) == "2020-08-25T16:02:20Z"


def test_parse_truncates_nanoseconds() -> None:
    """Fractions beyond microseconds are truncated rather than rejected."""
    parsed = parse_rfc3339("2020-08-25T16:02:20.123456789Z")
    assert parsed.microsecond == 123456


@pytest.mark.parametrize(
    "text",
    [
        "",
        "2020-08-25",
        "2020-08-25T16:02:20",
        "25/08/2020 16:02:20Z",
        "2020-13-25T16:02:20Z",
        "2020-02-30T16:02:20Z",
        "2020-08-25T25:02:20Z",
        "yesterday",
    ],
)
def test_parse_rejects_invalid(text: str) -> None:
    """Missing offsets, impossible dates and free text are rejected."""
    with pytest.raises(InvalidTimestampError) as excinfo:
        parse_rfc3339(text)
    assert excinfo.value.field == "manifest.ctime"
    assert excinfo.value.value == text


def test_format_round_trips_exact_text() -> None:
    """Canonical text re-serializes to the identical string."""
    text = "2020-08-25T16:02:20Z"
    assert format_rfc3339_utc(parse_rfc3339(text)) == text


def test_format_sub_second_precision() -> None:
    """Milliseconds and microseconds are emitted only when present."""
    base = datetime(2020, 8, 25, 16, 2, 20, tzinfo=UTC)
    assert format_rfc3339_utc(base.replace(microsecond=250000)) == (
        "2020-08-25T16:02:20.250Z"
    )
    assert format_rfc3339_utc(base.replace(microsecond=1)) == (
        "2020-08-25T16:02:20.000001Z"
    )


def test_ensure_utc_rejects_naive_datetime() -> None:
    """Naive datetimes are ambiguous and rejected."""
    with pytest.raises(InvalidTimestampError, match="UTC offset"):
        ensure_utc(datetime(2020, 8, 25, 16, 2, 20))


def test_ensure_utc_converts_other_zones() -> None:
    """Aware datetimes in other zones are converted."""
    eastern = timezone(timedelta(hours=-4))
    value = ensure_utc(datetime(2020, 8, 25, 12, 2, 20, tzinfo=eastern))
    assert value.tzinfo == UTC
    assert value.hour == 16
