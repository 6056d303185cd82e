"""Time helpers."""

from __future__ import annotations

from datetime import datetime, timezone

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def amz_date(value: datetime) -> str:
    """Compact ISO-8601 timestamp, ``yyyyMMdd'T'HHmmss'Z'``."""
    return as_utc(value).strftime("%Y%m%dT%H%M%SZ")


def date_stamp(value: datetime) -> str:
    return as_utc(value).strftime("%Y%m%d")


def parse_aws_datetime(value: str) -> datetime:
    """Parse an EC2 timestamp such as ``2017-09-13T17:12:30.000Z``."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(text))
