"""Field conversions shared by the Redis repositories.

Redis hashes hold strings only; None is stored as the empty string and
datetimes as UTC epoch seconds.
"""

from datetime import datetime, timezone


def dump_datetime(value: datetime | None) -> str:
    return "" if value is None else repr(value.timestamp())


def load_datetime(raw: str | None) -> datetime | None:
    if not raw:
        return None
    return datetime.fromtimestamp(float(raw), tz=timezone.utc)


def dump_optional(value: object | None) -> str:
    return "" if value is None else str(value)


def load_optional_int(raw: str | None) -> int | None:
    if not raw:
        return None
    return int(raw)


def load_optional_str(raw: str | None) -> str | None:
    return raw if raw else None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
