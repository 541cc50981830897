"""Date parsing, normalisation and formatting."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pendulum

from kanbn.errors import SemanticDateError

RESOLUTIONS = ("days", "hours", "minutes", "seconds")

_RELATIVE_DAYS = {
    "today": 0,
    "tomorrow": 1,
    "yesterday": -1,
}


def _truncate_ms(value: datetime) -> datetime:
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def to_utc(value: datetime | date) -> datetime:
    """Normalise a date or datetime to an aware UTC datetime at ms precision.

    Naive datetimes are taken to be UTC already.
    """
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    # pendulum.DateTime is a datetime subclass; keep entities on the base type
    value = datetime(
        value.year,
        value.month,
        value.day,
        value.hour,
        value.minute,
        value.second,
        value.microsecond,
        tzinfo=timezone.utc,
    )
    return _truncate_ms(value)


def now() -> datetime:
    """Current time as an aware UTC datetime at ms precision."""
    return to_utc(pendulum.now("UTC"))


def try_parse_date(value) -> datetime | None:
    """Parse a date value, returning None when it can't be understood.

    Accepts datetimes, dates, ISO-8601 strings, free-form strings such as
    "5 March 2021 10:00", and the words now/today/tomorrow/yesterday.
    """
    if isinstance(value, (datetime, date)):
        return to_utc(value)
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    word = text.lower()
    if word == "now":
        return now()
    if word in _RELATIVE_DAYS:
        return to_utc(pendulum.today("UTC").add(days=_RELATIVE_DAYS[word]))
    try:
        parsed = pendulum.parse(text, strict=False, tz="UTC")
    except (ValueError, OverflowError):
        return None
    if not isinstance(parsed, (datetime, date)):
        return None
    return to_utc(parsed)


def parse_date(value, field: str = "") -> datetime:
    """Parse a date value or raise SemanticDateError naming the field."""
    parsed = try_parse_date(value)
    if parsed is None:
        label = f"{field} " if field else ""
        raise SemanticDateError(f"unable to parse {label}date")
    return parsed


def format_iso(value: datetime) -> str:
    """Format as ISO-8601 UTC with milliseconds, e.g. 2020-01-01T00:00:00.000Z."""
    value = to_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def format_date(value: datetime, fmt: str) -> str:
    """Format a date with pendulum format tokens."""
    return pendulum.instance(to_utc(value)).format(fmt)


def same_day(a: datetime, b: datetime) -> bool:
    """True if both dates fall on the same calendar day (UTC)."""
    return to_utc(a).date() == to_utc(b).date()


def milliseconds(delta: timedelta) -> int:
    """Whole milliseconds in a timedelta."""
    return round(delta.total_seconds() * 1000)


def humanize_delta(delta: timedelta, largest: int = 3) -> str:
    """Describe a duration in words using at most `largest` units.

    The sign is ignored; the smallest unit shown is rounded.
    """
    seconds = abs(delta.total_seconds())
    duration = pendulum.duration(seconds=round(seconds))
    units = [
        ("week", duration.weeks),
        ("day", duration.remaining_days),
        ("hour", duration.hours),
        ("minute", duration.minutes),
        ("second", duration.remaining_seconds),
    ]
    units = [(name, count) for name, count in units if count]
    if not units:
        return "0 seconds"
    shown = units[:largest]
    if len(units) > largest:
        # Round the last shown unit using what was cut off
        scale = {"week": 604800, "day": 86400, "hour": 3600, "minute": 60, "second": 1}
        name, count = shown[-1]
        rest = sum(c * scale[n] for n, c in units[largest:])
        if rest * 2 >= scale[name]:
            shown[-1] = (name, count + 1)
    return ", ".join(f"{count} {name}{'' if count == 1 else 's'}" for name, count in shown)


def normalise_date(value: datetime, resolution: str = "minutes") -> datetime:
    """Truncate a date to the given resolution (days, hours, minutes, seconds)."""
    if resolution not in RESOLUTIONS:
        return value
    value = value.replace(microsecond=0)
    if resolution == "seconds":
        return value
    value = value.replace(second=0)
    if resolution == "minutes":
        return value
    value = value.replace(minute=0)
    if resolution == "hours":
        return value
    return value.replace(hour=0)
