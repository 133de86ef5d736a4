"""Parsers for command-line schedule values: durations, cron entries, dates, integers."""

from __future__ import annotations

import re
from datetime import datetime, timedelta

from croniter import croniter

from snaptel.errors import UsageError

TIME_FORMATS = ("%I:%M%p", "%H:%M")
DATE_FORMATS = ("%m-%d-%Y", "%Y-%m-%d")
_FORMAT_HINTS = {"time": "3:04PM or 15:04", "date": "1-02-2006 or 2006-01-02"}
UINT64_MAX = 2**64 - 1

_DURATION_PATTERN = re.compile(r"[-+]?(?:(?:\d+\.?\d*|\.\d+)(?:ns|us|µs|μs|ms|s|m|h))+")
_DURATION_COMPONENT = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_MICROSECONDS_PER_UNIT = {
    "ns": 0.001,
    "us": 1.0,
    "µs": 1.0,
    "μs": 1.0,
    "ms": 1_000.0,
    "s": 1_000_000.0,
    "m": 60_000_000.0,
    "h": 3_600_000_000.0,
}
_CRON_DESCRIPTORS = frozenset(
    {"@yearly", "@annually", "@monthly", "@weekly", "@daily", "@midnight", "@hourly"},
)
_CRON_EVERY_PREFIX = "@every "
_DIGITS = re.compile(r"[0-9]+")


def parse_duration(value: str) -> timedelta:
    """Parse a Go-style duration string such as ``1h30m``, ``300ms`` or ``-1.5h``."""

    text = value.strip()
    if text in {"0", "+0", "-0"}:
        return timedelta(0)
    if not _DURATION_PATTERN.fullmatch(text):
        raise ValueError(f"invalid duration {value!r}")

    sign = -1 if text.startswith("-") else 1
    total = 0.0
    for number, unit in _DURATION_COMPONENT.findall(text):
        total += float(number) * _MICROSECONDS_PER_UNIT[unit]
    return timedelta(microseconds=sign * total)


def is_duration(value: str) -> bool:
    try:
        parse_duration(value)
    except ValueError:
        return False
    return True


def is_cron_expression(value: str) -> bool:
    """Check whether ``value`` is a cron entry the daemon scheduler accepts.

    Six-field entries carry seconds first (``0 */5 * * * *``); five-field
    entries are plain crontab lines. ``@every <duration>`` and the usual
    ``@daily``-style descriptors are accepted too.
    """

    expression = value.strip()
    if expression.startswith(_CRON_EVERY_PREFIX):
        return is_duration(expression[len(_CRON_EVERY_PREFIX) :])
    if expression in _CRON_DESCRIPTORS:
        return True

    fields = expression.split()
    if len(fields) == 6:
        # croniter keeps the seconds field last
        fields = fields[1:] + fields[:1]
    elif len(fields) != 5:
        return False
    return bool(croniter.is_valid(" ".join(fields)))


def merge_date_time(
    time_value: str | None,
    date_value: str | None,
    *,
    now: datetime,
    pad: timedelta,
) -> datetime | None:
    """Merge a time-of-day and a date override into one timestamp.

    Returns ``None`` when neither is given. A missing date means today; a
    missing time keeps the padded current time-of-day on the given date.
    """

    time_text = (time_value or "").strip().upper()
    date_text = (date_value or "").strip()
    if not time_text and not date_text:
        return None

    moment = now + pad
    if date_text:
        parsed_date = _parse_with_formats(date_text, DATE_FORMATS, kind="date")
        moment = moment.replace(
            year=parsed_date.year,
            month=parsed_date.month,
            day=parsed_date.day,
        )
    if time_text:
        parsed_time = _parse_with_formats(time_text, TIME_FORMATS, kind="time")
        moment = moment.replace(
            hour=parsed_time.hour,
            minute=parsed_time.minute,
            second=0,
            microsecond=0,
        )
    return moment


def parse_uint64(value: str) -> int:
    """Parse a non-negative 64-bit integer, reporting the value and cause on failure."""

    text = value.strip()
    if not _DIGITS.fullmatch(text):
        raise ValueError(
            f"Value '{value}' cannot be parsed as an unsigned integer (invalid syntax)",
        )
    parsed = int(text)
    if parsed > UINT64_MAX:
        raise ValueError(
            f"Value '{value}' cannot be parsed as an unsigned integer (value out of range)",
        )
    return parsed


def parse_int(value: str) -> int:
    try:
        return int(value.strip())
    except ValueError as error:
        raise ValueError(
            f"Value '{value}' cannot be parsed as an integer (invalid syntax)",
        ) from error


def _parse_with_formats(value: str, formats: tuple[str, ...], *, kind: str) -> datetime:
    for fmt in formats:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise UsageError(
        f"Usage error (bad {kind} format); cannot parse {value!r} "
        f"(expected {_FORMAT_HINTS[kind]})",
    )
