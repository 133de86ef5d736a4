"""Resolution of a task schedule from its manifest value and command-line overrides.

Any of the following windows can be requested::

      +-----------------...   start only (no end to the window)
    start

    ...-----------------+     stop only (no start to the window)
                       stop

      +-----------------+     start + duration, stop + duration, start + stop
    start             stop

      +-----------------+     duration only: starts now (plus a small pad)
     now              now + duration

Anything that is not windowed is either a ``simple`` (duration interval) or a
``cron`` schedule. A schedule never changes kind once it has one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from snaptel.config import DEFAULT_START_PAD_SECONDS
from snaptel.errors import ScheduleConflictError, UsageError
from snaptel.tasks.models import (
    CronSchedule,
    ScheduleKind,
    ScheduleSpec,
    SimpleSchedule,
    UnsetSchedule,
    WindowedSchedule,
)
from snaptel.tasks.parsing import (
    is_cron_expression,
    merge_date_time,
    parse_duration,
    parse_uint64,
)

DEFAULT_START_PAD = timedelta(seconds=DEFAULT_START_PAD_SECONDS)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ScheduleOverrides:
    """Schedule values given on the command line; ``None`` means not given."""

    start_date: str | None = None
    start_time: str | None = None
    stop_date: str | None = None
    stop_time: str | None = None
    duration: str | None = None
    interval: str | None = None
    count: str | None = None

    @property
    def has_interval(self) -> bool:
        return bool(self.interval and self.interval.strip())


@dataclass(slots=True)
class _Window:
    start: datetime | None
    stop: datetime | None
    duration: timedelta | None

    @property
    def requested(self) -> bool:
        return self.start is not None or self.stop is not None or self.duration is not None


def resolve_schedule(
    existing: ScheduleSpec | None,
    overrides: ScheduleOverrides,
    *,
    now: datetime | None = None,
    start_pad: timedelta = DEFAULT_START_PAD,
) -> ScheduleSpec | None:
    """Merge ``overrides`` into ``existing`` and return the resulting schedule.

    ``existing`` is never modified; on error nothing is returned, so the
    caller keeps the schedule it had.
    """

    current: ScheduleSpec = existing if existing is not None else UnsetSchedule()
    moment = now if now is not None else datetime.now().astimezone()
    window = _Window(
        start=merge_date_time(
            overrides.start_time,
            overrides.start_date,
            now=moment,
            pad=start_pad,
        ),
        stop=merge_date_time(
            overrides.stop_time,
            overrides.stop_date,
            now=moment,
            pad=start_pad,
        ),
        duration=_parse_duration_override(overrides.duration),
    )
    interval = overrides.interval.strip() if overrides.has_interval else None
    interval_kind = _classify_interval(interval) if interval is not None else None

    if window.requested or current.kind is ScheduleKind.WINDOWED:
        _ensure_kind(current, ScheduleKind.WINDOWED)
        if interval_kind is ScheduleKind.CRON:
            raise ScheduleConflictError(
                f"Usage error; cannot use a cron entry ({interval!r}) as the interval "
                "for a 'windowed' schedule",
                existing=ScheduleKind.WINDOWED.value,
                requested=ScheduleKind.CRON.value,
            )
        _reject_count(overrides, ScheduleKind.WINDOWED)
        resolved: ScheduleSpec = _resolve_window(
            current,
            window,
            interval=interval,
            moment=moment,
            start_pad=start_pad,
        )
    elif interval_kind is ScheduleKind.CRON:
        _ensure_kind(current, ScheduleKind.CRON)
        _reject_count(overrides, ScheduleKind.CRON)
        resolved = CronSchedule(interval=interval)
    elif interval_kind is ScheduleKind.SIMPLE or overrides.count is not None:
        _ensure_kind(current, ScheduleKind.SIMPLE)
        previous = current if isinstance(current, SimpleSchedule) else SimpleSchedule()
        resolved = SimpleSchedule(
            interval=interval or previous.interval,
            count=_parse_count_override(overrides.count, previous.count),
        )
    else:
        return existing

    logger.debug("Resolved %s schedule: %s", resolved.kind.value, resolved)
    return resolved


def _resolve_window(
    current: ScheduleSpec,
    window: _Window,
    *,
    interval: str | None,
    moment: datetime,
    start_pad: timedelta,
) -> WindowedSchedule:
    previous = current if isinstance(current, WindowedSchedule) else WindowedSchedule()
    base = replace(previous, interval=interval or previous.interval)

    if window.duration is not None:
        if window.start is not None and window.stop is not None:
            raise ScheduleConflictError(
                "Usage error (too many parameters); the window start, stop, and duration "
                "cannot all be specified for a 'windowed' schedule",
                existing=current.kind.value or None,
                requested=ScheduleKind.WINDOWED.value,
            )
        if window.start is not None:
            return replace(base, start=window.start, stop=window.start + window.duration)
        if window.stop is not None:
            return replace(base, start=window.stop - window.duration, stop=window.stop)
        start = moment + start_pad
        return replace(base, start=start, stop=start + window.duration)

    start = window.start if window.start is not None else previous.start
    stop = window.stop if window.stop is not None else previous.stop
    if start is None and stop is None:
        raise ScheduleConflictError(
            "Usage error (incomplete window); a 'windowed' schedule needs a start, "
            "a stop, or a duration",
            existing=current.kind.value or None,
            requested=ScheduleKind.WINDOWED.value,
        )
    return replace(base, start=start, stop=stop)


def _ensure_kind(current: ScheduleSpec, requested: ScheduleKind) -> None:
    if current.kind in (ScheduleKind.UNSET, requested):
        return
    raise ScheduleConflictError(
        "Usage error (schedule type mismatch); cannot replace existing schedule of type "
        f"'{current.kind.value}' with a new, '{requested.value}' schedule",
        existing=current.kind.value,
        requested=requested.value,
    )


def _reject_count(overrides: ScheduleOverrides, kind: ScheduleKind) -> None:
    if overrides.count is None:
        return
    raise ScheduleConflictError(
        f"Usage error; a count only applies to 'simple' schedules, not to a '{kind.value}' one",
        existing=kind.value,
        requested=ScheduleKind.SIMPLE.value,
    )


def _classify_interval(interval: str) -> ScheduleKind:
    try:
        parse_duration(interval)
    except ValueError:
        if is_cron_expression(interval):
            return ScheduleKind.CRON
        raise UsageError(
            f"Usage error (bad interval value): cannot parse interval value '{interval}' "
            "either as a duration or a cron entry",
        ) from None
    return ScheduleKind.SIMPLE


def _parse_duration_override(value: str | None) -> timedelta | None:
    if value is None:
        return None
    try:
        return parse_duration(value)
    except ValueError as error:
        raise UsageError(f"Usage error (bad duration format); {error}") from error


def _parse_count_override(value: str | None, previous: int | None) -> int | None:
    if value is None:
        return previous
    try:
        return parse_uint64(value)
    except ValueError as error:
        raise UsageError(f"Usage error (bad count format); {error}") from error
