"""Task and schedule models submitted to the daemon."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

from snaptel.errors import ManifestDecodeError
from snaptel.tasks.parsing import is_duration

TASK_VERSION = 1


class ScheduleKind(str, Enum):
    """Schedule kinds understood by the daemon scheduler."""

    UNSET = ""
    SIMPLE = "simple"
    WINDOWED = "windowed"
    CRON = "cron"


@dataclass(slots=True, frozen=True)
class UnsetSchedule:
    """Schedule present in a manifest but without any field set."""

    kind: ClassVar[ScheduleKind] = ScheduleKind.UNSET

    def is_complete(self) -> bool:
        return False


@dataclass(slots=True, frozen=True)
class SimpleSchedule:
    """Fixed repeat interval with an optional repetition bound."""

    kind: ClassVar[ScheduleKind] = ScheduleKind.SIMPLE

    interval: str | None = None
    count: int | None = None

    def is_complete(self) -> bool:
        return bool(self.interval)


@dataclass(slots=True, frozen=True)
class WindowedSchedule:
    """Repeat interval bounded by start and/or stop timestamps."""

    kind: ClassVar[ScheduleKind] = ScheduleKind.WINDOWED

    interval: str | None = None
    start: datetime | None = None
    stop: datetime | None = None

    def is_complete(self) -> bool:
        return self.start is not None or self.stop is not None


@dataclass(slots=True, frozen=True)
class CronSchedule:
    """Cron-entry driven schedule."""

    kind: ClassVar[ScheduleKind] = ScheduleKind.CRON

    interval: str | None = None

    def is_complete(self) -> bool:
        return bool(self.interval)


ScheduleSpec = UnsetSchedule | SimpleSchedule | WindowedSchedule | CronSchedule


@dataclass(slots=True)
class TaskDescription:
    """Task payload built from a manifest and command-line overrides."""

    version: int = TASK_VERSION
    name: str = ""
    deadline: str = ""
    max_failures: int = 0
    auto_start: bool = False
    schedule: ScheduleSpec | None = None
    workflow: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> TaskDescription:
        """Decode a task manifest document with string keys."""

        schedule_payload = payload.get("schedule")
        if schedule_payload is not None and not isinstance(schedule_payload, dict):
            raise ManifestDecodeError("Error parsing task manifest: 'schedule' must be a mapping")
        workflow = payload.get("workflow")
        if workflow is not None and not isinstance(workflow, dict):
            raise ManifestDecodeError("Error parsing task manifest: 'workflow' must be a mapping")

        return cls(
            version=_field(payload, "version", int, default=0),
            name=_field(payload, "name", str, default=""),
            deadline=_field(payload, "deadline", str, default=""),
            max_failures=_field(payload, "max-failures", int, default=0),
            auto_start=_field(payload, "start", bool, default=False),
            schedule=schedule_from_dict(schedule_payload) if schedule_payload is not None else None,
            workflow=workflow,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for ``POST /tasks``."""

        payload: dict[str, Any] = {"version": self.version, "start": self.auto_start}
        if self.name:
            payload["name"] = self.name
        if self.deadline:
            payload["deadline"] = self.deadline
        if self.max_failures:
            payload["max-failures"] = self.max_failures
        if self.schedule is not None:
            payload["schedule"] = schedule_to_dict(self.schedule)
        if self.workflow is not None:
            payload["workflow"] = self.workflow
        return payload


def schedule_to_dict(schedule: ScheduleSpec) -> dict[str, Any]:
    """Serialize a schedule with only the fields of its kind."""

    payload: dict[str, Any] = {}
    if isinstance(schedule, UnsetSchedule):
        return payload
    payload["type"] = schedule.kind.value
    if schedule.interval:
        payload["interval"] = schedule.interval
    if isinstance(schedule, SimpleSchedule) and schedule.count is not None:
        payload["count"] = schedule.count
    if isinstance(schedule, WindowedSchedule):
        if schedule.start is not None:
            payload["start_timestamp"] = schedule.start.isoformat()
        if schedule.stop is not None:
            payload["stop_timestamp"] = schedule.stop.isoformat()
    return payload


def schedule_from_dict(payload: dict[str, Any]) -> ScheduleSpec:
    """Decode a manifest schedule.

    A schedule without ``type`` is classified from its fields: window bounds
    mean windowed, otherwise the interval decides between simple and cron.
    """

    kind_value = _field(payload, "type", str, default="")
    try:
        kind = ScheduleKind(kind_value)
    except ValueError as error:
        raise ManifestDecodeError(
            f"Error parsing task manifest: unknown schedule type {kind_value!r}",
        ) from error

    interval = _field(payload, "interval", str, default="") or None
    start = _timestamp(payload, "start_timestamp")
    stop = _timestamp(payload, "stop_timestamp")
    count = _field(payload, "count", int, default=None)
    if count is not None and count < 0:
        raise ManifestDecodeError("Error parsing task manifest: schedule 'count' must be >= 0")

    if kind is ScheduleKind.UNSET:
        if start is not None or stop is not None:
            kind = ScheduleKind.WINDOWED
        elif interval is not None:
            kind = ScheduleKind.SIMPLE if is_duration(interval) else ScheduleKind.CRON
        elif count is not None:
            kind = ScheduleKind.SIMPLE

    if kind is ScheduleKind.SIMPLE:
        return SimpleSchedule(interval=interval, count=count)
    if kind is ScheduleKind.WINDOWED:
        return WindowedSchedule(interval=interval, start=start, stop=stop)
    if kind is ScheduleKind.CRON:
        return CronSchedule(interval=interval)
    return UnsetSchedule()


def _field(payload: dict[str, Any], key: str, expected: type, *, default: Any) -> Any:
    value = payload.get(key)
    if value is None:
        return default
    # bool is an int subclass
    if expected is not bool and isinstance(value, bool):
        raise ManifestDecodeError(
            f"Error parsing task manifest: field {key!r} must be {expected.__name__}",
        )
    if not isinstance(value, expected):
        raise ManifestDecodeError(
            f"Error parsing task manifest: field {key!r} must be {expected.__name__}, "
            f"got {type(value).__name__}",
        )
    return value


def _timestamp(payload: dict[str, Any], key: str) -> datetime | None:
    value = _field(payload, key, str, default="")
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as error:
        raise ManifestDecodeError(
            f"Error parsing task manifest: {key} {value!r} is not an ISO 8601 timestamp",
        ) from error
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed
