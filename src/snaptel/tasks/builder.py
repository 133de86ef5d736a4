"""Assembly and validation of the task submitted by ``task create``."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta

from snaptel.errors import ManifestDecodeError, UsageError
from snaptel.tasks.manifest import ManifestFormat, load_task_manifest, load_workflow_manifest
from snaptel.tasks.models import TASK_VERSION, TaskDescription, UnsetSchedule
from snaptel.tasks.parsing import parse_int
from snaptel.tasks.schedule import DEFAULT_START_PAD, ScheduleOverrides, resolve_schedule


@dataclass(slots=True)
class TaskOverrides:
    """Task-level values given on the command line; ``None`` means not given.

    ``auto_start`` always wins over the manifest's ``start`` field.
    """

    name: str | None = None
    deadline: str | None = None
    max_failures: str | None = None
    auto_start: bool = True
    schedule: ScheduleOverrides = field(default_factory=ScheduleOverrides)


def build_task_from_manifest(
    raw: bytes,
    fmt: ManifestFormat,
    overrides: TaskOverrides,
    *,
    now: datetime | None = None,
    start_pad: timedelta = DEFAULT_START_PAD,
) -> TaskDescription:
    """Decode a task manifest and apply command-line overrides on top of it."""

    task = load_task_manifest(raw, fmt)
    return _finalize(task, overrides, now=now, start_pad=start_pad)


def build_task_from_workflow(
    raw: bytes,
    fmt: ManifestFormat,
    overrides: TaskOverrides,
    *,
    now: datetime | None = None,
    start_pad: timedelta = DEFAULT_START_PAD,
) -> TaskDescription:
    """Wrap a workflow manifest into a new task scheduled from command-line values."""

    if not overrides.schedule.has_interval:
        raise UsageError(
            "Workflow manifest requires that an interval be set via a command-line flag",
        )
    workflow = load_workflow_manifest(raw, fmt)
    task = TaskDescription(version=TASK_VERSION, schedule=UnsetSchedule(), workflow=workflow)
    return _finalize(task, overrides, now=now, start_pad=start_pad)


def validate_task(task: TaskDescription) -> None:
    """Check the task is submittable; raise ``ManifestDecodeError`` otherwise."""

    if task.schedule is None:
        raise ManifestDecodeError("Error: Task manifest did not include a schedule")
    if isinstance(task.schedule, UnsetSchedule):
        raise ManifestDecodeError(
            "Error: Task manifest included an empty schedule. "
            "Task manifests need to include a schedule",
        )
    if not task.schedule.is_complete():
        raise ManifestDecodeError(
            f"Error: Task manifest included an incomplete '{task.schedule.kind.value}' schedule",
        )
    if task.version != TASK_VERSION:
        raise ManifestDecodeError("Error: Invalid version provided for task manifest")
    if task.workflow is None:
        raise ManifestDecodeError("Error: Task manifest did not include a workflow")


def _finalize(
    task: TaskDescription,
    overrides: TaskOverrides,
    *,
    now: datetime | None,
    start_pad: timedelta,
) -> TaskDescription:
    schedule = resolve_schedule(task.schedule, overrides.schedule, now=now, start_pad=start_pad)
    updated = replace(task, schedule=schedule)
    if overrides.name is not None:
        updated.name = overrides.name
    if overrides.deadline is not None:
        updated.deadline = overrides.deadline
    if overrides.max_failures is not None:
        try:
            updated.max_failures = parse_int(overrides.max_failures)
        except ValueError as error:
            raise UsageError(str(error)) from error
    updated.auto_start = overrides.auto_start
    validate_task(updated)
    return updated
