from __future__ import annotations

from datetime import datetime, timedelta, timezone

import allure
import pytest

from snaptel.errors import ScheduleConflictError, UsageError
from snaptel.tasks.models import (
    CronSchedule,
    ScheduleKind,
    SimpleSchedule,
    UnsetSchedule,
    WindowedSchedule,
)
from snaptel.tasks.schedule import ScheduleOverrides, resolve_schedule

pytestmark = [
    allure.epic("Task Creation"),
    allure.feature("Schedule Resolution"),
]

NOW = datetime(2025, 1, 1, 9, 0, 0, tzinfo=timezone.utc)
PAD = timedelta(seconds=1)


def _resolve(existing, **overrides):
    return resolve_schedule(existing, ScheduleOverrides(**overrides), now=NOW, start_pad=PAD)


def test_duration_interval_on_unset_schedule_resolves_to_simple() -> None:
    resolved = _resolve(UnsetSchedule(), interval="30s")

    assert resolved == SimpleSchedule(interval="30s", count=None)
    assert resolved.kind is ScheduleKind.SIMPLE


def test_cron_interval_resolves_to_cron() -> None:
    resolved = _resolve(UnsetSchedule(), interval="0 */5 * * * *")

    assert resolved == CronSchedule(interval="0 */5 * * * *")


def test_cron_interval_with_window_fields_conflicts() -> None:
    with pytest.raises(ScheduleConflictError) as excinfo:
        _resolve(UnsetSchedule(), interval="0 */5 * * * *", start_time="10:00AM")

    assert "cron" in str(excinfo.value)
    assert "windowed" in str(excinfo.value)
    assert excinfo.value.existing == "windowed"
    assert excinfo.value.requested == "cron"


def test_start_and_duration_derive_stop() -> None:
    resolved = _resolve(
        UnsetSchedule(),
        interval="1s",
        start_date="1-01-2025",
        start_time="10:00AM",
        duration="1h",
    )

    assert isinstance(resolved, WindowedSchedule)
    assert resolved.start == datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc)
    assert resolved.stop == resolved.start + timedelta(hours=1)
    assert resolved.interval == "1s"


def test_stop_and_duration_derive_start() -> None:
    resolved = _resolve(
        UnsetSchedule(),
        stop_date="2025-01-01",
        stop_time="11:00",
        duration="1h",
    )

    assert isinstance(resolved, WindowedSchedule)
    assert resolved.stop == datetime(2025, 1, 1, 11, 0, tzinfo=timezone.utc)
    assert resolved.start == datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc)


def test_start_stop_and_duration_together_are_over_specified() -> None:
    with pytest.raises(ScheduleConflictError, match="too many parameters"):
        _resolve(UnsetSchedule(), start_time="10:00AM", stop_time="11:00AM", duration="1h")


def test_duration_alone_starts_after_pad() -> None:
    resolved = _resolve(UnsetSchedule(), interval="5s", duration="30m")

    assert isinstance(resolved, WindowedSchedule)
    assert resolved.start == NOW + PAD
    assert resolved.stop == NOW + PAD + timedelta(minutes=30)


def test_date_only_override_keeps_padded_time_of_day() -> None:
    resolved = _resolve(UnsetSchedule(), start_date="2-03-2025")

    assert resolved.start == datetime(2025, 2, 3, 9, 0, 1, tzinfo=timezone.utc)
    assert resolved.stop is None


def test_time_only_override_uses_today_with_seconds_zeroed() -> None:
    resolved = _resolve(UnsetSchedule(), stop_time="3:04pm")

    assert resolved.stop == datetime(2025, 1, 1, 15, 4, 0, tzinfo=timezone.utc)
    assert resolved.start is None


def test_existing_window_keeps_bound_that_is_not_overridden() -> None:
    start = datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc)
    existing = WindowedSchedule(interval="10s", start=start)

    resolved = _resolve(existing, stop_time="12:00")

    assert resolved == WindowedSchedule(
        interval="10s",
        start=start,
        stop=datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc),
    )


def test_windowed_schedule_without_bounds_is_incomplete() -> None:
    with pytest.raises(ScheduleConflictError, match="incomplete window"):
        _resolve(WindowedSchedule(interval="10s"), interval="5s")


@pytest.mark.parametrize(
    ("existing", "overrides", "requested"),
    [
        (SimpleSchedule(interval="1s"), {"interval": "* * * * *"}, "cron"),
        (SimpleSchedule(interval="1s"), {"start_time": "10:00"}, "windowed"),
        (CronSchedule(interval="* * * * *"), {"interval": "1s"}, "simple"),
        (CronSchedule(interval="* * * * *"), {"duration": "1h"}, "windowed"),
        (
            WindowedSchedule(interval="1s", start=NOW),
            {"interval": "* * * * *"},
            "cron",
        ),
        (WindowedSchedule(interval="1s", start=NOW), {"count": "3"}, "simple"),
    ],
)
def test_changing_concrete_kind_fails(existing, overrides, requested) -> None:
    with pytest.raises(ScheduleConflictError) as excinfo:
        _resolve(existing, **overrides)

    assert existing.kind.value in str(excinfo.value)
    assert requested in str(excinfo.value)


def test_failed_merge_leaves_existing_schedule_untouched() -> None:
    existing = SimpleSchedule(interval="1s", count=2)

    with pytest.raises(ScheduleConflictError):
        _resolve(existing, interval="0 */5 * * * *")

    assert existing == SimpleSchedule(interval="1s", count=2)


def test_count_is_applied_to_simple_schedule() -> None:
    resolved = _resolve(SimpleSchedule(interval="1s"), count="5")

    assert resolved == SimpleSchedule(interval="1s", count=5)


@pytest.mark.parametrize(
    ("count", "cause"),
    [("abc", "invalid syntax"), ("-1", "invalid syntax"), (str(2**64), "value out of range")],
)
def test_bad_count_reports_value_and_cause(count: str, cause: str) -> None:
    with pytest.raises(UsageError) as excinfo:
        _resolve(UnsetSchedule(), interval="1s", count=count)

    assert f"Value '{count}'" in str(excinfo.value)
    assert cause in str(excinfo.value)


def test_count_on_cron_schedule_conflicts() -> None:
    with pytest.raises(ScheduleConflictError, match="count"):
        _resolve(UnsetSchedule(), interval="0 0 * * *", count="1")


def test_unparseable_interval_is_usage_error() -> None:
    with pytest.raises(UsageError, match="bad interval value"):
        _resolve(UnsetSchedule(), interval="every now and then")


def test_without_shaping_overrides_existing_schedule_is_kept() -> None:
    existing = CronSchedule(interval="0 0 * * *")

    assert _resolve(existing) is existing
    assert _resolve(None) is None


@pytest.mark.parametrize(
    "overrides",
    [
        {"interval": "30s"},
        {"interval": "*/2 * * * *"},
        {"duration": "1h"},
        {"start_time": "10:00", "interval": "1s"},
    ],
)
def test_successful_merge_sets_exactly_one_kind(overrides) -> None:
    resolved = _resolve(UnsetSchedule(), **overrides)

    kinds = [
        isinstance(resolved, variant)
        for variant in (SimpleSchedule, WindowedSchedule, CronSchedule)
    ]
    assert kinds.count(True) == 1
