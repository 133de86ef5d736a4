"""Controllers for task CLI commands."""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any

from snaptel.client import SnapClient
from snaptel.config import Settings
from snaptel.errors import ManifestDecodeError, UsageError
from snaptel.formatting import align_rows, fit_width, format_unix_time, truncate_count
from snaptel.tasks.builder import TaskOverrides, build_task_from_manifest, build_task_from_workflow
from snaptel.tasks.manifest import manifest_format_for
from snaptel.tasks.models import TaskDescription
from snaptel.watch.render import AnsiTerminal, TerminalSink
from snaptel.watch.session import TaskWatchSession, cancel_on_signals

# Below TASK_TABLE_MIN_WIDTH columns the task table is printed untruncated.
TASK_TABLE_MIN_WIDTH = 165
TASK_TABLE_FIXED_WIDTH = 153
TASK_NAME_WIDTH = 41

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TaskCreateCommand:
    """CLI input for task creation."""

    task_manifest: Path | None
    workflow_manifest: Path | None
    overrides: TaskOverrides


@dataclass(slots=True)
class TaskListCommand:
    """CLI input for task listing."""

    verbose: bool


@dataclass(slots=True)
class TaskIdCommand:
    """CLI input for commands addressing one task."""

    task_ids: tuple[str, ...]


@dataclass(slots=True)
class TaskWatchCommand:
    """CLI input for task watch."""

    task_ids: tuple[str, ...]
    verbose: bool


class TaskCliController:
    """Coordinates task CLI operations against the daemon."""

    def __init__(self, settings: Settings, *, terminal: TerminalSink | None = None) -> None:
        self._settings = settings
        self._terminal = terminal

    def create(self, command: TaskCreateCommand) -> list[str]:
        task = self.build(command)
        with SnapClient.from_settings(self._settings) as client:
            created = client.create_task(task.to_dict())
        return [
            "Task created",
            f"ID: {created.get('id', '')}",
            f"Name: {created.get('name', '')}",
            f"State: {created.get('task_state', '')}",
        ]

    def build(self, command: TaskCreateCommand) -> TaskDescription:
        """Resolve the task that ``create`` would submit."""

        if command.task_manifest is not None and command.workflow_manifest is not None:
            raise UsageError("Provide only one of --task-manifest or --workflow-manifest")
        start_pad = timedelta(seconds=self._settings.start_pad_seconds)
        if command.task_manifest is not None:
            fmt = manifest_format_for(command.task_manifest)
            raw = _read_manifest(command.task_manifest)
            return build_task_from_manifest(raw, fmt, command.overrides, start_pad=start_pad)
        if command.workflow_manifest is not None:
            fmt = manifest_format_for(command.workflow_manifest)
            raw = _read_manifest(command.workflow_manifest)
            return build_task_from_workflow(raw, fmt, command.overrides, start_pad=start_pad)
        raise UsageError("Must provide either --task-manifest or --workflow-manifest arguments")

    def list_tasks(self, command: TaskListCommand) -> list[str]:
        with SnapClient.from_settings(self._settings) as client:
            tasks = client.list_tasks()
        if not tasks:
            return ["No task found. Have you created a task?"]

        term_width = shutil.get_terminal_size().columns
        verbose = command.verbose or term_width < TASK_TABLE_MIN_WIDTH
        rows: list[list[Any]] = [
            ["ID", "NAME", "STATE", "HIT", "MISS", "FAIL", "CREATED", "LAST FAILURE"],
        ]
        for task in tasks:
            rows.append(
                [
                    task.get("id", ""),
                    fit_width(str(task.get("name") or ""), TASK_NAME_WIDTH, verbose=verbose),
                    task.get("task_state", ""),
                    truncate_count(int(task.get("hit_count") or 0)),
                    truncate_count(int(task.get("miss_count") or 0)),
                    truncate_count(int(task.get("failed_count") or 0)),
                    format_unix_time(task.get("creation_timestamp")),
                    fit_width(
                        str(task.get("last_failure_message") or ""),
                        term_width - TASK_TABLE_FIXED_WIDTH,
                        verbose=verbose,
                    ),
                ],
            )
        return align_rows(rows)

    def start(self, command: TaskIdCommand) -> list[str]:
        return self._change_state(command, action="start", done="Task started:")

    def stop(self, command: TaskIdCommand) -> list[str]:
        return self._change_state(command, action="stop", done="Task stopped:")

    def enable(self, command: TaskIdCommand) -> list[str]:
        return self._change_state(command, action="enable", done="Task enabled:")

    def remove(self, command: TaskIdCommand) -> list[str]:
        task_id = _single_task_id(command.task_ids)
        with SnapClient.from_settings(self._settings) as client:
            client.remove_task(task_id)
        return ["Task removed:", f"ID: {task_id}"]

    def export(self, command: TaskIdCommand) -> list[str]:
        task_id = _single_task_id(command.task_ids)
        with SnapClient.from_settings(self._settings) as client:
            task = client.get_task(task_id)
        return [json.dumps(task)]

    def watch(self, command: TaskWatchCommand) -> list[str]:
        task_id = _single_task_id(command.task_ids)
        terminal = self._terminal or AnsiTerminal()
        with SnapClient.from_settings(self._settings) as client:
            session = TaskWatchSession(client, terminal, verbose=command.verbose)
            with cancel_on_signals(session):
                outcome = session.run(task_id)
        logger.debug(
            "Task watch %s ended: frames=%d cancelled=%s",
            outcome.task_id,
            outcome.frames,
            outcome.cancelled,
        )
        return []

    def _change_state(self, command: TaskIdCommand, *, action: str, done: str) -> list[str]:
        task_id = _single_task_id(command.task_ids)
        with SnapClient.from_settings(self._settings) as client:
            client.update_task_state(task_id, action)
        return [done, f"ID: {task_id}"]


def _single_task_id(task_ids: tuple[str, ...]) -> str:
    if len(task_ids) != 1:
        raise UsageError("Incorrect usage")
    return task_ids[0]


def _read_manifest(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as error:
        raise ManifestDecodeError(f"File error [{path.suffix}] - {error}") from error
