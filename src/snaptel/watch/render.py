"""In-place terminal rendering of watched task events."""

from __future__ import annotations

from typing import IO, Any, Protocol

import rich_click as click

from snaptel.formatting import align_rows
from snaptel.watch.stream import MetricEvent, TaskEventBatch

HEADER = ("NAMESPACE", "DATA", "TIMESTAMP")
TAGS_HEADER = "TAGS"
TAGS_PER_ROW = 3


class TerminalSink(Protocol):
    """Minimal terminal control needed to redraw a frame in place."""

    def write_line(self, text: str) -> None:
        """Write ``text`` followed by a newline."""
        raise NotImplementedError

    def clear_below(self) -> None:
        """Erase from the cursor to the end of the screen."""
        raise NotImplementedError

    def move_up(self, lines: int) -> None:
        """Move the cursor ``lines`` rows up, keeping the column."""
        raise NotImplementedError


class AnsiTerminal:
    """``TerminalSink`` writing ANSI escape sequences through click."""

    CLEAR_BELOW = "\033[0J"

    def __init__(self, file: IO[str] | None = None) -> None:
        self._file = file

    def write_line(self, text: str) -> None:
        click.echo(text, file=self._file)

    def clear_below(self) -> None:
        click.echo(self.CLEAR_BELOW, file=self._file, nl=False, color=True)

    def move_up(self, lines: int) -> None:
        if lines > 0:
            click.echo(f"\033[{lines}A", file=self._file, nl=False, color=True)


class FrameRenderer:
    """Draws one table per event batch over the previous one."""

    def __init__(self, terminal: TerminalSink, *, verbose: bool = False) -> None:
        self._terminal = terminal
        self._verbose = verbose

    def render(self, batch: TaskEventBatch) -> int:
        """Draw ``batch`` and park the cursor on its header row.

        Returns the number of event rows printed (header excluded), which is
        one per event plus one per extra row of wrapped tags.
        """

        if not batch.events:
            return 0

        header: list[Any] = list(HEADER)
        if self._verbose:
            header.append(TAGS_HEADER)
        rows: list[list[Any]] = [header]
        for event in batch.events:
            rows.extend(self._event_rows(event))
        lines_printed = len(rows) - 1

        self._terminal.clear_below()
        for line in align_rows(rows):
            self._terminal.write_line(line)
        self._terminal.move_up(lines_printed + 1)
        return lines_printed

    def _event_rows(self, event: MetricEvent) -> list[list[Any]]:
        fields: list[Any] = [event.namespace, event.data, event.timestamp]
        if not self._verbose:
            return [fields]
        tag_cells = wrap_tags(event.tags)
        rows = [[*fields, tag_cells[0]]]
        rows.extend(["", "", "", cell] for cell in tag_cells[1:])
        return rows


def wrap_tags(tags: dict[str, str]) -> list[str]:
    """Sorted ``key=value`` pairs, three per cell, with a trailing comma on continued cells."""

    pairs = [f"{key}={tags[key]}" for key in sorted(tags)]
    if len(pairs) <= TAGS_PER_ROW:
        return [", ".join(pairs)]
    groups = [pairs[index : index + TAGS_PER_ROW] for index in range(0, len(pairs), TAGS_PER_ROW)]
    return [
        ", ".join(group) + ("," if position < len(groups) - 1 else "")
        for position, group in enumerate(groups)
    ]
