"""Plain-text table helpers shared by command output."""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import datetime
from typing import Any

COLUMN_GAP = 3
_THOUSAND = 1_000
_COUNT_UNITS = (
    (_THOUSAND**3, "G"),
    (_THOUSAND**2, "M"),
    (_THOUSAND, "K"),
)


def align_rows(rows: Sequence[Sequence[Any]], *, indent: int = 0) -> list[str]:
    """Render rows as left-aligned columns separated by spaces."""

    cells = [[format_cell(value) for value in row] for row in rows]
    column_count = max((len(row) for row in cells), default=0)
    widths = [
        max((len(row[index]) for row in cells if index < len(row)), default=0)
        for index in range(column_count)
    ]
    prefix = " " * indent
    lines = []
    for row in cells:
        padded = [
            cell if index == len(row) - 1 else cell.ljust(widths[index] + COLUMN_GAP)
            for index, cell in enumerate(row)
        ]
        lines.append((prefix + "".join(padded)).rstrip())
    return lines


def format_cell(value: Any) -> str:
    """Stringify a value the way the daemon reports it."""

    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def truncate_count(value: int) -> str:
    """Shorten a counter to K/M/G units (powers of 1000)."""

    for size, unit in _COUNT_UNITS:
        if value >= size:
            return f"{value // size}{unit}"
    return str(value)


def fit_width(message: str, width: int, *, verbose: bool) -> str:
    """Pad ``message`` to ``width``; cut it with an ellipsis unless verbose."""

    if width <= 3:
        return message
    if len(message) < width:
        return message.ljust(width)
    if len(message) > width and not verbose:
        return message[: width - 3] + "..."
    return message


def format_unix_time(timestamp: int | float | None) -> str:
    """Format epoch seconds as an RFC 1123 local time."""

    if not timestamp:
        return ""
    moment = datetime.fromtimestamp(timestamp).astimezone()
    return moment.strftime("%a, %d %b %Y %H:%M:%S %Z")
