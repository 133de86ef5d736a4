"""Incremental decoding of the ``task watch`` event stream."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from snaptel.errors import StreamError

DATA_PREFIX = b"data:"
MIN_FRAME_BYTES = 2

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MetricEvent:
    """One metric point pushed by a watched task."""

    namespace: str
    data: Any
    timestamp: str
    tags: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class TaskEventBatch:
    """Events decoded from one stream frame."""

    event_type: str = ""
    task_id: str = ""
    message: str = ""
    events: list[MetricEvent] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Any) -> TaskEventBatch:
        if not isinstance(payload, dict):
            raise TypeError(f"expected a JSON object, got {type(payload).__name__}")
        raw_events = payload.get("event") or []
        if not isinstance(raw_events, list):
            raise TypeError("'event' must be a list")
        return cls(
            event_type=str(payload.get("type") or ""),
            task_id=str(payload.get("id") or ""),
            message=str(payload.get("message") or ""),
            events=[_metric_event(item) for item in raw_events],
        )


def iter_lines(chunks: Iterable[bytes]) -> Iterator[bytes]:
    """Split a byte stream at ``\\n``, keeping terminators; a trailing partial line is kept too."""

    pending = bytearray()
    for chunk in chunks:
        # only the new bytes can hold a terminator
        scan_from = len(pending)
        pending += chunk
        line_start = 0
        while True:
            index = pending.find(b"\n", scan_from)
            if index < 0:
                break
            yield bytes(pending[line_start : index + 1])
            line_start = scan_from = index + 1
        if line_start:
            del pending[:line_start]
    if pending:
        yield bytes(pending)


def read_event_batches(chunks: Iterable[bytes]) -> Iterator[TaskEventBatch]:
    """Yield one batch per ``data:`` frame until the stream ends.

    Keep-alive blank lines are skipped. A frame that does not decode stops the
    iteration with ``StreamError``.
    """

    for line in iter_lines(chunks):
        if len(line) < MIN_FRAME_BYTES:
            continue
        body = line.strip().removeprefix(DATA_PREFIX).strip()
        if not body:
            continue
        try:
            batch = TaskEventBatch.from_payload(json.loads(body))
        except (ValueError, TypeError) as error:
            raise StreamError(f"Error unmarshal task stream: {error}") from error
        logger.debug("Received %d events (%s)", len(batch.events), batch.event_type or "-")
        yield batch


def _metric_event(item: Any) -> MetricEvent:
    if not isinstance(item, dict):
        raise TypeError(f"event entry must be a JSON object, got {type(item).__name__}")
    tags = item.get("tags") or {}
    if not isinstance(tags, dict):
        raise TypeError("event 'tags' must be a JSON object")
    return MetricEvent(
        namespace=str(item.get("namespace") or ""),
        data=item.get("data"),
        timestamp=str(item.get("timestamp") or ""),
        tags={str(key): str(value) for key, value in tags.items()},
    )
