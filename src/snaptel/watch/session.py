"""``task watch`` loop: stream, render, and clean cancellation."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
from typing import Protocol

import httpx

from snaptel.errors import StreamError
from snaptel.watch.render import FrameRenderer, TerminalSink
from snaptel.watch.stream import read_event_batches

STOP_MESSAGE = "Stopping task watch"

logger = logging.getLogger(__name__)


class StreamHandle(Protocol):
    """Open response body of the watch endpoint."""

    def iter_raw(self) -> Iterator[bytes]:
        """Yield body bytes as they arrive."""
        raise NotImplementedError

    def close(self) -> None:
        """Close the connection, unblocking a pending read."""
        raise NotImplementedError


class TaskEventSource(Protocol):
    """Anything that can open a task event stream (``SnapClient`` in production)."""

    def watch_task(self, task_id: str) -> AbstractContextManager[StreamHandle]:
        """Open the event stream of ``task_id``."""
        raise NotImplementedError


@dataclass(slots=True)
class WatchOutcome:
    """How a watch session ended."""

    task_id: str
    frames: int
    cancelled: bool


class TaskWatchSession:
    """Runs one watch: read a frame, render it, repeat until EOF or cancellation."""

    def __init__(
        self,
        source: TaskEventSource,
        terminal: TerminalSink,
        *,
        verbose: bool = False,
    ) -> None:
        self._source = source
        self._terminal = terminal
        self._renderer = FrameRenderer(terminal, verbose=verbose)
        self._cancelled = threading.Event()
        self._stream: StreamHandle | None = None
        self._frame_height = 0

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self, reason: str = "requested") -> None:
        """Stop the session; safe to call from a signal handler."""

        logger.debug("Task watch cancelled (%s)", reason)
        self._cancelled.set()
        stream = self._stream
        if stream is not None:
            stream.close()

    def run(self, task_id: str) -> WatchOutcome:
        frames = 0
        with self._source.watch_task(task_id) as stream:
            self._stream = stream
            self._terminal.write_line(f"Watching Task ({task_id}):")
            try:
                for batch in read_event_batches(stream.iter_raw()):
                    if self._cancelled.is_set():
                        break
                    lines_printed = self._renderer.render(batch)
                    if batch.events:
                        # header row plus event rows
                        self._frame_height = lines_printed + 1
                        frames += 1
            except (httpx.HTTPError, httpx.StreamError, OSError) as exc:
                if not self._cancelled.is_set():
                    raise StreamError(f"Error reading task watch stream: {exc}") from exc
            finally:
                self._stream = None

        cancelled = self._cancelled.is_set()
        self._leave_frame(cancelled=cancelled)
        return WatchOutcome(task_id=task_id, frames=frames, cancelled=cancelled)

    def _leave_frame(self, *, cancelled: bool) -> None:
        # The cursor sits on the header row of the last frame.
        if cancelled:
            self._terminal.write_line("\n" * self._frame_height + STOP_MESSAGE)
        elif self._frame_height:
            self._terminal.write_line("\n" * (self._frame_height - 1))
        self._frame_height = 0


@contextmanager
def cancel_on_signals(session: TaskWatchSession) -> Iterator[None]:
    """Route SIGINT/SIGTERM to ``session.cancel`` while the block runs."""

    original_sigint = signal.getsignal(signal.SIGINT)
    original_sigterm = signal.getsignal(signal.SIGTERM)

    def _handler(signum: int, _: object | None) -> None:
        try:
            name = signal.Signals(signum).name
        except ValueError:
            name = str(signum)
        session.cancel(reason=name)

    try:
        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
        installed = True
    except ValueError:
        # Signal handlers can only be installed in main thread.
        installed = False
    try:
        yield
    finally:
        if installed:
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)
