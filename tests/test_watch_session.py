from __future__ import annotations

import json
import os
import signal
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager

import allure
import httpx
import pytest

from snaptel.errors import StreamError
from snaptel.watch.session import STOP_MESSAGE, TaskWatchSession, cancel_on_signals

pytestmark = [
    allure.epic("Task Watch"),
    allure.feature("Watch Session"),
]


def _frame(count: int) -> bytes:
    events = [
        {"namespace": f"/intel/mock/m{index}", "data": index, "timestamp": "t", "tags": {}}
        for index in range(count)
    ]
    return b"data: " + json.dumps({"type": "metric-event", "event": events}).encode() + b"\n"


class FakeStream:
    def __init__(self, chunks: list[bytes | Callable[[], None]]) -> None:
        self._chunks = chunks
        self.closed = False

    def iter_raw(self) -> Iterator[bytes]:
        for chunk in self._chunks:
            if self.closed:
                raise httpx.ReadError("connection closed")
            if callable(chunk):
                chunk()
                continue
            yield chunk

    def close(self) -> None:
        self.closed = True


class FakeSource:
    def __init__(self, stream: FakeStream) -> None:
        self.stream = stream
        self.opened: list[str] = []

    @contextmanager
    def watch_task(self, task_id: str) -> Iterator[FakeStream]:
        self.opened.append(task_id)
        try:
            yield self.stream
        finally:
            self.stream.close()


def test_clean_end_of_stream_moves_past_last_frame(terminal) -> None:
    source = FakeSource(FakeStream([_frame(2), b"\n", _frame(3)]))

    outcome = TaskWatchSession(source, terminal).run("task-1")

    assert source.opened == ["task-1"]
    assert outcome.frames == 2
    assert outcome.cancelled is False
    assert terminal.lines[0] == "Watching Task (task-1):"
    assert [value for op, value in terminal.ops if op == "up"] == [3, 4]
    # cursor sits on the header of a 4-line frame
    assert terminal.ops[-1] == ("write", "\n" * 3)


def test_cancellation_closes_stream_and_prints_stop_message(terminal) -> None:
    stream = FakeStream([])
    source = FakeSource(stream)
    session = TaskWatchSession(source, terminal)
    stream._chunks = [_frame(2), lambda: session.cancel("SIGINT"), _frame(1)]

    outcome = session.run("task-9")

    assert stream.closed
    assert outcome.cancelled is True
    assert outcome.frames == 1
    assert terminal.ops[-1] == ("write", "\n" * 3 + STOP_MESSAGE)


def test_cancel_before_any_frame_prints_only_stop_message(terminal) -> None:
    stream = FakeStream([])
    session = TaskWatchSession(FakeSource(stream), terminal)
    stream._chunks = [lambda: session.cancel(), _frame(1)]

    outcome = session.run("task-2")

    assert outcome.frames == 0
    assert terminal.lines == ["Watching Task (task-2):", STOP_MESSAGE]


def test_transport_failure_mid_stream_is_stream_error(terminal) -> None:
    stream = FakeStream([_frame(1)])
    stream.close()

    with pytest.raises(StreamError, match="Error reading task watch stream"):
        TaskWatchSession(FakeSource(stream), terminal).run("task-3")


def test_undecodable_frame_ends_watch_with_error(terminal) -> None:
    source = FakeSource(FakeStream([_frame(1), b"data: nope\n"]))

    with pytest.raises(StreamError, match="Error unmarshal task stream"):
        TaskWatchSession(source, terminal).run("task-4")


class BlockingStream:
    """Sends ``signum`` to this process after the first frame, then blocks until closed."""

    def __init__(self, frame: bytes, signum: signal.Signals) -> None:
        self._frame = frame
        self._signum = signum
        self._closed = threading.Event()

    def iter_raw(self) -> Iterator[bytes]:
        yield self._frame
        threading.Timer(0.05, os.kill, (os.getpid(), self._signum)).start()
        deadline = time.monotonic() + 5
        while not self._closed.wait(0.01):
            if time.monotonic() > deadline:
                raise AssertionError("stream was never closed")
        raise httpx.ReadError("connection closed")

    def close(self) -> None:
        self._closed.set()


@pytest.mark.parametrize("signum", [signal.SIGINT, signal.SIGTERM])
def test_signal_interrupts_blocking_read_and_restores_handlers(terminal, signum) -> None:
    original_sigint = signal.getsignal(signal.SIGINT)
    original_sigterm = signal.getsignal(signal.SIGTERM)
    session = TaskWatchSession(FakeSource(BlockingStream(_frame(2), signum)), terminal)

    with cancel_on_signals(session):
        assert signal.getsignal(signal.SIGINT) is not original_sigint
        outcome = session.run("task-5")

    assert outcome.cancelled is True
    assert outcome.frames == 1
    assert terminal.ops[-1] == ("write", "\n" * 3 + STOP_MESSAGE)
    assert signal.getsignal(signal.SIGINT) is original_sigint
    assert signal.getsignal(signal.SIGTERM) is original_sigterm
