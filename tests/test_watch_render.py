from __future__ import annotations

import io

import allure

from snaptel.watch.render import AnsiTerminal, FrameRenderer, wrap_tags
from snaptel.watch.stream import MetricEvent, TaskEventBatch

pytestmark = [
    allure.epic("Task Watch"),
    allure.feature("Frame Renderer"),
]


def _event(namespace: str, tag_count: int = 0) -> MetricEvent:
    return MetricEvent(
        namespace=namespace,
        data=42,
        timestamp="2025-01-01 10:00:00",
        tags={f"tag{index}": f"v{index}" for index in range(tag_count)},
    )


def test_seven_tags_wrap_into_three_rows(terminal) -> None:
    batch = TaskEventBatch(events=[_event("/intel/mock/foo", tag_count=7)])

    lines_printed = FrameRenderer(terminal, verbose=True).render(batch)

    assert lines_printed == 3
    header, first, second, third = terminal.lines
    assert header.split() == ["NAMESPACE", "DATA", "TIMESTAMP", "TAGS"]
    assert first.endswith("tag0=v0, tag1=v1, tag2=v2,")
    assert second.strip() == "tag3=v3, tag4=v4, tag5=v5,"
    assert third.strip() == "tag6=v6"
    assert second.index("tag3") == first.index("tag0")
    assert terminal.ops[0] == ("clear", None)
    assert terminal.ops[-1] == ("up", 4)


def test_plain_frame_has_header_and_one_row_per_event(terminal) -> None:
    batch = TaskEventBatch(events=[_event("/a", 5), _event("/intel/mock/bar")])

    lines_printed = FrameRenderer(terminal).render(batch)

    assert lines_printed == 2
    assert terminal.lines[0].split() == ["NAMESPACE", "DATA", "TIMESTAMP"]
    assert terminal.lines[1].split() == ["/a", "42", "2025-01-01", "10:00:00"]
    assert "tag0" not in "\n".join(terminal.lines)
    assert terminal.ops[-1] == ("up", 3)


def test_empty_batch_draws_nothing(terminal) -> None:
    assert FrameRenderer(terminal, verbose=True).render(TaskEventBatch()) == 0
    assert terminal.ops == []


def test_header_is_redrawn_for_every_batch(terminal) -> None:
    renderer = FrameRenderer(terminal)

    renderer.render(TaskEventBatch(events=[_event("/a")]))
    renderer.render(TaskEventBatch(events=[_event("/b")]))

    assert [line for line in terminal.lines if line.startswith("NAMESPACE")] == [
        "NAMESPACE   DATA   TIMESTAMP",
    ] * 2


def test_wrap_tags_sorts_by_key() -> None:
    assert wrap_tags({"b": "2", "a": "1"}) == ["a=1, b=2"]
    assert wrap_tags({}) == [""]
    assert wrap_tags({key: key for key in "dcbae"}) == ["a=a, b=b, c=c,", "d=d, e=e"]


def test_ansi_terminal_emits_escape_sequences() -> None:
    buffer = io.StringIO()
    ansi = AnsiTerminal(file=buffer)

    ansi.clear_below()
    ansi.write_line("row")
    ansi.move_up(2)
    ansi.move_up(0)

    assert buffer.getvalue() == "\033[0Jrow\n\033[2A"
