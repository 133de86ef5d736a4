"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest

from snaptel.client import SnapClient
from snaptel.config import Settings

Route = Callable[[httpx.Request], httpx.Response]


@dataclass
class FakeDaemon:
    """In-memory REST daemon keyed by ``(method, path)`` below the API version."""

    routes: dict[tuple[str, str], Route] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)

    def on(self, method: str, path: str, status: int = 200, payload: Any = None) -> None:
        def _respond(_request: httpx.Request) -> httpx.Response:
            if payload is None:
                return httpx.Response(status)
            return httpx.Response(status, json=payload)

        self.routes[(method, path)] = _respond

    def route(self, method: str, path: str, handler: Route) -> None:
        self.routes[(method, path)] = handler

    def handle(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        path = request.url.path.removeprefix("/v2")
        handler = self.routes.get((request.method, path))
        if handler is None:
            return httpx.Response(404, json={"ErrorMessage": f"no route for {path}"})
        return handler(request)

    def last_json(self) -> Any:
        return json.loads(self.requests[-1].content)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "SNAPTEL_URL",
        "SNAPTEL_API_VERSION",
        "SNAPTEL_TIMEOUT_SECONDS",
        "SNAPTEL_INSECURE",
        "SNAPTEL_START_PAD_SECONDS",
        "SNAPTEL_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def daemon(monkeypatch) -> FakeDaemon:
    """Route every ``SnapClient`` built from settings to a fake daemon."""

    fake = FakeDaemon()
    transport = httpx.MockTransport(fake.handle)
    original_from_settings = SnapClient.from_settings

    def _patched_from_settings(settings: Settings) -> SnapClient:
        return original_from_settings(settings, transport=transport)

    monkeypatch.setattr(SnapClient, "from_settings", staticmethod(_patched_from_settings))
    return fake


class RecordingTerminal:
    """Captures terminal operations instead of escape sequences."""

    def __init__(self) -> None:
        self.ops: list[tuple[str, object]] = []

    def write_line(self, text: str) -> None:
        self.ops.append(("write", text))

    def clear_below(self) -> None:
        self.ops.append(("clear", None))

    def move_up(self, lines: int) -> None:
        self.ops.append(("up", lines))

    @property
    def lines(self) -> list[str]:
        return [str(value) for op, value in self.ops if op == "write"]


@pytest.fixture()
def terminal() -> RecordingTerminal:
    return RecordingTerminal()
