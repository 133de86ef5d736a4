"""REST client for the Snap daemon API."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Any

import httpx

from snaptel.config import BASIC_AUTH_USERNAME, Settings
from snaptel.errors import TransportError

HTTP_UNAUTHORIZED = 401
PROTOCOL_MISMATCH_MESSAGE = (
    "Error connecting to API. Do you have an http/https mismatching API request?"
)

logger = logging.getLogger(__name__)


def error_message(status_code: int, payload: Any) -> str:
    """Pick the server message out of an error envelope.

    Unauthorized responses carry ``Message``; every other error carries
    ``ErrorMessage``. Either falls back to the other key and to ``message``.
    """

    if status_code == HTTP_UNAUTHORIZED:
        keys = ("Message", "ErrorMessage", "message")
    else:
        keys = ("ErrorMessage", "Message", "message")
    if isinstance(payload, dict):
        for key in keys:
            value = payload.get(key)
            if value:
                return str(value)
    return f"HTTP {status_code}"


class SnapClient:
    """Thin wrapper over ``httpx.Client`` issuing one attempt per call."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float,
        password: str | None = None,
        insecure: bool = False,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
            auth=(BASIC_AUTH_USERNAME, password) if password is not None else None,
            transport=transport or httpx.HTTPTransport(retries=0, verify=not insecure),
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> SnapClient:
        return cls(
            base_url=settings.base_url,
            timeout_seconds=settings.timeout_seconds,
            password=settings.password,
            insecure=settings.insecure,
            transport=transport,
        )

    # plugins

    def list_plugins(self) -> list[dict[str, Any]]:
        payload = self._request("GET", "/plugins", action="Error listing plugins")
        return _items(payload, "plugins")

    def load_plugin(self, paths: list[Path]) -> dict[str, Any]:
        """Upload the plugin binary (and optional signature) as multipart ``plugin_data``."""

        with ExitStack() as stack:
            files = [
                ("plugin_data", (path.name, stack.enter_context(path.open("rb"))))
                for path in paths
            ]
            return self._request("POST", "/plugins", action="Error loading plugin", files=files)

    def unload_plugin(self, plugin_type: str, name: str, version: int) -> None:
        self._request(
            "DELETE",
            f"/plugins/{plugin_type}/{name}/{version}",
            action="Error unloading plugin",
        )

    def get_plugin_config(self, plugin_type: str, name: str, version: int) -> dict[str, Any]:
        return self._request(
            "GET",
            f"/plugins/{plugin_type}/{name}/{version}/config",
            action="Error requesting plugin config",
        )

    # metrics

    def list_metrics(
        self,
        *,
        namespace: str | None = None,
        version: int | None = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {}
        if namespace:
            params["ns"] = namespace
        if version:
            params["ver"] = version
        payload = self._request("GET", "/metrics", action="Error getting metrics", params=params)
        return _items(payload, "metrics")

    # tasks

    def list_tasks(self) -> list[dict[str, Any]]:
        payload = self._request("GET", "/tasks", action="Error getting tasks")
        return _items(payload, "tasks")

    def get_task(self, task_id: str) -> dict[str, Any]:
        return self._request("GET", f"/tasks/{task_id}", action="Error getting task")

    def create_task(self, task: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/tasks", action="Error creating task", json=task)

    def update_task_state(self, task_id: str, action: str) -> None:
        self._request(
            "PUT",
            f"/tasks/{task_id}",
            action=f"Error trying to {action} task",
            params={"action": action},
        )

    def remove_task(self, task_id: str) -> None:
        self._request("DELETE", f"/tasks/{task_id}", action="Error removing task")

    @contextmanager
    def watch_task(self, task_id: str) -> Iterator[httpx.Response]:
        """Open the long-lived event stream of a task; no timeout applies."""

        request = self._client.build_request(
            "GET",
            f"/tasks/{task_id}/watch",
            timeout=httpx.Timeout(None),
        )
        try:
            response = self._client.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise _transport_error("Error watching task", exc) from exc
        try:
            if not response.is_success:
                response.read()
                raise TransportError(
                    "Error watching task: "
                    f"{error_message(response.status_code, _json_or_none(response))}",
                    status_code=response.status_code,
                )
            yield response
        finally:
            response.close()

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> SnapClient:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def _request(self, method: str, path: str, *, action: str, **kwargs: Any) -> Any:
        logger.debug("%s %s", method, path)
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise _transport_error(action, exc) from exc

        payload = _json_or_none(response)
        if not response.is_success:
            raise TransportError(
                f"{action}: {error_message(response.status_code, payload)}",
                status_code=response.status_code,
            )
        return payload if payload is not None else {}


def _transport_error(action: str, exc: httpx.HTTPError) -> TransportError:
    if isinstance(exc, httpx.RemoteProtocolError):
        return TransportError(f"{action}: {PROTOCOL_MISMATCH_MESSAGE}")
    logger.debug("%s: %s", action, exc)
    return TransportError(f"{action}: {exc}")


def _json_or_none(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def _items(payload: Any, key: str) -> list[dict[str, Any]]:
    if not isinstance(payload, dict):
        return []
    return list(payload.get(key) or [])
