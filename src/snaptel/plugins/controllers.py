"""Controllers for plugin CLI commands."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from snaptel.client import SnapClient
from snaptel.config import Settings
from snaptel.errors import UsageError
from snaptel.formatting import align_rows, format_unix_time

SIGNATURE_SUFFIX = ".asc"
PLUGIN_ID_SEPARATOR = ":"

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PluginLoadCommand:
    """CLI input for plugin load."""

    paths: tuple[str, ...]
    signature: str | None = None


@dataclass(slots=True)
class PluginRefCommand:
    """CLI input naming one loaded plugin by type, name and version."""

    plugin_type: str | None
    name: str | None
    version: str | int | None


@dataclass(slots=True)
class PluginConfigCommand:
    """CLI input for plugin config get."""

    plugin_id: str | None
    plugin_type: str | None = None
    name: str | None = None
    version: int | None = None


@dataclass(slots=True, frozen=True)
class PluginRef:
    plugin_type: str
    name: str
    version: int


class PluginCliController:
    """Coordinates plugin CLI operations against the daemon."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def load(self, command: PluginLoadCommand) -> list[str]:
        if len(command.paths) != 1:
            raise UsageError("Incorrect usage:")
        files = [Path(command.paths[0])]
        if command.signature:
            if not command.signature.endswith(SIGNATURE_SUFFIX):
                raise UsageError("Must be a .asc file for the -a flag")
            files.append(Path(command.signature))
        for path in files:
            if not path.is_file():
                raise UsageError(f"No plugin to load: {path} does not exist")

        logger.info("Loading plugin from %s", files[0])
        with SnapClient.from_settings(self._settings) as client:
            plugin = client.load_plugin(files)
        return [
            "Plugin loaded",
            f"Name: {plugin.get('name', '')}",
            f"Version: {plugin.get('version', '')}",
            f"Type: {plugin.get('type', '')}",
            f"Signed: {'true' if plugin.get('signed') else 'false'}",
            f"Loaded Time: {format_unix_time(plugin.get('loaded_timestamp'))}",
            "",
        ]

    def unload(self, command: PluginRefCommand) -> list[str]:
        ref = resolve_plugin_ref(command.plugin_type, command.name, command.version)
        with SnapClient.from_settings(self._settings) as client:
            client.unload_plugin(ref.plugin_type, ref.name, ref.version)
        return [
            "Plugin unloaded",
            f"Name: {ref.name}",
            f"Version: {ref.version}",
            f"Type: {ref.plugin_type}",
        ]

    def list_plugins(self) -> list[str]:
        with SnapClient.from_settings(self._settings) as client:
            plugins = client.list_plugins()
        if not plugins:
            return ["No plugins found. Have you loaded a plugin?"]

        rows: list[list[Any]] = [["NAME", "VERSION", "TYPE", "SIGNED", "STATUS", "LOADED TIME"]]
        for plugin in plugins:
            rows.append(
                [
                    plugin.get("name", ""),
                    plugin.get("version", ""),
                    plugin.get("type", ""),
                    bool(plugin.get("signed")),
                    plugin.get("status", ""),
                    format_unix_time(plugin.get("loaded_timestamp")),
                ],
            )
        return align_rows(rows)

    def config(self, command: PluginConfigCommand) -> list[str]:
        """List the config items of one plugin.

        The plugin is named either as ``type:name:version`` or through the
        separate type/name/version options.
        """

        if command.plugin_id and command.plugin_id.count(PLUGIN_ID_SEPARATOR) == 2:
            plugin_type, name, version = command.plugin_id.split(PLUGIN_ID_SEPARATOR)
            ref = resolve_plugin_ref(plugin_type, name, version)
        else:
            ref = resolve_plugin_ref(command.plugin_type, command.name, command.version or 0)

        with SnapClient.from_settings(self._settings) as client:
            payload = client.get_plugin_config(ref.plugin_type, ref.name, ref.version)
        items = payload.get("config") if isinstance(payload, dict) else None
        rows: list[list[Any]] = [["NAME", "VALUE", "TYPE"]]
        for key, value in sorted((items or {}).items()):
            rows.append([key, value, config_value_type(value)])
        return align_rows(rows)


def resolve_plugin_ref(
    plugin_type: str | None,
    name: str | None,
    version: str | int | None,
) -> PluginRef:
    """Check the three parts of a plugin reference, in the order the CLI reports them."""

    if not plugin_type:
        raise UsageError("Must provide plugin type")
    if not name:
        raise UsageError("Must provide plugin name")
    if isinstance(version, int):
        number = version
    else:
        try:
            number = int(version or "")
        except ValueError as error:
            raise UsageError("Can't convert version string to integer") from error
    if number < 1:
        raise UsageError("Must provide plugin version")
    return PluginRef(plugin_type=plugin_type, name=name, version=number)


def config_value_type(value: Any) -> str:
    """Name the JSON type of a config value."""

    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    if value is None:
        return "null"
    return type(value).__name__
