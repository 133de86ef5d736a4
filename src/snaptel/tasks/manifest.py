"""Decoding of task and workflow manifests from YAML or JSON."""

from __future__ import annotations

import json
import os
import re
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from snaptel.errors import ManifestDecodeError, UsageError
from snaptel.tasks.models import TaskDescription

_ENV_REFERENCE = re.compile(r"\$\{([^}]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


class ManifestFormat(str, Enum):
    """Manifest encodings accepted by ``task create``."""

    YAML = "yaml"
    JSON = "json"


_EXTENSION_FORMATS = {
    ".yaml": ManifestFormat.YAML,
    ".yml": ManifestFormat.YAML,
    ".json": ManifestFormat.JSON,
}


def manifest_format_for(path: Path) -> ManifestFormat:
    """Pick the decoder from the file extension before anything is parsed."""

    try:
        return _EXTENSION_FORMATS[path.suffix.lower()]
    except KeyError:
        raise UsageError(f"Unsupported file type {path.suffix or path.name!r}") from None


def expand_env(text: str) -> str:
    """Expand ``$NAME`` and ``${NAME}``; unknown variables become empty strings."""

    return _ENV_REFERENCE.sub(
        lambda match: os.environ.get(match.group(1) or match.group(2), ""),
        text,
    )


def decode_document(raw: bytes, fmt: ManifestFormat) -> Any:
    """Decode manifest bytes into plain JSON-compatible values with string keys."""

    try:
        text = expand_env(raw.decode("utf-8"))
    except UnicodeDecodeError as error:
        raise ManifestDecodeError(f"Manifest [{fmt.value}] is not valid UTF-8: {error}") from error

    if fmt is ManifestFormat.JSON:
        try:
            return json.loads(text)
        except json.JSONDecodeError as error:
            raise ManifestDecodeError(f"Error parsing JSON file: {error}") from error

    try:
        body = yaml.safe_load(text)
    except yaml.YAMLError as error:
        raise ManifestDecodeError(f"Unmarshal YAML file error: {error}") from error
    normalized = normalize_keys(body)
    # Re-encode so the result holds exactly what a JSON manifest could hold.
    try:
        return json.loads(json.dumps(normalized))
    except (TypeError, ValueError) as error:
        raise ManifestDecodeError(f"Marshal YAML document to JSON error: {error}") from error


def normalize_keys(value: Any) -> Any:
    """Recursively convert mapping keys to strings.

    YAML allows integer, float, boolean and timestamp keys; the task model and
    the daemon only accept string keys. Timestamps anywhere in the tree become
    ISO 8601 strings. Any other key type is rejected.
    """

    if isinstance(value, dict):
        return {_key_to_str(key): normalize_keys(item) for key, item in value.items()}
    if isinstance(value, list):
        return [normalize_keys(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def load_task_manifest(raw: bytes, fmt: ManifestFormat) -> TaskDescription:
    """Decode a full task manifest."""

    document = decode_document(raw, fmt)
    if not isinstance(document, dict):
        raise ManifestDecodeError(
            f"Error parsing task manifest [{fmt.value}]: expected a mapping at the top level",
        )
    return TaskDescription.from_dict(document)


def load_workflow_manifest(raw: bytes, fmt: ManifestFormat) -> dict[str, Any]:
    """Decode a workflow manifest; the payload itself is passed through untouched."""

    document = decode_document(raw, fmt)
    if not isinstance(document, dict):
        raise ManifestDecodeError(
            f"Error parsing workflow manifest [{fmt.value}]: expected a mapping at the top level",
        )
    return document


def _key_to_str(key: Any) -> str:
    if isinstance(key, str):
        return key
    if isinstance(key, bool):
        return "true" if key else "false"
    if isinstance(key, (int, float)):
        return str(key)
    if isinstance(key, (datetime, date)):
        return key.isoformat()
    raise ManifestDecodeError(
        f"Unmarshal YAML file error: mapping key {key!r} of type "
        f"{type(key).__name__} cannot be converted to a string",
    )
