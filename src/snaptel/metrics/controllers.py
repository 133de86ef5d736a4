"""Controllers for metric CLI commands."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any

from snaptel.client import SnapClient
from snaptel.config import Settings
from snaptel.errors import SnaptelError, UsageError
from snaptel.formatting import align_rows, format_unix_time

WILDCARD_SUFFIX = "/*"
SECTION_INDENT = 6


@dataclass(slots=True)
class MetricListCommand:
    """CLI input for metric list."""

    namespace: str | None = None
    version: int | None = None
    verbose: bool = False


@dataclass(slots=True)
class MetricGetCommand:
    """CLI input for metric get."""

    namespace: str | None
    version: int | None = None


class MetricCliController:
    """Coordinates metric catalog queries."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def list_metrics(self, command: MetricListCommand) -> list[str]:
        namespace = wildcard_namespace(command.namespace)
        with SnapClient.from_settings(self._settings) as client:
            metrics = client.list_metrics(namespace=namespace, version=command.version)
        if not metrics:
            return ["No metrics found. Have you loaded any collectors yet?"]

        if command.verbose:
            rows: list[list[Any]] = [["NAMESPACE", "VERSION", "UNIT", "DESCRIPTION"]]
            for metric in metrics:
                rows.append(
                    [
                        display_namespace(metric),
                        metric.get("version", ""),
                        metric.get("unit", ""),
                        metric.get("description", ""),
                    ],
                )
            return align_rows(rows)

        versions: dict[str, list[int]] = defaultdict(list)
        for metric in metrics:
            versions[str(metric.get("namespace", ""))].append(int(metric.get("version") or 0))
        rows = [["NAMESPACE", "VERSIONS"]]
        for namespace in sorted(versions):
            rows.append([namespace, ",".join(str(v) for v in sorted(versions[namespace]))])
        return align_rows(rows)

    def get_metric(self, command: MetricGetCommand) -> list[str]:
        if not command.namespace:
            raise UsageError("namespace is required")
        with SnapClient.from_settings(self._settings) as client:
            metrics = client.list_metrics(namespace=command.namespace, version=command.version)
        if not metrics:
            raise SnaptelError(f"No metric found for namespace {command.namespace}")

        lines: list[str] = []
        for index, metric in enumerate(metrics):
            if index > 0:
                lines.append("")
            lines.extend(describe_metric(metric))
        return lines


def wildcard_namespace(namespace: str | None) -> str:
    """Make a namespace filter match everything below it."""

    if not namespace:
        return WILDCARD_SUFFIX
    if namespace.endswith(WILDCARD_SUFFIX):
        return namespace
    if namespace.endswith("/"):
        return namespace + "*"
    return namespace + WILDCARD_SUFFIX


def display_namespace(metric: dict[str, Any]) -> str:
    """Namespace with dynamic elements shown as ``[name]``.

    The first character of the namespace is its separator, so element ``i``
    sits at position ``i + 1`` after splitting.
    """

    namespace = str(metric.get("namespace", ""))
    if not metric.get("dynamic") or not namespace:
        return namespace
    separator = namespace[0]
    parts = namespace.split(separator)
    for element in metric.get("dynamic_elements") or []:
        position = int(element.get("index", -1)) + 1
        if 0 < position < len(parts):
            parts[position] = f"[{element.get('name', '')}]"
    return separator.join(parts)


def describe_metric(metric: dict[str, Any]) -> list[str]:
    namespace = display_namespace(metric)
    lines = align_rows(
        [
            ["NAMESPACE", "VERSION", "UNIT", "LAST ADVERTISED TIME", "DESCRIPTION"],
            [
                namespace,
                metric.get("version", ""),
                metric.get("unit", ""),
                format_unix_time(metric.get("last_advertised_timestamp")),
                metric.get("description", ""),
            ],
        ],
    )

    if metric.get("dynamic"):
        lines.extend(["", f"  Dynamic elements of namespace: {namespace}", ""])
        elements: list[list[Any]] = [["NAME", "DESCRIPTION"]]
        for element in metric.get("dynamic_elements") or []:
            elements.append([element.get("name", ""), element.get("description", "")])
        lines.extend(align_rows(elements, indent=SECTION_INDENT))

    lines.extend(["", f"  Rules for collecting {namespace}:", ""])
    rules: list[list[Any]] = [["NAME", "TYPE", "DEFAULT", "REQUIRED", "MINIMUM", "MAXIMUM"]]
    for rule in metric.get("policy") or []:
        rules.append(
            [
                rule.get("name", ""),
                rule.get("type", ""),
                rule.get("default"),
                bool(rule.get("required")),
                rule.get("minimum"),
                rule.get("maximum"),
            ],
        )
    lines.extend(align_rows(rules, indent=SECTION_INDENT))
    return lines
