"""Error taxonomy shared by every command path."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class SnaptelError(Exception):
    """Base error surfaced at the command boundary."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class UsageError(SnaptelError):
    """Malformed or missing command-line input; reported with command help."""


@dataclass(slots=True)
class ScheduleConflictError(SnaptelError):
    """Schedule override conflicts with the existing schedule or is mis-specified."""

    existing: str | None = None
    requested: str | None = None


@dataclass(slots=True)
class ManifestDecodeError(SnaptelError):
    """Task or workflow manifest cannot be decoded into the expected shape."""


@dataclass(slots=True)
class TransportError(SnaptelError):
    """REST call failed outright or returned a non-2xx status."""

    status_code: int | None = None


@dataclass(slots=True)
class StreamError(SnaptelError):
    """Task watch stream failed mid-flight."""
