"""Runtime configuration for the snaptel client."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

import yaml

DEFAULT_URL = "http://localhost:8181"
DEFAULT_API_VERSION = "v2"
DEFAULT_TIMEOUT_SECONDS = 10.0
# Offset added to "now" when a window start is derived.
DEFAULT_START_PAD_SECONDS = 1.0
DEFAULT_LOG_LEVEL = "WARNING"
BASIC_AUTH_USERNAME = "snap"

_LOG_LEVELS = frozenset({"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"})

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Settings:
    """Client settings resolved from environment and global CLI options."""

    url: str = DEFAULT_URL
    api_version: str = DEFAULT_API_VERSION
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    insecure: bool = False
    password: str | None = None
    start_pad_seconds: float = DEFAULT_START_PAD_SECONDS
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults matching a local daemon."""

        return cls(
            url=os.getenv("SNAPTEL_URL", DEFAULT_URL).rstrip("/"),
            api_version=os.getenv("SNAPTEL_API_VERSION", DEFAULT_API_VERSION),
            timeout_seconds=float(
                os.getenv("SNAPTEL_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS)),
            ),
            insecure=_env_bool("SNAPTEL_INSECURE", default=False),
            start_pad_seconds=float(
                os.getenv("SNAPTEL_START_PAD_SECONDS", str(DEFAULT_START_PAD_SECONDS)),
            ),
            log_level=os.getenv("SNAPTEL_LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper(),
        )

    @property
    def base_url(self) -> str:
        """API root including the version segment."""

        return f"{self.url.rstrip('/')}/{self.api_version.strip('/')}"

    def validate(self) -> None:
        """Raise configuration error if any setting is unusable."""

        parsed = urlparse(self.url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(
                f"Invalid daemon URL: {self.url!r}. "
                "Expected an absolute URL with http:// or https:// scheme.",
            )
        if not self.api_version.strip("/"):
            raise ValueError("SNAPTEL_API_VERSION must not be empty.")
        if self.timeout_seconds <= 0:
            raise ValueError("SNAPTEL_TIMEOUT_SECONDS must be > 0.")
        if self.start_pad_seconds < 0:
            raise ValueError("SNAPTEL_START_PAD_SECONDS must be >= 0.")
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(f"Invalid SNAPTEL_LOG_LEVEL: {self.log_level!r}")


def load_rest_password(path: Path) -> str | None:
    """Read the REST basic-auth password from a daemon config file.

    The file holds ``{"rest": {"rest-auth-pwd": "..."}}`` as JSON or YAML.
    Problems are logged and yield ``None`` so the request goes out
    unauthenticated and the daemon answers with its own 401.
    """

    logger.warning(
        "The snaptel configuration file will be deprecated: %s. "
        "See https://github.com/intelsdi-x/snap/issues/1539",
        path,
    )
    try:
        raw = path.read_text("utf-8")
    except OSError:
        logger.warning("Unable to read config %s. File might not exist", path)
        return None
    try:
        if path.suffix.lower() in {".yaml", ".yml"}:
            document = yaml.safe_load(raw)
        else:
            document = json.loads(raw)
    except (ValueError, yaml.YAMLError):
        logger.warning("Invalid config %s", path)
        return None

    rest = document.get("rest") if isinstance(document, dict) else None
    password = rest.get("rest-auth-pwd") if isinstance(rest, dict) else None
    if password is None:
        logger.warning("Config password field 'rest-auth-pwd' is empty in %s", path)
        return None
    return str(password)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
