"""Command-line client for the Snap telemetry daemon."""

__version__ = "0.1.0"
