"""Task manifests, schedules and task management commands."""
