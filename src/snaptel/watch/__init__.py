"""Live rendering of task event streams."""
