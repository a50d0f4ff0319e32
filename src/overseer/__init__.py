"""Overseer: sandboxed two-phase grading jobs executed in Docker."""

__version__ = "0.1.0"
