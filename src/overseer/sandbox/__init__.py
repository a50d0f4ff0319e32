"""Sandbox subsystem: one ephemeral Docker container per job phase."""

from overseer.sandbox.container import ContainerPhaseRunner
from overseer.sandbox.security import ResourcePolicy

__all__ = [
    "ContainerPhaseRunner",
    "ResourcePolicy",
]
