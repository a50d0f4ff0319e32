"""Resource limits for phase containers."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ResourcePolicy:
    """Immutable resource policy applied to every phase container.

    Memory is a hard ceiling with swap disabled.  Containers are never
    restarted automatically: a phase runs once and its container is removed
    by the runner.  Networking stays enabled unless ``network_disabled`` is
    set, since build scripts commonly fetch packages.
    """

    memory_limit_mb: int = 100
    network_disabled: bool = False

    def __post_init__(self) -> None:
        if self.memory_limit_mb <= 0:
            raise ValueError("memory_limit_mb must be a positive integer.")

    def to_container_config(self) -> dict:
        """Convert to keyword arguments for ``ContainerCollection.create``."""
        config = {
            "mem_limit": f"{self.memory_limit_mb}m",
            "memswap_limit": f"{self.memory_limit_mb}m",  # No swap
            "restart_policy": {"Name": "no"},
        }
        if self.network_disabled:
            config["network_mode"] = "none"
        return config
