"""Pydantic settings for the grading service."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    The settings object is frozen and passed explicitly to every component
    that needs it; nothing reads configuration from module globals.
    """

    model_config = {"env_prefix": "OVERSEER_", "frozen": True}

    redis_url: str = "redis://localhost:6379/0"
    jobs_stream: str = "overseer:jobs"
    results_stream: str = "overseer:results"
    consumer_group: str = "overseer-workers"
    consumer_name: str = "worker-1"

    workspace_dir: str = "app/sandbox"
    container_workdir: str = "/app"
    container_outdir: str = "/var/lib/overseer"
    container_name: str = "overseer-sandbox"
    isolate_jobs: bool = False
    container_memory_limit_mb: int = 100
    container_network_disabled: bool = False
    pull_missing_images: bool = True

    root_path: str = ""
    log_level: str = "INFO"
    cors_allowed_origins: list[str] = []

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def workspace_root(self) -> Path:
        # Docker bind mounts need absolute source paths.
        return Path(self.workspace_dir).resolve()

    def workspace_for(self, task_id: object) -> Path | None:
        """Return the staging directory for *task_id*.

        With ``isolate_jobs`` disabled every job shares the same directory.
        Otherwise each task gets its own subdirectory, and ``None`` is
        returned when the task id is unusable.
        """
        if not self.isolate_jobs:
            return self.workspace_root
        if isinstance(task_id, bool) or not isinstance(task_id, int):
            return None
        return self.workspace_root / f"task_{task_id}"

    def container_name_for(self, task_id: int, phase: str) -> str:
        if not self.isolate_jobs:
            return self.container_name
        return f"{self.container_name}-{task_id}-{phase}"

    def phase_command(self, phase: str, token: str) -> list[str]:
        """Build the argument vector that runs *phase*'s script in a container.

        The script path, status document and log file are passed as
        positional parameters so nothing is interpolated into shell text.
        """
        workdir = self.container_workdir.rstrip("/")
        outdir = self.container_outdir.rstrip("/")
        return [
            "/bin/bash",
            "-c",
            'chmod +x "$0" && "$0" "$1" >> "$2" 2>&1',
            f"{workdir}/{phase}.sh",
            f"{outdir}/{token}.yaml",
            f"{outdir}/{token}.txt",
        ]
