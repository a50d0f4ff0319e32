"""Docker container lifecycle for a single job phase."""

from __future__ import annotations

import asyncio
import logging
import secrets
from pathlib import Path

import docker
import docker.errors
import requests.exceptions

from overseer.config import Settings
from overseer.errors import ClientFault, ServerFault
from overseer.models.enums import Phase
from overseer.models.job import Job
from overseer.models.result import PhaseResult
from overseer.outputs import ChangeRecorder, OutputMerger, format_changes
from overseer.sandbox.security import ResourcePolicy

logger = logging.getLogger(__name__)

# Errors raised by the Docker SDK when the daemon cannot be reached or
# rejects a request.
_DOCKER_ERRORS = (
    docker.errors.DockerException,
    requests.exceptions.ConnectionError,
    ConnectionError,
)


def new_phase_token(phase: Phase) -> str:
    """Return a collision-resistant token naming a phase's scratch files."""
    return f"{phase.value}-{secrets.token_hex(16)}"


class ContainerPhaseRunner:
    """Run one phase script inside an ephemeral, memory-capped container.

    For every call to :meth:`run_phase` a container is created under the
    reserved name, started, and waited on.  Its scratch output is merged into
    the job's accumulated artifacts, its filesystem-change report is stored,
    and finally the container is removed.  A non-zero exit from the phase
    script is recorded as data; only infrastructure failures raise.

    All blocking Docker SDK calls are dispatched via ``asyncio.to_thread``
    so that the event loop is never blocked.
    """

    def __init__(
        self,
        settings: Settings,
        docker_client: docker.DockerClient | None = None,
        policy: ResourcePolicy | None = None,
    ) -> None:
        self._settings = settings
        self._client = docker_client or docker.from_env()
        self._policy = policy or ResourcePolicy(
            memory_limit_mb=settings.container_memory_limit_mb,
            network_disabled=settings.container_network_disabled,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run_phase(self, job: Job, phase: Phase, workspace: Path) -> PhaseResult:
        """Execute *phase* of *job* against the staged *workspace*.

        Raises
        ------
        ClientFault
            If the image reference is empty or the image cannot be found.
        ServerFault
            If the container engine fails, including when the container
            cannot be removed afterwards.
        """
        if not job.image or not job.image.strip():
            raise ClientFault("A valid Docker image name:tag is needed")

        output_dir = Path(job.output_path).resolve()
        output_dir.mkdir(parents=True, exist_ok=True)

        token = new_phase_token(phase)
        name = self._settings.container_name_for(job.task_id, phase.value)
        command = self._settings.phase_command(phase.value, token)

        logger.info(
            "Running %s phase for task %s in %s (container=%s)",
            phase.value,
            job.task_id,
            job.image,
            name,
        )

        container = None
        try:
            container = await self._create(job.image, name, command, workspace, output_dir)
            await asyncio.to_thread(container.start)

            exit_info = await asyncio.to_thread(container.wait)
            exit_code = int(exit_info.get("StatusCode", -1))
            logger.info("Docker container exit status code: %d", exit_code)

            await asyncio.to_thread(
                OutputMerger(output_dir).merge, token, phase.value, exit_code
            )

            raw_changes = await asyncio.to_thread(container.diff)
            changes = format_changes(raw_changes)
            await asyncio.to_thread(ChangeRecorder(output_dir).record, phase.value, changes)
        except _DOCKER_ERRORS as exc:
            logger.error("Container engine failure during %s phase: %s", phase.value, exc)
            await self._remove(container, name)
            raise ServerFault(f"Container engine failure during {phase.value} phase: {exc}") from exc
        except BaseException:
            await self._remove(container, name)
            raise

        removed = await self._remove(container, name)
        result = PhaseResult(exit_code=exit_code, changes=changes, container_removed=removed)
        if not removed:
            # A leftover container would block the reserved name for the next phase.
            raise ServerFault(f"Failed to remove container {name}")
        return result

    async def health_check(self) -> bool:
        """Return ``True`` if the Docker daemon answers a ping."""
        try:
            return bool(await asyncio.to_thread(self._client.ping))
        except _DOCKER_ERRORS:
            return False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _create(
        self,
        image: str,
        name: str,
        command: list[str],
        workspace: Path,
        output_dir: Path,
    ):
        kwargs = dict(
            image=image,
            command=command,
            name=name,
            detach=True,
            stdin_open=False,
            tty=False,
            volumes={
                str(workspace): {"bind": self._settings.container_workdir, "mode": "rw"},
                str(output_dir): {"bind": self._settings.container_outdir, "mode": "rw"},
            },
            **self._policy.to_container_config(),
        )
        try:
            container = await asyncio.to_thread(self._client.containers.create, **kwargs)
        except docker.errors.ImageNotFound:
            if not self._settings.pull_missing_images:
                raise ClientFault(f"Docker image not found: {image}") from None
            logger.info("Image %s not present locally, pulling", image)
            try:
                await asyncio.to_thread(self._client.images.pull, image)
            except docker.errors.APIError as exc:
                raise ClientFault(f"Docker image not found: {image}") from exc
            container = await asyncio.to_thread(self._client.containers.create, **kwargs)

        logger.info("Container created: id=%s image=%s", container.short_id, image)
        return container

    async def _remove(self, container, name: str) -> bool:
        """Remove *container*; return ``False`` if the engine refused."""
        if container is None:
            return True
        try:
            await asyncio.to_thread(container.remove, force=True)
        except _DOCKER_ERRORS as exc:
            logger.error("Failed to remove container %s: %s", name, exc)
            return False
        logger.info("Container removed: name=%s id=%s", name, container.short_id)
        return True
