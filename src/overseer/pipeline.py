"""End-to-end execution of one grading job.

:class:`JobPipeline` validates the raw record, stages the workspace, runs
the build and run phases, and always tears the workspace down before
returning a :class:`~overseer.models.result.JobOutcome`.  Faults never
escape :meth:`JobPipeline.execute`; they are folded into the outcome so the
transport can publish exactly one record per job.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from overseer.config import Settings
from overseer.errors import ClientFault, ServerFault
from overseer.models.enums import OutcomeKind, Phase
from overseer.models.result import JobOutcome, PhaseResult
from overseer.sandbox.container import ContainerPhaseRunner
from overseer.validation import JobValidator, is_flag_set
from overseer.workspace import CleanupManager, WorkspaceStager

logger = logging.getLogger(__name__)

PHASES: tuple[Phase, ...] = (Phase.BUILD, Phase.RUN)


def _field(raw: Any, name: str) -> Any:
    return raw.get(name) if isinstance(raw, Mapping) else None


class JobPipeline:
    """Validate, stage, run both phases, clean up.

    Parameters
    ----------
    settings:
        Service configuration.
    runner:
        Executes a single phase inside a container.
    validator, stager:
        Overridable collaborators; defaults are built from *settings*.
    """

    def __init__(
        self,
        settings: Settings,
        runner: ContainerPhaseRunner,
        validator: JobValidator | None = None,
        stager: WorkspaceStager | None = None,
    ) -> None:
        self._settings = settings
        self._runner = runner
        self._validator = validator or JobValidator(root_path=settings.root_path)
        self._stager = stager or WorkspaceStager()

    async def execute(self, raw: Any) -> JobOutcome:
        """Run the job described by the raw transport record *raw*."""
        task_id = _field(raw, "task_id")
        timestamp = _field(raw, "timestamp")
        # The workspace is attached only once the record is accepted, so a
        # rejected job leaves the filesystem untouched.
        cleanup = CleanupManager(
            skip=is_flag_set(_field(raw, "skip_rm")),
            remove_root=self._settings.isolate_jobs,
        )

        try:
            with cleanup:
                job = self._validator.validate(raw)
                workspace = self._settings.workspace_for(job.task_id)
                cleanup.workspace = workspace

                await asyncio.to_thread(self._stager.stage, job, workspace)

                results: list[PhaseResult] = []
                for phase in PHASES:
                    results.append(await self._runner.run_phase(job, phase, workspace))
        except ClientFault as exc:
            logger.warning("Task %s rejected: %s", task_id, exc.message)
            return JobOutcome(
                kind=OutcomeKind.CLIENT_FAULT,
                task_id=task_id,
                timestamp=timestamp,
                reason=exc.message,
                status=exc.status,
            )
        except ServerFault as exc:
            logger.error("Task %s failed: %s", task_id, exc.message)
            return JobOutcome(
                kind=OutcomeKind.SERVER_FAULT,
                task_id=task_id,
                timestamp=timestamp,
                reason=exc.message,
                status=exc.status,
            )
        except Exception as exc:
            logger.exception("Task %s failed unexpectedly", task_id)
            return JobOutcome(
                kind=OutcomeKind.SERVER_FAULT,
                task_id=task_id,
                timestamp=timestamp,
                reason=str(exc),
                status=ServerFault.status,
            )

        logger.info(
            "Task %s completed: exit codes %s",
            job.task_id,
            ", ".join(f"{p.value}={r.exit_code}" for p, r in zip(PHASES, results)),
        )
        return JobOutcome(
            kind=OutcomeKind.SUCCESS,
            task_id=job.task_id,
            timestamp=job.timestamp,
        )
