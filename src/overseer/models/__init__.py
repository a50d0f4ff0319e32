"""Core domain models for the overseer service."""

from overseer.models.enums import OutcomeKind, Phase
from overseer.models.job import Job
from overseer.models.result import INTERNAL_ERROR_MESSAGE, JobOutcome, PhaseResult

__all__ = [
    "INTERNAL_ERROR_MESSAGE",
    "Job",
    "JobOutcome",
    "OutcomeKind",
    "Phase",
    "PhaseResult",
]
