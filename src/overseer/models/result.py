"""PhaseResult and JobOutcome models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field

from overseer.models.enums import OutcomeKind

INTERNAL_ERROR_MESSAGE = "Internal server error"


@dataclass(frozen=True)
class PhaseResult:
    """What one container phase produced."""

    exit_code: int
    changes: str
    container_removed: bool


class JobOutcome(BaseModel):
    """Tagged result of running one job through the pipeline."""

    kind: OutcomeKind = Field(
        description="Whether the job succeeded or which fault class ended it.",
    )
    task_id: Any = Field(
        default=None,
        description="Task identifier as received (may be invalid on client faults).",
    )
    timestamp: Any = Field(
        default=None,
        description="Timestamp echoed from the job record.",
    )
    reason: str | None = Field(
        default=None,
        description="Detailed failure reason. Published only for client faults.",
    )
    status: int = Field(
        default=200,
        description="HTTP-style classification of the outcome.",
    )

    @property
    def succeeded(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS

    def payload(self) -> dict[str, Any]:
        """Render the record published back to the transport."""
        if self.kind == OutcomeKind.SUCCESS:
            return {"task_id": self.task_id, "timestamp": self.timestamp}
        error = self.reason if self.kind == OutcomeKind.CLIENT_FAULT else INTERNAL_ERROR_MESSAGE
        return {
            "error": error,
            "task_id": self.task_id,
            "timestamp": self.timestamp,
            "status": self.status,
        }
