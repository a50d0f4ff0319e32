"""Job model."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class Job(BaseModel):
    """A validated grading job.

    Instances are produced by :class:`~overseer.validation.JobValidator`
    only; the raw transport record is never trusted directly.
    """

    model_config = {"frozen": True}

    task_id: int = Field(
        description="Identifier of the task being graded.",
    )
    timestamp: Any = Field(
        description="Opaque value echoed back unchanged in the completion record.",
    )
    submission: str = Field(
        description="Path to the submission archive or pre-extracted directory.",
    )
    assessment: str = Field(
        description="Path to the assessment archive holding build.sh and run.sh.",
    )
    image: str = Field(
        description="Container image reference (name:tag) both phases run in.",
    )
    output_path: str = Field(
        description="Host directory receiving the accumulated artifacts.",
    )
    submission_is_archive: bool = Field(
        default=False,
        description="True when the submission is a zip archive rather than a directory.",
    )
    skip_cleanup: bool = Field(
        default=False,
        description="Leave the workspace in place after the job (debugging aid).",
    )
