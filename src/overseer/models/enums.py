"""Phase and OutcomeKind enums."""

from enum import StrEnum


class Phase(StrEnum):
    """The two container phases of every grading job, in execution order.

    Each value doubles as the name of the script executed inside the
    container (``build.sh`` / ``run.sh``) and as the prefix of the phase's
    scratch files and change report.
    """

    BUILD = "build"
    RUN = "run"


class OutcomeKind(StrEnum):
    """How a job ended."""

    SUCCESS = "SUCCESS"
    CLIENT_FAULT = "CLIENT_FAULT"
    SERVER_FAULT = "SERVER_FAULT"
