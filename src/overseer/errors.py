"""Fault classes raised by the grading pipeline."""


class PipelineError(Exception):
    """Base class for faults that end a job early.

    ``status`` follows HTTP conventions so the transport can classify the
    failure record it publishes.
    """

    status: int = 500

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status


class ClientFault(PipelineError):
    """The job itself is invalid: missing fields, bad archives, bad image."""

    status = 400


class ServerFault(PipelineError):
    """Infrastructure failure; the detail is kept out of published records."""

    status = 500
