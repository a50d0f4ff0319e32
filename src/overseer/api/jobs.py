"""Job submission endpoint."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Request
from pydantic import BaseModel

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/jobs", tags=["jobs"])


class SubmitJobResponse(BaseModel):
    """Response body for ``POST /v1/jobs``."""

    message_id: str
    task_id: Any = None


@router.post("", response_model=SubmitJobResponse, status_code=202)
async def submit_job(
    request: Request,
    record: dict[str, Any] = Body(...),
) -> SubmitJobResponse:
    """Enqueue a flat job record for the worker.

    The record is forwarded verbatim; field validation happens in the
    pipeline so that rejections are reported through the results stream
    like any other job outcome.
    """
    queue = request.app.state.queue
    message_id = await queue.enqueue(record)

    logger.info("Job submitted: task=%s msg_id=%s", record.get("task_id"), message_id)

    return SubmitJobResponse(message_id=message_id, task_id=record.get("task_id"))
