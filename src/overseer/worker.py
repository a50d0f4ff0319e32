"""Background worker that feeds grading jobs from the queue to the pipeline.

A single consumer processes one message at a time: the workspace and the
reserved container name are shared between jobs unless ``isolate_jobs`` is
enabled, so deliveries must not overlap.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from overseer.config import Settings
from overseer.models.result import JobOutcome
from overseer.pipeline import JobPipeline
from overseer.queue import JobQueue

logger = logging.getLogger(__name__)


async def run_worker(
    queue: JobQueue,
    pipeline: JobPipeline,
    settings: Settings,
) -> None:
    """Long-running coroutine that pulls jobs from the queue and processes them.

    Parameters
    ----------
    queue:
        The Redis-backed job transport.
    pipeline:
        Executes one job end-to-end.
    settings:
        Supplies the consumer group and consumer name.
    """
    group = settings.consumer_group
    consumer = settings.consumer_name
    logger.info("Worker %s starting (group=%s)", consumer, group)

    while True:
        try:
            messages = await queue.dequeue(
                group=group,
                consumer=consumer,
                count=1,
                block_ms=5000,
            )
            for msg_id, record in messages:
                await process_message(queue, pipeline, msg_id, record, group)

        except asyncio.CancelledError:
            logger.info("Worker %s shutting down", consumer)
            break
        except Exception:
            logger.exception("Worker loop error, retrying in 1 s")
            await asyncio.sleep(1)


async def process_message(
    queue: JobQueue,
    pipeline: JobPipeline,
    msg_id: str,
    record: Any,
    group: str,
) -> JobOutcome:
    """Run one delivered job, then acknowledge it and publish its record.

    The pipeline has already cleaned up by the time it returns.  The
    delivery is acknowledged exactly once and exactly one completion or
    failure record is published, whatever the outcome.
    """
    outcome = await pipeline.execute(record)
    try:
        await queue.acknowledge(msg_id, group)
    finally:
        await queue.publish_result(outcome.payload())
    return outcome
