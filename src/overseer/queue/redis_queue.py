"""Job transport via Redis Streams.

Provides :class:`JobQueue` -- job records arrive on one stream, completion
and failure records are published onto another.  Delivery to the worker
uses a consumer group so each message is acknowledged explicitly.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import redis.asyncio as redis

from overseer.config import Settings

logger = logging.getLogger(__name__)


def _decode(value: Any) -> Any:
    return value.decode() if isinstance(value, bytes) else value


class JobQueue:
    """Redis-backed job transport.

    Parameters
    ----------
    redis_client:
        An ``redis.asyncio.Redis`` instance connected to the Redis server.
    settings:
        Supplies the stream names.
    """

    def __init__(self, redis_client: redis.Redis, settings: Settings) -> None:
        self._redis = redis_client
        self._jobs_stream = settings.jobs_stream
        self._results_stream = settings.results_stream

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def health_check(self) -> bool:
        """Return ``True`` if Redis is reachable."""
        try:
            return await self._redis.ping()
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Enqueue / Dequeue
    # ------------------------------------------------------------------

    async def enqueue(self, record: dict[str, Any]) -> str:
        """Publish a raw job record onto the jobs stream.

        Returns the Redis message ID.
        """
        msg_id = await self._redis.xadd(
            self._jobs_stream,
            {"data": json.dumps(record)},
        )
        msg_id = _decode(msg_id)
        logger.info("Enqueued task %s (msg_id=%s)", record.get("task_id"), msg_id)
        return str(msg_id)

    async def dequeue(
        self,
        group: str,
        consumer: str,
        count: int = 1,
        block_ms: int = 5000,
    ) -> list[tuple[str, Any]]:
        """Read new job records as part of a consumer group.

        Automatically creates the consumer group if it does not yet exist.

        Returns a list of ``(message_id, record)`` tuples.  A record that is
        not valid JSON is returned as its raw text so that validation can
        reject it and the delivery still gets acknowledged.
        """
        try:
            await self._redis.xgroup_create(
                self._jobs_stream, group, id="0", mkstream=True
            )
        except redis.ResponseError as exc:
            # "BUSYGROUP Consumer Group name already exists"
            if "BUSYGROUP" not in str(exc):
                raise

        raw: list = await self._redis.xreadgroup(
            groupname=group,
            consumername=consumer,
            streams={self._jobs_stream: ">"},
            count=count,
            block=block_ms,
        )

        results: list[tuple[str, Any]] = []
        if not raw:
            return results

        for _stream_name, messages in raw:
            for msg_id, fields in messages:
                msg_id_str = str(_decode(msg_id))
                data = _decode(fields.get(b"data", fields.get("data", b"")))
                try:
                    record = json.loads(data)
                except (TypeError, ValueError):
                    logger.warning("Undecodable job record in message %s", msg_id_str)
                    record = data
                results.append((msg_id_str, record))

        return results

    async def acknowledge(self, msg_id: str, group: str) -> None:
        """Acknowledge a message so it is not re-delivered."""
        await self._redis.xack(self._jobs_stream, group, msg_id)

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    async def publish_result(self, payload: dict[str, Any]) -> str:
        """Publish a completion or failure record onto the results stream."""
        msg_id = await self._redis.xadd(
            self._results_stream,
            {"data": json.dumps(payload, default=str)},
        )
        logger.info("Published result for task %s", payload.get("task_id"))
        return str(_decode(msg_id))

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying Redis connection."""
        await self._redis.aclose()
