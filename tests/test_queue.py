"""Tests for the Redis Streams transport."""

from __future__ import annotations

import json

import redis.asyncio as redis

from overseer.queue import JobQueue


class FakeRedis:
    def __init__(self, messages=None, group_exists: bool = False) -> None:
        self.messages = messages or []
        self.group_exists = group_exists
        self.added: list[tuple[str, dict]] = []
        self.acked: list[tuple[str, str, str]] = []

    async def xgroup_create(self, stream, group, id="0", mkstream=False):
        if self.group_exists:
            raise redis.ResponseError("BUSYGROUP Consumer Group name already exists")
        self.group_exists = True

    async def xreadgroup(self, groupname, consumername, streams, count, block):
        (stream,) = streams
        return [(stream.encode(), self.messages)] if self.messages else []

    async def xadd(self, stream, fields):
        self.added.append((stream, fields))
        return f"{len(self.added)}-0".encode()

    async def xack(self, stream, group, msg_id):
        self.acked.append((stream, group, msg_id))

    async def ping(self):
        return True


class TestJobQueue:
    async def test_enqueue_serialises_record(self, settings):
        fake = FakeRedis()
        queue = JobQueue(fake, settings)
        msg_id = await queue.enqueue({"task_id": 1})
        assert msg_id == "1-0"
        stream, fields = fake.added[0]
        assert stream == settings.jobs_stream
        assert json.loads(fields["data"]) == {"task_id": 1}

    async def test_dequeue_decodes_records(self, settings):
        fake = FakeRedis(
            messages=[
                (b"1-0", {b"data": json.dumps({"task_id": 1}).encode()}),
                (b"2-0", {b"data": b"{broken"}),
            ],
            group_exists=True,
        )
        queue = JobQueue(fake, settings)
        messages = await queue.dequeue("g", "c")
        assert messages == [("1-0", {"task_id": 1}), ("2-0", "{broken")]

    async def test_dequeue_empty(self, settings):
        queue = JobQueue(FakeRedis(), settings)
        assert await queue.dequeue("g", "c") == []

    async def test_acknowledge_and_publish(self, settings):
        fake = FakeRedis()
        queue = JobQueue(fake, settings)
        await queue.acknowledge("1-0", "g")
        await queue.publish_result({"task_id": 1, "timestamp": "t"})
        assert fake.acked == [(settings.jobs_stream, "g", "1-0")]
        stream, fields = fake.added[0]
        assert stream == settings.results_stream
        assert json.loads(fields["data"]) == {"task_id": 1, "timestamp": "t"}

    async def test_health_check(self, settings):
        assert await JobQueue(FakeRedis(), settings).health_check() is True
