"""Redis Streams transport for job records and completion records."""

from overseer.queue.redis_queue import JobQueue

__all__ = ["JobQueue"]
